"""
CLI script for live playback on a MIDI output port.

Connect the port to a software or hardware piano to hear the performance.

Usage:

    # List available ports
    python -m performance_rnn.scripts.play --list_ports

    # Play for two minutes on a virtual port
    python -m performance_rnn.scripts.play \
        --checkpoint checkpoints/performance-rnn-tfjs \
        --virtual \
        --duration 120
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from performance_rnn.data.constants import DENSITY_BIN_RANGES, PITCH_WEIGHT_SIZE
from performance_rnn.generation import create_live_config, load_generator_from_checkpoint
from performance_rnn.playback import (
    KeyboardState,
    MidiOutputSink,
    MonotonicClock,
    PerformanceDecoder,
    PerformancePlayer,
    Scheduler,
    list_output_ports,
    open_midi_output
)
from performance_rnn.utils import set_seed, setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Play Performance RNN live on a MIDI output port",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument('--checkpoint', type=str, default=None,
                        help="Weights manifest directory or .pt checkpoint")
    parser.add_argument('--port', type=str, default=None,
                        help="MIDI output port name (default port if omitted)")
    parser.add_argument('--virtual', action='store_true',
                        help="Create a virtual output port instead of opening one")
    parser.add_argument('--list_ports', action='store_true',
                        help="List MIDI output ports and exit")
    parser.add_argument('--duration', type=float, default=None,
                        help="Stop after this many seconds (play until Ctrl+C if omitted)")
    parser.add_argument('--note_density', type=int, choices=range(len(DENSITY_BIN_RANGES)), default=2,
                        help="Note density bin")
    parser.add_argument('--pitch_weights', type=float, nargs=PITCH_WEIGHT_SIZE, default=None,
                        help="Relative weight of each pitch class, starting at C")
    parser.add_argument('--gain', type=float, default=100,
                        help="Velocity gain in percent (0-200)")
    parser.add_argument('--temperature', type=float, default=1.0,
                        help="Sampling temperature")
    parser.add_argument('--seed', type=int, default=None,
                        help="Random seed")
    parser.add_argument('--device', type=str, choices=['cuda', 'cpu', 'auto'], default='cpu',
                        help="Device to use for generation")
    parser.add_argument('--verbose', action='store_true',
                        help="Log every generation step")

    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point for live playback."""
    args = parse_args(argv)
    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    if args.list_ports:
        for name in list_output_ports():
            print(name)
        return

    if args.checkpoint is None:
        print("ERROR: --checkpoint is required")
        sys.exit(2)

    overrides = {
        'note_density_index': args.note_density,
        'gain': args.gain,
        'temperature': args.temperature,
        'seed': args.seed,
        'device': args.device,
        'midi_port': args.port,
        'virtual_port': args.virtual,
    }
    if args.pitch_weights is not None:
        overrides['pitch_weights'] = args.pitch_weights

    try:
        config = create_live_config(**overrides)
    except ValueError as e:
        print(f"ERROR: {e}")
        sys.exit(2)

    if config.seed is not None:
        set_seed(config.seed)

    generator = load_generator_from_checkpoint(Path(args.checkpoint), config)
    if generator is None:
        print("ERROR: Failed to load checkpoint")
        sys.exit(1)

    try:
        port = open_midi_output(config.midi_port, virtual=config.virtual_port)
    except (OSError, IOError) as e:
        print(f"ERROR: Could not open MIDI output: {e}")
        sys.exit(1)

    clock = MonotonicClock()
    scheduler = Scheduler(clock)
    decoder = PerformanceDecoder(
        MidiOutputSink(port, scheduler),
        keyboard=KeyboardState(scheduler),
        gain=config.gain,
        max_note_duration=config.max_note_duration_seconds,
        min_note_hold=config.min_note_hold_seconds
    )
    player = PerformancePlayer(generator, decoder, clock, config, scheduler=scheduler)
    player.add_reset_listener(lambda: print("Resetting..."))

    print(f"Playing on {port.name} (Ctrl+C to stop)")
    player.start()

    try:
        if args.duration is not None:
            time.sleep(args.duration)
        else:
            while True:
                time.sleep(1.0)
    except KeyboardInterrupt:
        print()
    finally:
        player.close()

    print(f"Stopped after {player.num_resets} reset(s), "
          f"{player.num_drift_corrections} drift correction(s)")


if __name__ == "__main__":
    main()
