"""
CLI script for rendering performances to MIDI files.

Usage:

    # Render with defaults
    python -m performance_rnn.scripts.generate --checkpoint checkpoints/performance-rnn-tfjs

    # Render with custom settings
    python -m performance_rnn.scripts.generate \
        --checkpoint checkpoints/performance-rnn-tfjs \
        --num_files 3 \
        --duration 60 \
        --note_density 4 \
        --pitch_weights 1 0 1 0 1 1 0 1 0 1 0 1 \
        --seed 7
"""

import argparse
import logging
import sys
from pathlib import Path

from performance_rnn.data.constants import DENSITY_BIN_RANGES, PITCH_WEIGHT_SIZE
from performance_rnn.generation import (
    GenerationConfig,
    PerformanceRenderer,
    create_default_config,
    load_config,
    load_generator_from_checkpoint
)
from performance_rnn.utils import format_time, set_seed, setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render Performance RNN piano performances to MIDI files",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument(
        '--checkpoint',
        type=str,
        default=None,
        help="Weights manifest directory or .pt checkpoint (required unless set in --config)"
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help="YAML configuration file; command-line flags override it"
    )

    parser.add_argument(
        '--num_files',
        type=int,
        default=1,
        help="Number of files to render"
    )

    parser.add_argument(
        '--output_dir',
        type=str,
        default=None,
        help="Output directory for rendered files"
    )

    parser.add_argument(
        '--duration',
        type=float,
        default=None,
        help="Seconds of music per file"
    )

    # Conditioning
    parser.add_argument(
        '--note_density',
        type=int,
        choices=range(len(DENSITY_BIN_RANGES)),
        default=None,
        help=f"Note density bin ({', '.join(f'{i}={d:g}/s' for i, d in enumerate(DENSITY_BIN_RANGES))})"
    )

    parser.add_argument(
        '--pitch_weights',
        type=float,
        nargs=PITCH_WEIGHT_SIZE,
        default=None,
        help="Relative weight of each pitch class, starting at C"
    )

    parser.add_argument(
        '--gain',
        type=float,
        default=None,
        help="Velocity gain in percent (0-200)"
    )

    # Sampling
    parser.add_argument(
        '--temperature',
        type=float,
        default=None,
        help="Sampling temperature"
    )

    parser.add_argument(
        '--top_k',
        type=int,
        default=None,
        help="Top-k filtering (optional)"
    )

    parser.add_argument(
        '--top_p',
        type=float,
        default=None,
        help="Nucleus sampling threshold (optional)"
    )

    parser.add_argument(
        '--save_events',
        action='store_true',
        help="Save event sequences as JSON"
    )

    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help="Random seed for reproducibility"
    )

    parser.add_argument(
        '--device',
        type=str,
        choices=['cuda', 'cpu', 'auto'],
        default=None,
        help="Device to use for generation"
    )

    parser.add_argument(
        '--log_dir',
        type=str,
        default=None,
        help="Also write logs to a timestamped file in this directory"
    )

    return parser.parse_args(argv)


def create_config_from_args(args) -> GenerationConfig:
    """
    Create GenerationConfig from parsed arguments.

    Values from --config are used unless a flag overrides them.

    Args:
        args: Parsed command-line arguments

    Returns:
        GenerationConfig object
    """
    base = load_config(args.config).to_dict() if args.config else {}

    overrides = {
        'checkpoint_path': args.checkpoint,
        'output_dir': args.output_dir,
        'duration_seconds': args.duration,
        'note_density_index': args.note_density,
        'pitch_weights': args.pitch_weights,
        'gain': args.gain,
        'temperature': args.temperature,
        'top_k': args.top_k,
        'top_p': args.top_p,
        'seed': args.seed,
        'device': args.device,
    }
    base.update({key: value for key, value in overrides.items() if value is not None})

    if args.save_events:
        base['save_event_sequence'] = True

    return create_default_config(**base)


def main(argv=None):
    """Main entry point for CLI rendering."""
    args = parse_args(argv)
    setup_logging(log_dir=Path(args.log_dir) if args.log_dir else None)

    try:
        config = create_config_from_args(args)
    except (ValueError, FileNotFoundError) as e:
        print(f"ERROR: {e}")
        sys.exit(2)

    if config.checkpoint_path is None:
        print("ERROR: No checkpoint given (use --checkpoint or set checkpoint_path in --config)")
        sys.exit(2)

    print("=" * 70)
    print("PERFORMANCE RNN RENDERER")
    print("=" * 70)
    print()
    print("Configuration:")
    print(f"  Checkpoint: {config.checkpoint_path}")
    print(f"  Output directory: {config.output_dir}")
    print(f"  Device: {config.device}")
    print(f"  Duration: {config.duration_seconds:g}s")
    print(f"  Note density: {DENSITY_BIN_RANGES[config.note_density_index]:g} notes/s")
    print(f"  Pitch weights: {config.pitch_weights}")
    print(f"  Gain: {config.gain:g}%")
    print(f"  Temperature: {config.temperature}")
    print(f"  Seed: {config.seed if config.seed is not None else 'Random'}")
    print()

    if config.seed is not None:
        set_seed(config.seed)

    generator = load_generator_from_checkpoint(config.checkpoint_path, config)
    if generator is None:
        print("ERROR: Failed to load checkpoint")
        sys.exit(1)

    def progress_callback(current, total, result):
        """Print progress updates."""
        print(f"[{current}/{total}] {result.get_summary()}")
        if result.midi_path:
            print(f"  -> {result.midi_path}")

    renderer = PerformanceRenderer(generator, config)
    results = renderer.render_batch(args.num_files, progress_callback=progress_callback)

    successful = sum(1 for r in results if r.success)
    failed = len(results) - successful
    total_time = sum(r.generation_time for r in results)

    print()
    print("=" * 70)
    print("RENDERING COMPLETE")
    print("=" * 70)
    print(f"Successful: {successful}")
    print(f"Failed: {failed}")
    print(f"Total time: {format_time(total_time)}")

    sys.exit(0 if failed == 0 else 1)


if __name__ == "__main__":
    main()
