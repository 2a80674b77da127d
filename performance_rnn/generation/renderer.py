"""
Offline rendering of performances.

Runs the same generate/decode loop as live playback, but on performance time
alone: no clock, no buffering and no drift correction.
"""

import logging
from typing import List, Optional, Tuple

from ..data.constants import STEPS_PER_SECOND
from ..playback.decoder import PerformanceDecoder
from ..playback.sinks import RecordingSink
from .generation_config import GenerationConfig
from .generator import PerformanceGenerator

logger = logging.getLogger(__name__)

# Upper bound on events per second of music before rendering gives up
MAX_EVENTS_PER_SECOND = 10 * STEPS_PER_SECOND


def render_performance(
    generator: PerformanceGenerator,
    config: Optional[GenerationConfig] = None,
    sink: Optional[RecordingSink] = None
) -> Tuple[List[int], RecordingSink, int]:
    """
    Generate duration_seconds of music.

    The RNN is reset at the start and then every reset_rnn_frequency_seconds
    of performance time. Notes still held at the end are closed.

    Args:
        generator: Event generator
        config: Settings (defaults to generator.config)
        sink: Recording sink to fill (a new one if None)

    Returns:
        Tuple of (event indices, recording sink, number of resets after the first)
    """
    if config is None:
        config = generator.config
    if sink is None:
        sink = RecordingSink()

    decoder = PerformanceDecoder(
        sink,
        gain=config.gain,
        max_note_duration=config.max_note_duration_seconds,
        min_note_hold=config.min_note_hold_seconds
    )

    generator.reset()

    event_ids: List[int] = []
    num_resets = 0
    last_reset_time = 0.0
    max_events = max(1000, int(config.duration_seconds * MAX_EVENTS_PER_SECOND))

    while decoder.current_time < config.duration_seconds:
        frequency = config.reset_rnn_frequency_seconds
        if frequency is not None and decoder.current_time - last_reset_time >= frequency:
            generator.reset()
            last_reset_time = decoder.current_time
            num_resets += 1
            logger.debug(f"RNN reset at {decoder.current_time:.2f}s")

        for index in generator.generate_steps(config.steps_per_generate_call):
            decoder.play_output(index)
            event_ids.append(index)

        if len(event_ids) >= max_events:
            logger.warning(
                f"Stopped after {len(event_ids)} events with only "
                f"{decoder.current_time:.2f}s of music generated"
            )
            break

    sink.finish(decoder.current_time)
    decoder.active_notes.clear()

    logger.info(
        f"Rendered {decoder.current_time:.2f}s of music: {len(event_ids)} events, "
        f"{len(sink.notes)} notes"
    )

    return event_ids, sink, num_resets


__all__ = [
    'render_performance',
    'MAX_EVENTS_PER_SECOND'
]
