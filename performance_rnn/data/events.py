"""
Event space encoding for Performance RNN.

The model's output is a single index into a flat event space made of four
contiguous ranges: note_on (128 pitches), note_off (128 pitches), time_shift
(1..100 steps of 10ms) and velocity_change (32 bins). This module handles the
"translations" between those indices and structured events.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

from .constants import (
    EVENT_RANGES,
    EVENT_SIZE,
    STEPS_PER_SECOND,
    VELOCITY_BIN_SIZE
)

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Kinds of performance events, in event space order."""
    NOTE_ON = 'note_on'
    NOTE_OFF = 'note_off'
    TIME_SHIFT = 'time_shift'
    VELOCITY_CHANGE = 'velocity_change'


@dataclass(frozen=True)
class PerformanceEvent:
    """
    A single decoded event.

    value is the pitch for note events, the number of 10ms steps for
    time shifts and the velocity bin (1-based) for velocity changes.
    """
    event_type: EventType
    value: int

    @property
    def name(self) -> str:
        return f"{self.event_type.value.upper()}_{self.value}"


def calculate_event_size() -> int:
    """Total number of indices in the event space."""
    event_offset = 0
    for _, min_value, max_value in EVENT_RANGES:
        event_offset += max_value - min_value + 1
    return event_offset


def _range_offsets() -> List[Tuple[EventType, int, int, int]]:
    offsets = []
    offset = 0
    for event_type, min_value, max_value in EVENT_RANGES:
        offsets.append((EventType(event_type), min_value, max_value, offset))
        offset += max_value - min_value + 1
    return offsets


_RANGE_OFFSETS = _range_offsets()


def decode_event(index: int) -> PerformanceEvent:
    """
    Decode an event space index.

    Args:
        index: Index in [0, EVENT_SIZE)

    Returns:
        The decoded PerformanceEvent

    Raises:
        ValueError: If the index is outside the event space
    """
    index = int(index)
    for event_type, min_value, max_value, offset in _RANGE_OFFSETS:
        if offset <= index <= offset + max_value - min_value:
            return PerformanceEvent(event_type, min_value + index - offset)

    raise ValueError(f"Could not decode index: {index}")


def encode_event(event: PerformanceEvent) -> int:
    """
    Encode an event back into its event space index.

    Raises:
        ValueError: If the event's value is outside its range
    """
    for event_type, min_value, max_value, offset in _RANGE_OFFSETS:
        if event_type == event.event_type:
            if not min_value <= event.value <= max_value:
                raise ValueError(
                    f"{event.event_type.value} value {event.value} outside "
                    f"[{min_value}, {max_value}]"
                )
            return offset + event.value - min_value

    raise ValueError(f"Could not encode event type: {event.event_type}")


def velocity_from_bin(velocity_bin: int) -> float:
    """
    Convert a 1-based velocity bin to a normalized velocity.

    The top bin maps slightly above 1.0 (32 * 4 / 127); sinks clamp.
    """
    return velocity_bin * VELOCITY_BIN_SIZE / 127


def time_shift_seconds(steps: int) -> float:
    """Convert time shift steps to seconds."""
    return steps / STEPS_PER_SECOND


def event_name(index: int) -> str:
    """Readable name of an event index, e.g. TIME_SHIFT_100."""
    return decode_event(index).name


def is_valid_index(index: int) -> bool:
    return 0 <= index < EVENT_SIZE


__all__ = [
    'EventType',
    'PerformanceEvent',
    'calculate_event_size',
    'decode_event',
    'encode_event',
    'velocity_from_bin',
    'time_shift_seconds',
    'event_name',
    'is_valid_index'
]
