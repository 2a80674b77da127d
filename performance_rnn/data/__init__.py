"""
Event space definitions and constants.
"""

from .events import (
    EventType,
    PerformanceEvent,
    calculate_event_size,
    decode_event,
    encode_event,
    velocity_from_bin,
    time_shift_seconds,
    event_name,
    is_valid_index
)

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
