"""
Real-time playback of generated performances.

This module provides:
- Clocks (wall clock and manual)
- A timed callback scheduler
- Note sinks (MIDI port, recording, keyboard display)
- The event decoder
- The live, drift-corrected generation loop
"""

from .clock import (
    Clock,
    MonotonicClock,
    ManualClock
)

from .scheduler import (
    Scheduler
)

from .sinks import (
    NoteSink,
    NoteRecord,
    RecordingSink,
    MidiOutputSink,
    KeyboardState,
    midi_velocity,
    list_output_ports,
    open_midi_output
)

from .decoder import (
    PerformanceDecoder
)

from .player import (
    PerformancePlayer
)

__all__ = [
    # Clocks
    'Clock',
    'MonotonicClock',
    'ManualClock',

    # Scheduling
    'Scheduler',

    # Sinks
    'NoteSink',
    'NoteRecord',
    'RecordingSink',
    'MidiOutputSink',
    'KeyboardState',
    'midi_velocity',
    'list_output_ports',
    'open_midi_output',

    # Decoding
    'PerformanceDecoder',

    # Live loop
    'PerformancePlayer'
]
