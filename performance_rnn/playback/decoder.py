"""
Event interpreter for the playback loop.

Turns sampled event indices into timed key presses on a NoteSink, keeping
track of the performance time, the current velocity and which notes are held.
"""

import logging
from typing import Dict, Optional

from ..data.constants import (
    DEFAULT_GAIN,
    DEFAULT_VELOCITY,
    MAX_GAIN,
    MAX_NOTE_DURATION_SECONDS,
    MIN_NOTE_HOLD_SECONDS
)
from ..data.events import (
    EventType,
    PerformanceEvent,
    decode_event,
    time_shift_seconds,
    velocity_from_bin
)
from .sinks import KeyboardState, NoteSink

logger = logging.getLogger(__name__)


class PerformanceDecoder:
    """
    Applies decoded events to a sink.

    - note_on: press the key at the current time with velocity * gain
    - note_off: release the key, but not before min_note_hold after its press
    - time_shift: advance the current time, then release notes held too long
    - velocity_change: set the velocity for following notes
    """

    def __init__(
        self,
        sink: NoteSink,
        keyboard: Optional[KeyboardState] = None,
        gain: float = DEFAULT_GAIN,
        max_note_duration: float = MAX_NOTE_DURATION_SECONDS,
        min_note_hold: float = MIN_NOTE_HOLD_SECONDS,
        start_time: float = 0.0
    ):
        """
        Initialize decoder.

        Args:
            sink: Where notes are played
            keyboard: Keyboard display to flash keys on (optional)
            gain: Velocity gain in percent (0-200)
            max_note_duration: Notes held longer than this are released
            min_note_hold: Minimum time between a note's press and release
            start_time: Initial performance time in seconds
        """
        self.sink = sink
        self.keyboard = keyboard
        self.max_note_duration = max_note_duration
        self.min_note_hold = min_note_hold

        self.gain = DEFAULT_GAIN
        self.set_gain(gain)

        self.current_time = start_time
        self.velocity = DEFAULT_VELOCITY / 127
        self.active_notes: Dict[int, float] = {}

    def set_gain(self, gain: float):
        if not 0 <= gain <= MAX_GAIN:
            raise ValueError(f"Gain must be in [0, {MAX_GAIN}], got {gain}")
        self.gain = gain

    def reset_time(self, time_sec: float):
        """Move the performance time (reset or drift correction)."""
        self.current_time = time_sec

    def release_all(self, time_sec: float):
        """Release every held note and silence the sink."""
        for note in list(self.active_notes):
            self.sink.key_up(note, time_sec)
        self.active_notes.clear()
        self.sink.all_notes_off(time_sec)

    def _release_long_notes(self):
        for note, start_time in list(self.active_notes.items()):
            held = self.current_time - start_time
            if held > self.max_note_duration:
                logger.info(
                    f"Note {note} has been active for {held:.2f} seconds which is "
                    f"over {self.max_note_duration}, will release."
                )
                self.sink.key_up(note, self.current_time)
                del self.active_notes[note]

    def play_event(self, event: PerformanceEvent) -> PerformanceEvent:
        """Apply a decoded event."""
        if event.event_type == EventType.NOTE_ON:
            note = event.value
            if self.keyboard is not None:
                self.keyboard.flash(note, self.current_time)
            self.active_notes[note] = self.current_time
            self.sink.key_down(note, self.current_time, self.velocity * self.gain / 100)

        elif event.event_type == EventType.NOTE_OFF:
            note = event.value
            start_time = self.active_notes.pop(note, None)
            # A note off for a note that hasn't been pressed is ignored
            if start_time is not None:
                self.sink.key_up(note, max(self.current_time, start_time + self.min_note_hold))

        elif event.event_type == EventType.TIME_SHIFT:
            self.current_time += time_shift_seconds(event.value)
            self._release_long_notes()

        elif event.event_type == EventType.VELOCITY_CHANGE:
            self.velocity = velocity_from_bin(event.value)

        else:
            raise ValueError(f"Could not decode event type: {event.event_type}")

        return event

    def play_output(self, index: int) -> PerformanceEvent:
        """
        Decode an event index and play it.

        Raises:
            ValueError: If the index is outside the event space
        """
        return self.play_event(decode_event(index))


__all__ = [
    'PerformanceDecoder'
]
