"""
Note sinks: where decoded notes end up.

A sink receives key presses and releases stamped with performance time.
RecordingSink keeps them for MIDI file export, MidiOutputSink plays them on a
MIDI output port at the right moment, and KeyboardState models the on-screen
keyboard that lights up keys as they are played.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set, Tuple

import mido
from miditoolkit import MidiFile, Instrument, Note, TempoChange

from ..data.constants import (
    KEYBOARD_FLASH_SECONDS,
    TICKS_PER_BEAT,
    RENDER_TEMPO_BPM,
    PIANO_PROGRAM
)
from .scheduler import Scheduler

logger = logging.getLogger(__name__)


def midi_velocity(velocity: float) -> int:
    """Scale a normalized velocity to MIDI units, clamped to 0-127."""
    return int(round(min(max(velocity, 0.0), 1.0) * 127))


class NoteSink(ABC):
    """Receives timed key presses and releases."""

    @abstractmethod
    def key_down(self, note: int, time_sec: float, velocity: float):
        raise NotImplementedError

    @abstractmethod
    def key_up(self, note: int, time_sec: float):
        raise NotImplementedError

    def all_notes_off(self, time_sec: float):
        """Release everything still sounding."""

    def close(self):
        """Release resources held by the sink."""


@dataclass
class NoteRecord:
    pitch: int
    start: float
    end: float
    velocity: int


class RecordingSink(NoteSink):
    """
    Records played notes.

    A note pressed again while active ends the previous one at the new start.
    Releases of notes that are not active are ignored.
    """

    def __init__(self):
        self.notes: List[NoteRecord] = []
        self._active: Dict[int, Tuple[float, int]] = {}

    def key_down(self, note: int, time_sec: float, velocity: float):
        velocity_value = midi_velocity(velocity)
        if velocity_value == 0:
            return

        if note in self._active:
            self.key_up(note, time_sec)

        self._active[note] = (time_sec, velocity_value)

    def key_up(self, note: int, time_sec: float):
        if note not in self._active:
            return

        start, velocity_value = self._active.pop(note)
        self.notes.append(NoteRecord(note, start, max(time_sec, start), velocity_value))

    def all_notes_off(self, time_sec: float):
        for note in list(self._active):
            self.key_up(note, time_sec)

    def finish(self, end_time: float):
        """Close every open note at end_time."""
        self.all_notes_off(end_time)

    @property
    def active_notes(self) -> Set[int]:
        return set(self._active)

    def to_midi(
        self,
        ticks_per_beat: int = TICKS_PER_BEAT,
        tempo_bpm: float = RENDER_TEMPO_BPM
    ) -> MidiFile:
        """
        Build a single-track piano MIDI file from the recorded notes.

        Args:
            ticks_per_beat: MIDI resolution
            tempo_bpm: Tempo used to convert seconds to ticks

        Returns:
            miditoolkit MidiFile
        """
        ticks_per_second = ticks_per_beat * tempo_bpm / 60.0

        midi = MidiFile(ticks_per_beat=ticks_per_beat)
        midi.tempo_changes = [TempoChange(tempo_bpm, 0)]

        piano = Instrument(program=PIANO_PROGRAM, is_drum=False, name="Piano")
        for record in sorted(self.notes, key=lambda n: (n.start, n.pitch)):
            start_tick = int(round(record.start * ticks_per_second))
            end_tick = max(start_tick + 1, int(round(record.end * ticks_per_second)))
            piano.notes.append(Note(
                velocity=record.velocity,
                pitch=record.pitch,
                start=start_tick,
                end=end_tick
            ))

        midi.instruments.append(piano)
        midi.max_tick = max((n.end for n in piano.notes), default=0)

        return midi


def list_output_ports() -> List[str]:
    """Names of the MIDI output ports available to mido."""
    return list(mido.get_output_names())


def open_midi_output(port_name: Optional[str] = None, virtual: bool = False):
    """
    Open a mido output port.

    Args:
        port_name: Port to open (None for the backend default)
        virtual: Create a virtual port other programs can connect to
    """
    if virtual:
        return mido.open_output(port_name or "Performance RNN", virtual=True)
    return mido.open_output(port_name)


class MidiOutputSink(NoteSink):
    """
    Plays notes on a MIDI output port.

    Messages are handed to the scheduler and sent when the clock reaches
    their time. Notes with a zero scaled velocity are not played.
    """

    def __init__(self, port, scheduler: Scheduler, channel: int = 0):
        """
        Initialize MIDI output sink.

        Args:
            port: Open mido output port
            scheduler: Scheduler driving message times
            channel: MIDI channel (0-15)
        """
        self.port = port
        self.scheduler = scheduler
        self.channel = channel

        self._sounding: Set[int] = set()
        self._lock = threading.Lock()
        # Note-ons queued before the last all_notes_off carry an older generation
        self._generation = 0

    def _send_note_on(self, note: int, velocity_value: int, generation: int):
        with self._lock:
            if generation != self._generation:
                return
            self.port.send(mido.Message('note_on', note=note, velocity=velocity_value, channel=self.channel))
            self._sounding.add(note)

    def _send_note_off(self, note: int):
        with self._lock:
            if note not in self._sounding:
                return
            self.port.send(mido.Message('note_off', note=note, velocity=0, channel=self.channel))
            self._sounding.discard(note)

    def key_down(self, note: int, time_sec: float, velocity: float):
        velocity_value = midi_velocity(velocity)
        if velocity_value == 0:
            return
        with self._lock:
            generation = self._generation
        self.scheduler.call_at(time_sec, self._send_note_on, note, velocity_value, generation)

    def key_up(self, note: int, time_sec: float):
        self.scheduler.call_at(time_sec, self._send_note_off, note)

    def all_notes_off(self, time_sec: float):
        """Drop pending messages and silence sounding notes immediately."""
        dropped = self.scheduler.cancel_all()
        if dropped:
            logger.debug(f"Dropped {dropped} pending messages")

        with self._lock:
            self._generation += 1
            for note in sorted(self._sounding):
                self.port.send(mido.Message('note_off', note=note, velocity=0, channel=self.channel))
            self._sounding.clear()

    @property
    def sounding_notes(self) -> Set[int]:
        with self._lock:
            return set(self._sounding)

    def close(self):
        self.all_notes_off(0.0)
        self.port.close()


class KeyboardState:
    """
    The on-screen keyboard.

    Keys light up when their note starts and go dark flash_seconds later.
    Listeners are called with (note, is_down).
    """

    def __init__(
        self,
        scheduler: Optional[Scheduler] = None,
        flash_seconds: float = KEYBOARD_FLASH_SECONDS
    ):
        self.scheduler = scheduler
        self.flash_seconds = flash_seconds

        self._pressed: Dict[int, int] = {}
        self._listeners: List[Callable[[int, bool], None]] = []
        self._lock = threading.Lock()

    def add_listener(self, listener: Callable[[int, bool], None]):
        self._listeners.append(listener)

    def key_down(self, note: int):
        with self._lock:
            self._pressed[note] = self._pressed.get(note, 0) + 1
        for listener in self._listeners:
            listener(note, True)

    def key_up(self, note: int):
        with self._lock:
            count = self._pressed.get(note, 0)
            if count <= 1:
                self._pressed.pop(note, None)
            else:
                self._pressed[note] = count - 1
        for listener in self._listeners:
            listener(note, False)

    def flash(self, note: int, time_sec: float):
        """Light a key at time_sec for flash_seconds."""
        if self.scheduler is None:
            return
        self.scheduler.call_at(time_sec, self.key_down, note)
        self.scheduler.call_at(time_sec + self.flash_seconds, self.key_up, note)

    def clear(self):
        """Turn every key off."""
        with self._lock:
            released = sorted(self._pressed)
            self._pressed.clear()
        for note in released:
            for listener in self._listeners:
                listener(note, False)

    def pressed_keys(self) -> List[int]:
        with self._lock:
            return sorted(self._pressed)


__all__ = [
    'NoteSink',
    'NoteRecord',
    'RecordingSink',
    'MidiOutputSink',
    'KeyboardState',
    'midi_velocity',
    'list_output_ports',
    'open_midi_output'
]
