import threading

import mido
import pytest

from performance_rnn.playback import (
    KeyboardState,
    ManualClock,
    MidiOutputSink,
    NoteRecord,
    RecordingSink,
    Scheduler,
    midi_velocity,
)


class _FakePort:
    name = "fake"

    def __init__(self) -> None:
        self.messages = []
        self.closed = False

    def send(self, message: mido.Message) -> None:
        self.messages.append(message)

    def close(self) -> None:
        self.closed = True


@pytest.mark.parametrize(
    "velocity, expected",
    [(1.0, 127), (128 / 127, 127), (100 / 127, 100), (0.0, 0), (-0.5, 0)],
)
def test_midi_velocity(velocity, expected) -> None:
    assert midi_velocity(velocity) == expected


def test_recording_sink_records_notes() -> None:
    sink = RecordingSink()

    sink.key_down(60, 0.5, 1.0)
    sink.key_up(60, 1.5)
    sink.key_up(61, 2.0)

    assert sink.notes == [NoteRecord(pitch=60, start=0.5, end=1.5, velocity=127)]


def test_recording_sink_repress_closes_previous() -> None:
    sink = RecordingSink()

    sink.key_down(60, 0.0, 0.5)
    sink.key_down(60, 1.0, 0.5)
    sink.finish(2.0)

    assert [(n.start, n.end) for n in sink.notes] == [(0.0, 1.0), (1.0, 2.0)]
    assert sink.active_notes == set()


def test_recording_sink_skips_silent_notes() -> None:
    sink = RecordingSink()

    sink.key_down(60, 0.0, 0.0)
    sink.finish(1.0)

    assert sink.notes == []


def test_recording_sink_to_midi() -> None:
    sink = RecordingSink()
    sink.key_down(64, 1.0, 1.0)
    sink.key_down(60, 0.5, 100 / 127)
    sink.finish(2.0)

    midi = sink.to_midi(ticks_per_beat=480, tempo_bpm=120.0)

    assert midi.ticks_per_beat == 480
    assert midi.tempo_changes[0].tempo == 120.0
    assert len(midi.instruments) == 1

    piano = midi.instruments[0]
    assert piano.program == 0 and not piano.is_drum
    assert [(n.pitch, n.start, n.end, n.velocity) for n in piano.notes] == [
        (60, 480, 1920, 100),
        (64, 960, 1920, 127),
    ]


def test_midi_output_sink_sends_on_time() -> None:
    clock = ManualClock()
    scheduler = Scheduler(clock)
    port = _FakePort()
    sink = MidiOutputSink(port, scheduler)

    sink.key_down(60, 1.0, 100 / 127)
    sink.key_up(60, 2.0)

    scheduler.run_due()
    assert port.messages == []

    clock.set(1.0)
    scheduler.run_due()
    assert port.messages == [mido.Message("note_on", note=60, velocity=100)]
    assert sink.sounding_notes == {60}

    clock.set(2.0)
    scheduler.run_due()
    assert port.messages[-1] == mido.Message("note_off", note=60, velocity=0)
    assert sink.sounding_notes == set()


def test_midi_output_sink_skips_silent_and_unknown_notes() -> None:
    clock = ManualClock()
    scheduler = Scheduler(clock)
    port = _FakePort()
    sink = MidiOutputSink(port, scheduler)

    sink.key_down(60, 0.0, 0.0)
    sink.key_up(61, 0.0)
    scheduler.run_due()

    assert port.messages == []


def test_midi_output_sink_all_notes_off() -> None:
    clock = ManualClock()
    scheduler = Scheduler(clock)
    port = _FakePort()
    sink = MidiOutputSink(port, scheduler, channel=3)

    sink.key_down(60, 0.0, 1.0)
    sink.key_down(62, 5.0, 1.0)
    scheduler.run_due()

    sink.all_notes_off(0.0)

    assert scheduler.pending() == 0
    assert port.messages[-1] == mido.Message("note_off", note=60, velocity=0, channel=3)
    assert sink.sounding_notes == set()

    sink.close()
    assert port.closed


def test_all_notes_off_during_due_batch_leaves_nothing_sounding() -> None:
    clock = ManualClock()
    scheduler = Scheduler(clock)
    port = _FakePort()
    sink = MidiOutputSink(port, scheduler)
    keyboard = KeyboardState(scheduler, flash_seconds=0.1)

    entered = threading.Event()
    release = threading.Event()

    def _slow_listener(note, down):
        if down:
            entered.set()
            release.wait(2.0)

    keyboard.add_listener(_slow_listener)

    # Same order as the decoder: key flash first, then the note itself
    keyboard.flash(60, 1.0)
    sink.key_down(60, 1.0, 1.0)
    clock.set(1.0)

    dispatcher = threading.Thread(target=scheduler.run_due)
    dispatcher.start()
    assert entered.wait(2.0)

    # Both callbacks are popped; the note_on has not been sent yet
    sink.all_notes_off(1.0)
    keyboard.clear()
    release.set()
    dispatcher.join(2.0)

    assert not dispatcher.is_alive()
    assert [m for m in port.messages if m.type == "note_on"] == []
    assert sink.sounding_notes == set()
    assert keyboard.pressed_keys() == []


def test_note_on_queued_before_all_notes_off_is_dropped() -> None:
    clock = ManualClock()
    scheduler = Scheduler(clock)
    port = _FakePort()
    sink = MidiOutputSink(port, scheduler)

    sink.key_down(60, 0.0, 1.0)
    with scheduler._condition:
        due = scheduler._pop_due(clock.now())

    sink.all_notes_off(0.0)
    scheduler._run_callbacks(due)

    assert port.messages == []
    assert sink.sounding_notes == set()

    sink.key_down(62, 0.0, 1.0)
    scheduler.run_due()
    assert sink.sounding_notes == {62}


def test_keyboard_flash_and_listeners() -> None:
    clock = ManualClock()
    scheduler = Scheduler(clock)
    keyboard = KeyboardState(scheduler, flash_seconds=0.1)
    events = []
    keyboard.add_listener(lambda note, down: events.append((note, down)))

    keyboard.flash(60, 0.0)
    keyboard.flash(60, 0.05)
    clock.set(0.05)
    scheduler.run_due()
    assert keyboard.pressed_keys() == [60]

    clock.set(0.12)
    scheduler.run_due()
    # Still lit by the second flash
    assert keyboard.pressed_keys() == [60]

    clock.set(0.2)
    scheduler.run_due()
    assert keyboard.pressed_keys() == []
    assert events == [(60, True), (60, True), (60, False), (60, False)]


def test_keyboard_clear() -> None:
    keyboard = KeyboardState()
    released = []
    keyboard.add_listener(lambda note, down: released.append(note) if not down else None)

    keyboard.key_down(64)
    keyboard.key_down(60)
    keyboard.flash(70, 0.0)
    keyboard.clear()

    assert keyboard.pressed_keys() == []
    assert released == [60, 64]
