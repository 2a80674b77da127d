import pytest

from performance_rnn.data.constants import PRIMER_IDX
from performance_rnn.playback import KeyboardState, ManualClock, PerformanceDecoder, RecordingSink, Scheduler

NOTE_ON_60 = 60
NOTE_OFF_60 = 128 + 60
SHIFT_100MS = 255 + 10
SHIFT_1S = PRIMER_IDX
VELOCITY_BIN_25 = 355 + 25


def _decoder(**kwargs):
    sink = RecordingSink()
    return PerformanceDecoder(sink, **kwargs), sink


def _play(decoder, indices) -> None:
    for index in indices:
        decoder.play_output(index)


def test_note_on_off_records_note() -> None:
    decoder, sink = _decoder()

    _play(decoder, [NOTE_ON_60, SHIFT_1S, NOTE_OFF_60])

    assert len(sink.notes) == 1
    note = sink.notes[0]
    assert (note.pitch, note.start, note.end) == (60, 0.0, pytest.approx(1.0))
    # Default velocity before any velocity change
    assert note.velocity == 100
    assert decoder.active_notes == {}


def test_time_shift_advances_time() -> None:
    decoder, _ = _decoder(start_time=2.0)

    _play(decoder, [SHIFT_100MS, SHIFT_1S])

    assert decoder.current_time == pytest.approx(3.1)


def test_short_note_is_held_for_minimum() -> None:
    decoder, sink = _decoder()

    _play(decoder, [NOTE_ON_60, SHIFT_100MS, NOTE_OFF_60])

    assert sink.notes[0].end == pytest.approx(0.5)


def test_note_off_without_note_on_is_ignored() -> None:
    decoder, sink = _decoder()

    _play(decoder, [NOTE_OFF_60, SHIFT_1S])

    assert sink.notes == []


def test_velocity_change_and_gain() -> None:
    decoder, sink = _decoder(gain=50)

    _play(decoder, [VELOCITY_BIN_25, NOTE_ON_60, SHIFT_1S, NOTE_OFF_60])

    assert decoder.velocity == pytest.approx(100 / 127)
    assert sink.notes[0].velocity == 50


def test_top_velocity_bin_is_clamped() -> None:
    decoder, sink = _decoder(gain=200)

    _play(decoder, [355 + 32, NOTE_ON_60, SHIFT_1S, NOTE_OFF_60])

    assert sink.notes[0].velocity == 127


def test_zero_gain_is_silent() -> None:
    decoder, sink = _decoder(gain=0)

    _play(decoder, [NOTE_ON_60, SHIFT_1S, NOTE_OFF_60])

    assert sink.notes == []


def test_long_notes_are_released(caplog) -> None:
    decoder, sink = _decoder()

    with caplog.at_level("INFO"):
        _play(decoder, [NOTE_ON_60, SHIFT_1S, SHIFT_1S, SHIFT_1S])
        assert sink.notes == []
        decoder.play_output(SHIFT_1S)

    assert sink.notes[0].end == pytest.approx(4.0)
    assert 60 not in decoder.active_notes
    assert "will release" in caplog.text

    # The later note off is for a note that is no longer active
    decoder.play_output(NOTE_OFF_60)
    assert len(sink.notes) == 1


def test_invalid_index() -> None:
    decoder, _ = _decoder()

    with pytest.raises(ValueError):
        decoder.play_output(388)


def test_set_gain_range() -> None:
    decoder, _ = _decoder()

    decoder.set_gain(200)
    assert decoder.gain == 200

    with pytest.raises(ValueError):
        decoder.set_gain(201)
    with pytest.raises(ValueError):
        PerformanceDecoder(RecordingSink(), gain=-5)


def test_release_all() -> None:
    decoder, sink = _decoder()
    _play(decoder, [NOTE_ON_60, 64, SHIFT_100MS])

    decoder.release_all(0.1)

    assert sorted(n.pitch for n in sink.notes) == [60, 64]
    assert sink.active_notes == set()
    assert decoder.active_notes == {}


def test_note_on_flashes_keyboard() -> None:
    clock = ManualClock()
    scheduler = Scheduler(clock)
    keyboard = KeyboardState(scheduler, flash_seconds=0.1)
    decoder, _ = _decoder(keyboard=keyboard)

    _play(decoder, [SHIFT_1S, NOTE_ON_60])

    scheduler.run_due()
    assert keyboard.pressed_keys() == []

    clock.set(1.0)
    scheduler.run_due()
    assert keyboard.pressed_keys() == [60]

    clock.set(1.2)
    scheduler.run_due()
    assert keyboard.pressed_keys() == []
