import json

import pytest
from miditoolkit import MidiFile

from performance_rnn.data.constants import PRIMER_IDX
from performance_rnn.generation import (
    PerformanceRenderer,
    create_default_config,
    events_to_midi,
    load_event_sequence,
    render_performance,
    save_event_sequence,
)

NOTE_ON_60 = 60
NOTE_OFF_60 = 128 + 60
SHIFT_500MS = 255 + 50
VELOCITY_BIN_25 = 355 + 25

PHRASE = [VELOCITY_BIN_25, NOTE_ON_60, SHIFT_500MS, NOTE_OFF_60, SHIFT_500MS]


def test_events_to_midi(tmp_path) -> None:
    ok, path, error = events_to_midi(PHRASE * 2, tmp_path / "out" / "phrase.mid")

    assert ok and error is None
    midi = MidiFile(str(path))
    notes = midi.instruments[0].notes
    assert [(n.pitch, n.velocity) for n in notes] == [(60, 100), (60, 100)]
    # 120 bpm at 480 ticks per beat is 960 ticks per second
    assert [(n.start, n.end) for n in notes] == [(0, 480), (960, 1440)]


def test_events_to_midi_rejects_empty(tmp_path) -> None:
    ok, path, error = events_to_midi([], tmp_path / "empty.mid")

    assert not ok and path is None
    assert error == "No events to convert"


def test_events_to_midi_reports_bad_index(tmp_path) -> None:
    ok, _, error = events_to_midi([NOTE_ON_60, 999], tmp_path / "bad.mid")

    assert not ok
    assert "Could not decode index" in error


def test_event_sequence_round_trip(tmp_path) -> None:
    path = tmp_path / "events.json"

    saved, error = save_event_sequence(PHRASE, path, metadata={"seed": 3})
    loaded_ok, event_ids, load_error = load_event_sequence(path)

    assert saved and error is None
    assert loaded_ok and load_error is None
    assert event_ids == PHRASE

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["event_names"][:2] == ["VELOCITY_CHANGE_25", "NOTE_ON_60"]
    assert data["metadata"] == {"seed": 3}


def test_load_event_sequence_validates(tmp_path) -> None:
    path = tmp_path / "events.json"
    path.write_text(json.dumps({"event_ids": [1, 400]}), encoding="utf-8")

    ok, event_ids, error = load_event_sequence(path)

    assert not ok and event_ids is None
    assert "Invalid event ids" in error


def test_render_performance_resets_periodically(scripted_generator) -> None:
    config = create_default_config(duration_seconds=65.0, reset_rnn_frequency_seconds=30.0)
    generator = scripted_generator([PRIMER_IDX], config)

    event_ids, sink, num_resets = render_performance(generator, config)

    # Ten one-second shifts per call: resets at 30s and 60s after the initial one
    assert len(event_ids) == 70
    assert num_resets == 2
    assert generator.num_resets == 3
    assert sink.notes == []


def test_render_performance_closes_notes(scripted_generator) -> None:
    config = create_default_config(duration_seconds=2.0, reset_rnn_frequency_seconds=None)
    generator = scripted_generator([NOTE_ON_60, SHIFT_500MS], config)

    event_ids, sink, num_resets = render_performance(generator, config)

    assert num_resets == 0
    assert len(event_ids) == 10
    # Re-pressing the held key ends the previous note
    assert [(n.start, n.end) for n in sink.notes] == [
        (0.0, 0.5), (0.5, 1.0), (1.0, 1.5), (1.5, 2.0), (2.0, 2.5),
    ]
    assert sink.active_notes == set()


def test_render_performance_stops_without_time_shifts(scripted_generator, caplog) -> None:
    config = create_default_config(duration_seconds=1.0)
    generator = scripted_generator([NOTE_ON_60], config)

    with caplog.at_level("WARNING"):
        event_ids, _, _ = render_performance(generator, config)

    assert len(event_ids) == 1000
    assert "Stopped after 1000 events" in caplog.text


def test_renderer_writes_files(generator, config) -> None:
    config.save_event_sequence = True
    renderer = PerformanceRenderer(generator, config)
    progress = []

    results = renderer.render_batch(2, progress_callback=lambda i, n, r: progress.append((i, n, r.success)))

    assert progress == [(1, 2, True), (2, 2, True)]
    for result in results:
        assert result.success, result.error_message
        assert result.midi_path.exists()
        assert result.midi_path.parent == config.output_dir
        assert result.event_sequence_path.exists()
        assert result.num_events == len(result.event_ids) > 0


def test_renderer_reports_failure(scripted_generator, tmp_path) -> None:
    config = create_default_config(output_dir=tmp_path, duration_seconds=1.0)
    generator = scripted_generator([999], config)

    result = PerformanceRenderer(generator, config).render()

    assert not result.success
    assert "Could not decode index" in result.error_message
    assert result.get_summary().startswith("✗ Failed")
