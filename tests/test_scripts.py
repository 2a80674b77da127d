import pytest

from performance_rnn.generation import save_config, create_default_config
from performance_rnn.scripts import generate, play
from performance_rnn.utils import save_weights_manifest


@pytest.fixture(autouse=True)
def _keep_pytest_logging(monkeypatch) -> None:
    monkeypatch.setattr(generate, "setup_logging", lambda **kwargs: None)
    monkeypatch.setattr(play, "setup_logging", lambda **kwargs: None)


def test_config_from_args_overrides_yaml(tmp_path) -> None:
    config_path = save_config(create_default_config(gain=50, temperature=0.9), tmp_path / "render.yaml")

    args = generate.parse_args([
        "--config", str(config_path),
        "--gain", "120",
        "--note_density", "5",
        "--pitch_weights", "1", "0", "1", "0", "1", "1", "0", "1", "0", "1", "0", "1",
        "--save_events",
    ])
    config = generate.create_config_from_args(args)

    assert config.gain == 120
    assert config.temperature == 0.9
    assert config.note_density_index == 5
    assert config.pitch_weights == [1, 0, 1, 0, 1, 1, 0, 1, 0, 1, 0, 1]
    assert config.save_event_sequence is True


def test_generate_requires_checkpoint(capsys) -> None:
    with pytest.raises(SystemExit) as exc_info:
        generate.main([])

    assert exc_info.value.code == 2
    assert "No checkpoint given" in capsys.readouterr().out


def test_generate_renders_files(tmp_path, small_model) -> None:
    save_weights_manifest(small_model.to_weights(), tmp_path / "model")
    output_dir = tmp_path / "out"

    with pytest.raises(SystemExit) as exc_info:
        generate.main([
            "--checkpoint", str(tmp_path / "model"),
            "--output_dir", str(output_dir),
            "--num_files", "2",
            "--duration", "2",
            "--seed", "5",
        ])

    assert exc_info.value.code == 0
    assert len(list(output_dir.glob("*.mid"))) == 2


def test_play_lists_ports(monkeypatch, capsys) -> None:
    monkeypatch.setattr(play, "list_output_ports", lambda: ["Synth A", "Synth B"])

    play.main(["--list_ports"])

    assert capsys.readouterr().out.splitlines() == ["Synth A", "Synth B"]


def test_play_rejects_bad_gain(capsys) -> None:
    with pytest.raises(SystemExit) as exc_info:
        play.main(["--checkpoint", "model", "--gain", "300"])

    assert exc_info.value.code == 2
    assert "gain" in capsys.readouterr().out
