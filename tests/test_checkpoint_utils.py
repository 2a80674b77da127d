import json

import numpy as np
import pytest
import torch

from performance_rnn.data.constants import WEIGHTS_MANIFEST_FILENAME
from performance_rnn.model import PerformanceRNN, create_model
from performance_rnn.utils import (
    load_checkpoint,
    load_model,
    load_weights_manifest,
    save_checkpoint,
    save_weights_manifest,
)


def _write_manifest(directory, manifest) -> None:
    (directory / WEIGHTS_MANIFEST_FILENAME).write_text(json.dumps(manifest), encoding="utf-8")


def test_manifest_round_trip(tmp_path) -> None:
    weights = {
        "a": np.arange(6, dtype=np.float32).reshape(2, 3),
        "b": np.array([0.5, -1.5], dtype=np.float32),
    }

    manifest_path = save_weights_manifest(weights, tmp_path)
    loaded = load_weights_manifest(tmp_path)

    assert manifest_path == tmp_path / WEIGHTS_MANIFEST_FILENAME
    assert set(loaded) == {"a", "b"}
    np.testing.assert_array_equal(loaded["a"], weights["a"])
    np.testing.assert_array_equal(loaded["b"], weights["b"])


def test_manifest_shards_are_concatenated(tmp_path) -> None:
    weights = {"w": np.linspace(-1, 1, 25, dtype=np.float32)}

    save_weights_manifest(weights, tmp_path, shard_size_bytes=32)

    manifest = json.loads((tmp_path / WEIGHTS_MANIFEST_FILENAME).read_text(encoding="utf-8"))
    paths = manifest[0]["paths"]
    assert len(paths) == 4
    assert paths[0] == "group1-shard1of4"
    assert (tmp_path / paths[0]).stat().st_size == 32

    np.testing.assert_allclose(load_weights_manifest(tmp_path)["w"], weights["w"])


def test_manifest_multiple_groups_and_dtypes(tmp_path) -> None:
    (tmp_path / "g1").write_bytes(np.array([1.0, 2.0], dtype="<f4").tobytes())
    (tmp_path / "g2").write_bytes(np.array([7, -3], dtype="<i4").tobytes())
    _write_manifest(tmp_path, [
        {"paths": ["g1"], "weights": [{"name": "f", "shape": [2], "dtype": "float32"}]},
        {"paths": ["g2"], "weights": [{"name": "i", "shape": [2], "dtype": "int32"}]},
    ])

    loaded = load_weights_manifest(tmp_path)

    np.testing.assert_array_equal(loaded["f"], [1.0, 2.0])
    np.testing.assert_array_equal(loaded["i"], [7, -3])


def test_manifest_uint8_quantization(tmp_path) -> None:
    (tmp_path / "shard").write_bytes(bytes([0, 1, 2, 255]))
    _write_manifest(tmp_path, [{
        "paths": ["shard"],
        "weights": [{
            "name": "q",
            "shape": [2, 2],
            "dtype": "float32",
            "quantization": {"dtype": "uint8", "scale": 0.5, "min": -1.0},
        }],
    }])

    values = load_weights_manifest(tmp_path)["q"]

    assert values.dtype == np.float32
    np.testing.assert_allclose(values, [[-1.0, -0.5], [0.0, 126.5]])


def test_manifest_float16_quantization(tmp_path) -> None:
    (tmp_path / "shard").write_bytes(np.array([0.25, -2.0], dtype="<f2").tobytes())
    _write_manifest(tmp_path, [{
        "paths": ["shard"],
        "weights": [{"name": "h", "shape": [2], "dtype": "float32", "quantization": {"dtype": "float16"}}],
    }])

    np.testing.assert_allclose(load_weights_manifest(tmp_path)["h"], [0.25, -2.0])


def test_missing_manifest(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_weights_manifest(tmp_path)


def test_missing_shard(tmp_path) -> None:
    _write_manifest(tmp_path, [{"paths": ["nope"], "weights": [{"name": "x", "shape": [1], "dtype": "float32"}]}])

    with pytest.raises(FileNotFoundError):
        load_weights_manifest(tmp_path)


def test_truncated_shard(tmp_path) -> None:
    (tmp_path / "shard").write_bytes(b"\x00" * 8)
    _write_manifest(tmp_path, [{"paths": ["shard"], "weights": [{"name": "x", "shape": [4], "dtype": "float32"}]}])

    with pytest.raises(ValueError, match="truncated"):
        load_weights_manifest(tmp_path)


def test_unsupported_dtype(tmp_path) -> None:
    (tmp_path / "shard").write_bytes(b"\x00" * 8)
    _write_manifest(tmp_path, [{"paths": ["shard"], "weights": [{"name": "x", "shape": [1], "dtype": "complex64"}]}])

    with pytest.raises(ValueError, match="Unsupported dtype"):
        load_weights_manifest(tmp_path)


def test_torch_checkpoint_round_trip(tmp_path) -> None:
    model = create_model(input_size=6, hidden_sizes=(4, 4), event_size=7)
    path = tmp_path / "ckpt" / "model.pt"

    save_checkpoint(path, model, extra_state={"step": 3})
    loaded, metadata = load_checkpoint(path)

    assert metadata["model_config"] == model.get_model_config()
    assert metadata["extra_state"] == {"step": 3}
    assert metadata["timestamp"]
    for expected, actual in zip(model.parameters(), loaded.parameters()):
        assert torch.equal(expected, actual)


def test_load_checkpoint_missing(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_checkpoint(tmp_path / "missing.pt")


def test_load_model_from_either_format(tmp_path) -> None:
    model = create_model(input_size=6, hidden_sizes=(4,), event_size=7)
    save_weights_manifest(model.to_weights(), tmp_path / "tfjs")
    save_checkpoint(tmp_path / "model.pt", model)

    from_manifest = load_model(tmp_path / "tfjs")
    from_torch = load_model(tmp_path / "model.pt")

    inputs = torch.randn(1, 6)
    with torch.no_grad():
        expected, _ = model(inputs)
        for loaded in (from_manifest, from_torch):
            assert isinstance(loaded, PerformanceRNN)
            assert not loaded.training
            actual, _ = loaded(inputs)
            assert torch.allclose(expected, actual, atol=1e-6)
