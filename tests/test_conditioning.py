import pytest
import torch

from performance_rnn.data.constants import CONDITIONING_SIZE, DEFAULT_PITCH_WEIGHTS, DENSITY_BIN_RANGES
from performance_rnn.generation import (
    build_conditioning,
    normalize_pitch_weights,
    note_density_encoding,
    note_density_for_index,
)


def test_density_encoding_skips_slot_zero() -> None:
    encoding = note_density_encoding(2)

    assert encoding.shape == (len(DENSITY_BIN_RANGES) + 1,)
    assert encoding.tolist() == [0, 0, 0, 1, 0, 0, 0, 0]


@pytest.mark.parametrize("index", [-1, len(DENSITY_BIN_RANGES)])
def test_density_encoding_rejects_bad_index(index) -> None:
    with pytest.raises(ValueError):
        note_density_encoding(index)
    with pytest.raises(ValueError):
        note_density_for_index(index)


def test_density_for_index() -> None:
    assert note_density_for_index(0) == 1.0
    assert note_density_for_index(6) == 64.0


def test_pitch_weights_are_normalized() -> None:
    weights = normalize_pitch_weights(DEFAULT_PITCH_WEIGHTS)

    assert weights.shape == (12,)
    assert weights.sum().item() == pytest.approx(1.0)
    assert weights[0].item() == pytest.approx(2 / 8)
    assert weights[1].item() == 0.0


def test_pitch_weights_wrong_length() -> None:
    with pytest.raises(ValueError, match="should be 12"):
        normalize_pitch_weights([1] * 11)


def test_pitch_weights_negative_or_zero() -> None:
    with pytest.raises(ValueError):
        normalize_pitch_weights([-1] + [1] * 11)
    with pytest.raises(ValueError):
        normalize_pitch_weights([0] * 12)


@pytest.mark.parametrize(
    "values",
    [
        [float("nan")] + [1] * 11,
        [float("inf")] + [1] * 11,
        [float("nan")] * 12,
        [3e38] * 12,
    ],
)
def test_pitch_weights_must_be_finite(values) -> None:
    with pytest.raises(ValueError):
        normalize_pitch_weights(values)


def test_nan_weights_keep_previous_conditioning(generator) -> None:
    before = generator._conditioning.clone()

    with pytest.raises(ValueError, match="finite"):
        generator.set_pitch_weights([float("nan")] + [1] * 11)

    assert torch.equal(generator._conditioning, before)
    assert not torch.isnan(generator._conditioning).any()


def test_build_conditioning_layout() -> None:
    conditioning = build_conditioning(4, [1] * 12)

    assert conditioning.shape == (CONDITIONING_SIZE,)
    assert conditioning[0].item() == 0.0
    assert conditioning[1:9].tolist() == [0, 0, 0, 0, 0, 1, 0, 0]
    assert torch.allclose(conditioning[9:], torch.full((12,), 1 / 12))
