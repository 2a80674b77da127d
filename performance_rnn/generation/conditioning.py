"""
Conditioning vectors for Performance RNN.

The model is conditioned on a note density bin and a 12-way pitch class
histogram. Both are concatenated behind a leading zero flag and fed together
with the one-hot previous event at every step.
"""

from typing import Optional, Sequence

import torch
import torch.nn.functional as F

from ..data.constants import (
    DENSITY_BIN_RANGES,
    PITCH_WEIGHT_SIZE
)


def note_density_encoding(density_index: int) -> torch.Tensor:
    """
    One-hot encode a note density bin.

    Slot 0 is reserved for "no density", so bin k lights slot k + 1.

    Args:
        density_index: Index into DENSITY_BIN_RANGES

    Returns:
        Float tensor of shape [len(DENSITY_BIN_RANGES) + 1]
    """
    if not 0 <= density_index < len(DENSITY_BIN_RANGES):
        raise ValueError(
            f"Note density index must be in [0, {len(DENSITY_BIN_RANGES) - 1}], "
            f"got {density_index}"
        )

    return F.one_hot(
        torch.tensor(density_index + 1),
        num_classes=len(DENSITY_BIN_RANGES) + 1
    ).float()


def note_density_for_index(density_index: int) -> float:
    """Notes per second represented by a density bin."""
    if not 0 <= density_index < len(DENSITY_BIN_RANGES):
        raise ValueError(f"Invalid note density index: {density_index}")
    return DENSITY_BIN_RANGES[density_index]


def normalize_pitch_weights(values: Sequence[float]) -> torch.Tensor:
    """
    Turn relative pitch class frequencies into a distribution.

    Args:
        values: 12 numbers, one for each pitch class starting at C. The
                numbers do not need to sum to 1.

    Returns:
        Float tensor of shape [12] summing to 1
    """
    if len(values) != PITCH_WEIGHT_SIZE:
        raise ValueError(f"Wrong number of pitch weights (should be {PITCH_WEIGHT_SIZE})")

    weights = torch.tensor([float(v) for v in values], dtype=torch.float32)

    # NaN compares false against 0, so check it first
    if not torch.isfinite(weights).all():
        raise ValueError("Pitch weights must be finite")

    if (weights < 0).any():
        raise ValueError("Pitch weights must be non-negative")

    total_weight = weights.sum()
    if total_weight <= 0:
        raise ValueError("At least one pitch weight must be positive")
    if not torch.isfinite(total_weight):
        raise ValueError("Pitch weights are too large to normalize")

    return weights / total_weight


def build_conditioning(
    density_index: int,
    pitch_weights: Sequence[float],
    device: Optional[torch.device] = None
) -> torch.Tensor:
    """
    Build the full conditioning vector.

    Args:
        density_index: Note density bin
        pitch_weights: 12 relative pitch class weights
        device: Device for the result

    Returns:
        Float tensor [0, density one-hot..., pitch distribution...]
    """
    conditioning = torch.cat([
        torch.zeros(1),
        note_density_encoding(density_index),
        normalize_pitch_weights(pitch_weights)
    ])

    if device is not None:
        conditioning = conditioning.to(device)

    return conditioning


__all__ = [
    'note_density_encoding',
    'note_density_for_index',
    'normalize_pitch_weights',
    'build_conditioning'
]
