"""
Device management utilities for generation.

This module provides functions to handle device selection and seeding.
"""

import random
from typing import Optional

import numpy as np
import torch


def get_device(device: Optional[str] = None) -> torch.device:
    """
    Get torch device for generation.

    Args:
        device: Device specification ("cuda", "cpu", "auto", or None)
                If "auto" or None, automatically select CUDA if available

    Returns:
        torch.device object
    """
    if device is None or device == "auto":
        # Use cpu is cuda is not available
        device = "cuda" if torch.cuda.is_available() else "cpu"

    return torch.device(device)


def get_device_info(device: Optional[torch.device] = None) -> dict:
    """
    Get information about the device.

    Args:
        device: Device to get info for (defaults to current device)

    Returns:
        Dictionary with device information
    """
    if device is None:
        device = get_device()

    info = {
        "device_type": device.type,
        "cuda_available": torch.cuda.is_available(),
    }

    if device.type == "cuda" and torch.cuda.is_available():
        device_idx = device.index if device.index is not None else torch.cuda.current_device()
        info["device_name"] = torch.cuda.get_device_properties(device_idx).name

    return info


def set_seed(seed: int):
    """
    Set random seed for reproducibility.

    Args:
        seed: Random seed
    """
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)

    if torch.cuda.is_available():
        torch.cuda.manual_seed_all(seed)


def make_generator(
    seed: Optional[int],
    device: Optional[torch.device] = None
) -> Optional[torch.Generator]:
    """
    Create a seeded torch.Generator for sampling, or None when unseeded.

    Args:
        seed: Random seed (None for the global RNG)
        device: Device the generator draws on
    """
    if seed is None:
        return None

    generator = torch.Generator(device=device if device is not None else "cpu")
    generator.manual_seed(seed)
    return generator


__all__ = [
    'get_device',
    'get_device_info',
    'set_seed',
    'make_generator'
]
