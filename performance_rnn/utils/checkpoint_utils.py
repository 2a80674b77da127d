"""
Checkpoint management utilities.

This module loads Performance RNN weights either from a tf.js weights manifest
directory (weights_manifest.json plus binary shards) or from a torch .pt
checkpoint, and writes both formats back.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np
import torch

from ..data.constants import WEIGHTS_MANIFEST_FILENAME
from ..model.lstm import PerformanceRNN, create_model

logger = logging.getLogger(__name__)

# Little-endian dtypes used by the manifest format
_MANIFEST_DTYPES = {
    'float32': np.dtype('<f4'),
    'int32': np.dtype('<i4'),
    'bool': np.dtype('?'),
}

_QUANTIZATION_DTYPES = {
    'uint8': np.dtype('u1'),
    'uint16': np.dtype('<u2'),
    'float16': np.dtype('<f2'),
}

DEFAULT_SHARD_SIZE_BYTES = 4 * 1024 * 1024


def _decode_weight(
    entry: Dict[str, Any],
    buffer: bytes,
    offset: int
) -> Tuple[np.ndarray, int]:
    """Decode one manifest entry from a group buffer, returning (array, new_offset)."""
    name = entry['name']
    shape = [int(dim) for dim in entry.get('shape', [])]
    num_values = int(np.prod(shape)) if shape else 1

    quantization = entry.get('quantization')
    if quantization is not None:
        quant_dtype = _QUANTIZATION_DTYPES.get(quantization.get('dtype'))
        if quant_dtype is None:
            raise ValueError(f"Unsupported quantization dtype for {name}: {quantization.get('dtype')}")
        storage_dtype = quant_dtype
    else:
        storage_dtype = _MANIFEST_DTYPES.get(entry.get('dtype', 'float32'))
        if storage_dtype is None:
            raise ValueError(f"Unsupported dtype for {name}: {entry.get('dtype')}")

    num_bytes = num_values * storage_dtype.itemsize
    if offset + num_bytes > len(buffer):
        raise ValueError(
            f"Weight data for {name} is truncated: need {num_bytes} bytes at "
            f"offset {offset}, shard data has {len(buffer)}"
        )

    values = np.frombuffer(buffer, dtype=storage_dtype, count=num_values, offset=offset)

    if quantization is not None:
        if quantization['dtype'] == 'float16':
            values = values.astype(np.float32)
        else:
            values = values.astype(np.float32) * float(quantization['scale']) + float(quantization['min'])

    return values.reshape(shape).copy(), offset + num_bytes


def load_weights_manifest(checkpoint_dir: Union[str, Path]) -> Dict[str, np.ndarray]:
    """
    Load all variables described by a tf.js weights manifest.

    The manifest is a list of groups; each group's shard files are concatenated
    in order and its weights are read sequentially from that buffer.

    Args:
        checkpoint_dir: Directory containing weights_manifest.json and shards

    Returns:
        Dictionary mapping variable name to numpy array

    Raises:
        FileNotFoundError: If the manifest or a shard is missing
        ValueError: If the data is truncated or uses an unsupported dtype
    """
    checkpoint_dir = Path(checkpoint_dir)
    manifest_path = checkpoint_dir / WEIGHTS_MANIFEST_FILENAME

    if not manifest_path.exists():
        raise FileNotFoundError(f"Weights manifest not found: {manifest_path}")

    with open(manifest_path, 'r', encoding='utf-8') as f:
        manifest = json.load(f)

    weights: Dict[str, np.ndarray] = {}

    for group_index, group in enumerate(manifest):
        chunks = []
        for shard_name in group.get('paths', []):
            shard_path = checkpoint_dir / shard_name
            if not shard_path.exists():
                raise FileNotFoundError(f"Weight shard not found: {shard_path}")
            chunks.append(shard_path.read_bytes())
        buffer = b''.join(chunks)

        offset = 0
        for entry in group.get('weights', []):
            weights[entry['name']], offset = _decode_weight(entry, buffer, offset)

        logger.debug(
            f"Group {group_index}: {len(group.get('weights', []))} weights, "
            f"{len(buffer)} bytes"
        )

    logger.info(f"Loaded {len(weights)} variables from {manifest_path}")

    return weights


def save_weights_manifest(
    weights: Dict[str, np.ndarray],
    checkpoint_dir: Union[str, Path],
    shard_size_bytes: int = DEFAULT_SHARD_SIZE_BYTES
) -> Path:
    """
    Write variables as a single-group float32 tf.js weights manifest.

    Args:
        weights: Mapping from variable name to array
        checkpoint_dir: Output directory
        shard_size_bytes: Maximum size of each shard file

    Returns:
        Path to the written manifest
    """
    if shard_size_bytes <= 0:
        raise ValueError(f"shard_size_bytes must be positive, got {shard_size_bytes}")

    checkpoint_dir = Path(checkpoint_dir)
    checkpoint_dir.mkdir(parents=True, exist_ok=True)

    entries: List[Dict[str, Any]] = []
    chunks = []
    for name, value in weights.items():
        array = np.ascontiguousarray(np.asarray(value, dtype=np.float32))
        entries.append({'name': name, 'shape': list(array.shape), 'dtype': 'float32'})
        chunks.append(array.astype('<f4').tobytes())
    buffer = b''.join(chunks)

    num_shards = max(1, -(-len(buffer) // shard_size_bytes))
    paths = []
    for shard in range(num_shards):
        shard_name = f"group1-shard{shard + 1}of{num_shards}"
        data = buffer[shard * shard_size_bytes:(shard + 1) * shard_size_bytes]
        (checkpoint_dir / shard_name).write_bytes(data)
        paths.append(shard_name)

    manifest_path = checkpoint_dir / WEIGHTS_MANIFEST_FILENAME
    with open(manifest_path, 'w', encoding='utf-8') as f:
        json.dump([{'paths': paths, 'weights': entries}], f, indent=2)

    logger.info(f"Saved {len(entries)} variables in {num_shards} shard(s) to {checkpoint_dir}")

    return manifest_path


def save_checkpoint(
    checkpoint_path: Path,
    model: PerformanceRNN,
    model_config: Optional[Dict] = None,
    extra_state: Optional[Dict] = None
):
    """
    Save a torch checkpoint.

    Args:
        checkpoint_path: Path to save checkpoint
        model: Model to save
        model_config: Model architecture configuration (defaults to the model's own)
        extra_state: Any additional state to save (optional)
    """
    checkpoint = {
        "model_state_dict": model.state_dict(),
        "model_config": model_config if model_config is not None else model.get_model_config(),
        "timestamp": datetime.now().isoformat()
    }

    if extra_state is not None:
        checkpoint["extra_state"] = extra_state

    # Create directory if it doesn't exist
    checkpoint_path = Path(checkpoint_path)
    checkpoint_path.parent.mkdir(parents=True, exist_ok=True)

    torch.save(checkpoint, checkpoint_path)


def load_checkpoint(
    checkpoint_path: Path,
    device: Optional[torch.device] = None
) -> Tuple[PerformanceRNN, Dict[str, Any]]:
    """
    Load a torch checkpoint.

    Args:
        checkpoint_path: Path to checkpoint file
        device: Device to load checkpoint on (optional)

    Returns:
        Tuple of (model, metadata)
    """
    checkpoint_path = Path(checkpoint_path)
    if not checkpoint_path.exists():
        raise FileNotFoundError(f"Checkpoint not found: {checkpoint_path}")

    checkpoint = torch.load(checkpoint_path, map_location=device)

    model_config = checkpoint.get("model_config", {})
    if not model_config:
        logger.warning("No model_config in checkpoint, using defaults")

    model = create_model(**model_config)
    model.load_state_dict(checkpoint["model_state_dict"])

    return model, {
        "model_config": model_config,
        "extra_state": checkpoint.get("extra_state"),
        "timestamp": checkpoint.get("timestamp")
    }


def load_model(
    checkpoint_path: Union[str, Path],
    device: Optional[torch.device] = None
) -> PerformanceRNN:
    """
    Load a model from either checkpoint format.

    A directory is read as a tf.js weights manifest; a file as a torch checkpoint.

    Args:
        checkpoint_path: Checkpoint directory or .pt file
        device: Target device (defaults to CPU)

    Returns:
        PerformanceRNN in eval mode on the device
    """
    checkpoint_path = Path(checkpoint_path)
    if device is None:
        device = torch.device("cpu")

    if checkpoint_path.is_dir():
        model = PerformanceRNN.from_weights(load_weights_manifest(checkpoint_path))
    else:
        model, _ = load_checkpoint(checkpoint_path, device=device)

    model.to(device)
    model.eval()

    logger.info(f"Model loaded: {model.get_num_params() / 1e6:.1f}M parameters on {device}")

    return model


__all__ = [
    'load_weights_manifest',
    'save_weights_manifest',
    'save_checkpoint',
    'load_checkpoint',
    'load_model'
]
