"""
Utility functions for logging, checkpointing, and device management.
"""

from .device_utils import (
    get_device,
    get_device_info,
    set_seed,
    make_generator
)

from .checkpoint_utils import (
    load_weights_manifest,
    save_weights_manifest,
    save_checkpoint,
    load_checkpoint,
    load_model
)

from .logging_utils import (
    setup_logging,
    format_time
)

__all__ = [
    # Device utils
    'get_device',
    'get_device_info',
    'set_seed',
    'make_generator',

    # Checkpoint utils
    'load_weights_manifest',
    'save_weights_manifest',
    'save_checkpoint',
    'load_checkpoint',
    'load_model',

    # Logging utils
    'setup_logging',
    'format_time'
]
