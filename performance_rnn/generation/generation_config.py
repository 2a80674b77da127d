"""
Configuration for performance generation and playback.

Defines generation parameters, presets, YAML persistence and result structures.
"""

import math
from dataclasses import dataclass, field, fields
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from ..data.constants import (
    DEFAULT_NOTE_DENSITY_INDEX,
    DEFAULT_PITCH_WEIGHTS,
    DEFAULT_GAIN,
    MAX_GAIN,
    DENSITY_BIN_RANGES,
    PITCH_WEIGHT_SIZE,
    STEPS_PER_GENERATE_CALL,
    GENERATION_BUFFER_SECONDS,
    MAX_GENERATION_LAG_SECONDS,
    MAX_NOTE_DURATION_SECONDS,
    MIN_NOTE_HOLD_SECONDS,
    RESET_RNN_FREQUENCY_SECONDS,
    DEFAULT_RENDER_SECONDS
)


@dataclass
class GenerationConfig:
    """
    Configuration for performance generation.

    Covers model loading, sampling, conditioning, the live playback loop,
    offline rendering and live MIDI output.
    """

    # ========== Model Loading ==========
    checkpoint_path: Optional[Path] = None  # weights manifest directory or .pt file
    device: str = "cpu"

    # ========== Sampling Parameters ==========
    temperature: float = 1.0
    top_k: Optional[int] = None
    top_p: float = 1.0
    seed: Optional[int] = None

    # ========== Conditioning ==========
    note_density_index: int = DEFAULT_NOTE_DENSITY_INDEX  # index into DENSITY_BIN_RANGES
    pitch_weights: List[float] = field(default_factory=lambda: list(DEFAULT_PITCH_WEIGHTS))
    gain: float = DEFAULT_GAIN  # percent, 0-200

    # ========== Playback Loop ==========
    steps_per_generate_call: int = STEPS_PER_GENERATE_CALL
    generation_buffer_seconds: float = GENERATION_BUFFER_SECONDS
    max_generation_lag_seconds: float = MAX_GENERATION_LAG_SECONDS
    max_note_duration_seconds: float = MAX_NOTE_DURATION_SECONDS
    min_note_hold_seconds: float = MIN_NOTE_HOLD_SECONDS
    reset_rnn_frequency_seconds: Optional[float] = RESET_RNN_FREQUENCY_SECONDS  # None disables

    # ========== Offline Rendering ==========
    duration_seconds: float = DEFAULT_RENDER_SECONDS
    output_dir: Path = field(default_factory=lambda: Path("./generated"))
    filename_template: str = "performance_{timestamp}_{index}"
    save_event_sequence: bool = False

    # ========== Live Output ==========
    midi_port: Optional[str] = None  # None opens the backend's default port
    virtual_port: bool = False

    def __post_init__(self):
        """Validate values and convert paths."""
        if self.checkpoint_path is not None:
            self.checkpoint_path = Path(self.checkpoint_path)
        self.output_dir = Path(self.output_dir)
        self.pitch_weights = list(self.pitch_weights)

        self.validate()

    def validate(self):
        """
        Check every field.

        Raises:
            ValueError: On the first invalid value
        """
        if self.temperature <= 0:
            raise ValueError(f"temperature must be positive, got {self.temperature}")
        if self.top_k is not None and self.top_k < 0:
            raise ValueError(f"top_k must be non-negative, got {self.top_k}")
        if not 0.0 < self.top_p <= 1.0:
            raise ValueError(f"top_p must be in (0, 1], got {self.top_p}")

        if not 0 <= self.note_density_index < len(DENSITY_BIN_RANGES):
            raise ValueError(
                f"note_density_index must be in [0, {len(DENSITY_BIN_RANGES) - 1}], "
                f"got {self.note_density_index}"
            )
        if len(self.pitch_weights) != PITCH_WEIGHT_SIZE:
            raise ValueError(f"Wrong number of pitch weights (should be {PITCH_WEIGHT_SIZE})")
        if not all(math.isfinite(w) for w in self.pitch_weights):
            raise ValueError("Pitch weights must be finite")
        if any(w < 0 for w in self.pitch_weights) or sum(self.pitch_weights) <= 0:
            raise ValueError("Pitch weights must be non-negative with a positive total")
        if not 0 <= self.gain <= MAX_GAIN:
            raise ValueError(f"gain must be in [0, {MAX_GAIN}], got {self.gain}")

        if self.steps_per_generate_call < 1:
            raise ValueError(f"steps_per_generate_call must be >= 1, got {self.steps_per_generate_call}")
        if self.generation_buffer_seconds < 0:
            raise ValueError("generation_buffer_seconds must be non-negative")
        if self.max_generation_lag_seconds <= 0:
            raise ValueError("max_generation_lag_seconds must be positive")
        if self.max_note_duration_seconds <= 0:
            raise ValueError("max_note_duration_seconds must be positive")
        if self.min_note_hold_seconds < 0:
            raise ValueError("min_note_hold_seconds must be non-negative")
        if self.reset_rnn_frequency_seconds is not None and self.reset_rnn_frequency_seconds <= 0:
            raise ValueError("reset_rnn_frequency_seconds must be positive or None")
        if self.duration_seconds <= 0:
            raise ValueError(f"duration_seconds must be positive, got {self.duration_seconds}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary for serialization."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["checkpoint_path"] = str(self.checkpoint_path) if self.checkpoint_path else None
        data["output_dir"] = str(self.output_dir)
        data["pitch_weights"] = list(self.pitch_weights)
        return data

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'GenerationConfig':
        """Create config from dictionary, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(config_dict) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

        return cls(**config_dict)


def load_config(config_path: Union[str, Path]) -> GenerationConfig:
    """
    Load a GenerationConfig from a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist
        yaml.YAMLError: If the YAML is malformed
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {config_path}")

    return GenerationConfig.from_dict(data)


def save_config(config: GenerationConfig, config_path: Union[str, Path]) -> Path:
    """Write a GenerationConfig to a YAML file."""
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(config.to_dict(), f, sort_keys=False)

    return config_path


@dataclass
class RenderResult:
    """
    Result of a single offline rendering.

    Contains the generated events, output paths and timing information.
    """

    # ========== Status ==========
    success: bool = False
    error_message: Optional[str] = None

    # ========== Generated Content ==========
    event_ids: Optional[List[int]] = None
    midi_path: Optional[Path] = None
    event_sequence_path: Optional[Path] = None

    # ========== Metadata ==========
    num_events: int = 0
    num_notes: int = 0
    duration_seconds: float = 0.0  # performance time
    generation_time: float = 0.0  # wall time
    num_resets: int = 0

    timestamp: str = field(default_factory=lambda: datetime.now().strftime("%Y%m%d_%H%M%S"))

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary for serialization."""
        return {
            "success": self.success,
            "error_message": self.error_message,
            "midi_path": str(self.midi_path) if self.midi_path else None,
            "event_sequence_path": str(self.event_sequence_path) if self.event_sequence_path else None,
            "num_events": self.num_events,
            "num_notes": self.num_notes,
            "duration_seconds": self.duration_seconds,
            "generation_time": self.generation_time,
            "num_resets": self.num_resets,
            "timestamp": self.timestamp
        }

    def get_summary(self) -> str:
        """Get human-readable summary of the rendering."""
        if self.success:
            return (
                f"✓ Success | {self.num_events} events | {self.num_notes} notes | "
                f"{self.duration_seconds:.1f}s of music | {self.generation_time:.1f}s"
            )
        else:
            return f"✗ Failed | {self.error_message}"


# ============================================================================
# Preset Factory Functions
# ============================================================================

def create_default_config(**overrides) -> GenerationConfig:
    """
    Create configuration with the stock settings.

    Args:
        **overrides: Override any default parameters

    Returns:
        GenerationConfig
    """
    unknown = [key for key in overrides if key not in {f.name for f in fields(GenerationConfig)}]
    if unknown:
        raise ValueError(f"Unknown configuration keys: {unknown}")

    return GenerationConfig(**overrides)


def create_live_config(**overrides) -> GenerationConfig:
    """
    Create configuration tuned for live playback on a MIDI port.

    Generates a whole second ahead so a slower CPU does not underrun.

    Args:
        **overrides: Override any default parameters

    Returns:
        GenerationConfig
    """
    settings = {
        'generation_buffer_seconds': 1.0,
        'max_generation_lag_seconds': 2.0,
    }
    settings.update(overrides)
    return create_default_config(**settings)


__all__ = [
    'GenerationConfig',
    'RenderResult',
    'load_config',
    'save_config',
    'create_default_config',
    'create_live_config'
]
