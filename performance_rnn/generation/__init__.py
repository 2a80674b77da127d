"""
Performance generation infrastructure.

This module provides the complete generation pipeline:
- Configuration management
- Conditioning (note density, pitch weights)
- Sampling strategies
- The incremental LSTM generator
- Offline rendering and MIDI export
"""

from .generation_config import (
    GenerationConfig,
    RenderResult,
    load_config,
    save_config,
    create_default_config,
    create_live_config
)

from .conditioning import (
    note_density_encoding,
    note_density_for_index,
    normalize_pitch_weights,
    build_conditioning
)

from .sampling import (
    sample_with_temperature,
    apply_top_k,
    apply_top_p,
    sample_next_event
)

from .generator import (
    PerformanceGenerator,
    load_generator_from_checkpoint
)

from .renderer import (
    render_performance
)

from .midi_export import (
    events_to_midi,
    write_midi,
    save_event_sequence,
    load_event_sequence,
    PerformanceRenderer
)

__all__ = [
    # Configuration
    'GenerationConfig',
    'RenderResult',
    'load_config',
    'save_config',
    'create_default_config',
    'create_live_config',

    # Conditioning
    'note_density_encoding',
    'note_density_for_index',
    'normalize_pitch_weights',
    'build_conditioning',

    # Sampling
    'sample_with_temperature',
    'apply_top_k',
    'apply_top_p',
    'sample_next_event',

    # Generator
    'PerformanceGenerator',
    'load_generator_from_checkpoint',

    # Rendering
    'render_performance',
    'events_to_midi',
    'write_midi',
    'save_event_sequence',
    'load_event_sequence',
    'PerformanceRenderer'
]
