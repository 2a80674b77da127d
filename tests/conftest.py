import itertools
from typing import List, Sequence

import pytest
import torch

from performance_rnn.data.constants import INPUT_SIZE, EVENT_SIZE
from performance_rnn.generation import GenerationConfig, PerformanceGenerator, create_default_config
from performance_rnn.model import create_model


class _ScriptedGenerator:
    """Stands in for PerformanceGenerator, emitting a fixed cycle of event indices."""

    def __init__(self, script: Sequence[int], config: GenerationConfig) -> None:
        self.script = list(script)
        self.config = config
        self.note_density_index = config.note_density_index
        self.pitch_weights = list(config.pitch_weights)
        self.num_resets = 0
        self.calls = 0
        self._cycle = itertools.cycle(self.script)

    def reset(self) -> None:
        self.num_resets += 1
        self._cycle = itertools.cycle(self.script)

    def generate_steps(self, num_steps: int = 10) -> List[int]:
        self.calls += 1
        return [next(self._cycle) for _ in range(num_steps)]

    def set_note_density(self, density_index: int) -> None:
        self.note_density_index = density_index

    def set_pitch_weights(self, values: Sequence[float]) -> None:
        self.pitch_weights = list(values)


@pytest.fixture
def small_model():
    torch.manual_seed(0)
    return create_model(input_size=INPUT_SIZE, hidden_sizes=(8, 8, 8), event_size=EVENT_SIZE)


@pytest.fixture
def config(tmp_path) -> GenerationConfig:
    return create_default_config(seed=1234, output_dir=tmp_path / "generated", duration_seconds=3.0)


@pytest.fixture
def generator(small_model, config) -> PerformanceGenerator:
    return PerformanceGenerator(small_model, config)


@pytest.fixture
def scripted_generator():
    def _make(script: Sequence[int], config: GenerationConfig = None) -> _ScriptedGenerator:
        return _ScriptedGenerator(script, config if config is not None else create_default_config())

    return _make
