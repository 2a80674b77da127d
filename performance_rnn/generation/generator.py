"""
Incremental Performance RNN generator.

Keeps the LSTM state between calls so events can be produced a few at a time
by the playback loop: the last sampled event is always the next input.
"""

import logging
import threading
from pathlib import Path
from typing import List, Optional, Sequence

import torch
import torch.nn.functional as F

from ..data.constants import PRIMER_IDX, STEPS_PER_GENERATE_CALL
from ..data.events import PerformanceEvent, decode_event
from ..model.lstm import PerformanceRNN, LSTMState
from ..utils.checkpoint_utils import load_model
from ..utils.device_utils import get_device, make_generator
from .conditioning import build_conditioning
from .generation_config import GenerationConfig
from .sampling import sample_next_event, compute_event_entropy

logger = logging.getLogger(__name__)


class PerformanceGenerator:
    """
    Steps a PerformanceRNN autoregressively.

    Conditioning changes (note density, pitch weights) take effect on the
    next generated step. All public methods are safe to call from a control
    thread while the playback thread is generating.
    """

    def __init__(self, model: PerformanceRNN, config: GenerationConfig):
        """
        Initialize generator.

        Args:
            model: Loaded model (moved to config.device)
            config: Generation configuration
        """
        self.config = config
        self.device = get_device(config.device)
        self.model = model.to(self.device)
        self.model.eval()

        self._lock = threading.RLock()
        self._rng = make_generator(config.seed, self.device)

        self.note_density_index = config.note_density_index
        self.pitch_weights = list(config.pitch_weights)
        self._conditioning = build_conditioning(
            self.note_density_index, self.pitch_weights, self.device
        )

        expected_input = self._conditioning.numel() + model.event_size
        if expected_input != model.input_size:
            raise ValueError(
                f"Model expects input size {model.input_size}, conditioning plus "
                f"events gives {expected_input}"
            )

        self.state: LSTMState = self.model.zero_state(1, self.device)
        self.last_sample = PRIMER_IDX
        self.steps_generated = 0

        logger.info(f"PerformanceGenerator initialized (device: {self.device})")

    def reset(self):
        """Zero the LSTM state and prime with a one second time shift."""
        with self._lock:
            self.state = self.model.zero_state(1, self.device)
            self.last_sample = PRIMER_IDX
            self.steps_generated = 0

        logger.debug("RNN state reset")

    def set_note_density(self, density_index: int):
        """Select a note density bin (index into DENSITY_BIN_RANGES)."""
        with self._lock:
            self._conditioning = build_conditioning(density_index, self.pitch_weights, self.device)
            self.note_density_index = density_index

    def set_pitch_weights(self, values: Sequence[float]):
        """
        Set the relative frequency of the generated pitch classes.

        Args:
            values: 12 numbers, one for each pitch class, representing the
                    relative frequency of each. They do not need to sum to 1.
        """
        with self._lock:
            self._conditioning = build_conditioning(self.note_density_index, values, self.device)
            self.pitch_weights = list(values)

    def _build_input(self, last_sample: int) -> torch.Tensor:
        event_input = F.one_hot(
            torch.tensor(last_sample, device=self.device),
            num_classes=self.model.event_size
        ).float()
        return torch.cat([self._conditioning, event_input]).unsqueeze(0)

    @torch.no_grad()
    def generate_steps(self, num_steps: int = STEPS_PER_GENERATE_CALL) -> List[int]:
        """
        Generate the next events.

        Args:
            num_steps: Number of events to sample

        Returns:
            List of event indices
        """
        if num_steps < 1:
            raise ValueError(f"num_steps must be >= 1, got {num_steps}")

        outputs = []
        with self._lock:
            state = self.state
            last_sample = self.last_sample

            for _ in range(num_steps):
                logits, state = self.model(self._build_input(last_sample), state)

                sampled = sample_next_event(
                    logits,
                    temperature=self.config.temperature,
                    top_k=self.config.top_k,
                    top_p=self.config.top_p,
                    generator=self._rng
                )
                last_sample = int(sampled.item())
                outputs.append(last_sample)

            if logger.isEnabledFor(logging.DEBUG):
                entropy = compute_event_entropy(logits).item()
                logger.debug(f"Generated {num_steps} events, last entropy {entropy:.3f}")

            self.state = state
            self.last_sample = last_sample
            self.steps_generated += num_steps

        return outputs

    def generate_events(self, num_steps: int = STEPS_PER_GENERATE_CALL) -> List[PerformanceEvent]:
        """Generate and decode the next events."""
        return [decode_event(index) for index in self.generate_steps(num_steps)]


def load_generator_from_checkpoint(
    checkpoint_path: Path,
    config: Optional[GenerationConfig] = None
) -> Optional[PerformanceGenerator]:
    """
    Convenience function to load a generator from a checkpoint.

    Args:
        checkpoint_path: Weights manifest directory or .pt file
        config: Generation configuration (uses default if None)

    Returns:
        Loaded PerformanceGenerator, or None if loading failed
    """
    if config is None:
        config = GenerationConfig()

    config.checkpoint_path = Path(checkpoint_path)

    try:
        logger.info(f"Loading checkpoint from {checkpoint_path}")

        if not config.checkpoint_path.exists():
            logger.error(f"Checkpoint not found: {checkpoint_path}")
            return None

        model = load_model(config.checkpoint_path, device=get_device(config.device))
        return PerformanceGenerator(model, config)

    except Exception as e:
        logger.error(f"Failed to load checkpoint: {e}", exc_info=True)
        return None


__all__ = [
    'PerformanceGenerator',
    'load_generator_from_checkpoint'
]
