"""
Stacked LSTM model for Performance RNN.

This module implements the 3-layer LSTM plus fully connected projection that
maps the previous event (and conditioning) to logits over the event space.
Parameters are laid out exactly like TensorFlow's BasicLSTMCell so exported
checkpoints load without any reshuffling.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import torch
import torch.nn as nn

from ..data.constants import (
    INPUT_SIZE,
    HIDDEN_SIZE,
    NUM_LSTM_LAYERS,
    EVENT_SIZE,
    FORGET_BIAS,
    LSTM_KERNEL_NAME,
    LSTM_BIAS_NAME,
    FC_WEIGHTS_NAME,
    FC_BIASES_NAME
)

logger = logging.getLogger(__name__)

# Per-layer (c, h) lists
LSTMState = Tuple[List[torch.Tensor], List[torch.Tensor]]


class BasicLSTMCell(nn.Module):
    """
    LSTM cell with a single fused kernel.

    z = [x, h] @ kernel + bias is split into the input gate i, the candidate j,
    the forget gate f and the output gate o (in that order). forget_bias is
    added to f before the sigmoid.
    """

    def __init__(
        self,
        input_size: int,
        hidden_size: int,
        forget_bias: float = FORGET_BIAS
    ):
        """
        Initialize LSTM cell.

        Args:
            input_size: Dimension of the cell input
            hidden_size: Dimension of the cell state
            forget_bias: Constant added to the forget gate pre-activation
        """
        super().__init__()

        self.input_size = input_size
        self.hidden_size = hidden_size
        self.forget_bias = forget_bias

        self.kernel = nn.Parameter(torch.empty(input_size + hidden_size, 4 * hidden_size))
        self.bias = nn.Parameter(torch.zeros(4 * hidden_size))

        nn.init.xavier_uniform_(self.kernel)

    def forward(
        self,
        x: torch.Tensor,
        c: torch.Tensor,
        h: torch.Tensor
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        """
        Advance the cell by one step.

        Args:
            x: Input, shape [batch_size, input_size]
            c: Cell state, shape [batch_size, hidden_size]
            h: Hidden state, shape [batch_size, hidden_size]

        Returns:
            Tuple of (new_c, new_h)
        """
        z = torch.cat([x, h], dim=-1) @ self.kernel + self.bias
        i, j, f, o = torch.chunk(z, 4, dim=-1)

        new_c = c * torch.sigmoid(f + self.forget_bias) + torch.sigmoid(i) * torch.tanh(j)
        new_h = torch.tanh(new_c) * torch.sigmoid(o)

        return new_c, new_h


class PerformanceRNN(nn.Module):
    """
    Multi-layer LSTM with a fully connected output layer.

    Each layer's new hidden state is the next layer's input; the top layer's
    hidden state is projected to event logits.
    """

    def __init__(
        self,
        input_size: int = INPUT_SIZE,
        hidden_sizes: Sequence[int] = (HIDDEN_SIZE,) * NUM_LSTM_LAYERS,
        event_size: int = EVENT_SIZE,
        forget_bias: float = FORGET_BIAS
    ):
        """
        Initialize Performance RNN.

        Args:
            input_size: Conditioning + one-hot event dimension
            hidden_sizes: Hidden size of each LSTM layer
            event_size: Number of output events
            forget_bias: Forget gate bias shared by all layers
        """
        super().__init__()

        if not hidden_sizes:
            raise ValueError("At least one LSTM layer is required")

        self.input_size = input_size
        self.hidden_sizes = list(hidden_sizes)
        self.event_size = event_size
        self.forget_bias = forget_bias

        cells = []
        layer_input = input_size
        for hidden_size in self.hidden_sizes:
            cells.append(BasicLSTMCell(layer_input, hidden_size, forget_bias))
            layer_input = hidden_size
        self.cells = nn.ModuleList(cells)

        self.fc_weights = nn.Parameter(torch.empty(self.hidden_sizes[-1], event_size))
        self.fc_biases = nn.Parameter(torch.zeros(event_size))
        nn.init.xavier_uniform_(self.fc_weights)

    @property
    def num_layers(self) -> int:
        return len(self.cells)

    def zero_state(
        self,
        batch_size: int = 1,
        device: Optional[torch.device] = None
    ) -> LSTMState:
        """Zero cell and hidden states for every layer."""
        if device is None:
            device = self.fc_biases.device

        c = [torch.zeros(batch_size, size, device=device) for size in self.hidden_sizes]
        h = [torch.zeros(batch_size, size, device=device) for size in self.hidden_sizes]
        return c, h

    def forward(
        self,
        inputs: torch.Tensor,
        state: Optional[LSTMState] = None
    ) -> Tuple[torch.Tensor, LSTMState]:
        """
        Run one step through the stack.

        Args:
            inputs: Input vectors, shape [batch_size, input_size]
            state: Per-layer (c, h) lists, zero state if None

        Returns:
            Tuple of:
            - logits: shape [batch_size, event_size]
            - new_state: per-layer (c, h) lists
        """
        if state is None:
            state = self.zero_state(inputs.size(0), inputs.device)

        c, h = state
        new_c, new_h = [], []

        layer_input = inputs
        for layer, cell in enumerate(self.cells):
            layer_c, layer_h = cell(layer_input, c[layer], h[layer])
            new_c.append(layer_c)
            new_h.append(layer_h)
            layer_input = layer_h

        logits = new_h[-1] @ self.fc_weights + self.fc_biases

        return logits, (new_c, new_h)

    def get_num_params(self) -> int:
        return sum(p.numel() for p in self.parameters())

    def get_model_config(self) -> Dict[str, object]:
        return {
            'input_size': self.input_size,
            'hidden_sizes': list(self.hidden_sizes),
            'event_size': self.event_size,
            'forget_bias': self.forget_bias
        }

    def to_weights(self) -> Dict[str, np.ndarray]:
        """Export parameters keyed by checkpoint variable name."""
        weights = {}
        for layer, cell in enumerate(self.cells):
            weights[LSTM_KERNEL_NAME.format(layer=layer)] = cell.kernel.detach().cpu().numpy()
            weights[LSTM_BIAS_NAME.format(layer=layer)] = cell.bias.detach().cpu().numpy()
        weights[FC_WEIGHTS_NAME] = self.fc_weights.detach().cpu().numpy()
        weights[FC_BIASES_NAME] = self.fc_biases.detach().cpu().numpy()
        return weights

    @classmethod
    def from_weights(
        cls,
        weights: Dict[str, Union[np.ndarray, torch.Tensor]],
        forget_bias: float = FORGET_BIAS
    ) -> 'PerformanceRNN':
        """
        Build a model from checkpoint variables.

        Layer sizes are inferred from the variable shapes: each bias holds
        4 * hidden_size values and each kernel has input_size + hidden_size rows.

        Args:
            weights: Mapping from checkpoint variable name to array
            forget_bias: Forget gate bias

        Returns:
            PerformanceRNN with the given parameters loaded

        Raises:
            KeyError: If a required variable is missing
            ValueError: If variable shapes are inconsistent
        """
        tensors = {
            name: torch.as_tensor(np.asarray(value), dtype=torch.float32)
            for name, value in weights.items()
        }

        layer = 0
        hidden_sizes = []
        while LSTM_BIAS_NAME.format(layer=layer) in tensors:
            bias = tensors[LSTM_BIAS_NAME.format(layer=layer)]
            if bias.dim() != 1 or bias.shape[0] % 4 != 0:
                raise ValueError(f"Bias of layer {layer} has invalid shape {tuple(bias.shape)}")
            hidden_sizes.append(bias.shape[0] // 4)
            layer += 1

        if not hidden_sizes:
            raise KeyError(f"No LSTM variables found (expected {LSTM_BIAS_NAME.format(layer=0)})")

        first_kernel = tensors[LSTM_KERNEL_NAME.format(layer=0)]
        input_size = first_kernel.shape[0] - hidden_sizes[0]
        event_size = tensors[FC_BIASES_NAME].shape[0]

        model = cls(
            input_size=input_size,
            hidden_sizes=hidden_sizes,
            event_size=event_size,
            forget_bias=forget_bias
        )

        with torch.no_grad():
            for layer, cell in enumerate(model.cells):
                kernel = tensors[LSTM_KERNEL_NAME.format(layer=layer)]
                if tuple(kernel.shape) != tuple(cell.kernel.shape):
                    raise ValueError(
                        f"Kernel of layer {layer} has shape {tuple(kernel.shape)}, "
                        f"expected {tuple(cell.kernel.shape)}"
                    )
                cell.kernel.copy_(kernel)
                cell.bias.copy_(tensors[LSTM_BIAS_NAME.format(layer=layer)])

            fc_weights = tensors[FC_WEIGHTS_NAME]
            if tuple(fc_weights.shape) != tuple(model.fc_weights.shape):
                raise ValueError(
                    f"Fully connected weights have shape {tuple(fc_weights.shape)}, "
                    f"expected {tuple(model.fc_weights.shape)}"
                )
            model.fc_weights.copy_(fc_weights)
            model.fc_biases.copy_(tensors[FC_BIASES_NAME])

        logger.info(
            f"Built Performance RNN: {len(hidden_sizes)} layers {hidden_sizes}, "
            f"input {input_size}, events {event_size}"
        )

        return model


def create_model(
    input_size: int = INPUT_SIZE,
    hidden_sizes: Sequence[int] = (HIDDEN_SIZE,) * NUM_LSTM_LAYERS,
    event_size: int = EVENT_SIZE,
    forget_bias: float = FORGET_BIAS
) -> PerformanceRNN:
    """
    Factory function to create a PerformanceRNN model.

    Args:
        input_size: Conditioning + one-hot event dimension
        hidden_sizes: Hidden size of each LSTM layer
        event_size: Number of output events
        forget_bias: Forget gate bias

    Returns:
        PerformanceRNN model
    """
    return PerformanceRNN(
        input_size=input_size,
        hidden_sizes=hidden_sizes,
        event_size=event_size,
        forget_bias=forget_bias
    )


__all__ = [
    'BasicLSTMCell',
    'PerformanceRNN',
    'LSTMState',
    'create_model'
]
