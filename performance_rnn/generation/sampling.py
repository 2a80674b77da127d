"""
Sampling strategies for event generation.

Implements temperature scaling, top-k filtering and nucleus (top-p) sampling
on top of a plain multinomial draw. With the defaults the draw is exactly a
sample from softmax(logits).
"""

import torch
import torch.nn.functional as F
from typing import Optional
import logging

logger = logging.getLogger(__name__)


def sample_with_temperature(
    logits: torch.Tensor,
    temperature: float = 1.0
) -> torch.Tensor:
    """
    Apply temperature scaling to logits.

    Higher temperature makes distribution more uniform (more random).
    Lower temperature makes distribution more peaked (more conservative).

    Args:
        logits: Model output logits, shape [batch_size, event_size]
        temperature: Temperature value (typically 0.1-2.0)

    Returns:
        Scaled logits, same shape as input
    """
    if temperature == 1.0:
        return logits

    if temperature <= 0:
        raise ValueError(f"Temperature must be positive, got {temperature}")

    return logits / temperature


def apply_top_k(
    logits: torch.Tensor,
    top_k: int,
    mask_value: float = float('-inf')
) -> torch.Tensor:
    """
    Apply top-k filtering to logits.

    Keeps only the top K highest probability events, masking all others.

    Args:
        logits: Input logits, shape [batch_size, event_size]
        top_k: Number of top events to keep
        mask_value: Value to assign to masked events

    Returns:
        Filtered logits, same shape as input
    """
    if top_k <= 0:
        return logits

    top_k = min(top_k, logits.size(-1))

    top_k_values, _ = torch.topk(logits, top_k, dim=-1)
    threshold = top_k_values[..., -1:]

    return torch.where(
        logits < threshold,
        torch.full_like(logits, mask_value),
        logits
    )


def apply_top_p(
    logits: torch.Tensor,
    top_p: float,
    mask_value: float = float('-inf')
) -> torch.Tensor:
    """
    Apply nucleus (top-p) filtering to logits.

    Keeps the smallest set of events whose cumulative probability exceeds top_p.

    Args:
        logits: Input logits, shape [batch_size, event_size]
        top_p: Cumulative probability threshold (0.0-1.0)
        mask_value: Value to assign to masked events

    Returns:
        Filtered logits, same shape as input
    """
    if top_p >= 1.0:
        return logits

    if top_p <= 0.0:
        raise ValueError(f"top_p must be in (0, 1], got {top_p}")

    sorted_logits, sorted_indices = torch.sort(logits, descending=True, dim=-1)
    cumulative_probs = torch.cumsum(F.softmax(sorted_logits, dim=-1), dim=-1)

    # Shift right to keep at least one event
    sorted_indices_to_remove = cumulative_probs > top_p
    sorted_indices_to_remove[..., 1:] = sorted_indices_to_remove[..., :-1].clone()
    sorted_indices_to_remove[..., 0] = False

    indices_to_remove = sorted_indices_to_remove.scatter(
        dim=-1,
        index=sorted_indices,
        src=sorted_indices_to_remove
    )

    filtered_logits = logits.clone()
    filtered_logits[indices_to_remove] = mask_value

    return filtered_logits


def sample_next_event(
    logits: torch.Tensor,
    temperature: float = 1.0,
    top_k: Optional[int] = None,
    top_p: Optional[float] = None,
    generator: Optional[torch.Generator] = None
) -> torch.Tensor:
    """
    Sample the next event index.

    Args:
        logits: Model output logits, shape [batch_size, event_size]
        temperature: Temperature for scaling (default: 1.0)
        top_k: Top-k filtering (optional)
        top_p: Nucleus sampling threshold (optional)
        generator: Seeded random generator (optional)

    Returns:
        Sampled event indices, shape [batch_size]
    """
    logits = sample_with_temperature(logits, temperature)

    if top_k is not None and top_k > 0:
        logits = apply_top_k(logits, top_k)

    if top_p is not None and top_p < 1.0:
        logits = apply_top_p(logits, top_p)

    probs = F.softmax(logits, dim=-1)

    try:
        next_event = torch.multinomial(probs, num_samples=1, generator=generator)
    except RuntimeError as e:
        # Handle edge case where the distribution is degenerate (NaN/inf logits)
        logger.warning(f"Sampling failed: {e}. Using argmax fallback.")
        next_event = torch.argmax(torch.nan_to_num(logits, nan=float('-inf')), dim=-1, keepdim=True)

    return next_event.squeeze(-1)


def compute_event_entropy(logits: torch.Tensor) -> torch.Tensor:
    """
    Entropy of the event distribution, shape [batch_size].

    Logged at DEBUG level to spot a model trailing off into noise.
    """
    log_probs = F.log_softmax(logits, dim=-1)
    return -(log_probs.exp() * log_probs).sum(dim=-1)


__all__ = [
    'sample_with_temperature',
    'apply_top_k',
    'apply_top_p',
    'sample_next_event',
    'compute_event_entropy'
]
