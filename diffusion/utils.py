# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""Diffusion utilities — schedule builders, guidance, and history buffers.

Shared helpers used across schedulers and pipelines:

- ``get_beta_schedule``  — build a β schedule by name.
- ``apply_guidance``     — classifier-free guidance combination.
- ``RingBuffer``         — fixed-capacity history of prior model outputs.
"""
from __future__ import annotations

import math
import numpy as np
from typing import Generic, List, Optional, TypeVar

from ..errors import InvalidConfiguration
from ..tensor import TensorBuffer

T = TypeVar('T')


# ═════════════════════════════════════════════════════════════════════
#  Beta-schedule builder
# ═════════════════════════════════════════════════════════════════════

def get_beta_schedule(
    schedule: str,
    num_timesteps: int = 1000,
    beta_start: float = 0.00085,
    beta_end: float = 0.012,
) -> np.ndarray:
    """Construct a beta noise schedule.

    Args:
        schedule:       One of ``'linear'``, ``'scaled_linear'``,
                        ``'squaredcos_cap_v2'``.
        num_timesteps:  Number of training diffusion timesteps.
        beta_start:     Starting beta value (linear / scaled_linear).
        beta_end:       Ending beta value.

    Returns:
        1-D float32 numpy array of length ``num_timesteps``.
    """
    if num_timesteps <= 0:
        raise InvalidConfiguration(
            f"num_train_timesteps must be positive, got {num_timesteps}")
    if schedule == 'linear':
        return np.linspace(beta_start, beta_end, num_timesteps,
                           dtype=np.float32)
    elif schedule == 'scaled_linear':
        # Square-root spacing, as in Stable Diffusion
        return (np.linspace(beta_start ** 0.5, beta_end ** 0.5,
                            num_timesteps, dtype=np.float32) ** 2)
    elif schedule == 'squaredcos_cap_v2':
        steps = np.arange(num_timesteps + 1, dtype=np.float64) / num_timesteps
        alpha_bar = np.cos((steps + 0.008) / 1.008 * math.pi / 2) ** 2
        betas = 1 - alpha_bar[1:] / alpha_bar[:-1]
        return np.clip(betas, 0.0, 0.999).astype(np.float32)
    else:
        raise InvalidConfiguration(f"Unknown beta schedule: {schedule!r}")


def alphas_cumprod_from_betas(betas: np.ndarray) -> np.ndarray:
    """Cumulative product of ``1 - β`` in float32, accumulated left to right."""
    return np.cumprod(np.float32(1.0) - betas.astype(np.float32),
                      dtype=np.float32)


# ═════════════════════════════════════════════════════════════════════
#  Classifier-Free Guidance
# ═════════════════════════════════════════════════════════════════════

def apply_guidance(noise_pred: TensorBuffer, guidance_scale: float) -> TensorBuffer:
    """Combine a batched ``[uncond; cond]`` prediction::

        guided = uncond + guidance_scale * (cond - uncond)

    Args:
        noise_pred:     ``(2B, …)`` prediction, unconditional half first.
        guidance_scale: CFG weight.

    Returns:
        ``(B, …)`` guided prediction.
    """
    if noise_pred.shape[0] % 2 != 0:
        raise InvalidConfiguration(
            f"guided prediction needs an even batch, got {noise_pred.shape}")
    uncond, cond = noise_pred.split(2, axis=0)
    u = uncond.numpy()
    guided = u + np.float32(guidance_scale) * (cond.numpy() - u)
    return TensorBuffer._wrap(guided.astype(u.dtype, copy=False))


# ═════════════════════════════════════════════════════════════════════
#  History ring buffer
# ═════════════════════════════════════════════════════════════════════

class RingBuffer(Generic[T]):
    """Fixed-capacity buffer; the oldest entry is overwritten when full.

    Index ``-1`` is the most recent entry, ``-2`` the one before, and so on.
    """

    __slots__ = ('_items', '_capacity', '_start', '_count')

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise InvalidConfiguration(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._items: List[Optional[T]] = [None] * capacity
        self._start = 0
        self._count = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def append(self, item: T) -> None:
        end = (self._start + self._count) % self._capacity
        self._items[end] = item
        if self._count < self._capacity:
            self._count += 1
        else:
            self._start = (self._start + 1) % self._capacity

    def clear(self) -> None:
        self._items = [None] * self._capacity
        self._start = 0
        self._count = 0

    def __len__(self) -> int:
        return self._count

    def __getitem__(self, index: int) -> T:
        if not -self._count <= index < self._count:
            raise IndexError(index)
        if index < 0:
            index += self._count
        return self._items[(self._start + index) % self._capacity]

    def __iter__(self):
        for i in range(self._count):
            yield self[i]


__all__ = [
    'get_beta_schedule',
    'alphas_cumprod_from_betas',
    'apply_guidance',
    'RingBuffer',
]
