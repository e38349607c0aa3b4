# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""Seeded random sources.

Every bit of randomness in a generation (initial latent noise, image-to-image
noise, VAE-encoder sampling, ancestral scheduler noise) is drawn from one
:class:`RandomSource` created from the request seed, so a fixed seed and
request reproduce the same latent trajectory.

- **NumpyRandomSource**     — legacy ``numpy.random.RandomState``
  (Mersenne Twister).  Matches reference pipelines that call
  ``np.random.seed(seed); np.random.randn(...)``.
- **GeneratorRandomSource** — ``numpy.random.default_rng`` (PCG64).
"""
from __future__ import annotations

import numpy as np
from typing import Sequence

from ..errors import InvalidConfiguration
from ..tensor import TensorBuffer


class RandomSource:
    """Base class: a seeded stream of standard-normal samples."""

    kind = 'base'

    def __init__(self, seed: int):
        if not 0 <= int(seed) < 2 ** 32:
            raise InvalidConfiguration(f"seed must be in [0, 2**32), got {seed}")
        self.seed = int(seed)

    def _standard_normal(self, shape: Sequence[int]) -> np.ndarray:
        raise NotImplementedError

    def normal_array(self, shape: Sequence[int], mean: float = 0.0,
                     std: float = 1.0) -> np.ndarray:
        """Float32 array of N(mean, std²) samples."""
        out = self._standard_normal(tuple(shape)).astype(np.float32)
        if std != 1.0:
            out *= np.float32(std)
        if mean != 0.0:
            out += np.float32(mean)
        return out

    def normal(self, shape: Sequence[int], mean: float = 0.0,
               std: float = 1.0) -> TensorBuffer:
        return TensorBuffer._wrap(self.normal_array(shape, mean, std))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(seed={self.seed})"


class NumpyRandomSource(RandomSource):
    """Mersenne Twister stream, bit-compatible with ``np.random.randn``."""

    kind = 'numpy'

    def __init__(self, seed: int):
        super().__init__(seed)
        self._state = np.random.RandomState(self.seed)

    def _standard_normal(self, shape):
        return self._state.standard_normal(shape)


class GeneratorRandomSource(RandomSource):
    """PCG64 stream from ``np.random.default_rng``."""

    kind = 'pcg64'

    def __init__(self, seed: int):
        super().__init__(seed)
        self._rng = np.random.default_rng(self.seed)

    def _standard_normal(self, shape):
        return self._rng.standard_normal(shape, dtype=np.float32)


RANDOM_SOURCES = {
    NumpyRandomSource.kind: NumpyRandomSource,
    GeneratorRandomSource.kind: GeneratorRandomSource,
}


def make_random_source(kind: str, seed: int) -> RandomSource:
    """Build a random source by name (``'numpy'`` or ``'pcg64'``)."""
    if kind not in RANDOM_SOURCES:
        raise InvalidConfiguration(
            f"Unknown random source {kind!r}; expected one of "
            f"{', '.join(sorted(RANDOM_SOURCES))}")
    return RANDOM_SOURCES[kind](seed)


__all__ = ['RandomSource', 'NumpyRandomSource', 'GeneratorRandomSource',
           'RANDOM_SOURCES', 'make_random_source']
