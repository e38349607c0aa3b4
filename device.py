# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""Device hint passed to backends when a stage is loaded.

A ``device`` names where a compiled network should execute — ``'cpu'``,
``'cuda:1'``, ``'coreml'`` (Apple Neural Engine / GPU), ``'dml'``
(DirectML).  Backends are free to interpret the hint; the ONNX Runtime
backend maps it to an execution-provider list with ``providers()``.
"""
from __future__ import annotations

from .errors import InvalidConfiguration

_PROVIDERS = {
    'cpu': 'CPUExecutionProvider',
    'cuda': 'CUDAExecutionProvider',
    'coreml': 'CoreMLExecutionProvider',
    'dml': 'DmlExecutionProvider',
}


class device:
    """Represents a compute device hint (cpu, cuda, coreml, dml)."""

    __slots__ = ('_type', '_index')

    def __init__(self, type_or_str: str = 'cpu', index: int | None = None):
        if isinstance(type_or_str, device):
            self._type = type_or_str._type
            self._index = type_or_str._index
            return
        s = str(type_or_str).strip().lower()
        if ':' in s:
            head, _, tail = s.partition(':')
            if not tail.isdigit():
                raise InvalidConfiguration(f"Invalid device index in {s!r}")
            self._type = head
            self._index = int(tail)
        else:
            self._type = s
            self._index = index
        if self._type not in _PROVIDERS:
            raise InvalidConfiguration(
                f"Unknown device {self._type!r}; expected one of "
                f"{', '.join(sorted(_PROVIDERS))}")

    @property
    def type(self) -> str:
        return self._type

    @property
    def index(self) -> int | None:
        return self._index

    def providers(self) -> list:
        """ONNX Runtime execution providers, most preferred first.

        CPU is always appended as the fallback provider.
        """
        primary = _PROVIDERS[self._type]
        if primary == 'CPUExecutionProvider':
            return [primary]
        if self._index is not None:
            return [(primary, {'device_id': self._index}),
                    'CPUExecutionProvider']
        return [primary, 'CPUExecutionProvider']

    def __eq__(self, other) -> bool:
        if isinstance(other, str):
            other = device(other)
        if not isinstance(other, device):
            return NotImplemented
        return self._type == other._type and self._index == other._index

    def __hash__(self) -> int:
        return hash((self._type, self._index))

    def __repr__(self) -> str:
        if self._index is not None:
            return f"device(type='{self._type}', index={self._index})"
        return f"device(type='{self._type}')"

    def __str__(self) -> str:
        if self._index is not None:
            return f"{self._type}:{self._index}"
        return self._type
