# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""The inference-backend contract.

A backend is the black box that turns a compiled model asset into something
that can execute.  It exposes three operations:

- ``load(model_identifier, device_hint) -> handle``
- ``unload(handle)``
- ``predict(handle, inputs) -> outputs`` where both sides are mappings of
  input/output name to :class:`~latentkit.tensor.TensorBuffer`.

Implementations must raise :class:`~latentkit.errors.ResourceUnavailable`
when an asset is missing or cannot be loaded, and
:class:`~latentkit.errors.BackendExecutionError` on shape / dtype mismatch
or any failure inside ``predict``.
"""
from __future__ import annotations

import abc
from typing import Any, Dict, Mapping, Optional, Sequence

from ..device import device as Device
from ..errors import BackendExecutionError
from ..tensor import TensorBuffer


class Backend(abc.ABC):
    """Abstract inference backend."""

    #: Whether ``predict`` may be called from several threads on one handle.
    supports_concurrent_predict: bool = False

    @abc.abstractmethod
    def load(self, model_identifier: str,
             device_hint: Optional[Device] = None) -> Any:
        """Make *model_identifier* executable and return an opaque handle."""

    @abc.abstractmethod
    def unload(self, handle: Any) -> None:
        """Release everything held by *handle*."""

    @abc.abstractmethod
    def predict(self, handle: Any,
                inputs: Mapping[str, TensorBuffer]) -> Dict[str, TensorBuffer]:
        """Execute the network behind *handle* on *inputs*."""


def check_inputs(inputs: Mapping[str, TensorBuffer],
                 signature: Mapping[str, Sequence[Optional[int]]],
                 model_identifier: str) -> None:
    """Validate *inputs* against a ``name -> shape`` signature.

    ``None`` (or a symbolic string) in a signature shape matches any size.
    """
    missing = [name for name in signature if name not in inputs]
    if missing:
        raise BackendExecutionError(
            f"{model_identifier}: missing inputs {missing}")
    for name, shape in signature.items():
        actual = inputs[name].shape
        expected = tuple(shape)
        ok = len(actual) == len(expected) and all(
            not isinstance(e, int) or e == a
            for e, a in zip(expected, actual))
        if not ok:
            raise BackendExecutionError(
                f"{model_identifier}: input {name!r} has shape {actual}, "
                f"expected {expected}")


__all__ = ['Backend', 'check_inputs']
