# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""In-process backend that executes registered Python callables.

Each model identifier is bound to a function ``fn(**arrays) -> dict`` that
takes and returns NumPy arrays keyed by tensor name.  Useful for pure-NumPy
networks and for exercising the pipeline without compiled assets::

    backend = CallableBackend()
    backend.register('TextEncoder', lambda input_ids: {...},
                     inputs={'input_ids': (None, 77)})
"""
from __future__ import annotations

import threading
from collections import Counter
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

import numpy as np

from ..device import device as Device
from ..errors import BackendExecutionError, LatentkitError, ResourceUnavailable
from ..tensor import TensorBuffer
from .base import Backend, check_inputs


class _Handle:
    __slots__ = ('identifier', 'fn', 'inputs', 'device')

    def __init__(self, identifier, fn, inputs, device):
        self.identifier = identifier
        self.fn = fn
        self.inputs = inputs
        self.device = device


class CallableBackend(Backend):
    """Backend over Python callables, with load / predict bookkeeping.

    ``load_counts``, ``unload_counts`` and ``predict_counts`` record how often
    each identifier went through each operation; ``live`` is the set of
    identifiers that currently hold a handle.
    """

    supports_concurrent_predict = True

    def __init__(self):
        self._registry: Dict[str, tuple] = {}
        self._lock = threading.Lock()
        self.load_counts: Counter = Counter()
        self.unload_counts: Counter = Counter()
        self.predict_counts: Counter = Counter()
        self.live: set = set()

    def register(self, model_identifier: str,
                 fn: Callable[..., Mapping[str, Any]],
                 inputs: Optional[Mapping[str, Sequence[Optional[int]]]] = None,
                 ) -> 'CallableBackend':
        self._registry[model_identifier] = (fn, dict(inputs or {}))
        return self

    def load(self, model_identifier: str,
             device_hint: Optional[Device] = None) -> _Handle:
        if model_identifier not in self._registry:
            raise ResourceUnavailable(
                f"no model registered under {model_identifier!r}",
                stage=model_identifier)
        fn, inputs = self._registry[model_identifier]
        with self._lock:
            self.load_counts[model_identifier] += 1
            self.live.add(model_identifier)
        return _Handle(model_identifier, fn, inputs, device_hint)

    def unload(self, handle: _Handle) -> None:
        with self._lock:
            self.unload_counts[handle.identifier] += 1
            self.live.discard(handle.identifier)

    def predict(self, handle: _Handle,
                inputs: Mapping[str, TensorBuffer]) -> Dict[str, TensorBuffer]:
        if handle.identifier not in self.live:
            raise BackendExecutionError(
                f"{handle.identifier}: predict on an unloaded model")
        check_inputs(inputs, handle.inputs, handle.identifier)
        with self._lock:
            self.predict_counts[handle.identifier] += 1
        try:
            raw = handle.fn(**{k: v.numpy() for k, v in inputs.items()})
        except LatentkitError:
            raise
        except Exception as exc:
            raise BackendExecutionError(
                f"{handle.identifier}: {type(exc).__name__}: {exc}") from exc
        return {k: TensorBuffer(np.asarray(v)) for k, v in raw.items()}


__all__ = ['CallableBackend']
