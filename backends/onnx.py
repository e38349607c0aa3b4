# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""ONNX Runtime backend for compiled ``.onnx`` model assets.

``load`` opens an :class:`onnxruntime.InferenceSession` with execution
providers derived from the device hint; ``predict`` validates inputs against
the session's declared signature before running it.  Float inputs are cast
to the element type the graph declares, so float16-compiled networks can be
fed float32 buffers.
"""
from __future__ import annotations

import os
from typing import Any, Dict, Mapping, Optional

import numpy as np
import onnxruntime as ort

from ..device import device as Device
from ..dtype import dtype as Dtype
from ..errors import BackendExecutionError, InvalidConfiguration, ResourceUnavailable
from ..tensor import TensorBuffer
from ..utils.logging import get_logger
from .base import Backend

logger = get_logger(__name__)


class OnnxHandle:
    """A loaded session plus its input signature."""

    __slots__ = ('identifier', 'session', 'inputs', 'output_names')

    def __init__(self, identifier: str, session: Any):
        self.identifier = identifier
        self.session = session
        self.inputs = {i.name: (tuple(i.shape), i.type)
                       for i in session.get_inputs()}
        self.output_names = [o.name for o in session.get_outputs()]


class OnnxRuntimeBackend(Backend):
    """Runs ``.onnx`` assets with ONNX Runtime.

    Args:
        intra_op_num_threads: Threads per operator (0 = runtime default).
        graph_optimization:   ``'all'``, ``'extended'``, ``'basic'`` or
                              ``'disable'``.
    """

    supports_concurrent_predict = True

    _OPT_LEVELS = {
        'disable': ort.GraphOptimizationLevel.ORT_DISABLE_ALL,
        'basic': ort.GraphOptimizationLevel.ORT_ENABLE_BASIC,
        'extended': ort.GraphOptimizationLevel.ORT_ENABLE_EXTENDED,
        'all': ort.GraphOptimizationLevel.ORT_ENABLE_ALL,
    }

    def __init__(self, intra_op_num_threads: int = 0,
                 graph_optimization: str = 'all'):
        if graph_optimization not in self._OPT_LEVELS:
            raise InvalidConfiguration(
                f"Unknown graph optimization level: {graph_optimization!r}")
        self.intra_op_num_threads = intra_op_num_threads
        self.graph_optimization = graph_optimization

    def _session_options(self) -> Any:
        opts = ort.SessionOptions()
        opts.graph_optimization_level = self._OPT_LEVELS[self.graph_optimization]
        if self.intra_op_num_threads:
            opts.intra_op_num_threads = self.intra_op_num_threads
        return opts

    def load(self, model_identifier: str,
             device_hint: Optional[Device] = None) -> OnnxHandle:
        if not os.path.isfile(model_identifier):
            raise ResourceUnavailable(
                f"model asset not found: {model_identifier}",
                stage=model_identifier)
        hint = device_hint if device_hint is not None else Device('cpu')
        available = set(ort.get_available_providers())
        providers = [p for p in hint.providers()
                     if (p[0] if isinstance(p, tuple) else p) in available]
        if not providers:
            providers = ['CPUExecutionProvider']
        try:
            session = ort.InferenceSession(
                model_identifier, sess_options=self._session_options(),
                providers=providers)
        except Exception as exc:
            raise ResourceUnavailable(
                f"failed to load {model_identifier}: {exc}",
                stage=model_identifier) from exc
        logger.debug("Loaded %s with providers %s", model_identifier, providers)
        return OnnxHandle(model_identifier, session)

    def unload(self, handle: OnnxHandle) -> None:
        handle.session = None

    def _prepare(self, handle: OnnxHandle,
                 inputs: Mapping[str, TensorBuffer]) -> Dict[str, np.ndarray]:
        feed = {}
        for name, (shape, type_str) in handle.inputs.items():
            if name not in inputs:
                raise BackendExecutionError(
                    f"{handle.identifier}: missing input {name!r}")
            value = inputs[name]
            actual = value.shape
            ok = len(actual) == len(shape) and all(
                not isinstance(e, int) or e == a for e, a in zip(shape, actual))
            if not ok:
                raise BackendExecutionError(
                    f"{handle.identifier}: input {name!r} has shape {actual}, "
                    f"expected {shape}")
            try:
                want = Dtype.from_onnx(type_str)
            except InvalidConfiguration as exc:
                raise BackendExecutionError(
                    f"{handle.identifier}: {exc}") from exc
            have = value.dtype
            if have is not want:
                ints = (Dtype.int32, Dtype.int64)
                # Integral float timesteps may feed an int64 timestep input
                integral = have.is_floating_point and want in ints and \
                    bool(np.all(np.mod(value.numpy(), 1) == 0))
                if not (have.is_floating_point and want.is_floating_point) and \
                        not (have in ints and want in ints) and not integral:
                    raise BackendExecutionError(
                        f"{handle.identifier}: input {name!r} has dtype "
                        f"{have.name}, expected {want.name}")
                value = value.astype(want)
            feed[name] = np.ascontiguousarray(value.numpy())
        return feed

    def predict(self, handle: OnnxHandle,
                inputs: Mapping[str, TensorBuffer]) -> Dict[str, TensorBuffer]:
        if handle.session is None:
            raise BackendExecutionError(
                f"{handle.identifier}: predict on an unloaded model")
        feed = self._prepare(handle, inputs)
        try:
            outputs = handle.session.run(handle.output_names, feed)
        except Exception as exc:
            raise BackendExecutionError(
                f"{handle.identifier}: {type(exc).__name__}: {exc}") from exc
        return {name: TensorBuffer._wrap(np.asarray(out))
                for name, out in zip(handle.output_names, outputs)}


__all__ = ['OnnxRuntimeBackend', 'OnnxHandle']
