# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""
Latentkit — on-device latent diffusion sampling.

Drives compiled text-encoder, denoiser and VAE networks through a
pluggable inference backend (ONNX Runtime by default) to turn a text
prompt into images.  NumPy holds every tensor between stages.

Usage::

    import latentkit
    from latentkit.diffusion import SamplingPipeline, PipelineRequest

    pipe = SamplingPipeline.from_resources('models/sd-1.5',
                                           policy='load_on_demand')
    result = pipe.generate(PipelineRequest('a red cube', seed=42))
    result.pil_images()[0].save('cube.png')
"""
from __future__ import annotations

__version__ = "0.1.0"
__author__ = "Pictofeed, LLC"

# ── Buffers ──
from .tensor import TensorBuffer, tensor, zeros, full, cat

# ── Dtype constants ──
from .dtype import (
    dtype,
    float16, float32, float64, half,
    int32, int64, long,
    uint8,
)
# ``latentkit.bool`` is the boolean dtype; submodules still see the builtin
from .dtype import bool as bool

# ── Device ──
from .device import device

# ── Errors ──
from .errors import (
    LatentkitError,
    InvalidConfiguration,
    InvalidState,
    ResourceUnavailable,
    BackendExecutionError,
    Cancelled,
    UnsafeContentDetected,
)

# ── Sub-packages ──
from . import backends
from . import diffusion
from . import utils

__all__ = [
    "__version__",
    "TensorBuffer", "tensor", "zeros", "full", "cat",
    "dtype", "float16", "float32", "float64", "half",
    "int32", "int64", "long", "uint8", "bool",
    "device",
    "LatentkitError", "InvalidConfiguration", "InvalidState",
    "ResourceUnavailable", "BackendExecutionError", "Cancelled",
    "UnsafeContentDetected",
    "backends", "diffusion", "utils",
]
