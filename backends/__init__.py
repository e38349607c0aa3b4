# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""latentkit.backends — inference backends that execute compiled networks."""
from __future__ import annotations

from .base import Backend, check_inputs
from .callable import CallableBackend
from .onnx import OnnxRuntimeBackend

__all__ = ['Backend', 'check_inputs', 'CallableBackend', 'OnnxRuntimeBackend']
