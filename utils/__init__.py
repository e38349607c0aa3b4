# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""latentkit.utils — Logging and image conversion helpers."""
from __future__ import annotations

from . import image, logging

__all__ = ['image', 'logging']
