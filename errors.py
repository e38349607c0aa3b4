# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""Error taxonomy for the generation pipeline.

Every error surfaced by :meth:`SamplingPipeline.generate` derives from
:class:`LatentkitError`:

- **InvalidConfiguration**  — bad step count / guidance / strength / shapes.
  Raised before any stage is loaded; never retried.
- **InvalidState**          — scheduler or pipeline misuse (programmer error).
- **ResourceUnavailable**   — a model asset is missing, corrupt or failed to
  load.  Aborts the current request only.
- **BackendExecutionError** — the inference backend failed during
  ``predict``.  Carries the stage name and denoising step index.
- **Cancelled**             — the run was stopped cooperatively.  A normal
  terminal outcome rather than a failure.
- **UnsafeContentDetected** — the run succeeded but every image was filtered
  by the safety checker.  Only raised when the caller asks for it.
"""
from __future__ import annotations

from typing import Optional


class LatentkitError(Exception):
    """Base class for all pipeline errors."""


class InvalidConfiguration(LatentkitError, ValueError):
    """A request or component was configured with invalid values."""


class InvalidState(LatentkitError, RuntimeError):
    """An operation was invoked in a state where it is not defined."""


class ResourceUnavailable(LatentkitError):
    """A model stage could not be made resident."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class BackendExecutionError(LatentkitError):
    """The inference backend failed while executing a stage."""

    def __init__(self, message: str, stage: Optional[str] = None,
                 step_index: Optional[int] = None):
        super().__init__(message)
        self.stage = stage
        self.step_index = step_index

    def __str__(self) -> str:
        msg = super().__str__()
        where = []
        if self.stage is not None:
            where.append(f"stage={self.stage}")
        if self.step_index is not None:
            where.append(f"step={self.step_index}")
        return f"{msg} ({', '.join(where)})" if where else msg


class Cancelled(LatentkitError):
    """The generation was cancelled before producing an image."""

    def __init__(self, step_index: Optional[int] = None):
        if step_index is None:
            super().__init__("generation cancelled")
        else:
            super().__init__(f"generation cancelled at step {step_index}")
        self.step_index = step_index


class UnsafeContentDetected(LatentkitError):
    """Generation succeeded but the output was replaced by the safety checker."""

    def __init__(self, result=None):
        super().__init__("generated image was flagged by the safety checker")
        self.result = result


__all__ = [
    'LatentkitError',
    'InvalidConfiguration',
    'InvalidState',
    'ResourceUnavailable',
    'BackendExecutionError',
    'Cancelled',
    'UnsafeContentDetected',
]
