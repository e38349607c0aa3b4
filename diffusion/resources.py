# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""ResourceManager — which model stages are resident, and when.

Two policies:

- ``ALWAYS_RESIDENT`` — load every stage up front and keep it loaded.
  Fastest, highest memory.  ``release`` is a no-op.  Concurrent requests
  may share a stage when the backend supports concurrent inference.
- ``LOAD_ON_DEMAND``  — load a stage immediately before its first use in a
  run and unload it right after its last use.  Lowest memory.  Use of each
  stage is serialized so a stage is never unloaded while another request is
  in the middle of using it.

The manager is the only place residency changes.  A failed load raises
:class:`~latentkit.errors.ResourceUnavailable`, leaves that stage unloaded,
and does not touch any other stage's bookkeeping.
"""
from __future__ import annotations

import contextlib
import enum
import gc
import sys
import threading
from typing import Dict, Iterable, Iterator, List

from ..errors import LatentkitError, ResourceUnavailable
from ..utils.logging import get_logger
from .stages import ModelStage, Residency

logger = get_logger(__name__)

# Pre-load malloc_trim on Linux for releasing freed pages to the OS.
_malloc_trim = None
if sys.platform == 'linux':
    try:
        import ctypes as _ctypes
        _malloc_trim = _ctypes.CDLL('libc.so.6').malloc_trim
    except OSError:
        _malloc_trim = None


def _release_host_memory():
    """Full GC pass + malloc_trim to claw back host RSS after an unload."""
    gc.collect()
    if _malloc_trim is not None:
        _malloc_trim(0)


class ResidencyPolicy(enum.Enum):
    ALWAYS_RESIDENT = 'always_resident'
    LOAD_ON_DEMAND = 'load_on_demand'


class ResourceManager:
    """Owns residency transitions for a set of stages.

    Args:
        stages: Stages to manage (more can be added with :meth:`register`).
        policy: A :class:`ResidencyPolicy` (or its string value).
    """

    def __init__(self, stages: Iterable[ModelStage] = (),
                 policy: ResidencyPolicy | str = ResidencyPolicy.ALWAYS_RESIDENT):
        self.policy = ResidencyPolicy(policy)
        self._stages: Dict[str, ModelStage] = {}
        self._users: Dict[str, int] = {}
        self._use_locks: Dict[str, threading.Lock] = {}
        self._state_lock = threading.RLock()
        for stage in stages:
            self.register(stage)

    # ---- bookkeeping ----

    def register(self, stage: ModelStage) -> ModelStage:
        with self._state_lock:
            existing = self._stages.get(stage.name)
            if existing is not None and existing is not stage:
                raise LatentkitError(f"a stage named {stage.name!r} is already registered")
            self._stages[stage.name] = stage
            self._users.setdefault(stage.name, 0)
            self._use_locks.setdefault(stage.name, threading.Lock())
        return stage

    def _checked(self, stage: ModelStage) -> ModelStage:
        if self._stages.get(stage.name) is not stage:
            raise LatentkitError(f"stage {stage.name!r} is not managed here")
        return stage

    @property
    def stages(self) -> List[ModelStage]:
        return list(self._stages.values())

    def resident_stages(self) -> List[str]:
        with self._state_lock:
            return [name for name, s in self._stages.items() if s.is_loaded]

    def users(self, stage: ModelStage) -> int:
        return self._users[self._checked(stage).name]

    # ---- transitions ----

    def ensure_loaded(self, stage: ModelStage) -> None:
        """Make *stage* resident.  Raises ``ResourceUnavailable`` on failure."""
        self._checked(stage)
        with self._state_lock:
            if stage.is_loaded:
                return
            logger.debug("Loading %s (%s)", stage.name, stage.model_identifier)
            try:
                stage._load()
            except ResourceUnavailable as exc:
                stage._handle = None
                stage._residency = Residency.UNLOADED
                exc.stage = stage.name
                raise
            except Exception as exc:
                stage._handle = None
                stage._residency = Residency.UNLOADED
                raise ResourceUnavailable(
                    f"failed to load {stage.name} from "
                    f"{stage.model_identifier}: {exc}",
                    stage=stage.name) from exc

    def release(self, stage: ModelStage) -> None:
        """Hint that *stage* is no longer needed.

        Unloads under ``LOAD_ON_DEMAND`` once nobody is using the stage.
        """
        self._checked(stage)
        if self.policy is ResidencyPolicy.ALWAYS_RESIDENT:
            return
        with self._state_lock:
            if self._users[stage.name] > 0 or not stage.is_loaded:
                return
            self._unload(stage)

    def _unload(self, stage: ModelStage) -> None:
        logger.debug("Unloading %s", stage.name)
        stage._unload()
        _release_host_memory()

    @contextlib.contextmanager
    def acquire(self, stage: ModelStage) -> Iterator[ModelStage]:
        """Hold *stage* resident and in use for the duration of the block."""
        self._checked(stage)
        exclusive = self.policy is ResidencyPolicy.LOAD_ON_DEMAND or \
            not getattr(stage.backend, 'supports_concurrent_predict', False)
        use_lock = self._use_locks[stage.name]
        if exclusive:
            use_lock.acquire()
        try:
            with self._state_lock:
                self.ensure_loaded(stage)
                self._users[stage.name] += 1
                stage._set_in_use(True)
            try:
                yield stage
            finally:
                with self._state_lock:
                    self._users[stage.name] -= 1
                    if self._users[stage.name] == 0 and stage.is_loaded:
                        stage._set_in_use(False)
                self.release(stage)
        finally:
            if exclusive:
                use_lock.release()

    def load_all(self) -> None:
        """Load every managed stage (used up front by ``ALWAYS_RESIDENT``)."""
        for stage in self.stages:
            self.ensure_loaded(stage)

    def unload_all(self) -> None:
        """Unload every stage that nobody is using."""
        with self._state_lock:
            for stage in self.stages:
                if stage.is_loaded and self._users[stage.name] == 0:
                    self._unload(stage)

    def prewarm(self) -> None:
        """Load then unload each stage once, one at a time.

        Pays first-load costs (compilation, caches) without keeping every
        stage resident at the same moment.
        """
        for stage in self.stages:
            with self._state_lock:
                was_loaded = stage.is_loaded
                self.ensure_loaded(stage)
                if not was_loaded and self._users[stage.name] == 0:
                    self._unload(stage)

    def __repr__(self) -> str:
        return (f"ResourceManager(policy={self.policy.value}, "
                f"resident={self.resident_stages()})")


__all__ = ['ResidencyPolicy', 'ResourceManager']
