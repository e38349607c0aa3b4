# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""Background generation queue.

Requests run one at a time on a single worker thread; each submission gets
a :class:`~concurrent.futures.Future` and a cancellation token.
"""
from __future__ import annotations

import itertools
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Dict, NamedTuple, Optional

from ..errors import InvalidState
from ..utils.logging import get_logger
from .pipelines import (
    CancellationToken,
    GenerationResult,
    PipelineRequest,
    ProgressCallback,
    SamplingPipeline,
)

logger = get_logger(__name__)


class Job(NamedTuple):
    job_id: int
    future: 'Future[GenerationResult]'
    token: CancellationToken

    def cancel(self) -> bool:
        """Cancel the job: drop it if still queued, else stop it cooperatively."""
        self.token.cancel()
        return self.future.cancel() or self.future.running()


class GenerationQueue:
    """Runs :meth:`SamplingPipeline.generate` on a single background worker."""

    def __init__(self, pipeline: SamplingPipeline):
        self.pipeline = pipeline
        self._executor = ThreadPoolExecutor(max_workers=1,
                                            thread_name_prefix='latentkit')
        self._jobs: Dict[int, Job] = {}
        self._ids = itertools.count()
        self._lock = threading.Lock()
        self._closed = False

    def submit(self, request: PipelineRequest,
               progress: Optional[ProgressCallback] = None) -> Job:
        request.validate()
        token = CancellationToken()
        with self._lock:
            if self._closed:
                raise InvalidState("generation queue is shut down")
            job_id = next(self._ids)
            future = self._executor.submit(
                self.pipeline.generate, request, progress, token)
            job = Job(job_id, future, token)
            self._jobs[job_id] = job
        future.add_done_callback(lambda _f, j=job_id: self._forget(j))
        logger.debug("Queued job %d (%r)", job_id, request.prompt)
        return job

    def _forget(self, job_id: int) -> None:
        with self._lock:
            self._jobs.pop(job_id, None)

    def pending(self) -> int:
        """Jobs queued or running."""
        with self._lock:
            return len(self._jobs)

    def cancel_all(self) -> None:
        with self._lock:
            jobs = list(self._jobs.values())
        for job in jobs:
            job.cancel()

    def shutdown(self, wait: bool = True, cancel: bool = False) -> None:
        with self._lock:
            self._closed = True
        if cancel:
            self.cancel_all()
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> 'GenerationQueue':
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown(wait=True, cancel=exc[0] is not None)


__all__ = ['GenerationQueue', 'Job']
