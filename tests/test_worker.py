"""
Tests for the background generation queue.
"""
import threading

import pytest

from latentkit import Cancelled, InvalidConfiguration, InvalidState
from latentkit.diffusion import GenerationQueue, PipelineRequest, ResultStatus


def test_jobs_complete_in_order(make_pipeline):
    with GenerationQueue(make_pipeline()) as queue:
        jobs = [queue.submit(PipelineRequest('a red cube', step_count=2, seed=s))
                for s in (1, 2, 3)]
        results = [job.future.result(timeout=30) for job in jobs]
    assert [r.seed for r in results] == [1, 2, 3]
    assert all(r.status is ResultStatus.DONE for r in results)
    assert queue.pending() == 0


def test_running_job_can_be_cancelled(make_pipeline):
    started, release = threading.Event(), threading.Event()

    def progress(p):
        started.set()
        release.wait(5)

    queue = GenerationQueue(make_pipeline())
    job = queue.submit(PipelineRequest('a red cube', step_count=10), progress)
    started.wait(5)
    assert job.cancel()
    release.set()
    with pytest.raises(Cancelled):
        job.future.result(timeout=30)
    queue.shutdown()


def test_invalid_request_rejected_on_submit(make_pipeline):
    queue = GenerationQueue(make_pipeline())
    with pytest.raises(InvalidConfiguration):
        queue.submit(PipelineRequest('a red cube', step_count=0))
    queue.shutdown()


def test_submit_after_shutdown(make_pipeline):
    queue = GenerationQueue(make_pipeline())
    queue.shutdown()
    with pytest.raises(InvalidState):
        queue.submit(PipelineRequest('a red cube'))
