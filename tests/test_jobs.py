import threading
import time

import pytest

from modtranslator.ai import JobCancelledError, JobContext


def test_wait_completes_when_not_cancelled():
    job = JobContext()
    assert job.wait(0)
    assert job.wait(20)
    assert not job.is_cancelled


def test_cancelled_job_stops_waiting():
    job = JobContext("job-1")
    job.cancel()
    started = time.monotonic()
    assert job.wait(10_000) is False
    assert time.monotonic() - started < 1.0

    with pytest.raises(JobCancelledError) as excinfo:
        job.raise_if_cancelled()
    assert excinfo.value.code == "JOB_CANCELLED"


def test_cancel_from_another_thread_interrupts_wait():
    job = JobContext()
    timer = threading.Timer(0.05, job.cancel)
    timer.start()
    started = time.monotonic()
    try:
        assert job.wait(5_000) is False
    finally:
        timer.cancel()
    assert time.monotonic() - started < 1.0


def test_job_ids_are_unique():
    assert JobContext().job_id != JobContext().job_id
