"""
Job Context

Per-job cancellation state, created by whoever starts a job and passed to each
worker. Backoff waits poll the cancel flag so they can be interrupted promptly.
"""

import threading
import time
import uuid
from typing import Optional

from modtranslator.logger import get_logger
from modtranslator.ai.exceptions import JobCancelledError

logger = get_logger(__name__)

CANCEL_POLL_INTERVAL_MS = 50


class JobContext:
    def __init__(self, job_id: Optional[str] = None):
        self.job_id = job_id or uuid.uuid4().hex
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        if not self._cancelled.is_set():
            logger.info(f"Job {self.job_id} cancellation requested")
        self._cancelled.set()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def raise_if_cancelled(self) -> None:
        if self._cancelled.is_set():
            raise JobCancelledError(f"Job {self.job_id} cancelled")

    def wait(self, delay_ms: int) -> bool:
        """
        Sleep for ``delay_ms``, waking every 50 ms to check for cancellation.

        Returns:
            True when the full delay elapsed, False if the job was cancelled
        """
        deadline = time.monotonic() + max(0, delay_ms) / 1000
        while True:
            if self._cancelled.is_set():
                return False
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return True
            self._cancelled.wait(min(remaining, CANCEL_POLL_INTERVAL_MS / 1000))
