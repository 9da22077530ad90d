"""
AI Service Exceptions

This module contains exception classes for the AI service.
Separated to avoid circular imports between service.py and providers.py.
"""


class TranslationError(Exception):
    """Translation service error with optional code and details."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}


class ProviderError(TranslationError):
    """
    A provider call failed.

    ``retry_error`` is the classification fed to ``evaluate_retry`` and
    ``retry_hint`` the server-supplied delay, if any.
    """

    def __init__(self, message: str, retry_error, retry_hint=None, code: str = None, details: dict = None):
        super().__init__(message, code=code, details=details)
        self.retry_error = retry_error
        self.retry_hint = retry_hint


class RetryFailedError(TranslationError):
    """Retries were exhausted (or the last failure was not retryable)."""

    def __init__(self, message: str, attempts: int, last_error: Exception = None):
        super().__init__(message, code="RETRY_FAILED", details={"attempts": attempts})
        self.attempts = attempts
        self.last_error = last_error


class JobCancelledError(TranslationError):
    def __init__(self, message: str = "Job cancelled"):
        super().__init__(message, code="JOB_CANCELLED")
