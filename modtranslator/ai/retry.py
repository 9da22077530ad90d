"""
Retry Policy Module

Classifies a failed provider call and decides whether (and after how long) to
retry it. Nothing here sleeps or raises; the caller owns the wait.

Rules, in order:
1. previous_attempts >= max_retries: no retry
2. Fatal failures never retry
3. HTTP failures retry only for 429, 408 and 5xx
4. A server hint wins: min(hint, max_delay), used_hint=True
5. Otherwise exponential backoff: min(base * 2^attempts, max_delay)
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional, Union

RETRYABLE_STATUSES = (408, 429)


@dataclass(frozen=True)
class RetryPolicy:
    base_delay_ms: int = 1000
    max_delay_ms: int = 30000
    max_retries: int = 5

    def to_dict(self):
        return {
            "baseDelayMs": self.base_delay_ms,
            "maxDelayMs": self.max_delay_ms,
            "maxRetries": self.max_retries,
        }


@dataclass(frozen=True)
class HttpFailure:
    status: int
    hint_ms: Optional[int] = None


@dataclass(frozen=True)
class NetworkFailure:
    hint_ms: Optional[int] = None


@dataclass(frozen=True)
class FatalFailure:
    reason: str = ""


RetryError = Union[HttpFailure, NetworkFailure, FatalFailure]


@dataclass(frozen=True)
class RetryDecision:
    should_retry: bool
    delay_ms: int = 0
    used_hint: bool = False

    def to_dict(self):
        return {
            "shouldRetry": self.should_retry,
            "delayMs": self.delay_ms,
            "usedHint": self.used_hint,
        }


NO_RETRY = RetryDecision(should_retry=False)


def is_retryable_status(status: int) -> bool:
    return status in RETRYABLE_STATUSES or 500 <= status <= 599


def compute_backoff_ms(policy: RetryPolicy, previous_attempts: int) -> int:
    if policy.base_delay_ms <= 0:
        return 0
    # Cap the exponent; anything past this is clamped by max_delay anyway
    delay = policy.base_delay_ms * (2 ** min(previous_attempts, 62))
    return min(delay, policy.max_delay_ms)


def evaluate_retry(error: RetryError, policy: RetryPolicy, previous_attempts: int) -> RetryDecision:
    """
    Decide whether a failed call should be retried.

    Args:
        error: HttpFailure, NetworkFailure or FatalFailure
        policy: Retry limits and backoff bounds
        previous_attempts: Retries already made for this call

    Returns:
        RetryDecision with the delay to wait before the next attempt
    """
    if previous_attempts >= policy.max_retries:
        return NO_RETRY
    if isinstance(error, FatalFailure):
        return NO_RETRY
    if isinstance(error, HttpFailure) and not is_retryable_status(error.status):
        return NO_RETRY

    if error.hint_ms is not None:
        delay = max(0, min(int(error.hint_ms), policy.max_delay_ms))
        return RetryDecision(should_retry=True, delay_ms=delay, used_hint=True)

    return RetryDecision(
        should_retry=True,
        delay_ms=compute_backoff_ms(policy, previous_attempts),
        used_hint=False,
    )


def parse_retry_after(value: str, now: Optional[datetime] = None) -> Optional[int]:
    """
    Parse a Retry-After value into milliseconds.

    Accepts delta-seconds ("120") or an HTTP date. Dates in the past yield 0.
    Returns None for anything unparseable.
    """
    if value is None:
        return None
    trimmed = value.strip()
    if not trimmed:
        return None

    if trimmed.isascii() and trimmed.isdigit():
        return int(trimmed) * 1000

    try:
        when = parsedate_to_datetime(trimmed)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    delta_ms = int((when - now).total_seconds() * 1000)
    return max(0, delta_ms)
