"""
Server Retry Hints

Extracts retry delays that a provider hands back with an error:
- the HTTP Retry-After header
- Gemini's structured error body (google.rpc.RetryInfo / QuotaFailure details)

Every hint is clamped to MAX_SERVER_HINT_WINDOW_MS before it is used, so a
misbehaving server cannot stall a job indefinitely.
"""

import json
import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Union

from modtranslator.ai.retry import parse_retry_after

MAX_SERVER_HINT_WINDOW_MS = 60_000


class RetryHintSource(Enum):
    RETRY_AFTER_HEADER = "retry-after"
    GEMINI_RETRY_INFO = "gemini-retry-info"


@dataclass(frozen=True)
class RetryHint:
    delay_ms: int
    source: RetryHintSource
    raw_value: Optional[str] = None

    @property
    def clamped_delay_ms(self) -> int:
        return min(self.delay_ms, MAX_SERVER_HINT_WINDOW_MS)

    def to_dict(self):
        return {
            "delayMs": self.delay_ms,
            "clampedDelayMs": self.clamped_delay_ms,
            "source": self.source.value,
            "rawValue": self.raw_value,
        }


@dataclass(frozen=True)
class ProviderErrorHints:
    retry_hint: Optional[RetryHint] = None
    quota_failure: bool = False

    def to_dict(self):
        return {
            "retryHint": self.retry_hint.to_dict() if self.retry_hint else None,
            "quotaFailure": self.quota_failure,
        }


def _header_value(headers: Mapping[str, str], name: str) -> Optional[str]:
    # httpx.Headers is case-insensitive already; plain dicts are not
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


def parse_retry_after_header(headers: Optional[Mapping[str, str]], now: Optional[datetime] = None) -> Optional[RetryHint]:
    """Build a hint from a ``Retry-After`` header (seconds or HTTP date)."""
    if not headers:
        return None
    raw = _header_value(headers, "Retry-After")
    if raw is None:
        return None
    raw = raw.strip()
    delay_ms = parse_retry_after(raw, now)
    if delay_ms is None:
        return None
    return RetryHint(delay_ms=delay_ms, source=RetryHintSource.RETRY_AFTER_HEADER, raw_value=raw)


def _parse_int_field(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _parse_duration(value: Any) -> Optional[int]:
    """
    Parse a protobuf Duration in its JSON forms into milliseconds.

    Args:
        value: "19s" / "1.5s" / "19", or {"seconds": 19, "nanos": 500000000}
            where either field may itself be a string

    Returns:
        Milliseconds, or None for negative or malformed durations
    """
    if isinstance(value, str):
        trimmed = value.strip()
        if not trimmed:
            return None
        if trimmed.endswith("s"):
            trimmed = trimmed[:-1]
        try:
            seconds = float(trimmed)
        except ValueError:
            return None
        if not math.isfinite(seconds) or seconds < 0:
            return None
        return int(seconds * 1000)

    if isinstance(value, dict):
        seconds = _parse_int_field(value.get("seconds", 0))
        nanos = _parse_int_field(value.get("nanos", 0))
        if seconds is None or nanos is None or seconds < 0 or nanos < 0:
            return None
        return seconds * 1000 + nanos // 1_000_000

    return None


def _raw_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"))


def parse_provider_error_hints(body: Union[str, bytes, dict, None]) -> ProviderErrorHints:
    """
    Read RetryInfo and QuotaFailure details from a Gemini-style error body.

    The first valid RetryInfo wins. A QuotaFailure with a non-empty (or
    missing) ``violations`` list marks the error as a quota failure, which
    retrying will not fix soon. Unparseable bodies yield empty hints.
    """
    if body is None:
        return ProviderErrorHints()
    if isinstance(body, (str, bytes)):
        try:
            body = json.loads(body)
        except (ValueError, UnicodeDecodeError):
            return ProviderErrorHints()
    if not isinstance(body, dict):
        return ProviderErrorHints()

    error = body.get("error")
    details = error.get("details") if isinstance(error, dict) else None
    if not isinstance(details, list):
        return ProviderErrorHints()

    retry_hint = None
    quota_failure = False
    for detail in details:
        if not isinstance(detail, dict):
            continue
        type_url = detail.get("@type") or ""
        if not isinstance(type_url, str):
            continue
        if type_url.endswith("RetryInfo"):
            if retry_hint is not None or "retryDelay" not in detail:
                continue
            delay_ms = _parse_duration(detail["retryDelay"])
            if delay_ms is not None:
                retry_hint = RetryHint(
                    delay_ms=delay_ms,
                    source=RetryHintSource.GEMINI_RETRY_INFO,
                    raw_value=_raw_string(detail["retryDelay"]),
                )
        elif type_url.endswith("QuotaFailure"):
            violations = detail.get("violations")
            if not isinstance(violations, list) or violations:
                quota_failure = True

    return ProviderErrorHints(retry_hint=retry_hint, quota_failure=quota_failure)


def describe_retry_hint(hint: RetryHint) -> str:
    """Human readable reason shown next to a pending retry."""
    seconds = hint.clamped_delay_ms // 1000
    pretty = f"{seconds}s" if seconds else "<1s"
    if hint.source == RetryHintSource.RETRY_AFTER_HEADER:
        label = "Server Retry-After"
    else:
        label = "Gemini retry hint"
    if hint.raw_value:
        return f"{label} ({hint.raw_value})"
    return f"{label} (~{pretty})"
