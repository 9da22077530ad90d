from datetime import datetime, timezone

import pytest

from modtranslator.ai.retry import (
    FatalFailure,
    HttpFailure,
    NetworkFailure,
    RetryPolicy,
    evaluate_retry,
    is_retryable_status,
    parse_retry_after,
)

POLICY = RetryPolicy(base_delay_ms=1000, max_delay_ms=30000, max_retries=5)
NOW = datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("attempts,delay", [(0, 1000), (1, 2000), (2, 4000), (4, 16000)])
def test_exponential_backoff(attempts, delay):
    decision = evaluate_retry(HttpFailure(503), POLICY, attempts)
    assert decision.should_retry
    assert decision.delay_ms == delay
    assert not decision.used_hint


def test_backoff_is_capped():
    policy = RetryPolicy(base_delay_ms=1000, max_delay_ms=3000, max_retries=10)
    assert evaluate_retry(NetworkFailure(), policy, 5).delay_ms == 3000

    policy = RetryPolicy(base_delay_ms=1000, max_delay_ms=30000, max_retries=1000)
    assert evaluate_retry(NetworkFailure(), policy, 500).delay_ms == 30000


def test_zero_base_delay_means_no_wait():
    policy = RetryPolicy(base_delay_ms=0, max_delay_ms=30000, max_retries=3)
    decision = evaluate_retry(HttpFailure(500), policy, 2)
    assert decision.should_retry
    assert decision.delay_ms == 0


def test_attempt_limit_is_respected():
    assert not evaluate_retry(HttpFailure(429), POLICY, 5).should_retry
    assert not evaluate_retry(NetworkFailure(hint_ms=10), POLICY, 6).should_retry


def test_server_hint_wins_over_backoff():
    decision = evaluate_retry(HttpFailure(429, hint_ms=19000), POLICY, 4)
    assert decision.to_dict() == {"shouldRetry": True, "delayMs": 19000, "usedHint": True}

    decision = evaluate_retry(HttpFailure(429, hint_ms=45000), POLICY, 0)
    assert decision.delay_ms == 30000
    assert decision.used_hint


@pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
def test_client_errors_never_retry(status):
    for attempts in range(POLICY.max_retries):
        assert not evaluate_retry(HttpFailure(status, hint_ms=100), POLICY, attempts).should_retry


def test_fatal_failures_never_retry():
    assert not evaluate_retry(FatalFailure("unauthorized"), POLICY, 0).should_retry


@pytest.mark.parametrize("status,retryable", [
    (408, True), (429, True), (500, True), (503, True), (599, True),
    (400, False), (404, False), (600, False),
])
def test_retryable_statuses(status, retryable):
    assert is_retryable_status(status) is retryable


@pytest.mark.parametrize("value,expected", [
    ("120", 120000),
    (" 5 ", 5000),
    ("0", 0),
    ("", None),
    ("soon", None),
    ("-5", None),
    ("Wed, 01 Jan 2025 00:00:30 GMT", 30000),
    ("Tue, 31 Dec 2024 23:59:00 GMT", 0),
])
def test_parse_retry_after(value, expected):
    assert parse_retry_after(value, now=NOW) == expected
