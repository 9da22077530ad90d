import json

import httpx

from modtranslator.ai.hints import (
    MAX_SERVER_HINT_WINDOW_MS,
    RetryHint,
    RetryHintSource,
    describe_retry_hint,
    parse_provider_error_hints,
    parse_retry_after_header,
)

RETRY_INFO = "type.googleapis.com/google.rpc.RetryInfo"
QUOTA_FAILURE = "type.googleapis.com/google.rpc.QuotaFailure"


def gemini_error(*details):
    return {"error": {"code": 429, "status": "RESOURCE_EXHAUSTED", "details": list(details)}}


def test_retry_after_header_seconds():
    hint = parse_retry_after_header({"Retry-After": "7"})
    assert hint.delay_ms == 7000
    assert hint.source == RetryHintSource.RETRY_AFTER_HEADER
    assert hint.raw_value == "7"


def test_retry_after_header_lookup_is_case_insensitive():
    assert parse_retry_after_header({"retry-after": "2"}).delay_ms == 2000
    assert parse_retry_after_header(httpx.Headers({"Retry-After": "3"})).delay_ms == 3000


def test_missing_or_invalid_header():
    assert parse_retry_after_header(None) is None
    assert parse_retry_after_header({}) is None
    assert parse_retry_after_header({"Retry-After": "later"}) is None


def test_long_hints_are_clamped():
    hint = parse_retry_after_header({"Retry-After": "3600"})
    assert hint.delay_ms == 3_600_000
    assert hint.clamped_delay_ms == MAX_SERVER_HINT_WINDOW_MS


def test_gemini_retry_info_string_duration():
    hints = parse_provider_error_hints(gemini_error({"@type": RETRY_INFO, "retryDelay": "19s"}))
    assert hints.retry_hint == RetryHint(19000, RetryHintSource.GEMINI_RETRY_INFO, "19s")
    assert not hints.quota_failure


def test_gemini_retry_info_object_duration():
    body = gemini_error({"@type": RETRY_INFO, "retryDelay": {"seconds": "2", "nanos": 500000000}})
    hints = parse_provider_error_hints(json.dumps(body))
    assert hints.retry_hint.delay_ms == 2500
    assert hints.retry_hint.raw_value == '{"seconds":"2","nanos":500000000}'


def test_first_valid_retry_info_wins():
    body = gemini_error(
        {"@type": RETRY_INFO, "retryDelay": "-3s"},
        {"@type": RETRY_INFO, "retryDelay": "3s"},
        {"@type": RETRY_INFO, "retryDelay": "9s"},
    )
    assert parse_provider_error_hints(body).retry_hint.delay_ms == 3000


def test_negative_duration_is_ignored():
    body = gemini_error({"@type": RETRY_INFO, "retryDelay": {"seconds": -1}})
    assert parse_provider_error_hints(body).retry_hint is None


def test_quota_failure_detection():
    violation = {"subject": "project:123", "description": "daily limit"}
    assert parse_provider_error_hints(gemini_error({"@type": QUOTA_FAILURE, "violations": [violation]})).quota_failure
    assert parse_provider_error_hints(gemini_error({"@type": QUOTA_FAILURE})).quota_failure
    assert not parse_provider_error_hints(gemini_error({"@type": QUOTA_FAILURE, "violations": []})).quota_failure


def test_unparseable_bodies_give_empty_hints():
    for body in (None, "", "not json", b"\xff\xfe", "[1, 2]", {"error": "plain"}):
        hints = parse_provider_error_hints(body)
        assert hints.retry_hint is None
        assert not hints.quota_failure


def test_describe_retry_hint():
    assert describe_retry_hint(RetryHint(19000, RetryHintSource.GEMINI_RETRY_INFO, "19s")) == "Gemini retry hint (19s)"
    assert describe_retry_hint(RetryHint(500, RetryHintSource.RETRY_AFTER_HEADER)) == "Server Retry-After (~<1s)"
    assert describe_retry_hint(RetryHint(120000, RetryHintSource.RETRY_AFTER_HEADER)) == "Server Retry-After (~60s)"
