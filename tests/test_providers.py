import json

import pytest

from modtranslator.ai.exceptions import ProviderError
from modtranslator.ai.hints import RetryHintSource
from modtranslator.ai.providers import ProviderId, extract_error_message, get_httpx_timeout, map_http_error
from modtranslator.ai.retry import FatalFailure, HttpFailure

GEMINI_429 = json.dumps({
    "error": {
        "code": 429,
        "message": "Resource has been exhausted",
        "details": [{"@type": "type.googleapis.com/google.rpc.RetryInfo", "retryDelay": "19s"}],
    }
})


def test_rate_limit_uses_retry_after_header():
    error = map_http_error(ProviderId.GEMINI, "gemini-2.5-flash", 429, {"Retry-After": "5"}, GEMINI_429)
    assert error.code == "RATE_LIMITED"
    assert error.retry_error == HttpFailure(429, hint_ms=5000)
    assert error.retry_hint.source == RetryHintSource.RETRY_AFTER_HEADER


def test_gemini_body_hint_used_without_header():
    error = map_http_error(ProviderId.GEMINI, "gemini-2.5-flash", 429, {}, GEMINI_429)
    assert error.retry_error == HttpFailure(429, hint_ms=19000)
    assert error.retry_hint.source == RetryHintSource.GEMINI_RETRY_INFO
    assert "Resource has been exhausted" in str(error)


def test_body_hint_is_gemini_only():
    error = map_http_error(ProviderId.OPENAI, "gpt-4o-mini", 429, {}, GEMINI_429)
    assert error.retry_error == HttpFailure(429, hint_ms=None)
    assert error.retry_hint is None


def test_hints_are_clamped_before_retry():
    error = map_http_error(ProviderId.CLAUDE, "claude", 503, {"retry-after": "3600"}, "")
    assert error.retry_error == HttpFailure(503, hint_ms=60000)
    assert error.code == "SERVER_TRANSIENT"


def test_rate_limit_detected_from_body_text():
    error = map_http_error(ProviderId.GROK, "grok-2-latest", 400, {}, "Rate limit exceeded, slow down")
    assert error.code == "RATE_LIMITED"
    assert error.retry_error.status == 429


@pytest.mark.parametrize("status,body,code", [
    (401, "", "UNAUTHORIZED"),
    (403, "", "FORBIDDEN"),
    (404, "", "MODEL_NOT_FOUND"),
    (400, '{"error": {"message": "insufficient_quota"}}', "FORBIDDEN"),
    (402, "Plan required for this model", "FORBIDDEN"),
    (418, "", "CLIENT_ERROR"),
])
def test_fatal_statuses(status, body, code):
    error = map_http_error(ProviderId.OPENAI, "gpt-4o", status, {}, body)
    assert isinstance(error.retry_error, FatalFailure)
    assert error.code == code


def test_model_not_found_names_the_model():
    error = map_http_error(ProviderId.OPENAI, "gpt-9", 404, {}, "")
    assert error.details["model"] == "gpt-9"
    assert "gpt-9" in str(error)


def test_gemini_quota_failure_is_fatal():
    body = {"error": {"code": 400, "details": [
        {"@type": "type.googleapis.com/google.rpc.QuotaFailure", "violations": [{"subject": "p"}]},
    ]}}
    error = map_http_error(ProviderId.GEMINI, "gemini-2.5-flash", 400, {}, json.dumps(body))
    assert error.code == "FORBIDDEN"
    assert isinstance(error.retry_error, FatalFailure)


@pytest.mark.parametrize("status", [408, 500, 502, 503])
def test_transient_statuses(status):
    error = map_http_error(ProviderId.GEMINI, "gemini-2.5-flash", status, {}, "")
    assert error.retry_error == HttpFailure(status)
    assert str(error).endswith(f"HTTP {status}")


def test_provider_id_parsing():
    assert ProviderId.parse("GPT") == ProviderId.OPENAI
    assert ProviderId.parse("claude").label == "Claude"
    with pytest.raises(ProviderError) as excinfo:
        ProviderId.parse("llama")
    assert excinfo.value.code == "ai_config_missing"


def test_extract_error_message():
    assert extract_error_message('{"error": {"message": "bad key"}}') == "bad key"
    assert extract_error_message('{"error": "nope"}') == "nope"
    assert extract_error_message("<html>oops</html>") == "<html>oops</html>"


def test_httpx_timeout_from_config():
    timeout = get_httpx_timeout(30)
    assert timeout.read == 30.0
    assert timeout.connect == 10.0
    assert get_httpx_timeout({"read": 5}).read == 5
    assert get_httpx_timeout(None).read == 120.0
