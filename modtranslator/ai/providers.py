"""
AI Provider API Implementations

This module contains the API call implementations for each AI provider:
- Gemini
- OpenAI (GPT)
- Claude
- Grok (OpenAI-compatible)

Each call function takes the AIService, a system prompt and a user prompt and
returns the text response. Failures are raised as ProviderError carrying the
retry classification used by the retry loop.
"""

import json
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import httpx

from modtranslator.logger import get_logger
from modtranslator.ai.exceptions import ProviderError
from modtranslator.ai.hints import (
    ProviderErrorHints,
    parse_provider_error_hints,
    parse_retry_after_header,
)
from modtranslator.ai.retry import FatalFailure, HttpFailure, NetworkFailure

logger = get_logger(__name__)

PLACEHOLDER_API_KEY = "YOUR_API_KEY_HERE"
ANTHROPIC_VERSION = "2023-06-01"
TEMPERATURE = 0.2


class ProviderId(Enum):
    GEMINI = "gemini"
    OPENAI = "openai"
    CLAUDE = "claude"
    GROK = "grok"

    @property
    def label(self) -> str:
        return {
            ProviderId.GEMINI: "Gemini",
            ProviderId.OPENAI: "GPT",
            ProviderId.CLAUDE: "Claude",
            ProviderId.GROK: "Grok",
        }[self]

    @classmethod
    def parse(cls, value: str) -> "ProviderId":
        lowered = (value or "").strip().lower()
        # "gpt" is accepted as an alias for openai
        if lowered == "gpt":
            return cls.OPENAI
        try:
            return cls(lowered)
        except ValueError:
            raise ProviderError(
                f"Unsupported AI provider: {value}",
                retry_error=FatalFailure("unsupported provider"),
                code="ai_config_missing",
                details={"provider": value},
            )


def get_httpx_timeout(timeout_config: Any) -> httpx.Timeout:
    """
    Convert timeout configuration to httpx.Timeout object.

    Args:
        timeout_config: Either a number (read timeout) or a dict with
            connect, write, read, pool keys

    Returns:
        httpx.Timeout object
    """
    if isinstance(timeout_config, dict):
        return httpx.Timeout(
            connect=timeout_config.get('connect', 10.0),
            write=timeout_config.get('write', 60.0),
            read=timeout_config.get('read', 120.0),
            pool=timeout_config.get('pool', 10.0),
        )
    timeout_value = float(timeout_config) if timeout_config else 120.0
    return httpx.Timeout(connect=10.0, write=60.0, read=timeout_value, pool=10.0)


def extract_error_message(body: str) -> str:
    """Pull ``error.message`` out of a JSON error body, falling back to the raw text."""
    try:
        error_json = json.loads(body)
    except ValueError:
        return body[:500]
    if isinstance(error_json, dict) and "error" in error_json:
        detail = error_json["error"]
        if isinstance(detail, dict):
            return str(detail.get("message", detail))
        return str(detail)
    return body[:500]


def map_http_error(
    provider: ProviderId,
    model: str,
    status: int,
    headers: Optional[Mapping[str, str]],
    body: str,
) -> ProviderError:
    """
    Classify a non-success provider response.

    Retry-After takes precedence over the Gemini body hint. Rate limits, 408
    and 5xx are retryable; auth, quota, missing model and other 4xx are fatal.
    """
    gemini_hints = parse_provider_error_hints(body) if provider == ProviderId.GEMINI else ProviderErrorHints()

    retry_hint = parse_retry_after_header(headers)
    if retry_hint is None:
        retry_hint = gemini_hints.retry_hint
    hint_ms = retry_hint.clamped_delay_ms if retry_hint else None

    message = extract_error_message(body) if body and body.strip() else f"HTTP {status}"
    lowered = (body or "").lower()
    details = {"provider": provider.value, "status": status}
    prefix = f"{provider.label} API error ({status})"

    if status == 429 or "rate limit" in lowered:
        return ProviderError(
            f"{prefix}: rate limited: {message}",
            retry_error=HttpFailure(status=429, hint_ms=hint_ms),
            retry_hint=retry_hint,
            code="RATE_LIMITED",
            details=details,
        )
    if status == 401:
        return ProviderError(
            f"{prefix}: unauthorized: {message}",
            retry_error=FatalFailure("unauthorized"),
            code="UNAUTHORIZED",
            details=details,
        )
    if status == 403 or gemini_hints.quota_failure:
        return ProviderError(
            f"{prefix}: forbidden: {message}",
            retry_error=FatalFailure("forbidden"),
            code="FORBIDDEN",
            details=details,
        )
    if status == 404:
        return ProviderError(
            f"{prefix}: model unavailable: {model}",
            retry_error=FatalFailure("model not found"),
            retry_hint=retry_hint,
            code="MODEL_NOT_FOUND",
            details={**details, "model": model},
        )
    if "insufficient_quota" in lowered or "plan required" in lowered:
        return ProviderError(
            f"{prefix}: quota exhausted: {message}",
            retry_error=FatalFailure("insufficient quota"),
            code="FORBIDDEN",
            details=details,
        )
    if status >= 500 or status == 408:
        return ProviderError(
            f"{prefix}: {message}",
            retry_error=HttpFailure(status=status, hint_ms=hint_ms),
            retry_hint=retry_hint,
            code="SERVER_TRANSIENT",
            details=details,
        )
    if 400 <= status < 500:
        return ProviderError(
            f"{prefix}: {message}",
            retry_error=FatalFailure("client error"),
            code="CLIENT_ERROR",
            details=details,
        )
    return ProviderError(
        f"{prefix}: {message}",
        retry_error=HttpFailure(status=status, hint_ms=hint_ms),
        retry_hint=retry_hint,
        code="SERVER_TRANSIENT",
        details=details,
    )


def _require_api_key(provider: ProviderId, provider_config: Dict[str, Any]) -> str:
    api_key = provider_config.get('api_key', '')
    if not api_key or api_key == PLACEHOLDER_API_KEY:
        raise ProviderError(
            f"{provider.label} API key not configured. Please set it in Settings.",
            retry_error=FatalFailure("missing api key"),
            code="ai_config_missing",
            details={"provider": provider.value, "missing_field": "api_key"},
        )
    return api_key


def _unexpected_response(provider: ProviderId, status: int, reason: str) -> ProviderError:
    # Treated like a bad gateway so the retry loop gets another chance
    return ProviderError(
        f"Unexpected {provider.label} API response: {reason}",
        retry_error=HttpFailure(status=502),
        code="BAD_RESPONSE",
        details={"provider": provider.value, "status": status},
    )


def _post(service, provider: ProviderId, model: str, url: str, headers: Dict[str, str], body: Dict[str, Any], params=None) -> Dict[str, Any]:
    """POST ``body`` and return the decoded JSON, raising ProviderError on failure."""
    try:
        with service.http_client(provider) as client:
            response = client.post(url, headers=headers, json=body, params=params)
    except httpx.TimeoutException as e:
        raise ProviderError(
            f"{provider.label} API request timeout",
            retry_error=NetworkFailure(),
            code="NETWORK_TRANSIENT",
            details={"provider": provider.value},
        ) from e
    except httpx.TransportError as e:
        raise ProviderError(
            f"{provider.label} transient network error: {e}",
            retry_error=NetworkFailure(),
            code="NETWORK_TRANSIENT",
            details={"provider": provider.value},
        ) from e

    if not response.is_success:
        logger.error(f"{provider.label} API HTTP error: {response.status_code} - {response.text[:500]}")
        raise map_http_error(provider, model, response.status_code, response.headers, response.text)

    try:
        result = response.json()
    except ValueError as e:
        raise _unexpected_response(provider, response.status_code, str(e)) from e
    if not isinstance(result, dict):
        raise _unexpected_response(provider, response.status_code, "body is not an object")
    return result


def call_gemini_api(service, system_prompt: str, user_prompt: str) -> str:
    """Call Gemini API."""
    provider = ProviderId.GEMINI
    provider_config = service.config.get('gemini', {})
    api_key = _require_api_key(provider, provider_config)
    model = service._get_model(provider_config, 'gemini-2.5-flash')
    api_url = provider_config.get('api_url', 'https://generativelanguage.googleapis.com/v1beta').rstrip('/')

    model_path = model if model.startswith("models/") else f"models/{model}"
    url = f"{api_url}/{model_path}:generateContent"

    body = {
        "contents": [{
            "parts": [{
                "text": f"{system_prompt}\n\n{user_prompt}"
            }]
        }]
    }

    logger.debug(f"Calling Gemini API: {model}")
    result = _post(service, provider, model, url, {}, body, params={"key": api_key})

    for candidate in result.get('candidates') or []:
        parts = (candidate.get('content') or {}).get('parts') or []
        for part in parts:
            if part.get('text') is not None:
                return part['text']

    raise _unexpected_response(provider, 200, "no candidates in response")


def _call_chat_completions(service, provider: ProviderId, default_model: str, default_url: str,
                           system_prompt: str, user_prompt: str) -> str:
    provider_config = service.config.get(provider.value, {})
    api_key = _require_api_key(provider, provider_config)
    model = service._get_model(provider_config, default_model)
    api_url = provider_config.get('api_url', default_url)

    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json"
    }
    body = {
        "model": model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "temperature": TEMPERATURE,
    }

    logger.debug(f"  Calling {provider.label} API (model: {model})...")
    result = _post(service, provider, model, api_url, headers, body)

    for choice in result.get('choices') or []:
        content = (choice.get('message') or {}).get('content')
        if content is not None:
            logger.debug(f"  Received {len(content)} chars from {provider.label}")
            return content

    raise _unexpected_response(provider, 200, "no content in response")


def call_openai_api(service, system_prompt: str, user_prompt: str) -> str:
    """Call OpenAI chat completions API."""
    return _call_chat_completions(
        service, ProviderId.OPENAI, 'gpt-4o-mini',
        'https://api.openai.com/v1/chat/completions', system_prompt, user_prompt,
    )


def call_grok_api(service, system_prompt: str, user_prompt: str) -> str:
    """Call Grok (xAI) API, which speaks the OpenAI chat completions format."""
    return _call_chat_completions(
        service, ProviderId.GROK, 'grok-2-latest',
        'https://api.x.ai/v1/chat/completions', system_prompt, user_prompt,
    )


def call_claude_api(service, system_prompt: str, user_prompt: str) -> str:
    """Call Anthropic Messages API."""
    provider = ProviderId.CLAUDE
    provider_config = service.config.get('claude', {})
    api_key = _require_api_key(provider, provider_config)
    model = service._get_model(provider_config, 'claude-3-5-haiku-latest')
    api_url = provider_config.get('api_url', 'https://api.anthropic.com/v1/messages')

    headers = {
        "x-api-key": api_key,
        "anthropic-version": ANTHROPIC_VERSION,
        "Content-Type": "application/json",
    }
    body = {
        "model": model,
        "max_tokens": 1024,
        "system": system_prompt,
        "messages": [{"role": "user", "content": user_prompt}],
        "temperature": TEMPERATURE,
    }

    logger.debug(f"  Calling Claude API (model: {model})...")
    result = _post(service, provider, model, api_url, headers, body)

    for block in result.get('content') or []:
        if block.get('text') is not None:
            return block['text']

    raise _unexpected_response(provider, 200, "no text block in response")


PROVIDER_CALLS = {
    ProviderId.GEMINI: call_gemini_api,
    ProviderId.OPENAI: call_openai_api,
    ProviderId.CLAUDE: call_claude_api,
    ProviderId.GROK: call_grok_api,
}
