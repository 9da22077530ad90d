"""Retry decision and retry hint API routes."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict

from flask import Blueprint, jsonify, request

from modtranslator import config
from modtranslator.logger import get_logger
from modtranslator.ai.hints import (
    ProviderErrorHints,
    describe_retry_hint,
    parse_provider_error_hints,
    parse_retry_after_header,
)
from modtranslator.ai.retry import (
    FatalFailure,
    HttpFailure,
    NetworkFailure,
    RetryPolicy,
    evaluate_retry,
)

retry_bp = Blueprint("retry", __name__)
logger = get_logger(__name__)

POLICY_FIELDS = {
    "baseDelayMs": "base_delay_ms",
    "maxDelayMs": "max_delay_ms",
    "maxRetries": "max_retries",
}


def _optional_int(value: Any, name: str):
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{name} must be a non-negative integer")
    return value


def parse_retry_error(data: Dict[str, Any]):
    """Build a retry error from ``{"kind": "http"|"network"|"fatal", "status", "hintMs"}``."""
    if not isinstance(data, dict):
        raise ValueError("error must be an object")
    kind = data.get("kind")
    hint_ms = _optional_int(data.get("hintMs"), "hintMs")
    if kind == "http":
        status = data.get("status")
        if isinstance(status, bool) or not isinstance(status, int):
            raise ValueError("status must be an integer for http errors")
        return HttpFailure(status=status, hint_ms=hint_ms)
    if kind == "network":
        return NetworkFailure(hint_ms=hint_ms)
    if kind == "fatal":
        return FatalFailure(str(data.get("reason", "")))
    raise ValueError("kind must be one of: http, network, fatal")


def parse_policy(data: Dict[str, Any]) -> RetryPolicy:
    """Configured policy with per-request field overrides."""
    if not isinstance(data, dict):
        raise ValueError("policy must be an object")
    overrides = {
        field: _optional_int(data[key], key)
        for key, field in POLICY_FIELDS.items()
        if data.get(key) is not None
    }
    return replace(config.get_retry_policy(), **overrides)


@retry_bp.post("/evaluate")
def evaluate():
    """Decide whether an error should be retried and after how long."""
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be an object"}), 400
    try:
        error = parse_retry_error(data.get("error") or {})
        policy = parse_policy(data.get("policy") or {})
        attempts = _optional_int(data.get("previousAttempts") or 0, "previousAttempts")
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    decision = evaluate_retry(error, policy, attempts)
    logger.debug(f"Retry decision for {error} after {attempts} attempt(s): {decision}")
    return jsonify({"decision": decision.to_dict(), "policy": policy.to_dict()})


@retry_bp.post("/hints")
def hints():
    """
    Extract retry hints from a provider error.

    Body: ``headers`` (object), ``body`` (string or object) and ``provider``.
    The structured body is only read for Gemini, whose errors carry RetryInfo.
    """
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be an object"}), 400
    headers = data.get("headers") or {}
    if not isinstance(headers, dict):
        return jsonify({"error": "headers must be an object"}), 400

    header_hint = parse_retry_after_header({str(k): str(v) for k, v in headers.items()})
    provider = str(data.get("provider", "gemini")).lower()
    body_hints = parse_provider_error_hints(data.get("body")) if provider == "gemini" else ProviderErrorHints()

    hint = header_hint or body_hints.retry_hint
    return jsonify({
        "retryAfter": header_hint.to_dict() if header_hint else None,
        "providerHints": body_hints.to_dict(),
        "effectiveHint": hint.to_dict() if hint else None,
        "reason": describe_retry_hint(hint) if hint else None,
    })
