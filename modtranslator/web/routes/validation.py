"""Placeholder validation and validation metrics API routes."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from modtranslator import config
from modtranslator.logger import get_logger
from modtranslator.protection import Protector, ProtectorError
from modtranslator.validation import (
    FileFormat,
    PlaceholderValidator,
    Segment,
    ValidationMode,
    ValidationOutcome,
)
from modtranslator.validation.metrics import ValidationLogger

validation_bp = Blueprint("validation", __name__)
logger = get_logger(__name__)

VALIDATION_LOGGER_KEY = "modtranslator.validation_logger"

VALIDATOR_FLAGS = ("enable_autofix", "retry_on_fail", "strict_pairing", "preserve_percent_binding")


def get_validation_logger() -> ValidationLogger:
    """Return the ValidationLogger owned by the current app."""
    return current_app.extensions[VALIDATION_LOGGER_KEY]


def _file_format(data: Dict[str, Any]):
    if data.get("format"):
        # Accepts enum values and extension aliases ("yml", "md")
        return FileFormat.from_extension(f".{data['format']}")
    if data.get("file"):
        return FileFormat.from_extension(data["file"])
    return None


def _validator_for(data: Dict[str, Any]) -> PlaceholderValidator:
    """Configured validator, with per-request overrides from ``options``."""
    validator_config = config.get_validator_config()
    options = data.get("options") or {}
    overrides = {flag: bool(options[flag]) for flag in VALIDATOR_FLAGS if flag in options}
    if "validation_mode" in options:
        overrides["validation_mode"] = ValidationMode(options["validation_mode"])
    if overrides:
        validator_config = replace(validator_config, **overrides)
    return PlaceholderValidator(validator_config)


@validation_bp.post("/validate")
def validate_candidate():
    """
    Validate a masked translation against its source.

    Body: ``source`` (raw text, protected here), ``candidate`` (masked
    translation), optional ``file``, ``line``, ``key``, ``format`` and
    ``options`` (validator flag overrides).
    """
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be an object"}), 400
    source = data.get("source")
    candidate = data.get("candidate")
    if not isinstance(source, str) or not isinstance(candidate, str):
        return jsonify({"error": "source and candidate must be strings"}), 400

    try:
        validator = _validator_for(data)
    except ValueError as e:
        return jsonify({"error": f"Invalid validation options: {e}"}), 400

    try:
        line = int(data.get("line", 0))
    except (TypeError, ValueError):
        return jsonify({"error": "line must be an integer"}), 400

    fragment = Protector(config.get_pattern_table()).protect(source)
    segment = Segment.from_fragment(
        fragment,
        file=str(data.get("file", "")),
        line=line,
        key=str(data.get("key", "")),
        format=_file_format(data),
    )

    result = validator.validate(segment, candidate)
    validation_logger = get_validation_logger()
    body = result.to_dict()
    if result.ok:
        outcome = ValidationOutcome.RECOVERED_WITH_WARN if result.recovered_with_warning else ValidationOutcome.CLEAN
        validation_logger.log_success(outcome, autofix_applied=result.autofix.applied)
        try:
            body["restored"] = fragment.restore(result.value)
        except ProtectorError as e:
            body["restoreError"] = {"code": e.code, "markers": e.markers}
    else:
        validation_logger.log_failure(result)
    body["masked"] = fragment.masked
    return jsonify(body)


@validation_bp.post("/validate/format")
def validate_format():
    """Run the post-restore structural check for a file format."""
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be an object"}), 400
    content = data.get("content")
    if not isinstance(content, str):
        return jsonify({"error": "content must be a string"}), 400
    file_format = _file_format(data)
    if file_format is None:
        return jsonify({"error": "format or file is required"}), 400

    code = PlaceholderValidator().validate_format_after_restore(content, file_format)
    if code is None:
        return jsonify({"ok": True, "format": file_format.value})
    return jsonify({"ok": False, "format": file_format.value, "code": code.value})


@validation_bp.get("/validation/metrics")
def get_metrics():
    return jsonify(get_validation_logger().get_metrics().to_dict())


@validation_bp.post("/validation/metrics/reset")
def reset_metrics():
    get_validation_logger().reset_metrics()
    logger.info("Validation metrics reset")
    return jsonify({"message": "Validation metrics reset"})
