"""Token protection and restoration API routes."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, jsonify, request

from modtranslator import config
from modtranslator.logger import get_logger
from modtranslator.protection import Protector, ProtectorError, UnexpectedTokensError
from modtranslator.protection.patterns import build_pattern_table

protection_bp = Blueprint("protection", __name__)
logger = get_logger(__name__)


def _protector_for(data: Dict[str, Any]) -> Protector:
    """Use the configured pattern table unless the request overrides math/unit protection."""
    if "protect_math_units" in data:
        return Protector(build_pattern_table(protect_math_units=bool(data["protect_math_units"])))
    return Protector(config.get_pattern_table())


@protection_bp.post("/protect")
def protect_text():
    """Mask protectable spans in ``text`` and return the fragment."""
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be an object"}), 400
    text = data.get("text")
    if not isinstance(text, str):
        return jsonify({"error": "text must be a string"}), 400

    fragment = _protector_for(data).protect(text)
    logger.debug(f"Protected {len(fragment.tokens)} token(s)")
    return jsonify(fragment.to_dict())


@protection_bp.post("/restore")
def restore_text():
    """
    Restore a translated masked string.

    The fragment is rebuilt by protecting ``original`` again, which yields the
    same markers as the first call. ``contentHash`` (optional) guards against
    restoring with a different source.
    """
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be an object"}), 400
    original = data.get("original")
    candidate = data.get("candidate")
    if not isinstance(original, str) or not isinstance(candidate, str):
        return jsonify({"error": "original and candidate must be strings"}), 400

    fragment = _protector_for(data).protect(original)
    expected_hash = data.get("contentHash")
    if expected_hash and expected_hash != fragment.token_map.content_hash:
        return jsonify({"error": "contentHash does not match original", "code": "HASH_MISMATCH"}), 409

    try:
        restored = fragment.restore(candidate)
    except ProtectorError as e:
        logger.warning(f"Restore failed: {e}")
        body = {"error": str(e), "code": e.code, "markers": e.markers}
        if isinstance(e, UnexpectedTokensError):
            body["missing"] = e.missing
        return jsonify(body), 422

    return jsonify({"restored": restored})
