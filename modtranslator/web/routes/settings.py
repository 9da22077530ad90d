"""Settings management API routes."""

from __future__ import annotations

import copy
from typing import Any, Dict

from flask import Blueprint, jsonify, request

import modtranslator.config as config
from modtranslator.config import (
    BUILTIN_PROVIDERS,
    BUILTIN_PROVIDER_DISPLAY_NAMES,
    GAME_PROFILES,
    LOG_MODES,
    PROVIDER_DEFAULTS,
    VALIDATION_MODES,
)
from modtranslator.logger import get_logger, refresh_log_mode

settings_bp = Blueprint("settings", __name__)
logger = get_logger(__name__)

MAX_MODELS = 5


def _mask_api_keys(settings: Dict[str, Any]) -> Dict[str, Any]:
    masked = copy.deepcopy(settings)
    for provider in BUILTIN_PROVIDERS:
        provider_config = masked.get(provider)
        if isinstance(provider_config, dict):
            key = provider_config.get("api_key", "")
            if key and key != "YOUR_API_KEY_HERE":
                provider_config["api_key"] = f"{key[:4]}...{key[-4:]}" if len(key) > 8 else "****"
    return masked


@settings_bp.get("/")
def get_settings():
    """Return current configuration (API keys masked) with option metadata."""
    current_config = config.load_config()
    logger.debug("Settings retrieved")
    return jsonify({
        "config": _mask_api_keys(current_config),
        "meta": {
            "builtin_providers": [
                {"id": p, "name": BUILTIN_PROVIDER_DISPLAY_NAMES[p]}
                for p in BUILTIN_PROVIDERS
            ],
            "provider_defaults": PROVIDER_DEFAULTS,
            "log_modes": list(LOG_MODES),
            "validation_modes": list(VALIDATION_MODES),
            "profiles": list(GAME_PROFILES),
        }
    })


def _validate_provider_section(provider: str, provider_config: Any):
    if not isinstance(provider_config, dict):
        return f"{provider} config must be an object"
    if "api_url" in provider_config and provider_config["api_url"] and not isinstance(provider_config["api_url"], str):
        return f"{provider} api_url must be a string"
    if "models" in provider_config:
        models = provider_config["models"]
        if not isinstance(models, list):
            return f"{provider} models must be an array"
        models = [m for m in models if m and isinstance(m, str)]
        if len(models) > MAX_MODELS:
            return f"{provider} can have at most {MAX_MODELS} models"
        provider_config["models"] = models
    if "timeout" in provider_config:
        timeout = provider_config["timeout"]
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            return f"{provider} timeout must be a positive number"
    return None


@settings_bp.put("/")
def update_settings():
    """Merge a (partial) configuration update into the stored config."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or "config" not in data:
        return jsonify({"error": "Request body must contain 'config'"}), 400

    new_config = data["config"]
    validation_error = config.validate_config(new_config)
    if validation_error:
        return jsonify({"error": validation_error}), 400

    for provider in BUILTIN_PROVIDERS:
        if provider in new_config:
            error = _validate_provider_section(provider, new_config[provider])
            if error:
                return jsonify({"error": error}), 400
            # A masked key echoed back by the UI keeps the stored key
            api_key = str(new_config[provider].get("api_key", ""))
            if api_key == "****" or "..." in api_key:
                new_config[provider].pop("api_key")

    current_config = config.merge_with_defaults(new_config, config.load_config())

    try:
        config.save_config(current_config)
    except OSError as e:
        logger.error(f"Failed to update settings: {e}")
        return jsonify({"error": "Failed to save settings"}), 500

    # Re-apply log levels in case log_mode changed
    refresh_log_mode()
    logger.info("Settings updated successfully")

    return jsonify({"message": "Settings updated successfully", "config": _mask_api_keys(current_config)})
