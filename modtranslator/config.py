import copy
import json
import os
from pathlib import Path
from typing import Dict, Any, Optional

from modtranslator.logger import get_logger

logger = get_logger(__name__)

# Provider configuration constants
BUILTIN_PROVIDERS = ["gemini", "openai", "claude", "grok"]

BUILTIN_PROVIDER_DISPLAY_NAMES = {
    "gemini": "Gemini",
    "openai": "GPT",
    "claude": "Claude",
    "grok": "Grok",
}

PROVIDER_DEFAULTS = {
    "timeout": 120,
}

LOG_MODES = ("off", "info", "debug")

VALIDATION_MODES = ("strict", "relaxed_xml", "relaxed_xml_plus")

GAME_PROFILES = ("none", "rimworld", "factorio", "minecraft")

# Get base directory (project root)
BASE_DIR = Path(__file__).parent.parent
CONFIG_DIR = BASE_DIR / "config"
CONFIG_FILE = CONFIG_DIR / "config.json"

CONFIG_ENV_VAR = "MODTRANSLATOR_CONFIG"

# Default configuration template
DEFAULT_CONFIG = {
    "ai_provider": "gemini",
    "gemini": {
        "api_key": "YOUR_API_KEY_HERE",
        "models": ["gemini-2.5-flash"],  # Up to 5 models, first is default
        "timeout": 120,
        "api_url": "https://generativelanguage.googleapis.com/v1beta"
    },
    "openai": {
        "api_key": "YOUR_API_KEY_HERE",
        "models": ["gpt-4o-mini", "gpt-4o"],
        "timeout": 120,
        "api_url": "https://api.openai.com/v1/chat/completions"
    },
    "claude": {
        "api_key": "YOUR_API_KEY_HERE",
        "models": ["claude-3-5-haiku-latest"],
        "timeout": 120,
        "api_url": "https://api.anthropic.com/v1/messages"
    },
    "grok": {
        "api_key": "YOUR_API_KEY_HERE",
        "models": ["grok-2-latest"],
        "timeout": 120,
        "api_url": "https://api.x.ai/v1/chat/completions"
    },
    "retry": {
        "base_delay_ms": 1000,
        "max_delay_ms": 30000,
        "max_retries": 5
    },
    "validator": {
        "enable_autofix": True,
        "retry_on_fail": True,
        "retry_limit": 1,
        "strict_pairing": True,
        "preserve_percent_binding": True,
        "validation_mode": "strict",
        "jsonl_logging": True
    },
    "protection": {
        "protect_math_units": False,
        "extra_units": []
    },
    "translation": {
        "source_language": "English",
        "target_language": "Korean",
        "profile": "none"
    },
    "log_mode": "off"
}


def get_config_path() -> Path:
    """Return the active config file path, honouring MODTRANSLATOR_CONFIG."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    return CONFIG_FILE


def ensure_config_directory(path: Optional[Path] = None):
    """Ensure the directory holding the config file exists."""
    target = (path or get_config_path()).parent
    target.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Config directory ensured: {target}")


def create_default_config(path: Optional[Path] = None):
    """Create the default config.json file."""
    path = path or get_config_path()
    ensure_config_directory(path)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(DEFAULT_CONFIG, f, indent=4, ensure_ascii=False)
    logger.info(f"Created default config file: {path}")


def merge_with_defaults(config: Dict[str, Any], defaults: Dict[str, Any] = None) -> Dict[str, Any]:
    """
    Deep merge a stored config onto the defaults.

    Keys missing from the stored config fall back to the default value; nested
    dictionaries are merged key by key so partial sections stay valid.
    """
    defaults = DEFAULT_CONFIG if defaults is None else defaults
    merged = copy.deepcopy(defaults)
    for key, value in config.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_with_defaults(value, merged[key])
        else:
            merged[key] = value
    return merged


def initialize_app():
    """
    Initialize the application.
    Creates the default configuration file on first run.
    """
    logger.info("Initializing application...")
    path = get_config_path()
    if not path.exists():
        logger.info("No config file found, writing defaults")
        try:
            create_default_config(path)
        except OSError as e:
            logger.error(f"Failed to write default config: {e}")
            logger.warning("Application will use in-memory default configuration")
    logger.info("Application initialization complete")


def load_config() -> Dict[str, Any]:
    """Load the configuration from the JSON config file."""
    path = get_config_path()
    if not path.exists():
        logger.debug("No config file, using defaults")
        return copy.deepcopy(DEFAULT_CONFIG)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            stored = json.load(f)
        logger.debug(f"Configuration loaded from {path}")
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse config file {path}: {e}")
        logger.warning("Using default configuration")
        return copy.deepcopy(DEFAULT_CONFIG)
    if not isinstance(stored, dict):
        logger.warning("Config file does not hold an object, using defaults")
        return copy.deepcopy(DEFAULT_CONFIG)
    return merge_with_defaults(stored)


def save_config(config: Dict[str, Any]):
    """Save the configuration to the JSON config file."""
    path = get_config_path()
    try:
        ensure_config_directory(path)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(config, f, indent=4, ensure_ascii=False)
        logger.info("Configuration saved")
    except OSError as e:
        logger.error(f"Failed to save config to {path}: {e}")
        raise


def validate_config(config: Dict[str, Any]) -> Optional[str]:
    """
    Check a (partial) config update for obviously invalid values.

    Returns:
        An error message, or None when the update is acceptable.
    """
    if not isinstance(config, dict):
        return "Config must be an object"

    provider = config.get("ai_provider")
    if provider is not None and provider not in BUILTIN_PROVIDERS:
        return f"Unknown AI provider: {provider}"

    log_mode = config.get("log_mode")
    if log_mode is not None and log_mode not in LOG_MODES:
        return f"Invalid log_mode: {log_mode}"

    retry = config.get("retry")
    if retry is not None:
        if not isinstance(retry, dict):
            return "retry must be an object"
        for field in ("base_delay_ms", "max_delay_ms", "max_retries"):
            if field in retry and (not isinstance(retry[field], int) or retry[field] < 0):
                return f"retry.{field} must be a non-negative integer"

    validator = config.get("validator")
    if validator is not None:
        if not isinstance(validator, dict):
            return "validator must be an object"
        mode = validator.get("validation_mode")
        if mode is not None and mode not in VALIDATION_MODES:
            return f"Invalid validation_mode: {mode}"
        limit = validator.get("retry_limit")
        if limit is not None and (not isinstance(limit, int) or limit < 0):
            return "validator.retry_limit must be a non-negative integer"

    protection = config.get("protection")
    if protection is not None:
        if not isinstance(protection, dict):
            return "protection must be an object"
        extra_units = protection.get("extra_units")
        if extra_units is not None and (
            not isinstance(extra_units, list)
            or not all(isinstance(unit, str) and unit.strip() for unit in extra_units)
        ):
            return "protection.extra_units must be a list of unit names"

    translation = config.get("translation")
    if isinstance(translation, dict):
        profile = translation.get("profile")
        if profile is not None and profile not in GAME_PROFILES:
            return f"Invalid profile: {profile}"

    return None


def get_retry_policy(config: Optional[Dict[str, Any]] = None):
    """Build a RetryPolicy from the ``retry`` config section."""
    from modtranslator.ai.retry import RetryPolicy

    config = config if config is not None else load_config()
    section = config.get("retry", DEFAULT_CONFIG["retry"])
    return RetryPolicy(
        base_delay_ms=int(section.get("base_delay_ms", 1000)),
        max_delay_ms=int(section.get("max_delay_ms", 30000)),
        max_retries=int(section.get("max_retries", 5)),
    )


def get_validator_config(config: Optional[Dict[str, Any]] = None):
    """Build a ValidatorConfig from the ``validator`` config section."""
    from modtranslator.validation.report import ValidationMode, ValidatorConfig

    config = config if config is not None else load_config()
    section = config.get("validator", DEFAULT_CONFIG["validator"])
    return ValidatorConfig(
        enable_autofix=bool(section.get("enable_autofix", True)),
        retry_on_fail=bool(section.get("retry_on_fail", True)),
        retry_limit=int(section.get("retry_limit", 1)),
        strict_pairing=bool(section.get("strict_pairing", True)),
        preserve_percent_binding=bool(section.get("preserve_percent_binding", True)),
        validation_mode=ValidationMode(section.get("validation_mode", "strict")),
    )


def get_pattern_table(config: Optional[Dict[str, Any]] = None):
    """Build the protector pattern table from the ``protection`` config section."""
    from modtranslator.protection.math_units import UnitCategory, protected_unit_dictionary
    from modtranslator.protection.patterns import build_pattern_table

    config = config if config is not None else load_config()
    section = config.get("protection", DEFAULT_CONFIG["protection"])
    extra_units = section.get("extra_units") or []
    units = None
    if extra_units:
        units = protected_unit_dictionary()
        for unit in extra_units:
            units.add_unit(unit, UnitCategory.OTHER)
    return build_pattern_table(
        protect_math_units=bool(section.get("protect_math_units", False)),
        units=units,
    )
