import pytest

from modtranslator import config
from modtranslator.ai.retry import RetryPolicy
from modtranslator.protection import TokenClass, protect
from modtranslator.validation import ValidationMode


def test_missing_file_yields_defaults(isolated_config):
    assert not isolated_config.exists()
    assert config.load_config() == config.DEFAULT_CONFIG


def test_initialize_app_creates_config(isolated_config):
    config.initialize_app()
    assert isolated_config.exists()


def test_saved_sections_merge_with_defaults():
    config.save_config({"retry": {"max_retries": 2}, "log_mode": "info"})
    loaded = config.load_config()

    assert loaded["retry"] == {"base_delay_ms": 1000, "max_delay_ms": 30000, "max_retries": 2}
    assert loaded["log_mode"] == "info"
    assert loaded["gemini"]["models"] == ["gemini-2.5-flash"]


def test_corrupt_file_falls_back_to_defaults(isolated_config):
    isolated_config.parent.mkdir(parents=True)
    isolated_config.write_text("{not json", encoding="utf-8")
    assert config.load_config() == config.DEFAULT_CONFIG


def test_merge_does_not_mutate_defaults():
    merged = config.merge_with_defaults({"validator": {"retry_limit": 3}})
    assert merged["validator"]["retry_limit"] == 3
    assert merged["validator"]["enable_autofix"] is True
    assert config.DEFAULT_CONFIG["validator"]["retry_limit"] == 1


@pytest.mark.parametrize("update,error", [
    ({}, None),
    ({"ai_provider": "claude"}, None),
    ({"ai_provider": "llama"}, "Unknown AI provider: llama"),
    ({"log_mode": "loud"}, "Invalid log_mode: loud"),
    ({"retry": {"max_retries": -1}}, "retry.max_retries must be a non-negative integer"),
    ({"retry": []}, "retry must be an object"),
    ({"validator": {"validation_mode": "lenient"}}, "Invalid validation_mode: lenient"),
    ({"validator": {"retry_limit": "2"}}, "validator.retry_limit must be a non-negative integer"),
    ({"translation": {"profile": "skyrim"}}, "Invalid profile: skyrim"),
    ({"protection": {"extra_units": ["AU", "ly"]}}, None),
    ({"protection": {"extra_units": "AU"}}, "protection.extra_units must be a list of unit names"),
    ({"protection": {"extra_units": [""]}}, "protection.extra_units must be a list of unit names"),
    ({"protection": []}, "protection must be an object"),
    ([], "Config must be an object"),
])
def test_validate_config(update, error):
    assert config.validate_config(update) == error


def test_typed_sections():
    settings = config.merge_with_defaults({
        "retry": {"base_delay_ms": 250},
        "validator": {"validation_mode": "relaxed_xml", "enable_autofix": False},
        "protection": {"protect_math_units": True},
    })

    assert config.get_retry_policy(settings) == RetryPolicy(250, 30000, 5)

    validator_config = config.get_validator_config(settings)
    assert validator_config.validation_mode == ValidationMode.RELAXED_XML
    assert validator_config.enable_autofix is False

    assert TokenClass.UNIT in config.get_pattern_table(settings).token_classes
    assert TokenClass.UNIT not in config.get_pattern_table().token_classes


def test_extra_units_extend_the_unit_rule():
    settings = config.merge_with_defaults({"protection": {"protect_math_units": True, "extra_units": ["AU"]}})
    table = config.get_pattern_table(settings)

    assert protect("Travel 3 AU", table).masked == "Travel ⟦MT:UNIT:0⟧"
    assert protect("Travel 3 AU", config.get_pattern_table(config.merge_with_defaults(
        {"protection": {"protect_math_units": True}}
    ))).masked == "Travel 3 AU"
