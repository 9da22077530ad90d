import pytest

from modtranslator.protection import protect
from modtranslator.validation import (
    FileFormat,
    PlaceholderSet,
    PlaceholderValidator,
    RecoveryStep,
    Segment,
    ValidationErrorCode,
    ValidationFailureReport,
    ValidationMode,
    ValidationSuccess,
    ValidatorConfig,
    preserve_percent_binding,
)
from modtranslator.validation.relaxed import structure_signature


def make_segment(source, key="Greeting"):
    return Segment(file="Keyed/Misc.xml", line=3, key=key, source_raw=source, source_preprocessed=source)


def segment_for(text):
    return Segment.from_fragment(protect(text), file="Keyed/Misc.xml", line=7, key="Label")


def test_placeholder_set_counts_markers_and_format_tokens():
    found = PlaceholderSet.from_text("⟦MT:TAG:0⟧ {0} {1} {0} ⟦MT:TAG:0⟧")
    assert found.protected == ["⟦MT:TAG:0⟧", "⟦MT:TAG:0⟧"]
    assert found.format == ["{0}", "{1}", "{0}"]
    assert found.format_counts["{0}"] == 2


def test_reordered_tokens_pass_without_autofix():
    segment = segment_for("Deal {0} damage to <b>{target}</b>")
    candidate = "⟦MT:RWCOLOR:1⟧⟦MT:NAMED:2⟧⟦MT:RWCOLOR:3⟧에게 ⟦MT:DOTNET:0⟧ 피해"

    result = PlaceholderValidator().validate(segment, candidate)

    assert isinstance(result, ValidationSuccess)
    assert result.value == candidate
    assert not result.autofix.applied
    assert not result.recovered_with_warning


def test_percent_binding_is_restored():
    result = PlaceholderValidator().validate(make_segment("Speed {0}%"), "속도 {0}")

    assert result.ok
    assert result.value == "속도 {0}%"
    assert result.autofix.steps == [RecoveryStep.PRESERVE_PERCENT_BINDING]


def test_detached_percent_is_tightened():
    assert preserve_percent_binding("Speed {0}%", "속도 {0} %") == "속도 {0}%"


def test_percent_sign_before_placeholder_is_moved_behind_it():
    assert preserve_percent_binding("Speed {0}%", "속도 %{0}") == "속도 {0}%"

    result = PlaceholderValidator().validate(make_segment("Speed {0}%"), "속도 %{0}")
    assert result.value == "속도 {0}%"
    assert result.autofix.steps == [RecoveryStep.PRESERVE_PERCENT_BINDING]


def test_percent_binding_follows_markers():
    fragment = protect("Speed {0}%")
    segment = Segment.from_fragment(fragment)
    result = PlaceholderValidator().validate(segment, "속도 ⟦MT:DOTNET:0⟧")
    assert result.value == "속도 ⟦MT:DOTNET:0⟧%"
    assert fragment.restore(result.value) == "속도 {0}%"


def test_missing_marker_is_reinjected():
    fragment = protect("Press <b>OK</b> now")
    candidate = "지금 ⟦MT:RWCOLOR:0⟧확인 누르기"

    result = PlaceholderValidator().validate(Segment.from_fragment(fragment), candidate)

    assert result.ok
    assert result.recovered_with_warning
    assert result.autofix.steps == [RecoveryStep.REINJECT_MISSING_PROTECTED]
    assert "</b>" in fragment.restore(result.value)


def test_duplicate_marker_is_removed():
    segment = segment_for("Use {0} now")
    result = PlaceholderValidator().validate(segment, "⟦MT:DOTNET:0⟧ 사용 ⟦MT:DOTNET:0⟧")

    assert result.ok
    assert result.value == " 사용 ⟦MT:DOTNET:0⟧"
    assert result.autofix.steps == [RecoveryStep.REMOVE_EXCESS_TOKENS]


def test_odd_tag_count_gets_a_counterpart():
    fragment = protect("Press <b>OK</b> now")
    candidate = "⟦MT:RWCOLOR:0⟧확인⟦MT:RWCOLOR:1⟧ ⟦MT:RWCOLOR:0⟧누르기"

    result = PlaceholderValidator().validate(Segment.from_fragment(fragment), candidate)

    assert result.ok
    assert result.autofix.steps == [RecoveryStep.PAIR_BALANCE_CHECK, RecoveryStep.REMOVE_EXCESS_TOKENS]
    assert result.value == "확인 ⟦MT:RWCOLOR:0⟧누르기⟦MT:RWCOLOR:1⟧"
    assert fragment.restore(result.value) == "확인 <b>누르기</b>"


def test_pair_balancing_can_be_disabled():
    fragment = protect("Press <b>OK</b> now")
    candidate = "⟦MT:RWCOLOR:0⟧확인⟦MT:RWCOLOR:1⟧ ⟦MT:RWCOLOR:0⟧누르기"

    result = PlaceholderValidator(ValidatorConfig(strict_pairing=False)).validate(
        Segment.from_fragment(fragment), candidate
    )

    assert result.ok
    assert result.autofix.steps == [RecoveryStep.REMOVE_EXCESS_TOKENS]
    assert result.value == "확인⟦MT:RWCOLOR:1⟧ ⟦MT:RWCOLOR:0⟧누르기"


def test_missing_format_token_is_reinjected():
    result = PlaceholderValidator().validate(make_segment("Deal {0} damage"), "피해를 입힘")

    assert result.ok
    assert "{0}" in result.value
    assert result.autofix.steps == [RecoveryStep.CORRECT_FORMAT_TOKENS]


def test_failure_report_without_autofix():
    validator = PlaceholderValidator(ValidatorConfig(enable_autofix=False))
    report = validator.validate(make_segment("Deal {0} damage"), "피해")

    assert isinstance(report, ValidationFailureReport)
    assert report.code == ValidationErrorCode.FORMAT_TOKEN_MISSING
    assert report.expected_format == ["{0}"]
    assert report.found_format == []
    assert report.candidate_line == "피해"

    data = report.to_dict()
    assert data["ok"] is False
    assert data["code"] == "FORMAT_TOKEN_MISSING"
    assert data["autofix"] == {"applied": False, "steps": []}
    assert data["retry"] == {"attempted": False}
    assert data["uiHint"]["copyButtons"] is True


@pytest.mark.parametrize("source,candidate,config,code", [
    ("Use {0} now", "사용", ValidatorConfig(enable_autofix=False), ValidationErrorCode.PLACEHOLDER_MISMATCH),
    (
        "You have {count, plural, one {# item} other {# items}} left.",
        "남은 항목",
        ValidatorConfig(enable_autofix=False),
        ValidationErrorCode.ICU_UNBALANCED,
    ),
    (
        "Press <b>OK</b> now",
        "⟦MT:RWCOLOR:0⟧확인",
        ValidatorConfig(enable_autofix=False, strict_pairing=False),
        ValidationErrorCode.PAIR_UNBALANCED,
    ),
])
def test_failure_classification(source, candidate, config, code):
    report = PlaceholderValidator(config).validate(segment_for(source), candidate)
    assert not report.ok
    assert report.code == code


def test_mark_retry_turns_failure_into_retry_failed():
    validator = PlaceholderValidator(ValidatorConfig(enable_autofix=False))
    report = validator.validate(segment_for("Use {0} now"), "사용")

    validator.mark_retry(report, False)

    assert report.code == ValidationErrorCode.RETRY_FAILED
    assert report.retry.to_dict() == {"attempted": True, "success": False}


def test_relaxed_mode_ignores_latex():
    segment = make_segment("Formula $a_{1}$ equals {0}")

    strict = PlaceholderValidator(ValidatorConfig(enable_autofix=False)).validate(segment, "공식은 {0}")
    assert strict.code == ValidationErrorCode.FORMAT_TOKEN_MISSING

    relaxed = PlaceholderValidator(ValidatorConfig(validation_mode=ValidationMode.RELAXED_XML))
    assert relaxed.validate(segment, "공식은 {0}").ok


def test_relaxed_plus_rebuilds_structure():
    fragment = protect("Click <b>here</b> now")
    segment = Segment.from_fragment(fragment)
    validator = PlaceholderValidator(ValidatorConfig(validation_mode=ValidationMode.RELAXED_XML_PLUS))

    result = validator.validate(segment, "여기를 클릭")

    assert result.ok
    assert result.recovered_with_warning
    assert result.autofix.steps == [RecoveryStep.RESTORE_STRUCTURE_TOKENS]
    assert structure_signature(result.value) == structure_signature(fragment.masked)


def test_relaxed_plus_reports_signature_without_autofix():
    segment = Segment.from_fragment(protect("Click <b>here</b> now"))
    validator = PlaceholderValidator(
        ValidatorConfig(validation_mode=ValidationMode.RELAXED_XML_PLUS, enable_autofix=False)
    )

    report = validator.validate(segment, "여기를 클릭")

    assert not report.ok
    assert report.expected_structure_signature == ["⟦MT:RWCOLOR:0⟧", "⟦MT:RWCOLOR:1⟧"]
    assert report.found_structure_signature == []


@pytest.mark.parametrize("content,file_format,code", [
    ("<a><b></a>", FileFormat.XML, ValidationErrorCode.XML_MALFORMED_AFTER_RESTORE),
    ("```\ncode", FileFormat.MARKDOWN, ValidationErrorCode.MARKDOWN_UNBALANCED_FENCE),
    ("key=\\u12", FileFormat.PROPERTIES, ValidationErrorCode.PROPERTIES_ESCAPE_INVALID),
    ('msg = "abc', FileFormat.LUA, ValidationErrorCode.LUA_STRING_UNBALANCED),
    ('{"a": }', FileFormat.JSON, ValidationErrorCode.PARSER_ERROR),
    ("a,b\nc", FileFormat.CSV, ValidationErrorCode.PARSER_ERROR),
    ("<<< anything", FileFormat.TXT, None),
    ("<<< anything", FileFormat.UNKNOWN, None),
])
def test_format_after_restore(content, file_format, code):
    assert PlaceholderValidator().validate_format_after_restore(content, file_format) == code


def test_file_format_from_extension():
    assert FileFormat.from_extension("Languages/en.yml") == FileFormat.YAML
    assert FileFormat.from_extension("README.md") == FileFormat.MARKDOWN
    assert FileFormat.from_extension("Keyed.XML") == FileFormat.XML
    assert FileFormat.from_extension("noext") == FileFormat.UNKNOWN


@pytest.mark.parametrize("source,restored,file_format,code", [
    ("Hello world", "안녕하세요 세계", FileFormat.JSON, None),
    ("Hello world", "안녕하세요 세계", FileFormat.INI, None),
    ('{"label": "Hi"}', '{"label": "안녕"', FileFormat.JSON, ValidationErrorCode.PARSER_ERROR),
    ("Hi <b>there</b>", "<b>안녕", FileFormat.XML, ValidationErrorCode.XML_MALFORMED_AFTER_RESTORE),
])
def test_segment_format_check_is_relative_to_source(source, restored, file_format, code):
    segment = Segment.from_fragment(protect(source), format=file_format)
    assert PlaceholderValidator().validate_segment_after_restore(segment, restored) == code


def test_icu_segment_gets_brace_check():
    segment = segment_for("You have {count, plural, one {# item} other {# items}} left.")
    validator = PlaceholderValidator()

    assert validator.validate_segment_after_restore(segment, "{count, plural, one {# item} other {# items}} 남음") is None
    assert validator.validate_segment_after_restore(segment, "{count, plural, one {# item} other {# items}} }") == (
        ValidationErrorCode.ICU_UNBALANCED
    )
