"""
Validation result types: error codes, recovery steps, success values and
failure reports.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ValidationMode(Enum):
    """How strictly a candidate is compared against the source."""

    STRICT = "strict"
    # Ignore LaTeX/math and whitespace differences
    RELAXED_XML = "relaxed_xml"
    # RELAXED_XML plus structural signature enforcement and auto-heal
    RELAXED_XML_PLUS = "relaxed_xml_plus"


class ValidationErrorCode(Enum):
    PLACEHOLDER_MISMATCH = "PLACEHOLDER_MISMATCH"
    PAIR_UNBALANCED = "PAIR_UNBALANCED"
    FORMAT_TOKEN_MISSING = "FORMAT_TOKEN_MISSING"
    XML_MALFORMED_AFTER_RESTORE = "XML_MALFORMED_AFTER_RESTORE"
    RETRY_FAILED = "RETRY_FAILED"
    ICU_UNBALANCED = "ICU_UNBALANCED"
    PARSER_ERROR = "PARSER_ERROR"
    FACTORIO_ORDER_ERROR = "FACTORIO_ORDER_ERROR"
    MARKDOWN_UNBALANCED_FENCE = "MARKDOWN_UNBALANCED_FENCE"
    PROPERTIES_ESCAPE_INVALID = "PROPERTIES_ESCAPE_INVALID"
    LUA_STRING_UNBALANCED = "LUA_STRING_UNBALANCED"


class RecoveryStep(Enum):
    REINJECT_MISSING_PROTECTED = "REINJECT_MISSING_PROTECTED"
    PAIR_BALANCE_CHECK = "PAIR_BALANCE_CHECK"
    REMOVE_EXCESS_TOKENS = "REMOVE_EXCESS_TOKENS"
    CORRECT_FORMAT_TOKENS = "CORRECT_FORMAT_TOKENS"
    PRESERVE_PERCENT_BINDING = "PRESERVE_PERCENT_BINDING"
    RESTORE_STRUCTURE_TOKENS = "RESTORE_STRUCTURE_TOKENS"


@dataclass(frozen=True)
class ValidatorConfig:
    enable_autofix: bool = True
    retry_on_fail: bool = True
    retry_limit: int = 1
    strict_pairing: bool = True
    preserve_percent_binding: bool = True
    validation_mode: ValidationMode = ValidationMode.STRICT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enableAutofix": self.enable_autofix,
            "retryOnFail": self.retry_on_fail,
            "retryLimit": self.retry_limit,
            "strictPairing": self.strict_pairing,
            "preservePercentBinding": self.preserve_percent_binding,
            "validationMode": self.validation_mode.value,
        }


@dataclass
class AutofixResult:
    applied: bool = False
    steps: List[RecoveryStep] = field(default_factory=list)

    @classmethod
    def with_steps(cls, steps: List[RecoveryStep]) -> "AutofixResult":
        return cls(applied=bool(steps), steps=list(steps))

    def to_dict(self) -> Dict[str, Any]:
        return {"applied": self.applied, "steps": [step.value for step in self.steps]}


@dataclass
class RetryInfo:
    attempted: bool = False
    success: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"attempted": self.attempted}
        if self.success is not None:
            data["success"] = self.success
        return data


@dataclass
class UiHint:
    show_source: bool = True
    show_candidate: bool = True
    copy_buttons: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "showSource": self.show_source,
            "showCandidate": self.show_candidate,
            "copyButtons": self.copy_buttons,
        }


@dataclass
class ValidationSuccess:
    value: str
    autofix: AutofixResult = field(default_factory=AutofixResult)
    recovered_with_warning: bool = False

    ok = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "value": self.value,
            "autofix": self.autofix.to_dict(),
            "recoveredWithWarning": self.recovered_with_warning,
        }


@dataclass
class ValidationFailureReport:
    """Everything needed to diagnose a failed segment without re-running it."""

    code: ValidationErrorCode
    file: str
    line: int
    key: str
    expected_protected: List[str]
    found_protected: List[str]
    expected_format: List[str]
    found_format: List[str]
    source_line: str
    preprocessed_source: str
    candidate_line: str
    expected_structure_signature: List[str] = field(default_factory=list)
    found_structure_signature: List[str] = field(default_factory=list)
    autofix: AutofixResult = field(default_factory=AutofixResult)
    retry: RetryInfo = field(default_factory=RetryInfo)
    ui_hint: UiHint = field(default_factory=UiHint)

    ok = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": False,
            "code": self.code.value,
            "file": self.file,
            "line": self.line,
            "key": self.key,
            "expectedProtected": self.expected_protected,
            "foundProtected": self.found_protected,
            "expectedFormat": self.expected_format,
            "foundFormat": self.found_format,
            "expectedStructureSignature": self.expected_structure_signature,
            "foundStructureSignature": self.found_structure_signature,
            "sourceLine": self.source_line,
            "preprocessedSource": self.preprocessed_source,
            "candidateLine": self.candidate_line,
            "autofix": self.autofix.to_dict(),
            "retry": self.retry.to_dict(),
            "uiHint": self.ui_hint.to_dict(),
        }
