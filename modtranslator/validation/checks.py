"""
Translation Quality Checks

Cheap gates applied to a translated candidate on top of placeholder validation:
- Empty results
- Suspiciously long results (over 4x the source)
- Pipe delimiter drift
- Stray backticks not present in the source
- Marker restoration (missing/unexpected tokens)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List

from modtranslator.protection.protector import ProtectedFragment, ProtectorError

OVERLONG_FACTOR = 4


class QualityError(Enum):
    PLACEHOLDER_MISMATCH = "PLACEHOLDER_MISMATCH"
    PIPE_DELIM_MISMATCH = "PIPE_DELIM_MISMATCH"
    EMPTY_VALUE = "EMPTY_VALUE"
    ILLEGAL_BACKTICK = "ILLEGAL_BACKTICK"


@dataclass
class QualityResult:
    passed: bool = True
    errors: List[QualityError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def fail(cls, error: QualityError, warning: str = None) -> "QualityResult":
        return cls(passed=False, errors=[error], warnings=[warning] if warning else [])

    def merge(self, other: "QualityResult") -> None:
        self.passed = self.passed and other.passed
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def to_dict(self):
        return {
            "passed": self.passed,
            "errors": [error.value for error in self.errors],
            "warnings": list(self.warnings),
        }


def validate_not_empty(translated: str) -> QualityResult:
    if not translated.strip():
        return QualityResult.fail(QualityError.EMPTY_VALUE)
    return QualityResult()


def validate_length(source: str, translated: str) -> QualityResult:
    """Warn (never fail) when the translation is over 4x the source length."""
    if source and len(translated) > len(source) * OVERLONG_FACTOR:
        return QualityResult(warnings=[
            f"Translation is {len(translated) // len(source)}x longer than source "
            f"({len(source)} -> {len(translated)})"
        ])
    return QualityResult()


def validate_pipe_count(source: str, translated: str) -> QualityResult:
    source_pipes = source.count("|")
    translated_pipes = translated.count("|")
    if source_pipes != translated_pipes:
        return QualityResult.fail(
            QualityError.PIPE_DELIM_MISMATCH,
            f"Pipe count mismatch: source has {source_pipes}, translation has {translated_pipes}",
        )
    return QualityResult()


def validate_no_backticks(translated: str, source: str = "") -> QualityResult:
    """Fail on backticks the source does not have; models wrap code in them."""
    if translated.count("`") > source.count("`"):
        return QualityResult.fail(QualityError.ILLEGAL_BACKTICK)
    return QualityResult()


def validate_tokens(fragment: ProtectedFragment, candidate: str) -> QualityResult:
    try:
        fragment.restore(candidate)
    except ProtectorError as e:
        label = "Missing" if e.code == "MISSING_TOKENS" else "Unexpected"
        return QualityResult.fail(
            QualityError.PLACEHOLDER_MISMATCH, f"{label} tokens: {', '.join(e.markers)}"
        )
    return QualityResult()


def validate_all(fragment: ProtectedFragment, candidate: str) -> QualityResult:
    """
    Run every quality gate on a masked candidate.

    An empty candidate short-circuits. The remaining checks compare the original
    source against the restored text when restoration succeeds.
    """
    empty = validate_not_empty(candidate)
    if not empty.passed:
        return empty

    result = QualityResult()
    result.merge(validate_tokens(fragment, candidate))

    try:
        restored = fragment.restore(candidate)
    except ProtectorError:
        restored = candidate

    result.merge(validate_pipe_count(fragment.original, restored))
    result.merge(validate_no_backticks(restored, fragment.original))
    result.merge(validate_length(fragment.original, restored))
    return result
