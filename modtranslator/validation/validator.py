"""
Placeholder Validator Module

Checks a translated candidate against the placeholder inventory of its source
segment and, when enabled, repairs it with a fixed sequence of recovery steps:

1. Reinject missing protected markers at their relative source position
2. Balance open/close marker pairs
3. Remove excess markers
4. Reinject missing {n} format tokens
5. Re-bind {n}% percent signs

Failures are returned as ValidationFailureReport values, never raised.
"""

import re
import unicodedata
from collections import Counter
from typing import Callable, List, Optional, Sequence, Tuple, Union

from modtranslator.logger import get_logger
from modtranslator.protection.patterns import (
    PAIRABLE_CLASSES,
    PROTECTED_MARKER_RE,
    TokenClass,
    format_marker,
)
from modtranslator.validation import relaxed
from modtranslator.validation.format_checks import FormatValidationError, check_format, validate_icu
from modtranslator.validation.placeholders import FileFormat, PlaceholderSet, Segment
from modtranslator.validation.report import (
    AutofixResult,
    RecoveryStep,
    RetryInfo,
    ValidationErrorCode,
    ValidationFailureReport,
    ValidationMode,
    ValidationSuccess,
    ValidatorConfig,
)

logger = get_logger(__name__)

ValidationResult = Union[ValidationSuccess, ValidationFailureReport]

PERCENT_BOUND_RE = re.compile(r"(\{\d+\}|⟦MT:[A-Z_]+:\d+⟧)%")
DETACHED_PERCENT_RE = re.compile(r"[ \t\u00a0\u202f]+%")

FORMAT_ERROR_CODES = {
    FileFormat.JSON: ValidationErrorCode.PARSER_ERROR,
    FileFormat.XML: ValidationErrorCode.XML_MALFORMED_AFTER_RESTORE,
    FileFormat.YAML: ValidationErrorCode.PARSER_ERROR,
    FileFormat.PO: ValidationErrorCode.PARSER_ERROR,
    FileFormat.INI: ValidationErrorCode.PARSER_ERROR,
    FileFormat.CFG: ValidationErrorCode.PARSER_ERROR,
    FileFormat.CSV: ValidationErrorCode.PARSER_ERROR,
    FileFormat.MARKDOWN: ValidationErrorCode.MARKDOWN_UNBALANCED_FENCE,
    FileFormat.PROPERTIES: ValidationErrorCode.PROPERTIES_ESCAPE_INVALID,
    FileFormat.LUA: ValidationErrorCode.LUA_STRING_UNBALANCED,
}


def preserve_percent_binding(source: str, candidate: str) -> Optional[str]:
    """
    Re-attach ``%`` to placeholders that are percent-bound in the source.

    ``{0} %`` is tightened to ``{0}%`` and a missing sign is inserted right after
    the placeholder. A sign moved in front of the placeholder (``%{0}``) is
    moved back behind it.

    Returns:
        The corrected candidate, or None when nothing changed.
    """
    result = candidate
    modified = False
    for match in PERCENT_BOUND_RE.finditer(source):
        placeholder = match.group(1)
        if placeholder + "%" in result:
            continue
        pos = result.find(placeholder)
        if pos == -1:
            continue
        if pos > 0 and result[pos - 1] == "%":
            result = result[:pos - 1] + result[pos:]
            pos -= 1
        end = pos + len(placeholder)
        detached = DETACHED_PERCENT_RE.match(result, end)
        tail = result[detached.end():] if detached else result[end:]
        result = result[:end] + "%" + tail
        modified = True
    return result if modified else None


def _snap_to_boundary(text: str, pos: int) -> int:
    """Move an insertion offset out of markers and off combining characters."""
    pos = max(0, min(pos, len(text)))
    for match in PROTECTED_MARKER_RE.finditer(text):
        if match.start() < pos < match.end():
            return match.end()
        if match.start() >= pos:
            break
    while 0 < pos < len(text) and unicodedata.combining(text[pos]):
        pos -= 1
    return pos


def _nth_index(text: str, token: str, n: int) -> int:
    pos = -1
    for _ in range(n + 1):
        pos = text.find(token, pos + 1)
        if pos == -1:
            return -1
    return pos


def reinject_tokens(source: str, candidate: str, missing: List[str], present: Counter) -> str:
    """
    Insert each missing token at the offset proportional to its source position.

    This is an approximate repair: the proportional offset is computed over code
    points, which need not match the visual position in the translated sentence.
    """
    result = candidate
    placed = Counter(present)
    source_length = max(len(source), 1)
    for token in missing:
        pos = _nth_index(source, token, placed[token])
        if pos == -1:
            pos = source.find(token)
        placed[token] += 1
        if pos == -1:
            continue
        relative = pos / source_length
        insert_at = _snap_to_boundary(result, int(len(result) * relative))
        result = result[:insert_at] + token + result[insert_at:]
    return result


def _marker_code(marker: str) -> str:
    return PROTECTED_MARKER_RE.match(marker).group(1)


def _pair_counts(markers: List[str]) -> Counter:
    return Counter(_marker_code(marker) for marker in markers)


PAIRABLE_CODES = frozenset(tc.code for tc in PAIRABLE_CLASSES)


def _unbalanced_pair_classes(expected: PlaceholderSet, found: PlaceholderSet) -> List[str]:
    """Pairable class codes whose count parity differs from the source."""
    expected_counts = _pair_counts(expected.protected)
    found_counts = _pair_counts(found.protected)
    return sorted(
        code for code in PAIRABLE_CODES
        if found_counts[code] % 2 != expected_counts[code] % 2
    )


def balance_pairs(text: str, expected: PlaceholderSet) -> Optional[str]:
    """
    Append a counterpart marker for each pairable class with an odd count in
    ``text`` whose source count is even.

    The counterpart is the source marker of that class with the fewest copies in
    ``text`` (the later one on ties, so a closer follows its opener). A class the
    source does not have gets a synthetic marker with the next free index.
    """
    found = PlaceholderSet.from_text(text)
    found_counts = _pair_counts(found.protected)
    expected_counts = _pair_counts(expected.protected)
    unbalanced = sorted(
        code for code in PAIRABLE_CODES
        if found_counts[code] % 2 == 1 and expected_counts[code] % 2 == 0
    )
    if not unbalanced:
        return None
    for code in unbalanced:
        source_markers = [m for m in expected.protected if _marker_code(m) == code]
        if source_markers:
            counterpart = min(reversed(source_markers), key=lambda m: found.protected_counts[m])
        else:
            indices = [
                int(m.group(2)) for m in PROTECTED_MARKER_RE.finditer(text) if m.group(1) == code
            ]
            counterpart = format_marker(TokenClass.from_code(code), max(indices) + 1)
        text += counterpart
    return text


def _passes(check: Callable[[str], None], text: str) -> bool:
    try:
        check(text)
    except FormatValidationError:
        return False
    return True


def remove_excess(text: str, excess: Sequence[str]) -> str:
    for token in excess:
        pos = text.find(token)
        if pos != -1:
            text = text[:pos] + text[pos + len(token):]
    return text


class PlaceholderValidator:
    """Validates translated candidates against a Segment's placeholder inventory."""

    def __init__(self, config: Optional[ValidatorConfig] = None):
        self.config = config or ValidatorConfig()

    @property
    def is_relaxed(self) -> bool:
        return self.config.validation_mode in (ValidationMode.RELAXED_XML, ValidationMode.RELAXED_XML_PLUS)

    def _normalize(self, text: str) -> str:
        return relaxed.normalize_for_comparison(text) if self.is_relaxed else text

    def _extract(self, text: str) -> PlaceholderSet:
        return PlaceholderSet.from_text(self._normalize(text))

    def _expected(self, segment: Segment) -> PlaceholderSet:
        if self.is_relaxed:
            return self._extract(segment.source_preprocessed)
        return segment.expected

    def validate(self, segment: Segment, candidate: str) -> ValidationResult:
        """
        Validate ``candidate`` against ``segment``.

        Args:
            segment: Source segment carrying the expected placeholder inventory
            candidate: Translated (still masked) text

        Returns:
            ValidationSuccess with the possibly repaired value, or a
            ValidationFailureReport describing what is still wrong.
        """
        steps: List[RecoveryStep] = []
        recovered_with_warning = False
        expected_signature: List[str] = []
        found_signature: List[str] = []
        working = candidate

        if self.config.validation_mode == ValidationMode.RELAXED_XML_PLUS:
            expected_signature = relaxed.structure_signature(segment.source_preprocessed)
            found_signature = relaxed.structure_signature(working)
            if found_signature != expected_signature:
                rebuilt = None
                if self.config.enable_autofix:
                    rebuilt = relaxed.restore_structure_tokens(segment.source_preprocessed, working)
                if rebuilt is None:
                    return self._failure(
                        segment, candidate, self._extract(candidate), self._expected(segment),
                        AutofixResult(), expected_signature, found_signature,
                    )
                working = rebuilt
                found_signature = relaxed.structure_signature(rebuilt)
                steps.append(RecoveryStep.RESTORE_STRUCTURE_TOKENS)
                recovered_with_warning = True

        expected = self._expected(segment)
        found = self._extract(working)

        if expected.matches_multiset(found):
            if not expected.matches_order(found):
                logger.warning(f"Token order mismatch in {segment.file}:{segment.line} ({segment.key})")
            if self.config.preserve_percent_binding:
                corrected = preserve_percent_binding(segment.source_preprocessed, working)
                if corrected is not None:
                    working = corrected
                    steps.append(RecoveryStep.PRESERVE_PERCENT_BINDING)
            return ValidationSuccess(
                value=working,
                autofix=AutofixResult.with_steps(steps),
                recovered_with_warning=recovered_with_warning,
            )

        remaining = found
        if self.config.enable_autofix:
            repaired, recovery_steps = self._auto_recover(segment, expected, working, found)
            if recovery_steps:
                steps.extend(recovery_steps)
                remaining = self._extract(repaired)
                if expected.matches_multiset(remaining):
                    logger.warning(
                        f"RECOVERED_WITH_WARN: Missing placeholders were re-inserted. "
                        f"key={segment.key}, line={segment.line}"
                    )
                    return ValidationSuccess(
                        value=repaired,
                        autofix=AutofixResult.with_steps(steps),
                        recovered_with_warning=True,
                    )

        report = self._failure(
            segment, working, found, expected,
            AutofixResult.with_steps(steps), expected_signature, found_signature,
        )
        report.code = self._classify(expected, found, remaining)
        logger.warning(f"Placeholder validation failed for {segment.file}:{segment.line} ({segment.key}): {report.code.value}")
        return report

    def _auto_recover(
        self,
        segment: Segment,
        expected: PlaceholderSet,
        candidate: str,
        found: PlaceholderSet,
    ) -> Tuple[str, List[RecoveryStep]]:
        source = self._normalize(segment.source_preprocessed)
        result = candidate
        steps = []

        missing_protected = expected.missing_protected(found)
        if missing_protected:
            result = reinject_tokens(source, result, missing_protected, found.protected_counts)
            steps.append(RecoveryStep.REINJECT_MISSING_PROTECTED)

        if self.config.strict_pairing:
            balanced = balance_pairs(result, expected)
            if balanced is not None:
                result = balanced
                steps.append(RecoveryStep.PAIR_BALANCE_CHECK)

        excess = expected.excess_protected(self._extract(result))
        if excess:
            result = remove_excess(result, excess)
            steps.append(RecoveryStep.REMOVE_EXCESS_TOKENS)

        missing_format = expected.missing_format(found)
        if missing_format:
            result = reinject_tokens(source, result, missing_format, found.format_counts)
            steps.append(RecoveryStep.CORRECT_FORMAT_TOKENS)

        if self.config.preserve_percent_binding:
            corrected = preserve_percent_binding(segment.source_preprocessed, result)
            if corrected is not None:
                result = corrected
                steps.append(RecoveryStep.PRESERVE_PERCENT_BINDING)

        return result, steps

    def _classify(
        self,
        expected: PlaceholderSet,
        found: PlaceholderSet,
        remaining: PlaceholderSet,
    ) -> ValidationErrorCode:
        if _unbalanced_pair_classes(expected, found) and (
            not self.config.strict_pairing or _unbalanced_pair_classes(expected, remaining)
        ):
            return ValidationErrorCode.PAIR_UNBALANCED
        if expected.format_counts != remaining.format_counts:
            return ValidationErrorCode.FORMAT_TOKEN_MISSING
        icu = TokenClass.ICU.code
        expected_icu = [m for m in expected.protected if f":{icu}:" in m]
        remaining_icu = [m for m in remaining.protected if f":{icu}:" in m]
        if Counter(expected_icu) != Counter(remaining_icu):
            return ValidationErrorCode.ICU_UNBALANCED
        return ValidationErrorCode.PLACEHOLDER_MISMATCH

    def _failure(
        self,
        segment: Segment,
        candidate: str,
        found: PlaceholderSet,
        expected: PlaceholderSet,
        autofix: AutofixResult,
        expected_signature: List[str],
        found_signature: List[str],
    ) -> ValidationFailureReport:
        return ValidationFailureReport(
            code=ValidationErrorCode.PLACEHOLDER_MISMATCH,
            file=segment.file,
            line=segment.line,
            key=segment.key,
            expected_protected=list(expected.protected),
            found_protected=list(found.protected),
            expected_format=list(expected.format),
            found_format=list(found.format),
            source_line=segment.source_raw,
            preprocessed_source=segment.source_preprocessed,
            candidate_line=candidate,
            expected_structure_signature=expected_signature,
            found_structure_signature=found_signature,
            autofix=autofix,
            retry=RetryInfo(),
        )

    def validate_format_after_restore(
        self, restored: str, file_format: FileFormat
    ) -> Optional[ValidationErrorCode]:
        """Structural check of a restored string; returns the error code or None."""
        try:
            check_format(restored, file_format)
        except FormatValidationError as e:
            logger.warning(f"Format check failed after restore ({file_format.value}): {e}")
            return FORMAT_ERROR_CODES.get(file_format, ValidationErrorCode.PARSER_ERROR)
        return None

    def validate_segment_after_restore(self, segment: Segment, restored: str) -> Optional[ValidationErrorCode]:
        """
        Structural checks of one restored value, judged against its source.

        A segment is a single value, not a whole document, so a format check only
        counts when the source value itself passes it. Segments holding ICU
        messages also get a brace-balance check.
        """
        fmt = segment.format
        if fmt is not None and _passes(lambda text: check_format(text, fmt), segment.source_raw):
            code = self.validate_format_after_restore(restored, fmt)
            if code is not None:
                return code

        if TokenClass.ICU.code in segment.token_types and _passes(validate_icu, segment.source_raw):
            try:
                validate_icu(restored)
            except FormatValidationError as e:
                logger.warning(f"ICU check failed after restore for {segment.file}:{segment.line}: {e}")
                return ValidationErrorCode.ICU_UNBALANCED
        return None

    def mark_retry(self, report: ValidationFailureReport, success: bool) -> ValidationFailureReport:
        """Record a re-translation attempt on a report; failed retries become RETRY_FAILED."""
        report.retry = RetryInfo(attempted=True, success=success)
        if not success:
            report.code = ValidationErrorCode.RETRY_FAILED
        return report
