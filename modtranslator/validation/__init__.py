"""
Validation module - Placeholder validation and post-restore checks

This module provides:
- placeholders: PlaceholderSet, Segment, FileFormat
- validator: PlaceholderValidator with bounded autofix
- format_checks: Structural checks per file format
- checks: Translation quality gates
- metrics: Validation metrics and JSONL failure log
"""

from modtranslator.validation.placeholders import FileFormat, PlaceholderSet, Segment
from modtranslator.validation.report import (
    AutofixResult,
    RecoveryStep,
    RetryInfo,
    UiHint,
    ValidationErrorCode,
    ValidationFailureReport,
    ValidationMode,
    ValidationSuccess,
    ValidatorConfig,
)
from modtranslator.validation.validator import PlaceholderValidator, preserve_percent_binding
from modtranslator.validation.format_checks import FormatValidationError, check_format
from modtranslator.validation.metrics import ValidationLogger, ValidationMetrics, ValidationOutcome
