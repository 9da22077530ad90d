"""
Validation Metrics Module

Counts validation outcomes and appends one JSON line per failure to an optional
log file. One ValidationLogger is created per application or job and passed to
whoever records outcomes.
"""

import json
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from modtranslator.logger import get_logger, LOG_DIR
from modtranslator.validation.report import ValidationFailureReport

logger = get_logger(__name__)


class ValidationOutcome(Enum):
    CLEAN = "CLEAN"
    RECOVERED_WITH_WARN = "RECOVERED_WITH_WARN"


def _rate(numerator: int, denominator: int) -> float:
    return numerator / denominator if denominator else 0.0


@dataclass
class ValidationMetrics:
    total_validations: int = 0
    total_failures: int = 0
    autofix_attempts: int = 0
    autofix_successes: int = 0
    retry_attempts: int = 0
    retry_successes: int = 0
    recovered_with_warn: int = 0
    by_error_code: Dict[str, int] = field(default_factory=dict)

    def record_validation(self, success: bool) -> None:
        self.total_validations += 1
        if not success:
            self.total_failures += 1

    def record_autofix(self, success: bool) -> None:
        self.autofix_attempts += 1
        if success:
            self.autofix_successes += 1

    def record_retry(self, success: bool) -> None:
        self.retry_attempts += 1
        if success:
            self.retry_successes += 1

    def record_error_code(self, code: str) -> None:
        self.by_error_code[code] = self.by_error_code.get(code, 0) + 1

    @property
    def failure_rate(self) -> float:
        return _rate(self.total_failures, self.total_validations)

    @property
    def autofix_success_rate(self) -> float:
        return _rate(self.autofix_successes, self.autofix_attempts)

    @property
    def retry_success_rate(self) -> float:
        return _rate(self.retry_successes, self.retry_attempts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalValidations": self.total_validations,
            "totalFailures": self.total_failures,
            "autofixAttempts": self.autofix_attempts,
            "autofixSuccesses": self.autofix_successes,
            "retryAttempts": self.retry_attempts,
            "retrySuccesses": self.retry_successes,
            "recoveredWithWarn": self.recovered_with_warn,
            "byErrorCode": dict(self.by_error_code),
            "failureRate": self.failure_rate,
            "autofixSuccessRate": self.autofix_success_rate,
            "retrySuccessRate": self.retry_success_rate,
        }


@dataclass
class ValidationLogEntry:
    timestamp: str
    code: str
    file: str
    line: int
    key: str
    autofix_applied: bool
    retry_attempted: bool
    retry_success: bool

    @classmethod
    def from_report(cls, report: ValidationFailureReport) -> "ValidationLogEntry":
        return cls(
            timestamp=datetime.now(timezone.utc).isoformat(),
            code=report.code.value,
            file=report.file,
            line=report.line,
            key=report.key,
            autofix_applied=report.autofix.applied,
            retry_attempted=report.retry.attempted,
            retry_success=bool(report.retry.success),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "code": self.code,
            "file": self.file,
            "line": self.line,
            "key": self.key,
            "autofixApplied": self.autofix_applied,
            "retryAttempted": self.retry_attempted,
            "retrySuccess": self.retry_success,
        }


def get_validation_log_path(base_dir: Optional[Path] = None) -> Path:
    """Return today's JSONL path, e.g. logs/validation-20250101.jsonl."""
    directory = Path(base_dir) if base_dir is not None else LOG_DIR
    directory.mkdir(parents=True, exist_ok=True)
    return directory / f"validation-{date.today().strftime('%Y%m%d')}.jsonl"


class ValidationLogger:
    """Thread-safe metrics plus an optional JSONL failure log."""

    def __init__(self, log_path: Optional[Path] = None):
        self._lock = threading.Lock()
        self._metrics = ValidationMetrics()
        self.log_path = Path(log_path) if log_path is not None else None

    def enable_file_logging(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            self.log_path = path
        logger.info(f"Validation failures will be logged to {path}")

    def log_failure(self, report: ValidationFailureReport) -> None:
        entry = ValidationLogEntry.from_report(report)
        with self._lock:
            if self.log_path is not None:
                try:
                    with open(self.log_path, "a", encoding="utf-8") as f:
                        f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")
                except OSError as e:
                    logger.error(f"Failed to write validation log {self.log_path}: {e}")

            self._metrics.record_validation(False)
            self._metrics.record_error_code(report.code.value)
            if report.autofix.applied:
                # Autofix ran but the segment still failed
                self._metrics.record_autofix(False)
            if report.retry.attempted:
                self._metrics.record_retry(bool(report.retry.success))

    def log_success(self, outcome: ValidationOutcome = ValidationOutcome.CLEAN, autofix_applied: bool = False) -> None:
        with self._lock:
            self._metrics.record_validation(True)
            if autofix_applied:
                self._metrics.record_autofix(True)
            if outcome == ValidationOutcome.RECOVERED_WITH_WARN:
                self._metrics.recovered_with_warn += 1

    def log_retry(self, success: bool) -> None:
        with self._lock:
            self._metrics.record_retry(success)

    def get_metrics(self) -> ValidationMetrics:
        with self._lock:
            snapshot = ValidationMetrics(**{
                name: getattr(self._metrics, name)
                for name in ("total_validations", "total_failures", "autofix_attempts",
                             "autofix_successes", "retry_attempts", "retry_successes",
                             "recovered_with_warn")
            })
            snapshot.by_error_code = dict(self._metrics.by_error_code)
        return snapshot

    def reset_metrics(self) -> None:
        with self._lock:
            self._metrics = ValidationMetrics()

    def export_metrics_json(self) -> str:
        return json.dumps(self.get_metrics().to_dict(), indent=2)
