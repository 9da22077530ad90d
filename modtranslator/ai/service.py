"""
AI Translation Service Module

This module provides the main AI service for translation:
- AIService class for coordinating segment translations
- Configuration validation
- Retry loop driven by the retry policy and server hints

A segment goes through protect -> provider call (with retries) -> placeholder
validation (autofix, optional re-translation) -> restore -> quality gates ->
format check. One segment failing never raises out of translate_segment;
callers get a SegmentOutcome describing what happened.

For provider-specific API implementations, see ai/providers.py
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import httpx

from modtranslator.config import (
    BUILTIN_PROVIDERS,
    get_pattern_table,
    get_retry_policy,
    get_validator_config,
    load_config,
)
from modtranslator.logger import get_logger
from modtranslator.ai.exceptions import (
    JobCancelledError,
    ProviderError,
    RetryFailedError,
    TranslationError,
)
from modtranslator.ai.guards import TranslationConstraints, build_system_prompt, build_user_prompt
from modtranslator.ai.hints import describe_retry_hint
from modtranslator.ai.jobs import JobContext
from modtranslator.ai.providers import PROVIDER_CALLS, ProviderId, get_httpx_timeout
from modtranslator.ai.retry import FatalFailure, evaluate_retry
from modtranslator.protection.protector import Protector, ProtectorError
from modtranslator.validation.checks import validate_all
from modtranslator.validation.metrics import ValidationLogger, ValidationOutcome
from modtranslator.validation.placeholders import FileFormat, Segment
from modtranslator.validation.report import (
    ValidationErrorCode,
    ValidationFailureReport,
    ValidationSuccess,
)
from modtranslator.validation.validator import PlaceholderValidator

logger = get_logger(__name__)

RETRY_REINFORCEMENT = (
    "Your previous answer dropped or altered protected tokens. "
    "Copy every ⟦MT:...⟧ token exactly, the same number of times."
)


def validate_ai_config(config: Optional[Dict[str, Any]] = None, provider_override: Optional[str] = None) -> None:
    """
    Validate that AI provider configuration is properly set up.

    Args:
        config: Configuration to check (loaded from disk when omitted)
        provider_override: Optional provider to validate instead of the default.

    Raises:
        TranslationError: If configuration is invalid or missing, with code and details.
    """
    config = config if config is not None else load_config()
    provider = provider_override if provider_override else config.get('ai_provider', 'gemini')

    if provider not in BUILTIN_PROVIDERS:
        raise TranslationError(
            f"Unsupported AI provider: {provider}",
            code="ai_config_missing",
            details={"provider": provider}
        )

    provider_config = config.get(provider) or {}
    display = ProviderId(provider).label

    api_key = provider_config.get('api_key', '')
    if not api_key or api_key == "YOUR_API_KEY_HERE":
        raise TranslationError(
            f"{display} API key not configured. Please set it in Settings.",
            code="ai_config_missing",
            details={"provider": provider, "missing_field": "api_key"}
        )

    models = provider_config.get('models', [])
    valid_models = [m for m in models if m and isinstance(m, str)] if isinstance(models, list) else []
    if not valid_models and not provider_config.get('model'):
        raise TranslationError(
            f"{display} model not configured",
            code="ai_config_missing",
            details={"provider": provider, "missing_field": "models"}
        )


class SegmentStatus(Enum):
    TRANSLATED = "translated"
    RECOVERED = "recovered"
    FAILED = "failed"


@dataclass
class RetryStatus:
    """One scheduled retry, as shown to the user while it is pending."""
    attempt: int
    max_attempts: int
    delay_ms: int
    reason: str
    used_hint: bool

    def to_dict(self):
        return {
            "attempt": self.attempt,
            "maxAttempts": self.max_attempts,
            "delayMs": self.delay_ms,
            "reason": self.reason,
            "usedHint": self.used_hint,
        }


@dataclass
class SegmentOutcome:
    status: SegmentStatus
    source: str
    text: str
    report: Optional[ValidationFailureReport] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    retries: List[RetryStatus] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status != SegmentStatus.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "source": self.source,
            "text": self.text,
            "report": self.report.to_dict() if self.report else None,
            "error": self.error,
            "errorCode": self.error_code,
            "retries": [retry.to_dict() for retry in self.retries],
        }


class AIService:
    """AI service for translation."""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        provider_override: Optional[str] = None,
        model_override: Optional[str] = None,
        validation_logger: Optional[ValidationLogger] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.config = config if config is not None else load_config()
        self.provider = ProviderId.parse(provider_override or self.config.get('ai_provider', 'gemini'))
        self.model_override = model_override
        self.translation_config = self.config.get('translation', {})
        self.retry_policy = get_retry_policy(self.config)
        self.validator_config = get_validator_config(self.config)
        self.validator = PlaceholderValidator(self.validator_config)
        self.protector = Protector(get_pattern_table(self.config))
        self.constraints = TranslationConstraints.for_profile(self.translation_config.get('profile'))
        self.validation_logger = validation_logger or ValidationLogger()
        self._transport = transport
        logger.info(f"Initialized AI service with provider: {self.provider.value}, model override: {model_override}")

    def _get_model(self, provider_config: Dict[str, Any], default_model: str = "") -> str:
        """
        Get the model to use for translation.

        Priority:
        1. model_override (if set)
        2. First model from 'models' array
        3. 'model' field (legacy)
        4. default_model
        """
        if self.model_override:
            return self.model_override

        models = provider_config.get('models', [])
        if models and isinstance(models, list) and models[0]:
            return models[0]

        return provider_config.get('model', default_model)

    def http_client(self, provider: ProviderId) -> httpx.Client:
        timeout = self.config.get(provider.value, {}).get('timeout', 120)
        return httpx.Client(timeout=get_httpx_timeout(timeout), transport=self._transport)

    def call_provider(self, system_prompt: str, user_prompt: str) -> str:
        return PROVIDER_CALLS[self.provider](self, system_prompt, user_prompt)

    def translate_with_retry(
        self,
        system_prompt: str,
        user_prompt: str,
        job: Optional[JobContext] = None,
        on_retry: Optional[Callable[[RetryStatus], None]] = None,
    ) -> str:
        """
        Call the provider, retrying per the retry policy.

        Raises:
            ProviderError: fatal failure on the first attempt
            RetryFailedError: retries exhausted or a later attempt failed fatally
            JobCancelledError: the job was cancelled, including during a backoff wait
        """
        job = job or JobContext()
        attempts = 0
        while True:
            job.raise_if_cancelled()
            try:
                return self.call_provider(system_prompt, user_prompt)
            except ProviderError as e:
                decision = evaluate_retry(e.retry_error, self.retry_policy, attempts)
                if not decision.should_retry:
                    if attempts == 0 and isinstance(e.retry_error, FatalFailure):
                        logger.error(f"  Non-recoverable error: {e}")
                        raise
                    logger.error(f"  Giving up after {attempts + 1} attempts: {e}")
                    raise RetryFailedError(str(e), attempts=attempts + 1, last_error=e) from e

                if decision.used_hint and e.retry_hint is not None:
                    reason = describe_retry_hint(e.retry_hint)
                else:
                    reason = f"Automatic backoff (attempt {attempts + 1})"
                status = RetryStatus(
                    attempt=attempts + 1,
                    max_attempts=self.retry_policy.max_retries,
                    delay_ms=decision.delay_ms,
                    reason=reason,
                    used_hint=decision.used_hint,
                )
                if on_retry:
                    on_retry(status)
                logger.warning(f"  Attempt {attempts + 1} failed: {e}. Waiting {decision.delay_ms}ms ({reason})...")

                if not job.wait(decision.delay_ms):
                    raise JobCancelledError(f"Job {job.job_id} cancelled during backoff")
                attempts += 1

    def _prompts(self, masked: str, markers: List[str], context: Optional[str]):
        system_prompt = build_system_prompt(
            self.translation_config.get('source_language', 'English'),
            self.translation_config.get('target_language', 'Korean'),
            self.constraints,
            markers,
        )
        return system_prompt, build_user_prompt(masked, context)

    def translate_segment(
        self,
        text: str,
        file: str = "",
        line: int = 0,
        key: str = "",
        file_format: Optional[FileFormat] = None,
        context: Optional[str] = None,
        job: Optional[JobContext] = None,
    ) -> SegmentOutcome:
        """
        Translate one segment end to end.

        On failure the original text is returned in the outcome (graceful
        degradation) together with the error or validation report.

        Raises:
            JobCancelledError: only when ``job`` is cancelled
        """
        job = job or JobContext()
        fragment = self.protector.protect(text)
        segment = Segment.from_fragment(fragment, file=file, line=line, key=key, format=file_format)
        system_prompt, user_prompt = self._prompts(fragment.masked, fragment.markers, context)
        retries: List[RetryStatus] = []

        def failed(message: str, code: Optional[str], report: Optional[ValidationFailureReport] = None):
            return SegmentOutcome(
                status=SegmentStatus.FAILED, source=text, text=text,
                report=report, error=message, error_code=code, retries=retries,
            )

        try:
            candidate = self.translate_with_retry(system_prompt, user_prompt, job, retries.append)
        except JobCancelledError:
            raise
        except TranslationError as e:
            logger.error(f"Translation failed for {file}:{line} ({key}): {e}")
            return failed(str(e), e.code)

        result = self.validator.validate(segment, candidate)

        retry_count = 0
        while (
            isinstance(result, ValidationFailureReport)
            and self.validator_config.retry_on_fail
            and retry_count < self.validator_config.retry_limit
        ):
            retry_count += 1
            logger.info(f"Re-translating {file}:{line} ({key}) after {result.code.value}")
            try:
                candidate = self.translate_with_retry(
                    f"{system_prompt}\n\n{RETRY_REINFORCEMENT}", user_prompt, job, retries.append
                )
            except JobCancelledError:
                raise
            except TranslationError as e:
                logger.error(f"Re-translation failed for {file}:{line} ({key}): {e}")
                result = self.validator.mark_retry(result, success=False)
                break
            retried = self.validator.validate(segment, candidate)
            if isinstance(retried, ValidationSuccess):
                self.validation_logger.log_retry(True)
                result = retried
            else:
                result = self.validator.mark_retry(retried, success=False)

        if isinstance(result, ValidationFailureReport):
            self.validation_logger.log_failure(result)
            return failed(f"Placeholder validation failed: {result.code.value}", result.code.value, result)

        try:
            restored = fragment.restore(result.value)
        except ProtectorError as e:
            logger.error(f"Restore failed for {file}:{line} ({key}): {e}")
            return failed(str(e), e.code)

        quality = validate_all(fragment, result.value)
        for warning in quality.warnings:
            logger.warning(f"Quality check {file}:{line} ({key}): {warning}")
        if not quality.passed:
            errors = ", ".join(error.value for error in quality.errors)
            return failed(f"Quality check failed: {errors}", quality.errors[0].value)

        format_error = self.validator.validate_segment_after_restore(segment, restored)
        if format_error is not None:
            return failed(f"Format check failed: {format_error.value}", format_error.value)

        outcome = ValidationOutcome.RECOVERED_WITH_WARN if result.recovered_with_warning else ValidationOutcome.CLEAN
        self.validation_logger.log_success(outcome, autofix_applied=result.autofix.applied)
        status = SegmentStatus.RECOVERED if result.recovered_with_warning else SegmentStatus.TRANSLATED
        return SegmentOutcome(status=status, source=text, text=restored, retries=retries)

    def translate_segments(
        self,
        texts: List[str],
        file: str = "",
        file_format: Optional[FileFormat] = None,
        context: Optional[str] = None,
        job: Optional[JobContext] = None,
    ) -> List[SegmentOutcome]:
        """Translate lines one by one; a failed line does not stop the rest."""
        job = job or JobContext()
        outcomes = []
        for index, text in enumerate(texts, start=1):
            outcomes.append(self.translate_segment(
                text, file=file, line=index, file_format=file_format, context=context, job=job,
            ))
        failures = sum(1 for outcome in outcomes if not outcome.ok)
        if failures:
            logger.warning(f"{failures}/{len(outcomes)} segments failed in {file or '<input>'}")
        else:
            logger.info(f"Successfully translated {len(outcomes)} segments")
        return outcomes
