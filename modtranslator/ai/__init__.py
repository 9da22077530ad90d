"""
AI Module

This module provides AI translation services and related utilities:
- retry: Retry policy and backoff decisions
- hints: Server-supplied retry hints
- providers: Per-provider API calls
- service: Segment translation orchestration
"""

from modtranslator.ai.exceptions import (
    JobCancelledError,
    ProviderError,
    RetryFailedError,
    TranslationError,
)
from modtranslator.ai.retry import (
    FatalFailure,
    HttpFailure,
    NetworkFailure,
    RetryDecision,
    RetryPolicy,
    evaluate_retry,
    parse_retry_after,
)
from modtranslator.ai.jobs import JobContext
from modtranslator.ai.service import AIService, SegmentOutcome, validate_ai_config

__all__ = [
    'TranslationError', 'ProviderError', 'RetryFailedError', 'JobCancelledError',
    'RetryPolicy', 'RetryDecision', 'HttpFailure', 'NetworkFailure', 'FatalFailure',
    'evaluate_retry', 'parse_retry_after', 'JobContext',
    'AIService', 'SegmentOutcome', 'validate_ai_config',
]
