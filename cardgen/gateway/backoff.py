"""Backoff Policy — delays, error classification and the retry/rotate table.

Backoff strategy:
  delay = min(base * 2^(attempt-1) + jitter, max_delay)
  jitter = random(0, jitter_window)

Classification is a plain status / substring match. Provider error
payloads are not structured reliably enough for anything stricter.
"""

from __future__ import annotations

import random

import httpx

from cardgen.core.exceptions import FatalProviderOutput, ProviderError
from cardgen.gateway.types import ErrorClass, RetryConfig, RetryDecision

_QUOTA_STATUS = frozenset({429})
_RETRYABLE_STATUS = frozenset({500, 502, 503, 504})

_QUOTA_MARKERS = ("429", "quota", "rate limit", "rate-limit", "resource_exhausted", "too many requests")
_RETRYABLE_MARKERS = ("network", "timeout", "timed out", "fetch", "500", "502", "503", "504", "unavailable")


class BackoffPolicy:
    """Capped exponential backoff plus error classification.

    Usage:
        policy = BackoffPolicy(RetryConfig())

        classification = policy.classify(exc)
        if policy.decide(classification, attempt) is RetryDecision.RETRY_SAME:
            await asyncio.sleep(policy.delay(attempt) / 1000)
    """

    def __init__(self, config: RetryConfig | None = None, rng: random.Random | None = None):
        self.config = config or RetryConfig()
        self._rng = rng or random.Random()

    def delay(self, attempt: int) -> int:
        """Delay in milliseconds before retrying after ``attempt`` (1-based)."""
        exponential = self.config.base_delay_ms * (2 ** max(attempt - 1, 0))
        jitter = self._rng.uniform(0, self.config.jitter_ms)
        return int(min(exponential + jitter, self.config.max_delay_ms))

    @staticmethod
    def classify(error: BaseException) -> ErrorClass:
        """Map an exception from a single provider call to an ErrorClass."""
        if isinstance(error, FatalProviderOutput):
            return ErrorClass.FATAL

        status = getattr(error, "status_code", 0) if isinstance(error, ProviderError) else 0
        if status in _QUOTA_STATUS:
            return ErrorClass.QUOTA
        if status in _RETRYABLE_STATUS:
            return ErrorClass.RETRYABLE

        if isinstance(error, (httpx.TimeoutException, httpx.TransportError)):
            return ErrorClass.RETRYABLE

        message = str(error).lower()
        if any(marker in message for marker in _QUOTA_MARKERS):
            return ErrorClass.QUOTA
        if any(marker in message for marker in _RETRYABLE_MARKERS):
            return ErrorClass.RETRYABLE
        return ErrorClass.FATAL

    def decide(self, classification: ErrorClass, attempt: int) -> RetryDecision:
        """Priority-ordered decision table: first matching row wins."""
        table: tuple[tuple[bool, RetryDecision], ...] = (
            (classification is ErrorClass.QUOTA, RetryDecision.ROTATE),
            (classification is ErrorClass.FATAL, RetryDecision.ROTATE),
            (attempt >= self.config.max_retries, RetryDecision.ROTATE),
            (classification is ErrorClass.RETRYABLE, RetryDecision.RETRY_SAME),
        )
        for matched, decision in table:
            if matched:
                return decision
        return RetryDecision.ROTATE
