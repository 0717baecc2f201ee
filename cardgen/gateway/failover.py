"""Failover Orchestrator — retries on one credential, rotation across the pool.

For each credential handed out by the pool:
  1. Invoke the adapter (and the optional parse hook on its output)
  2. Classify any failure via the BackoffPolicy
  3. RETRY_SAME: sleep the backoff delay and call again on the same key
  4. ROTATE: mark the key failed and move to the next one
When the pool is exhausted an ExhaustedError carries a user-facing message
chosen from the last failure class.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from cardgen.core.exceptions import ExhaustedError, FatalProviderOutput, ProviderError
from cardgen.core.metrics import CREDENTIAL_ROTATIONS, PROVIDER_ATTEMPTS
from cardgen.gateway.backoff import BackoffPolicy
from cardgen.gateway.credential_pool import CredentialPool, mask_credential
from cardgen.gateway.types import Attachment, ErrorClass, RetryAttempt, RetryDecision
from cardgen.gateway.vendor_adapters import BaseVendorAdapter

logger = logging.getLogger(__name__)

BUSY_MESSAGE = "AI service is busy, please try again later"
RATE_LIMITED_MESSAGE = "Rate limit exceeded, please try again later"


class FailoverOrchestrator:
    """Composes CredentialPool + BackoffPolicy + a vendor adapter.

    Usage:
        orchestrator = FailoverOrchestrator(adapter_from_settings())
        raw = await orchestrator.run(pool, prompt, schema)
    """

    def __init__(
        self,
        adapter: BaseVendorAdapter,
        policy: BackoffPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.adapter = adapter
        self.policy = policy or BackoffPolicy()
        self._sleep = sleep

    async def run(
        self,
        pool: CredentialPool,
        prompt: str,
        schema: dict,
        attachment: Attachment | None = None,
        parse: Callable[[str], Any] | None = None,
    ) -> Any:
        """Run one completion to success or pool exhaustion.

        Returns the raw text, or ``parse(raw_text)`` when a parse hook is
        given. A FatalProviderOutput from the hook counts as a fatal failure
        of that credential.

        Raises:
            ExhaustedError: every credential failed.
        """
        last_error: Exception | None = None
        last_class: ErrorClass | None = None
        total_attempts = 0

        slot = pool.next()
        while slot is not None:
            masked = mask_credential(slot.credential)
            attempt = 0
            while True:
                attempt += 1
                total_attempts += 1
                try:
                    raw = await self.adapter.invoke(slot.credential, prompt, schema, attachment)
                    result = parse(raw) if parse is not None else raw
                except (ProviderError, FatalProviderOutput) as e:
                    last_error = e
                    record = RetryAttempt(attempt_number=attempt, classification=self.policy.classify(e))
                    last_class = record.classification
                    PROVIDER_ATTEMPTS.labels(outcome=record.classification.value).inc()

                    if self.policy.decide(record.classification, attempt) is RetryDecision.RETRY_SAME:
                        record.delay_ms = self.policy.delay(attempt)
                        logger.info(
                            "Attempt %d/%d on credential %s failed (%s: %s), retrying in %dms",
                            record.attempt_number,
                            self.policy.config.max_retries,
                            masked,
                            record.classification.value,
                            e,
                            record.delay_ms,
                            extra={"credential": masked},
                        )
                        await self._sleep(record.delay_ms / 1000)
                        continue

                    logger.warning(
                        "Rotating away from credential %s after attempt %d (%s: %s)",
                        masked,
                        record.attempt_number,
                        record.classification.value,
                        e,
                        extra={"credential": masked},
                    )
                    pool.mark_failed(slot)
                    CREDENTIAL_ROTATIONS.labels(reason=record.classification.value).inc()
                    break

                PROVIDER_ATTEMPTS.labels(outcome="success").inc()
                if total_attempts > 1:
                    logger.info(
                        "Completion succeeded on credential %s after %d total attempts",
                        masked,
                        total_attempts,
                        extra={"credential": masked},
                    )
                return result

            slot = pool.next()

        raise self._exhausted(last_class, last_error, total_attempts, len(pool))

    @staticmethod
    def _exhausted(
        cause: ErrorClass | None,
        error: Exception | None,
        attempts: int,
        pool_size: int,
    ) -> ExhaustedError:
        if cause is ErrorClass.RETRYABLE:
            message = BUSY_MESSAGE
        elif cause is ErrorClass.QUOTA:
            message = RATE_LIMITED_MESSAGE
        else:
            message = str(error) if error is not None else "All AI provider credentials failed"

        logger.error(
            "Credential pool exhausted: %d credentials, %d attempts, last cause %s: %s",
            pool_size,
            attempts,
            cause.value if cause else "none",
            error,
        )
        return ExhaustedError(message, cause=cause, attempts=attempts)
