"""Client-side retry with exponential backoff.

Layered on top of the gateway's own retries: the gateway's failures are
already classified and terminal, so the client only re-issues the whole
request a bounded number of times.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from cardgen.gateway.backoff import BackoffPolicy
from cardgen.gateway.types import ErrorClass, RetryConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRY_CONFIG = RetryConfig(max_retries=3, base_delay_ms=1000, max_delay_ms=10_000, jitter_ms=1000)


def is_retryable_error(error: BaseException) -> bool:
    """Network, timeout, rate-limit and 5xx failures are worth re-issuing.

    A GenerationFailed carries no status code, so only its message counts.
    """
    return BackoffPolicy.classify(error) in (ErrorClass.RETRYABLE, ErrorClass.QUOTA)


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    operation_name: str,
    config: RetryConfig = RETRY_CONFIG,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Await ``fn()`` up to ``config.max_retries`` times.

    Non-retryable errors and the error of the final attempt propagate.
    """
    policy = BackoffPolicy(config)

    for attempt in range(1, config.max_retries + 1):
        try:
            return await fn()
        except Exception as e:
            if not is_retryable_error(e) or attempt == config.max_retries:
                raise

            delay_ms = policy.delay(attempt)
            logger.warning(
                "%s failed (attempt %d/%d). Retrying in %dms: %s",
                operation_name,
                attempt,
                config.max_retries,
                delay_ms,
                e,
            )
            await sleep(delay_ms / 1000)

    raise RuntimeError(f"{operation_name}: retry loop ended without a result")
