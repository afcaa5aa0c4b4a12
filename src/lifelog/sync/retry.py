"""Bounded exponential backoff for transient transport failures.

Only ``TransientTransportError`` is retried.  The delay before retry *n*
(0-based) is ``min(max_backoff, initial_backoff * multiplier ** n)``; a
server-supplied ``Retry-After`` replaces it, still capped at the maximum.
Non-idempotent writes are not retried once the request may have been
delivered.  When retries run out the failure surfaces as ``DataError`` so the
orchestrator records it against the current item and moves on.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from src.lifelog.config_loader import RetryConfig
from src.lifelog.errors import DataError, TransientTransportError

logger = logging.getLogger("lifelog.sync.retry")

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


def retry_delay(retry: RetryConfig, attempt: int, retry_after: float | None = None) -> float:
    """Seconds to wait before retry number ``attempt``."""
    if retry_after is not None and retry_after >= 0:
        return min(retry_after, retry.max_backoff_s)
    return retry.backoff_s(attempt)


async def with_retries(
    operation: Callable[[], Awaitable[T]],
    retry: RetryConfig,
    *,
    description: str = "request",
    sleep: Sleep = asyncio.sleep,
    idempotent: bool = True,
) -> T:
    """Await ``operation()``, retrying transient failures.

    Args:
        operation:   Zero-argument coroutine factory (called once per attempt).
        retry:       Retry settings.
        description: Label for log and error messages.
        sleep:       Awaitable sleep, injectable for tests.
        idempotent:  False for writes that must not be repeated once the
                     request may have reached the server.

    Returns:
        Whatever ``operation`` returns.

    Raises:
        DataError: When a non-retryable status is seen or retries run out.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except TransientTransportError as exc:
            status = exc.status_code
            if status is not None and status not in retry.retryable_status_codes:
                raise DataError(f"{description} failed with status {status}: {exc}") from exc
            if exc.request_sent and not idempotent:
                raise DataError(
                    f"{description} may have been applied; not retrying: {exc}"
                ) from exc
            if attempt >= retry.max_retries:
                raise DataError(
                    f"{description} failed after {attempt} retries: {exc}"
                ) from exc

            delay = retry_delay(retry, attempt, exc.retry_after)
            logger.warning(
                "%s hit transient error (%s); retry %d/%d in %.2fs",
                description, status or "no status", attempt + 1, retry.max_retries, delay,
            )
            await sleep(delay)
            attempt += 1
