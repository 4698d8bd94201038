"""
Bounded retry for broker calls.

A classifier tags every failure as RETRYABLE or FATAL; only RETRYABLE
failures are retried, with a linear backoff (attempt x base seconds).
Task cancellation interrupts the wait and propagates unchanged.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from perp_risk.core.errors import RetryExhaustedError, TransientBrokerError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorClass(str, enum.Enum):
    OK = "ok"
    RETRYABLE = "retryable"
    FATAL = "fatal"


def classify_broker_error(exc: Optional[BaseException]) -> ErrorClass:
    if exc is None:
        return ErrorClass.OK
    if isinstance(exc, TransientBrokerError):
        return ErrorClass.RETRYABLE
    return ErrorClass.FATAL


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    classify: Callable[[Optional[BaseException]], ErrorClass] = classify_broker_error,
    *,
    max_attempts: int = 3,
    backoff_seconds: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    description: str = "operation",
) -> T:
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    last_error: Optional[Exception] = None
    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            if classify(exc) is not ErrorClass.RETRYABLE:
                raise
            last_error = exc

        if attempt == max_attempts:
            break

        wait = attempt * backoff_seconds
        logger.warning(
            "%s failed (attempt %d/%d), retrying in %.1fs: %s",
            description,
            attempt,
            max_attempts,
            wait,
            last_error,
        )
        await sleep(wait)

    raise RetryExhaustedError(description, max_attempts, last_error) from last_error
