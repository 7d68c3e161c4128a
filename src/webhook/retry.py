"""Bounded retry with linear backoff for outbound Omnivore mutations."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from src.config import RetryPolicy
from src.omnivore.client import OmnivoreError, OmnivoreTransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Logical GraphQL errors and transport failures are both retryable.
RETRYABLE_ERRORS: tuple[type[Exception], ...] = (OmnivoreError,)


class RetryExhaustedError(Exception):
    """Raised when every attempt of an operation failed."""

    def __init__(self, description: str, attempts: int, last_error: Exception) -> None:
        self.description = description
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{description} failed after {attempts} attempt(s): {last_error}")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    description: str,
    already_applied: Callable[[Exception], T | None] | None = None,
) -> T:
    """Await ``operation`` until it succeeds or ``policy.max_attempts`` is reached.

    Before retry n the loop sleeps ``n * policy.backoff_step`` seconds
    (2s then 4s with the default policy). Non-retryable exceptions propagate
    immediately.

    ``already_applied`` is consulted only once an earlier attempt failed with
    a transport error, i.e. may have reached the server anyway. It maps a
    conflict error ("already exists") to the result of that earlier attempt.
    """
    attempt = 0
    maybe_applied = False
    while True:
        attempt += 1
        try:
            return await operation()
        except RETRYABLE_ERRORS as exc:
            if maybe_applied and already_applied is not None:
                result = already_applied(exc)
                if result is not None:
                    logger.info("%s was already applied by an earlier attempt", description)
                    return result
            if isinstance(exc, OmnivoreTransportError):
                maybe_applied = True
            logger.warning("%s failed on attempt %d/%d: %s",
                           description, attempt, policy.max_attempts, exc)
            if attempt >= policy.max_attempts:
                raise RetryExhaustedError(description, attempt, exc) from exc

        delay = policy.delay_for(attempt)
        logger.info("Retrying %s in %.1fs (attempt %d/%d)",
                    description, delay, attempt + 1, policy.max_attempts)
        await asyncio.sleep(delay)
