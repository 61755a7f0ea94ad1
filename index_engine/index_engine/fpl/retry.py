"""Backoff policy for calls against the public FPL API.

The API throttles aggressively around gameweek deadlines.  A throttled
response surfaces as an exception with a ``retry_after`` attribute; when
present it replaces the exponential schedule for that wait (still bounded
by ``max_delay``).
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryConfig(BaseModel):
    """How many times, and how patiently, an FPL request is re-sent."""

    max_retries: int = Field(default=3, ge=0, description="Re-sends after the first attempt.")
    base_delay: float = Field(default=1.0, gt=0.0, description="First wait in seconds; doubles per re-send.")
    max_delay: float = Field(default=30.0, gt=0.0, description="Ceiling for any single wait, in seconds.")
    jitter: bool = Field(default=True, description="Scale each wait by a random factor in [0.5, 1.5].")


def _compute_delay(attempt: int, config: RetryConfig) -> float:
    wait = min(config.base_delay * 2**attempt, config.max_delay)
    if not config.jitter:
        return wait
    return wait * random.uniform(0.5, 1.5)  # noqa: S311


def _delay_for(exc: Exception, attempt: int, config: RetryConfig) -> float:
    """Seconds to sleep before re-sending after *exc*; server hint wins."""
    hint = getattr(exc, "retry_after", None)
    if isinstance(hint, int | float) and hint >= 0:
        return min(float(hint), config.max_delay)
    return _compute_delay(attempt, config)


async def async_retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig,
    retryable_exceptions: tuple[type[Exception], ...] = (Exception,),
) -> T:
    """Await ``fn()`` until it succeeds or the re-send allowance runs out.

    *fn* builds a fresh request on every call.  Exceptions outside
    *retryable_exceptions* escape on the first occurrence; once the
    allowance is spent the most recent retryable exception is re-raised.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except retryable_exceptions as exc:
            if attempt == config.max_retries:
                raise
            wait = _delay_for(exc, attempt, config)
            attempt += 1
            logger.warning(
                "FPL request failed (%s); re-sending in %.1fs [%d/%d]",
                exc,
                wait,
                attempt,
                config.max_retries,
            )
            await asyncio.sleep(wait)
