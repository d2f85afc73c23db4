"""Retry schedule for remote fetches.

A schedule is the intersection of two independent limits:

- a retry count (``max_retries`` retries after the first attempt);
- an exponential delay ``base_delay * factor ** n``, optionally refused once the
  next delay would exceed ``max_delay``.

Retrying stops as soon as either limit fires.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from .base import FetchError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 5
DEFAULT_BASE_DELAY_S = 0.1
DEFAULT_FACTOR = 2.0


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = DEFAULT_BASE_DELAY_S
    factor: float = DEFAULT_FACTOR
    max_delay: Optional[float] = None

    def allows_attempt(self, retry: int) -> bool:
        return retry < self.max_retries

    def delay_for(self, retry: int) -> float:
        return self.base_delay * (self.factor ** retry)

    def next_delay(self, retry: int) -> Optional[float]:
        """Delay before retry number ``retry`` (0-based), or None to stop."""
        if not self.allows_attempt(retry):
            return None
        delay = self.delay_for(retry)
        if self.max_delay is not None and delay > self.max_delay:
            return None
        return delay


def should_retry(exc: BaseException) -> bool:
    return isinstance(exc, FetchError) and exc.retryable


async def run_with_retry(
    attempt: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "",
) -> T:
    """Call ``attempt`` until it succeeds, fails definitively, or the policy stops.

    Only retryable FetchErrors are retried; the last one is re-raised when the
    schedule is exhausted.
    """
    retry = 0
    while True:
        try:
            return await attempt()
        except FetchError as exc:
            if not should_retry(exc):
                raise
            delay = policy.next_delay(retry)
            if delay is None:
                logger.debug("giving up on %s after %d retries: %s", label, retry, exc)
                raise
            logger.debug("retry %d for %s in %.3fs: %s", retry + 1, label, delay, exc)
            await sleep(delay)
            retry += 1
