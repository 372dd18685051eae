"""Bounded retry for store round-trips."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from couple_swipe.domain.errors import StoreUnavailable

_logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_with_retry(
    func: Callable[[], T],
    *,
    action: str,
    attempts: int = 2,
    delay_seconds: float = 0.2,
) -> T:
    """Call a store function, retrying ``StoreUnavailable`` a bounded number of times.

    ``attempts`` counts retries after the first call. Business errors are
    never retried.
    """
    attempt = 0
    while True:
        try:
            return func()
        except StoreUnavailable as exc:
            attempt += 1
            _logger.warning(
                "Store %s failed (attempt %s/%s): %s",
                action,
                attempt,
                attempts + 1,
                exc,
            )
            if attempt > attempts:
                raise
            await asyncio.sleep(delay_seconds)


@dataclass
class CountedCall(Generic[T]):
    """Store call that remembers how often it ran.

    A write that raised ``StoreUnavailable`` may still have committed, so a
    retried insert-if-absent can collide with its own earlier attempt.
    ``retried`` tells callers when to check for that.
    """

    func: Callable[[], T]
    calls: int = 0

    def __call__(self) -> T:
        self.calls += 1
        return self.func()

    @property
    def retried(self) -> bool:
        return self.calls > 1
