"""Bounded retry with linearly increasing delay for writes to the shared store."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Awaitable, Callable, TypeVar

from quizdeck.constants.sync_constants import RETRY_BASE_DELAY_SECONDS, RETRY_MAX_ATTEMPTS

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


async def retry_operation(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = RETRY_MAX_ATTEMPTS,
    delay_seconds: float = RETRY_BASE_DELAY_SECONDS,
    sleep: Sleep = asyncio.sleep,
    description: str = "operation",
) -> T:
    """Await ``operation()`` until it succeeds or ``max_attempts`` is reached.

    Waits ``delay_seconds * attempt`` between attempts and re-raises the last
    error. The sequence is never cut short, so a write still lands after the
    caller has moved on.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1.")

    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as exc:
            logger.warning(
                "%s failed (attempt %d/%d): %s", description, attempt, max_attempts, exc
            )
            if attempt >= max_attempts:
                raise
        await sleep(delay_seconds * attempt)
        attempt += 1


@dataclass(slots=True)
class RetryPolicy:
    """Retry settings shared by the services that write to the store."""

    max_attempts: int = RETRY_MAX_ATTEMPTS
    delay_seconds: float = RETRY_BASE_DELAY_SECONDS
    sleep: Sleep = asyncio.sleep

    async def run(self, operation: Callable[[], Awaitable[T]], description: str = "operation") -> T:
        return await retry_operation(
            operation,
            max_attempts=self.max_attempts,
            delay_seconds=self.delay_seconds,
            sleep=self.sleep,
            description=description,
        )
