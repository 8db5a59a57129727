from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, TypeVar

from ..errors import ConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def compute_backoff(attempt: int, base: float = 0.05, jitter: float = 0.05) -> float:
    """Compute exponential backoff with jitter."""
    delay = base * (2 ** attempt)
    return delay + random.uniform(0, jitter)


async def schedule_retry(attempt: int) -> None:
    """Sleep for computed backoff delay before retrying."""
    delay = compute_backoff(attempt)
    await asyncio.sleep(delay)


async def retry_on_conflict(
    operation: Callable[[], Awaitable[T]], retries: int = 1
) -> T:
    """Run ``operation``, re-invoking it after a ``ConflictError``.

    Only conflicts are retried; every other error propagates immediately.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except ConflictError as e:
            if attempt >= retries:
                raise
            logger.info(f"Retrying after conflict (attempt {attempt + 1}): {e}")
            await schedule_retry(attempt)
            attempt += 1
