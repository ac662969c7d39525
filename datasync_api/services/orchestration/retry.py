from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry(
    attempts: int,
    initial_delay: float,
    backoff_step: float,
    operation: Callable[[], Awaitable[T]],
) -> T:
    """Run `operation` until it succeeds or `attempts` runs are used up.

    Waits `initial_delay` seconds before the first attempt and a fixed
    `backoff_step` seconds between attempts. The last error is re-raised once the
    attempts are exhausted.
    """

    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    if initial_delay > 0:
        await asyncio.sleep(initial_delay)

    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as exc:
            if attempt >= attempts:
                logger.info("giving up after %d attempts: %s", attempts, exc)
                raise
            logger.info(
                "attempt %d/%d failed: %s, retrying in %.1fs",
                attempt,
                attempts,
                exc,
                backoff_step,
            )
        await asyncio.sleep(backoff_step)
        attempt += 1
