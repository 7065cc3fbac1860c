"""Per-provider request spacing.

Serializes callers and delays them so consecutive outbound calls to one
provider are at least ``min_interval`` seconds apart. Never rejects.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog

log = structlog.get_logger()


class RateLimiter:
    """Minimum-spacing limiter for a single provider.

    Usage:
        await limiter.acquire()  # waits if the last call was too recent
        # make the request

    Races between concurrent callers only add delay, never drop a call.
    """

    def __init__(
        self,
        name: str,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if min_interval < 0:
            raise ValueError(f"min_interval must be >= 0, got {min_interval}")
        self.name = name
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_call: float | None = None
        self.total_wait = 0.0

    async def acquire(self) -> None:
        """Wait until a call is allowed, then record it."""
        async with self._lock:
            if self._last_call is not None and self.min_interval > 0:
                elapsed = self._clock() - self._last_call
                wait = self.min_interval - elapsed
                if wait > 0:
                    log.debug(
                        "rate_limit_wait",
                        provider=self.name,
                        wait_seconds=round(wait, 3),
                    )
                    self.total_wait += wait
                    await self._sleep(wait)
            self._last_call = self._clock()
