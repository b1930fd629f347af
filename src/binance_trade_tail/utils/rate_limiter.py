"""Rolling-window rate limiter for outbound control messages."""

import asyncio
import logging
from typing import Set

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Admits at most ``max_permits`` operations per rolling window.

    Each permit expires by itself ``window_seconds`` after it was acquired;
    callers never release. Waiters are admitted in arrival order.
    """

    def __init__(self, max_permits: int = 5, window_seconds: float = 1.0):
        if max_permits < 1:
            raise ValueError("max_permits must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_permits = max_permits
        self.window_seconds = window_seconds
        self._semaphore = asyncio.Semaphore(max_permits)
        self._expiries: Set[asyncio.TimerHandle] = set()

    @property
    def outstanding(self) -> int:
        """Number of permits acquired within the current window."""
        return len(self._expiries)

    async def acquire(self):
        """Wait for a permit and schedule its expiry."""
        await self._semaphore.acquire()

        loop = asyncio.get_running_loop()
        handle = None

        def _expire():
            self._expiries.discard(handle)
            self._semaphore.release()

        handle = loop.call_later(self.window_seconds, _expire)
        self._expiries.add(handle)
        logger.debug(f"Permit acquired ({self.outstanding}/{self.max_permits} outstanding)")

    def close(self):
        """Cancel pending expiries."""
        for handle in self._expiries:
            handle.cancel()
        self._expiries.clear()
