"""Periodic keepalive pings."""

import asyncio
import logging

from .clients.binance_ws import BinanceStreamConnection, SendError
from .utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

KEEPALIVE_INTERVAL_SECONDS = 60.0


class LivenessKeeper:
    """Pings the connection on a fixed period until shutdown."""

    def __init__(
        self,
        connection: BinanceStreamConnection,
        rate_limiter: RateLimiter,
        shutdown_event: asyncio.Event,
        interval_seconds: float = KEEPALIVE_INTERVAL_SECONDS,
    ):
        self.connection = connection
        self.rate_limiter = rate_limiter
        self.shutdown_event = shutdown_event
        self.interval_seconds = interval_seconds
        self.pings_sent = 0

    async def run(self):
        """Tick until the shutdown event is set. The first tick is one interval after start."""
        while not self.shutdown_event.is_set():
            try:
                await asyncio.wait_for(self.shutdown_event.wait(), timeout=self.interval_seconds)
                break
            except asyncio.TimeoutError:
                pass

            await self.rate_limiter.acquire()
            if self.shutdown_event.is_set():
                break

            try:
                await self.connection.ping()
            except SendError as e:
                logger.warning(f"Keepalive ping failed: {e}")
                continue

            self.pings_sent += 1
            logger.debug(f"Keepalive ping {self.pings_sent} sent")

        logger.info("Liveness keeper stopped")
