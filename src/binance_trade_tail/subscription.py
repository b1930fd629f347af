"""Subscription batching for Binance stream channels."""

import json
import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Sequence

from .clients.binance_ws import BinanceStreamConnection, SendError
from .utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

MAX_CHANNELS_PER_REQUEST = 32


@dataclass
class SubscriptionRequest:
    """A SUBSCRIBE control message."""
    params: List[str]
    id: int = 1
    method: str = field(default="SUBSCRIBE", init=False)

    def to_json(self) -> str:
        return json.dumps({"method": self.method, "params": self.params, "id": self.id})


def batch_channels(channels: Sequence[str], size: int = MAX_CHANNELS_PER_REQUEST) -> Iterator[List[str]]:
    """Split channels into contiguous groups of at most ``size``."""
    if size < 1:
        raise ValueError("batch size must be at least 1")

    for start in range(0, len(channels), size):
        yield list(channels[start:start + size])


class SubscriptionBatcher:
    """Sends one SUBSCRIBE per channel group, paced by the rate limiter."""

    def __init__(
        self,
        connection: BinanceStreamConnection,
        rate_limiter: RateLimiter,
        batch_size: int = MAX_CHANNELS_PER_REQUEST,
        request_id: int = 1,
    ):
        self.connection = connection
        self.rate_limiter = rate_limiter
        self.batch_size = batch_size
        self.request_id = request_id

    async def dispatch(self, channels: Sequence[str]) -> int:
        """
        Subscribe to every channel, one group at a time.

        A failed send is logged and the next group is still dispatched.

        Returns:
            Number of requests that were sent successfully
        """
        sent = 0
        total = 0

        for params in batch_channels(channels, self.batch_size):
            total += 1
            await self.rate_limiter.acquire()

            request = SubscriptionRequest(params=params, id=self.request_id)
            try:
                await self.connection.send(request.to_json())
            except SendError as e:
                logger.warning(f"Subscription request {total} ({len(params)} channels) failed: {e}")
                continue

            sent += 1
            logger.debug(f"Subscribed to {len(params)} channels: {params}")

        logger.info(f"Dispatched {sent}/{total} subscription requests for {len(channels)} channels")
        return sent
