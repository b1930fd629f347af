"""Tailer service - wires the connection, control loop and message pipeline."""

import asyncio
import logging
import sys
from typing import BinaryIO, Dict, Optional, Sequence

from .clients.binance_ws import BinanceStreamConnection
from .config.settings import TailerSettings
from .keepalive import LivenessKeeper
from .pipeline import MessagePipeline
from .subscription import SubscriptionBatcher
from .utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class TradeTailService:
    """
    Runs one tailing session.

    Two tasks share the connection: the control task subscribes then pings,
    the reader task drains frames to the sink. The run ends when the reader
    sees the end of the stream.
    """

    def __init__(
        self,
        settings: TailerSettings,
        channels: Optional[Sequence[str]] = None,
        sink: Optional[BinaryIO] = None,
    ):
        self.settings = settings
        self.channels = list(settings.stream.channels if channels is None else channels)
        self.sink = sink if sink is not None else sys.stdout.buffer

        self.connection: Optional[BinanceStreamConnection] = None
        self.pipeline: Optional[MessagePipeline] = None
        self.shutdown_event = asyncio.Event()

    async def run(self):
        """Dial, tail until the stream ends, then release the connection."""
        stream_config = self.settings.stream

        self.connection = await BinanceStreamConnection.dial(
            stream_config.url,
            open_timeout=stream_config.open_timeout_seconds,
            max_message_size=stream_config.max_message_size,
        )

        rate_limiter = RateLimiter(
            max_permits=self.settings.rate_limit.max_permits,
            window_seconds=self.settings.rate_limit.window_seconds,
        )

        try:
            self.pipeline = MessagePipeline(
                self.connection,
                self.sink,
                self.shutdown_event,
                normalize_timestamps=stream_config.normalize_timestamps,
                on_decode_error=stream_config.on_decode_error,
            )
            batcher = SubscriptionBatcher(
                self.connection,
                rate_limiter,
                batch_size=stream_config.batch_size,
                request_id=stream_config.request_id,
            )
            keeper = LivenessKeeper(
                self.connection,
                rate_limiter,
                self.shutdown_event,
                interval_seconds=stream_config.keepalive_interval_seconds,
            )

            reader_task = asyncio.create_task(self.pipeline.run())
            control_task = asyncio.create_task(self._control(batcher, keeper))
            shutdown_task = asyncio.create_task(self.shutdown_event.wait())
            tasks = (reader_task, control_task, shutdown_task)

            try:
                await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
                logger.info("Shutting down tailer")
            finally:
                for task in tasks:
                    task.cancel()
                reader_result, control_result, _ = await asyncio.gather(*tasks, return_exceptions=True)

            # Read-path failures (DecodeError on abort, OutputError) win over control failures
            if isinstance(reader_result, Exception):
                raise reader_result
            if isinstance(control_result, Exception):
                logger.error(f"Control loop failed: {control_result!r}")
                raise control_result

        finally:
            rate_limiter.close()
            await self.connection.close()
            logger.info(f"Tailer stopped: {self.get_stats()}")

    async def _control(self, batcher: SubscriptionBatcher, keeper: LivenessKeeper):
        """Subscribe to every channel, then keep the connection alive."""
        await batcher.dispatch(self.channels)
        await keeper.run()

    def get_stats(self) -> Dict[str, int]:
        if self.pipeline is None:
            return {}
        return self.pipeline.get_stats()
