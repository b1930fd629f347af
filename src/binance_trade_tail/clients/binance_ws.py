"""Binance WebSocket connection for real-time market data."""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import websockets
from websockets.exceptions import ConnectionClosed as WebSocketClosed, WebSocketException

logger = logging.getLogger(__name__)

BINANCE_STREAM_URL = "wss://stream.binance.com:9443/ws"


class TailError(Exception):
    """Base class for tailer errors."""


class StreamConnectionError(TailError, ConnectionError):
    """The WebSocket handshake could not be completed."""


class ConnectionClosed(TailError):
    """The receive stream ended, either by peer close or transport error."""


class SendError(TailError):
    """A single outbound frame could not be written."""


class DecodeError(TailError):
    """An inbound payload is not a well-formed event object."""


class OutputError(TailError):
    """A record could not be written to the output sink."""


class FrameKind(Enum):
    """Kinds of frames surfaced by the connection."""
    TEXT = "text"
    BINARY = "binary"
    CONTROL = "control"


@dataclass(frozen=True)
class InboundFrame:
    """A single received frame."""
    kind: FrameKind
    payload: bytes

    @classmethod
    def from_message(cls, message: Union[str, bytes]) -> "InboundFrame":
        """Build a frame from a message as returned by ``websockets``."""
        if isinstance(message, str):
            return cls(FrameKind.TEXT, message.encode("utf-8"))
        return cls(FrameKind.BINARY, bytes(message))


class BinanceStreamConnection:
    """
    Owns the single duplex WebSocket to the Binance stream endpoint.

    One reader calls ``receive``; one writer calls ``send`` and ``ping``.
    Under that split no lock is needed around the socket.
    """

    def __init__(self, websocket, url: str):
        self.url = url
        self._websocket = websocket
        self._closed = False

    @classmethod
    async def dial(
        cls,
        url: str = BINANCE_STREAM_URL,
        open_timeout: float = 10.0,
        max_message_size: Optional[int] = 2**20,
    ) -> "BinanceStreamConnection":
        """Open the WebSocket. Raises StreamConnectionError on any failure."""
        logger.info(f"Connecting to Binance stream: {url}")

        try:
            websocket = await websockets.connect(
                url,
                open_timeout=open_timeout,
                # Pings come from the liveness keeper only
                ping_interval=None,
                close_timeout=10,
                max_size=max_message_size,
                compression=None,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise StreamConnectionError(f"failed to connect to {url}: {e}") from e

        logger.info("Successfully connected to Binance stream")
        return cls(websocket, url)

    @property
    def closed(self) -> bool:
        return self._closed

    async def receive(self) -> InboundFrame:
        """Wait for the next frame. Raises ConnectionClosed at end of stream."""
        if self._closed:
            raise ConnectionClosed("connection already closed")

        try:
            message = await self._websocket.recv()
        except WebSocketClosed as e:
            raise ConnectionClosed(f"connection closed by peer: {e}") from e
        except (OSError, WebSocketException) as e:
            raise ConnectionClosed(f"transport error: {e}") from e

        return InboundFrame.from_message(message)

    async def send(self, text: str):
        """Send one text frame."""
        if self._closed:
            raise SendError("connection already closed")

        try:
            await self._websocket.send(text)
        except (OSError, WebSocketException) as e:
            raise SendError(f"failed to send frame: {e}") from e

    async def ping(self):
        """Send one ping control frame without waiting for the pong."""
        if self._closed:
            raise SendError("connection already closed")

        try:
            await self._websocket.ping()
        except (OSError, WebSocketException) as e:
            raise SendError(f"failed to send ping: {e}") from e

    async def close(self):
        """Close the WebSocket. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        try:
            await self._websocket.close()
        except (OSError, WebSocketException) as e:
            logger.warning(f"Error while closing connection: {e}")

        logger.info("Disconnected from Binance stream")
