"""Clients for upstream market data endpoints."""

from .binance_ws import (
    BinanceStreamConnection,
    ConnectionClosed,
    DecodeError,
    FrameKind,
    InboundFrame,
    OutputError,
    SendError,
    StreamConnectionError,
    TailError,
)

__all__ = [
    "BinanceStreamConnection",
    "ConnectionClosed",
    "DecodeError",
    "FrameKind",
    "InboundFrame",
    "OutputError",
    "SendError",
    "StreamConnectionError",
    "TailError",
]
