"""Test doubles shared by the unit and integration tests."""

import asyncio
import json
from typing import List

from binance_trade_tail.clients.binance_ws import (
    ConnectionClosed,
    FrameKind,
    InboundFrame,
    SendError,
)


class FakeConnection:
    """In-memory stand-in for BinanceStreamConnection."""

    def __init__(self, frames=(), stay_open: bool = False, failing_sends=()):
        self.frames: List[InboundFrame] = list(frames)
        self.sent: List[dict] = []
        self.pings = 0
        self.close_calls = 0
        self.closed = False
        self.failing_sends = set(failing_sends)
        self._send_attempts = 0
        self._peer_closed = asyncio.Event()
        if not stay_open:
            self._peer_closed.set()

    async def receive(self) -> InboundFrame:
        await asyncio.sleep(0)
        if self.frames:
            return self.frames.pop(0)
        await self._peer_closed.wait()
        raise ConnectionClosed("peer closed")

    def peer_close(self):
        self._peer_closed.set()

    async def send(self, text: str):
        attempt = self._send_attempts
        self._send_attempts += 1
        if self.closed or attempt in self.failing_sends:
            raise SendError(f"send {attempt} failed")
        self.sent.append(json.loads(text))

    async def ping(self):
        if self.closed:
            raise SendError("connection already closed")
        self.pings += 1

    async def close(self):
        self.close_calls += 1
        self.closed = True


def text_frame(data) -> InboundFrame:
    payload = data if isinstance(data, bytes) else json.dumps(data).encode("utf-8")
    return InboundFrame(FrameKind.TEXT, payload)


def binary_frame(data) -> InboundFrame:
    payload = data if isinstance(data, bytes) else json.dumps(data).encode("utf-8")
    return InboundFrame(FrameKind.BINARY, payload)




class BrokenSink:
    """Output sink whose reader has gone away, like stdout piped into `head`."""

    def __init__(self, fail_on_write: bool = False):
        self.fail_on_write = fail_on_write
        self.written = []

    def write(self, data: bytes):
        if self.fail_on_write:
            raise BrokenPipeError(32, "Broken pipe")
        self.written.append(data)
        return len(data)

    def flush(self):
        raise BrokenPipeError(32, "Broken pipe")
