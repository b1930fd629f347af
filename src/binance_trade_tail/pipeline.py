"""Message pipeline: turns inbound frames into output lines."""

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, BinaryIO, Dict, Optional

from .clients.binance_ws import (
    BinanceStreamConnection,
    ConnectionClosed,
    DecodeError,
    FrameKind,
    InboundFrame,
    OutputError,
)

logger = logging.getLogger(__name__)

LINE_TERMINATOR = b"\r\n"
TIMESTAMP_FIELDS = ("E", "T")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def format_epoch_millis(value: Any) -> str:
    """
    Render an epoch-millisecond number as an RFC 3339 UTC timestamp.

    1609459200000 -> "2021-01-01T00:00:00.000Z"

    Raises:
        DecodeError: If the value is not a JSON number
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f"expected epoch milliseconds, got {type(value).__name__}: {value!r}")

    try:
        instant = _EPOCH + timedelta(milliseconds=int(value))
    except (OverflowError, ValueError) as e:
        raise DecodeError(f"epoch milliseconds out of range: {value!r}") from e

    return instant.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def decode_event(payload: bytes) -> Dict[str, Any]:
    """Decode a frame payload into a JSON object."""
    try:
        data = json.loads(payload)
    except (UnicodeDecodeError, ValueError) as e:
        raise DecodeError(f"payload is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise DecodeError(f"payload is not a JSON object: {type(data).__name__}")

    return data


def normalize_timestamps(data: Dict[str, Any]) -> Dict[str, Any]:
    """Rewrite E and T, when present, into calendar timestamps."""
    for key in TIMESTAMP_FIELDS:
        if key in data:
            data[key] = format_epoch_millis(data[key])
    return data


class MessagePipeline:
    """
    Sole reader of the connection.

    Acknowledgements (objects with a ``result`` key) and non-text frames are
    dropped; everything else is written to the sink as one line.
    """

    def __init__(
        self,
        connection: BinanceStreamConnection,
        sink: BinaryIO,
        shutdown_event: asyncio.Event,
        normalize_timestamps: bool = False,
        on_decode_error: str = "skip",
    ):
        if on_decode_error not in ("skip", "abort"):
            raise ValueError("on_decode_error must be 'skip' or 'abort'")

        self.connection = connection
        self.sink = sink
        self.shutdown_event = shutdown_event
        self.normalize_timestamps = normalize_timestamps
        self.on_decode_error = on_decode_error

        self.stats = {
            'frames_received': 0,
            'records_emitted': 0,
            'acks_dropped': 0,
            'non_text_dropped': 0,
            'decode_errors': 0,
        }

    async def run(self):
        """Read until the connection ends, then set the shutdown event."""
        try:
            while True:
                try:
                    frame = await self.connection.receive()
                except ConnectionClosed as e:
                    logger.info(f"Stream ended: {e}")
                    break

                self.stats['frames_received'] += 1

                try:
                    line = self.process_frame(frame)
                except DecodeError as e:
                    self.stats['decode_errors'] += 1
                    if self.on_decode_error == "abort":
                        logger.error(f"Malformed frame, aborting: {e}")
                        raise
                    logger.warning(f"Dropping malformed frame: {e}")
                    logger.debug(f"Raw payload: {frame.payload[:200]!r}")
                    continue

                if line is not None:
                    self._emit(line)
        finally:
            try:
                self._flush()
            finally:
                self.shutdown_event.set()

    def process_frame(self, frame: InboundFrame) -> Optional[bytes]:
        """Return the line to emit for a frame, or None to drop it."""
        data = decode_event(frame.payload)

        if "result" in data:
            self.stats['acks_dropped'] += 1
            logger.debug(f"Acknowledgement received: {data}")
            return None

        if frame.kind is not FrameKind.TEXT:
            self.stats['non_text_dropped'] += 1
            return None

        if not self.normalize_timestamps:
            return frame.payload

        normalize_timestamps(data)
        return json.dumps(data, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    def _emit(self, line: bytes):
        try:
            self.sink.write(line + LINE_TERMINATOR)
        except OSError as e:
            raise OutputError(f"failed to write record: {e}") from e
        self._flush()
        self.stats['records_emitted'] += 1

    def _flush(self):
        try:
            self.sink.flush()
        except OSError as e:
            raise OutputError(f"failed to flush output: {e}") from e

    def get_stats(self) -> Dict[str, int]:
        return dict(self.stats)
