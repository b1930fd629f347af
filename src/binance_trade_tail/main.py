"""Main entry point for binance-trade-tail."""

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional, Sequence

from pydantic import ValidationError

from .clients.binance_ws import TailError
from .config.settings import TailerSettings, load_settings
from .tailer import TradeTailService
from .utils.logging import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="binance-trade-tail",
        description="tail JSON crypto trade data from the binance streaming api",
    )
    parser.add_argument(
        "--stream",
        action="append",
        default=[],
        metavar="NAME",
        help="provide the name of a stream to subscribe to (repeatable)",
    )
    parser.add_argument(
        "--stream-file",
        metavar="PATH",
        help="a newline-delimited file of streams that will be subscribed to",
    )
    parser.add_argument(
        "--rfc3339-timestamp",
        action="store_true",
        help="rewrite timestamps in RFC 3339 format",
    )
    parser.add_argument(
        "--config",
        default=os.getenv("CONFIG_FILE"),
        metavar="PATH",
        help="YAML configuration file (default: $CONFIG_FILE)",
    )
    parser.add_argument("--log-level", help="override the configured log level")
    parser.add_argument(
        "--on-decode-error",
        choices=["skip", "abort"],
        help="what to do with a frame that is not a JSON object",
    )
    return parser


def read_stream_file(path: str) -> List[str]:
    """Read channel names, one per line, skipping blank lines."""
    with open(path, "r", encoding="utf-8") as f:
        return [line.strip() for line in f if line.strip()]


def resolve_channels(settings: TailerSettings, args: argparse.Namespace) -> List[str]:
    """Configured channels, then --stream values, then the stream file."""
    channels = list(settings.stream.channels)
    channels.extend(args.stream)
    if args.stream_file:
        channels.extend(read_stream_file(args.stream_file))
    return channels


def apply_overrides(settings: TailerSettings, args: argparse.Namespace) -> TailerSettings:
    """Return settings with command-line flags applied."""
    stream_updates = {}
    if args.rfc3339_timestamp:
        stream_updates["normalize_timestamps"] = True
    if args.on_decode_error:
        stream_updates["on_decode_error"] = args.on_decode_error

    logging_updates = {}
    if args.log_level:
        logging_updates["level"] = args.log_level

    data = settings.model_dump()
    data["stream"].update(stream_updates)
    data["logging"].update(logging_updates)
    return TailerSettings(**data)


async def run(settings: TailerSettings, channels: Sequence[str]):
    service = TradeTailService(settings, channels=channels)
    await service.run()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = apply_overrides(load_settings(args.config), args)
        channels = resolve_channels(settings, args)
    except (OSError, ValueError, ValidationError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    setup_logging(settings.logging, settings.service_name)
    logger.info(f"Tailing {len(channels)} channels from {settings.stream.url}")

    try:
        asyncio.run(run(settings, channels))
    except TailError as e:
        logger.debug("Tailer failed", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        logger.error(f"Tailer failed: {e}", exc_info=True)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
