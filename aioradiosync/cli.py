"""Command-line interface for running a radio server."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Sequence
from pathlib import Path

from aioradiosync.config import RadioConfig
from aioradiosync.errors import CatalogError, ConfigError
from aioradiosync.models import Mode
from aioradiosync.server import (
    PeerConnectedEvent,
    PeerDisconnectedEvent,
    RadioEngine,
    RadioEvent,
    RadioServer,
)

logger = logging.getLogger(__name__)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the radio server."""
    parser = argparse.ArgumentParser(description="Run a synchronized radio server")
    parser.add_argument("--host", default="0.0.0.0", help="Interface to listen on")  # noqa: S104
    parser.add_argument("--port", type=int, default=3001, help="Port to listen on")
    parser.add_argument(
        "--music-dir",
        type=Path,
        default=Path("music"),
        help="Directory with the day-mode tracks",
    )
    parser.add_argument(
        "--night-dir",
        type=Path,
        default=None,
        help="Directory with the night-mode tracks (defaults to --music-dir)",
    )
    parser.add_argument(
        "--timezone",
        default="Europe/Kyiv",
        help="Time zone the day/night window is evaluated in",
    )
    parser.add_argument("--day-start", type=int, default=6, help="First hour of day mode")
    parser.add_argument(
        "--day-end",
        type=int,
        default=24,
        help="Hour day mode ends (exclusive)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=2.0,
        help="Seconds between two sync broadcasts",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level to use",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> RadioConfig:
    """Turn parsed arguments into a RadioConfig."""
    night_dir = args.night_dir if args.night_dir is not None else args.music_dir
    return RadioConfig(
        music_dirs={Mode.DAY: args.music_dir, Mode.NIGHT: night_dir},
        timezone=args.timezone,
        day_start_hour=args.day_start,
        day_end_hour=args.day_end,
        broadcast_interval_s=args.interval,
    )


async def _log_event(event: RadioEvent) -> None:
    match event:
        case PeerConnectedEvent(peer_id=peer_id, listeners=listeners):
            logger.info("Listener %s connected (%d listening)", peer_id, listeners)
        case PeerDisconnectedEvent(peer_id=peer_id, listeners=listeners):
            logger.info("Listener %s disconnected (%d listening)", peer_id, listeners)


async def main_async(argv: Sequence[str] | None = None) -> int:
    """Entry point executing the asynchronous CLI workflow."""
    args = parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(level=getattr(logging, args.log_level))

    try:
        config = build_config(args)
    except ConfigError as err:
        logger.error("Invalid configuration: %s", err)  # noqa: TRY400
        return 2

    engine = RadioEngine(config)
    try:
        await engine.start()
    except CatalogError as err:
        logger.error("Failed to start radio: %s", err)  # noqa: TRY400
        return 1

    loop = asyncio.get_running_loop()
    server = RadioServer(loop, engine)
    _ = server.add_event_listener(_log_event)

    stop_event = asyncio.Event()

    def signal_handler() -> None:
        logger.debug("Received interrupt signal, shutting down...")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await server.start(args.host, args.port)
        _ = await stop_event.wait()
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        await server.stop()
        await engine.stop()

    return 0


def main() -> int:
    """Run the radio server."""
    return asyncio.run(main_async(sys.argv[1:]))


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
