#!/usr/bin/env python3
"""
respkv Server Entry Point

This is the main entry point for starting the respkv server.

Usage:
    python -m respkv.server          # Default settings (localhost:3333)
    python -m respkv.server 6380     # Custom port
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from .cache.store import KVStore
from .config.settings import settings
from .network.tcp_server import KVServer


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="respkv: In-Memory RESP Key-Value Server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "port",
        type=int,
        nargs="?",
        default=settings.PORT,
        help="Port number to listen on",
    )

    return parser.parse_args(argv)


def setup_logging(level: str = None) -> None:
    """Configure logging for the whole process."""
    logging.basicConfig(
        level=level or settings.LOG_LEVEL,
        format=settings.LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the server."""
    args = parse_args(argv)

    setup_logging()
    logger = logging.getLogger(__name__)

    store = KVStore()
    server = KVServer(host=settings.HOST, port=args.port, store=store)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    async def shutdown(sig: signal.Signals) -> None:
        """Handle shutdown signal."""
        logger.info(f"Received signal {sig.name}, initiating shutdown...")
        await server.stop()

    # Register signal handlers (Unix only)
    if sys.platform != 'win32':
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(
                sig,
                lambda s=sig: asyncio.create_task(shutdown(s))
            )

    logger.info(f"Starting respkv server on {settings.HOST}:{args.port}")

    try:
        loop.run_until_complete(server.start())
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        loop.run_until_complete(server.stop())
    except OSError as e:
        logger.error(f"Error listening: {e}")
        sys.exit(1)
    finally:
        loop.run_until_complete(loop.shutdown_asyncgens())
        loop.close()
        logger.info("Server shutdown complete")


if __name__ == "__main__":
    main()
