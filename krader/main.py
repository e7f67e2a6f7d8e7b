#!/usr/bin/env python3
"""
Krader - Kraken market watcher for the terminal.

Usage:
    python -m krader.main XXBTZUSD XETHZUSD DOTUSD --pair XXBTZUSD --depth 25

    Or via the installed script:
    krader --price-interval 5 --book-interval 5

Controls:
    q - Quit
    r - Refresh now
    t - Switch table
    , / . - Select column
    [ / ] - Resize selected column, enter to commit
    arrows - Scroll
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from . import config
from .config import Settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def configure_logging(log_file: str, level: str = "INFO") -> None:
    """Log to a file; the TUI owns the terminal."""
    root = logging.getLogger()
    root.setLevel(level.upper())
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(file_handler)


async def main(settings: Settings) -> None:
    """Main entry point - runs the fetch engine and UI on one event loop."""

    # Import here to avoid slow startup for --help
    from .datafeed.kraken_client import KrakenClient
    from .engine.aggregator import Aggregator
    from .engine.runtime import Runtime, build_scheduler
    from .engine.state import AppState
    from .ui.watch_view import run_ui

    print(f"Starting Krader for {', '.join(settings.symbols)}...")
    print(f"  Order book: {settings.pair} (depth {settings.depth})")
    print(f"  Refresh: prices {settings.price_interval:g}s, book {settings.book_interval:g}s")
    print()
    logger.info("Starting with %s", settings)

    state, initial_effects = AppState.initial(settings)

    async with KrakenClient(
        base_url=settings.base_url,
        depth=settings.depth,
        timeout=settings.timeout,
    ) as client:
        runtime = Runtime(state, Aggregator(client), build_scheduler(settings))
        try:
            # Run UI (blocks until quit)
            await run_ui(runtime, initial_effects)
        finally:
            await runtime.stop()

    logger.info("Stopped")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Krader - Kraken price watchlist and order book in the terminal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    krader
    krader XXBTZUSD XETHZUSD --pair XETHZUSD --depth 10
    krader DOTUSD --price-interval 2 --placeholder=-
        """
    )

    parser.add_argument(
        "symbols",
        nargs="*",
        default=list(config.DEFAULT_SYMBOLS),
        help=f"Symbols to watch (default: {' '.join(config.DEFAULT_SYMBOLS)})"
    )

    parser.add_argument(
        "--pair",
        default=config.DEFAULT_PAIR,
        help=f"Pair whose order book is shown (default: {config.DEFAULT_PAIR})"
    )

    parser.add_argument(
        "--depth",
        type=int,
        default=config.DEFAULT_DEPTH,
        help=f"Order book levels per side (default: {config.DEFAULT_DEPTH})"
    )

    parser.add_argument(
        "--price-interval",
        type=float,
        default=config.PRICE_INTERVAL_SEC,
        help=f"Seconds between price refreshes (default: {config.PRICE_INTERVAL_SEC:g})"
    )

    parser.add_argument(
        "--book-interval",
        type=float,
        default=config.BOOK_INTERVAL_SEC,
        help=f"Seconds between order book refreshes (default: {config.BOOK_INTERVAL_SEC:g})"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=config.REQUEST_TIMEOUT_SEC,
        help=f"HTTP request timeout in seconds (default: {config.REQUEST_TIMEOUT_SEC:g})"
    )

    parser.add_argument(
        "--base-url",
        default=config.REST_BASE,
        help=f"Kraken REST base URL (default: {config.REST_BASE})"
    )

    parser.add_argument(
        "--placeholder",
        default=config.PLACEHOLDER,
        help=f"Text shown for missing values (default: {config.PLACEHOLDER})"
    )

    parser.add_argument(
        "--log-file",
        default=config.LOG_FILE,
        help=f"Log file path (default: {config.LOG_FILE})"
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)"
    )

    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    """Freeze parsed arguments into a validated Settings tuple."""
    return Settings(
        symbols=tuple(args.symbols),
        pair=args.pair,
        depth=args.depth,
        price_interval=args.price_interval,
        book_interval=args.book_interval,
        timeout=args.timeout,
        base_url=args.base_url,
        placeholder=args.placeholder,
    ).validate()


def cli() -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()
    try:
        settings = settings_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    configure_logging(args.log_file, args.log_level)

    # Run
    try:
        asyncio.run(main(settings))
    except KeyboardInterrupt:
        print("\nShutdown requested.")
        sys.exit(0)


if __name__ == "__main__":
    cli()
