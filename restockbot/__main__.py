"""Restockbot process entry-point.

Usage:
    python -m restockbot [URL] [--interval S] [--quantity N] [--dry-run]
                         [--headless] [--show-state]

Runs one monitoring session for URL and exits when it ends.  Without a URL
the config of the previous run is reused.  ``--show-state`` prints the
persisted config and state as JSON and exits without opening a browser.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from pydantic import ValidationError

from restockbot.core import configure_logging
from restockbot.core.exceptions import ConfigError, ResourceCreationFailed
from restockbot.core.models import MonitorConfig
from restockbot.core.settings import Settings


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="restockbot",
        description="Watch a product page until it is back in stock, then add it to the cart.",
    )
    parser.add_argument(
        "url",
        nargs="?",
        default=None,
        help="Product page to watch.  Defaults to the URL of the previous run.",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Seconds between reloads while the product is not found (0.5-3600).",
    )
    parser.add_argument(
        "--quantity",
        type=int,
        default=None,
        metavar="N",
        help="Units to put in the cart (1-99).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log notifications instead of sending them to Telegram.",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run the browser without a window.",
    )
    parser.add_argument(
        "--show-state",
        action="store_true",
        help="Print the stored config and state as JSON and exit.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        metavar="LEVEL",
        help="Override LOG_LEVEL env var (DEBUG|INFO|WARNING|ERROR).",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        metavar="FORMAT",
        help="Override LOG_FORMAT env var (text|json).",
    )
    return parser


def _resolve_config(args: argparse.Namespace, stored: MonitorConfig) -> MonitorConfig:
    """Overlay the CLI arguments on the stored config."""
    return MonitorConfig(
        url=args.url if args.url is not None else stored.url,
        interval_seconds=args.interval if args.interval is not None else stored.interval_seconds,
        quantity=args.quantity if args.quantity is not None else stored.quantity,
    )


def main() -> None:
    """CLI entry-point registered in ``pyproject.toml``."""
    args = _build_parser().parse_args()

    try:
        configure_logging(level=args.log_level, fmt=args.log_format)
    except ValueError as exc:
        print(f"restockbot: configuration error: {exc}", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    logger = logging.getLogger(__name__)

    # Lazy import keeps --help fast; Playwright is only loaded when needed.
    from restockbot.orchestrator.runner import read_snapshot, run_monitor  # noqa: PLC0415

    try:
        settings = Settings()
        updates: dict[str, object] = {}
        if args.dry_run:
            updates["dry_run"] = True
        if args.headless:
            updates["browser_headless"] = True
        if updates:
            settings = settings.model_copy(update=updates)

        snapshot = asyncio.run(read_snapshot(settings))
        if args.show_state:
            print(snapshot.model_dump_json(indent=2))  # noqa: T201
            return

        config = _resolve_config(args, snapshot.config)
        logger.info("Restockbot starting up (dry_run=%s)", settings.dry_run)
        final = asyncio.run(run_monitor(config, settings))
    except (ConfigError, ValidationError) as exc:
        logger.critical("Configuration error: %s", exc)
        sys.exit(1)
    except ResourceCreationFailed as exc:
        logger.critical("Could not open a browser tab: %s", exc)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted; exiting.")
        sys.exit(0)

    logger.info("Done: %s", final.summary())


if __name__ == "__main__":
    main()
