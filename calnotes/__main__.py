"""Command-line entry for calnotes.

Loads the configuration, refreshes every calendar source and prints the
relevant occurrences best-first.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import sys
from datetime import datetime
from typing import NoReturn, Optional

from .cache_store import EventCacheStore
from .calendar.datetime_utils import now_utc
from .calendar.models import CachedEvent
from .calendar.rrule_expander import OccurrenceExpander
from .config_loader import Config, load_config
from .domain.pipeline import AggregationPipeline
from .domain.relevance import RelevanceKind, classify
from .exceptions import ConfigurationError
from .fetcher import ICSFetcher
from .logging_config import configure_logging
from .refresh import RefreshDriver, RefreshOutcome

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for calnotes CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="calnotes",
        description="calnotes - list the calendar events worth taking notes on right now",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m calnotes                          # Refresh once and print relevant events
  python -m calnotes --config my.yaml         # Use a specific config file
  python -m calnotes --watch                  # Keep refreshing on the configured interval
        """,
    )

    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Path to config.yaml (default: ~/.config/calnotes/config.yaml)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Refresh every refresh_interval_minutes and reprint the list",
    )

    return parser


def format_event(cached: CachedEvent, label: str) -> str:
    event = cached.event
    title = event.summary or "(no title)"
    line = f"{label:<18} {title} ({cached.source.name})"
    if event.location:
        line += f" @ {event.location}"
    return line


def relevance_label(cached: CachedEvent, now: datetime) -> str:
    score = classify(cached.event, now)
    if score.kind is RelevanceKind.ONGOING:
        return "[ongoing]"
    if score.kind is RelevanceKind.UPCOMING:
        return f"[in {score.minutes} min]"
    if score.kind is RelevanceKind.RECENTLY_ENDED:
        return f"[ended {score.minutes} min ago]"
    return "[not relevant]"


def print_relevant(driver: RefreshDriver) -> None:
    now = now_utc()
    events = driver.relevant_events(now)
    if not events:
        print("No relevant events.")
        return
    for cached in events:
        print(format_event(cached, relevance_label(cached, now)))


def build_driver(config: Config, fetcher: ICSFetcher) -> RefreshDriver:
    store = EventCacheStore(config.cache_path)
    expander = OccurrenceExpander(max_occurrences_per_rule=config.max_occurrences_per_rule)
    driver = RefreshDriver(
        config, fetcher, store=store, pipeline=AggregationPipeline(expander=expander)
    )
    driver.load_cached()
    return driver


async def _run(
    config: Config, watch: bool, stop_event: Optional[asyncio.Event] = None
) -> int:
    async with ICSFetcher(request_timeout=config.request_timeout) as fetcher:
        driver = build_driver(config, fetcher)

        if not watch:
            outcome = await driver.refresh()
            print_relevant(driver)
            return 1 if outcome is not None and outcome.failed_sources else 0

        def _report(outcome: Optional[RefreshOutcome]) -> None:
            if outcome is not None and outcome.failed_sources:
                logger.warning("Failed sources: %s", ", ".join(outcome.failed_sources))
            print_relevant(driver)
            print()

        await driver.run_forever(stop_event or asyncio.Event(), on_refresh=_report)
        return 0


def main(argv: Optional[list[str]] = None) -> NoReturn:
    """Run the calnotes CLI."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigurationError as exc:
        configure_logging(debug_mode=args.debug)
        logger.error("%s", exc)
        sys.exit(2)

    configure_logging(debug_mode=args.debug, log_level=config.log_level)

    if not config.sources:
        print("No calendar sources configured. Add `sources` to your config.yaml.")
        sys.exit(2)

    exit_code = 0
    with contextlib.suppress(KeyboardInterrupt):
        exit_code = asyncio.run(_run(config, args.watch))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
