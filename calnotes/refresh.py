"""Refresh loop management for calnotes."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from .cache_store import EventCacheStore
from .calendar.datetime_utils import now_utc
from .calendar.models import CachedEvent, CalendarSource
from .calendar.parser import ICSParser
from .config_loader import Config
from .domain.pipeline import AggregationPipeline, group_by_source
from .exceptions import ParseError, TransportError
from .fetcher import ICSFetcher

logger = logging.getLogger(__name__)


@dataclass
class RefreshOutcome:
    """Summary of one completed refresh."""

    event_count: int
    failed_sources: list[str] = field(default_factory=list)
    refreshed_at: Optional[datetime] = None


class RefreshDriver:
    """Owns the event cache and refreshes it from every configured source.

    The cache holds unexpanded events; expansion and scoring happen on every
    `relevant_events()` call because relevance depends on the current time.
    """

    def __init__(
        self,
        config: Config,
        fetcher: ICSFetcher,
        parser: Optional[ICSParser] = None,
        store: Optional[EventCacheStore] = None,
        pipeline: Optional[AggregationPipeline] = None,
    ):
        """Initialize refresh driver.

        Args:
            config: Application configuration
            fetcher: HTTP fetcher for ICS feeds
            parser: ICS parser (a default one is created when omitted)
            store: Optional persistent store for the cache
            pipeline: Aggregation pipeline used to rank events
        """
        self.config = config
        self.fetcher = fetcher
        self.parser = parser or ICSParser()
        self.store = store
        self.pipeline = pipeline or AggregationPipeline()

        self._events: list[CachedEvent] = []
        self.last_refresh: Optional[datetime] = None
        self.refresh_in_flight = False

    @property
    def events(self) -> list[CachedEvent]:
        """Current unexpanded cache."""
        return self._events

    @property
    def has_refreshed(self) -> bool:
        """True once a refresh completed or a persisted cache was loaded."""
        return self.last_refresh is not None

    def load_cached(self) -> int:
        """Seed the cache from the persistent store, returning the event count."""
        if self.store is None:
            return 0
        events, refreshed_at = self.store.load()
        self._events = events
        self.last_refresh = refreshed_at
        logger.debug("Seeded cache with %d persisted events", len(events))
        return len(events)

    async def _fetch_source(self, source: CalendarSource) -> list[CachedEvent]:
        content = await self.fetcher.fetch(source)
        result = self.parser.parse(content, source_url=source.url)
        for warning in result.warnings:
            logger.debug("[%s] %s", source.name, warning)
        logger.debug("Source %s returned %d events", source.name, len(result.events))
        return [CachedEvent(source=source, event=event) for event in result.events]

    async def refresh(self) -> Optional[RefreshOutcome]:
        """Fetch every source, replace the cache and persist it.

        Returns:
            RefreshOutcome, or None when another refresh is already running
        """
        if self.refresh_in_flight:
            logger.info("Refresh already in progress; ignoring request")
            return None

        self.refresh_in_flight = True
        try:
            sources = list(self.config.sources)
            if not sources:
                logger.warning("No sources configured; cache will be empty")

            results = await asyncio.gather(
                *(self._fetch_source(source) for source in sources), return_exceptions=True
            )

            new_events: list[CachedEvent] = []
            failed: list[str] = []
            for source, result in zip(sources, results):
                if isinstance(result, (TransportError, ParseError)):
                    logger.warning("Source %s failed: %s", source.name, result)
                    failed.append(source.name)
                    continue
                if isinstance(result, BaseException):
                    logger.error("Unexpected error refreshing %s", source.name, exc_info=result)
                    failed.append(source.name)
                    continue
                new_events.extend(result)

            refreshed_at = now_utc()
            self._events = new_events
            self.last_refresh = refreshed_at

            if self.store is not None:
                try:
                    self.store.save(new_events, refreshed_at)
                except OSError:
                    logger.exception("Failed to persist event cache to %s", self.store.path)

            logger.info(
                "Refresh complete: %d events from %d sources (%d failed)",
                len(new_events),
                len(sources),
                len(failed),
            )
            return RefreshOutcome(
                event_count=len(new_events), failed_sources=failed, refreshed_at=refreshed_at
            )
        finally:
            self.refresh_in_flight = False

    def relevant_events(self, now: Optional[datetime] = None) -> list[CachedEvent]:
        """Relevant occurrences from the current cache, best-first."""
        if now is None:
            now = now_utc()
        return self.pipeline.run(group_by_source(self._events), now).events

    async def run_forever(
        self,
        stop_event: asyncio.Event,
        on_refresh: Optional[Callable[[Optional[RefreshOutcome]], None]] = None,
    ) -> None:
        """Refresh now, then every `refresh_interval_minutes` until stopped.

        A cycle that raises is logged and the loop carries on; `on_refresh`
        runs after every cycle that completes.
        """
        interval = self.config.refresh_interval_minutes * 60
        logger.info("Starting refresh loop (interval %ds)", interval)

        while not stop_event.is_set():
            try:
                outcome = await self.refresh()
                if on_refresh is not None:
                    on_refresh(outcome)
            except Exception:
                logger.exception("Refresh cycle failed; will retry next interval")

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue

        logger.info("Refresh loop stopped")
