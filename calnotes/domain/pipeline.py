"""Aggregation of events across calendar sources into a ranked list.

Usage:
    pipeline = AggregationPipeline()
    result = pipeline.run([(source, events), ...], now)
    for cached in result.events:
        ...

Each run normalizes start/end, expands recurring events against the
relevance window, scores every occurrence, drops the irrelevant ones and
orders the rest best-first. Runs are pure with respect to their inputs,
so the output does not depend on the order sources are supplied in
beyond tie-breaking.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from calnotes.calendar.models import (
    DEFAULT_WINDOW,
    CachedEvent,
    CalendarSource,
    RawEvent,
    RelevanceWindow,
)
from calnotes.calendar.rrule_expander import OccurrenceExpander
from calnotes.exceptions import MalformedEventError

from .relevance import Relevance, classify

logger = logging.getLogger(__name__)

SourceEvents = tuple[CalendarSource, Sequence[RawEvent]]


@dataclass
class AggregationResult:
    """Ranked events plus per-event issues for observability."""

    events: list[CachedEvent] = field(default_factory=list)
    relevance: list[Relevance] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)

    # Statistics
    events_in: int = 0
    occurrences: int = 0

    def add_issue(self, message: str) -> None:
        """Record a per-event problem."""
        self.issues.append(message)
        logger.warning("%s", message)


class AggregationPipeline:
    """Merges, expands, scores and orders events from several sources."""

    def __init__(
        self,
        expander: Optional[OccurrenceExpander] = None,
        window: RelevanceWindow = DEFAULT_WINDOW,
    ):
        self.window = window
        self.expander = expander or OccurrenceExpander(window=window)

    def run(self, per_source: Iterable[SourceEvents], now: datetime) -> AggregationResult:
        """Build the ranked list of relevant occurrences.

        Args:
            per_source: (source, raw events) pairs
            now: Instant relevance is measured against

        Returns:
            AggregationResult whose events are ordered best-first
        """
        result = AggregationResult()
        scored: list[tuple[Relevance, CachedEvent]] = []

        for source, events in per_source:
            seen: set[tuple[str, Optional[datetime]]] = set()
            for raw in events:
                result.events_in += 1
                for occurrence in self._expand(raw.with_normalized_times(), now, source, result):
                    key = (occurrence.identity, occurrence.start.instant)
                    if key in seen:
                        logger.debug("Dropping duplicate occurrence %s from %s", key[0], source.name)
                        continue
                    seen.add(key)
                    result.occurrences += 1

                    score = classify(occurrence, now, self.window)
                    if score.is_relevant:
                        scored.append((score, CachedEvent(source=source, event=occurrence)))

        # Stable: ongoing events keep their input order among themselves
        scored.sort(key=lambda item: item[0].sort_key())
        result.relevance = [score for score, _ in scored]
        result.events = [cached for _, cached in scored]

        logger.debug(
            "Aggregated %d raw events into %d occurrences, %d relevant, %d issues",
            result.events_in,
            result.occurrences,
            len(result.events),
            len(result.issues),
        )
        return result

    def _expand(
        self, event: RawEvent, now: datetime, source: CalendarSource, result: AggregationResult
    ) -> list[RawEvent]:
        try:
            return self.expander.expand(event, now)
        except MalformedEventError as e:
            result.add_issue(f"[{source.name}] {e}")
            return []


def group_by_source(cached_events: Iterable[CachedEvent]) -> list[SourceEvents]:
    """Regroup a flat cache into (source, events) pairs in first-seen source order."""
    grouped: dict[CalendarSource, list[RawEvent]] = {}
    for cached in cached_events:
        grouped.setdefault(cached.source, []).append(cached.event)
    return list(grouped.items())


def build_relevant_list(
    per_source: Iterable[SourceEvents],
    now: datetime,
    window: RelevanceWindow = DEFAULT_WINDOW,
) -> list[CachedEvent]:
    """Relevant occurrences across all sources, ordered best-first."""
    return AggregationPipeline(window=window).run(per_source, now).events
