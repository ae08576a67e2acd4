"""Temporal relevance of concrete occurrences relative to "now".

An occurrence is ongoing, recently ended (within the lookbehind), upcoming
(within the lookahead), or not relevant. Recently-ended and upcoming
occurrences carry the whole minutes between now and their end/start;
ongoing occurrences always rank ahead of both.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from calnotes.calendar.datetime_utils import ensure_timezone_aware
from calnotes.calendar.models import DEFAULT_WINDOW, RawEvent, RelevanceWindow

logger = logging.getLogger(__name__)

# Numeric form used by relevance()
NOT_RELEVANT = -1
ONGOING_RELEVANCE = sys.maxsize


class RelevanceKind(str, Enum):
    """Categories of temporal relevance."""

    ONGOING = "ongoing"
    RECENTLY_ENDED = "recently_ended"
    UPCOMING = "upcoming"
    NOT_RELEVANT = "not_relevant"


@dataclass(frozen=True)
class Relevance:
    """Tagged relevance outcome.

    ``minutes`` is the number of whole minutes since the end (recently
    ended) or until the start (upcoming); it is 0 for the other kinds.
    """

    kind: RelevanceKind
    minutes: int = 0

    @property
    def is_relevant(self) -> bool:
        return self.kind is not RelevanceKind.NOT_RELEVANT

    def sort_key(self) -> tuple[int, int]:
        """Ascending sort key: ongoing first, then by minutes."""
        if self.kind is RelevanceKind.ONGOING:
            return (0, 0)
        if self.kind is RelevanceKind.NOT_RELEVANT:
            return (2, 0)
        return (1, self.minutes)

    def as_number(self) -> int:
        """Numeric relevance: minutes, ONGOING_RELEVANCE, or NOT_RELEVANT."""
        if self.kind is RelevanceKind.ONGOING:
            return ONGOING_RELEVANCE
        if self.kind is RelevanceKind.NOT_RELEVANT:
            return NOT_RELEVANT
        return self.minutes


IRRELEVANT = Relevance(RelevanceKind.NOT_RELEVANT)
ONGOING = Relevance(RelevanceKind.ONGOING)


def _whole_minutes(seconds: float) -> int:
    return int(seconds // 60)


def classify(
    occurrence: RawEvent, now: datetime, window: RelevanceWindow = DEFAULT_WINDOW
) -> Relevance:
    """Classify a concrete occurrence relative to now.

    Rules, evaluated in order:
    1. start or end does not resolve to an instant: not relevant
    2. start < now < end: ongoing
    3. end < now and end >= now - lookbehind: recently ended
    4. start > now and start <= now + lookahead: upcoming
    5. otherwise: not relevant
    """
    start = occurrence.start.instant
    end = occurrence.end.instant
    if start is None or end is None:
        return IRRELEVANT

    now = ensure_timezone_aware(now)
    cutoff_behind, cutoff_ahead = window.bounds(now)

    if start < now < end:
        return ONGOING
    if cutoff_behind <= end < now:
        return Relevance(RelevanceKind.RECENTLY_ENDED, _whole_minutes((now - end).total_seconds()))
    if now < start <= cutoff_ahead:
        return Relevance(RelevanceKind.UPCOMING, _whole_minutes((start - now).total_seconds()))
    return IRRELEVANT


def relevance(
    occurrence: RawEvent, now: datetime, window: RelevanceWindow = DEFAULT_WINDOW
) -> int:
    """Numeric relevance of an occurrence; lower ranks earlier except ONGOING_RELEVANCE."""
    return classify(occurrence, now, window).as_number()
