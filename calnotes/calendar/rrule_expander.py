"""RRULE expansion logic for calnotes.

A recurring RawEvent is expanded into concrete occurrences that fall inside
the relevance window around "now". Each occurrence keeps the series'
nominal duration and gets an identity derived from its own start instant.
"""

import logging
import re
from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.rrule import rruleset, rrulestr

from ..exceptions import MalformedEventError
from .datetime_utils import serialize_datetime_utc, to_utc
from .models import DEFAULT_WINDOW, RawEvent, RelevanceWindow

logger = logging.getLogger(__name__)


DEFAULT_MAX_OCCURRENCES_PER_RULE = 250

_UNTIL = re.compile(r"UNTIL=(\d{8})(T\d{6})?(Z?)", re.IGNORECASE)


def _utc_until(rule: str) -> str:
    """Rewrite a date-only or floating UNTIL as UTC.

    dateutil rejects a naive UNTIL once DTSTART is timezone-aware. A
    date-only UNTIL covers the whole of that day.
    """

    def _fix(match: re.Match) -> str:
        day, clock, zulu = match.groups()
        if zulu:
            return match.group(0)
        return f"UNTIL={day}{clock or 'T235959'}Z"

    return _UNTIL.sub(_fix, rule)


def evaluate_rule(
    rule: str,
    dtstart: datetime,
    window_start: datetime,
    window_end: datetime,
    exdates: Optional[Sequence[datetime]] = None,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES_PER_RULE,
) -> list[datetime]:
    """Return the start instants of a rule that fall inside a window, inclusive.

    Args:
        rule: RRULE value text (e.g. "FREQ=DAILY;COUNT=5"), with or without
            the "RRULE:" prefix
        dtstart: First instant of the series (timezone-aware)
        window_start: Earliest instant to return
        window_end: Latest instant to return
        exdates: Instants excluded from the series
        max_occurrences: Upper bound on returned instants

    Returns:
        Ordered list of UTC instants

    Raises:
        ValueError: If the rule text cannot be parsed against dtstart
    """
    rule_set = rruleset()
    parsed_rule = rrulestr(_utc_until(rule), dtstart=dtstart)
    if isinstance(parsed_rule, rruleset):
        rule_set = parsed_rule
    else:
        rule_set.rrule(parsed_rule)

    for exdate in exdates or ():
        rule_set.exdate(to_utc(exdate))

    instants = []
    for occurrence in rule_set.between(to_utc(window_start), to_utc(window_end), inc=True):
        if len(instants) >= max_occurrences:
            logger.warning(
                "RRULE %r produced more than %d occurrences in window, truncating",
                rule,
                max_occurrences,
            )
            break
        instants.append(to_utc(occurrence))

    return instants


class OccurrenceExpander:
    """Expands recurring events into concrete occurrences."""

    def __init__(
        self,
        window: RelevanceWindow = DEFAULT_WINDOW,
        max_occurrences_per_rule: int = DEFAULT_MAX_OCCURRENCES_PER_RULE,
    ):
        self.window = window
        self.max_occurrences = max_occurrences_per_rule

    def expand(self, event: RawEvent, now: datetime) -> list[RawEvent]:
        """Expand one event against the window anchored at now.

        Non-recurring events are returned unchanged as a single occurrence.
        A recurring event yields one occurrence per rule instant inside
        [now - lookbehind, now + lookahead]; zero instants yield an empty list.

        Raises:
            MalformedEventError: If a recurring event's base start/end do not
                resolve or its rule cannot be evaluated
        """
        if not event.is_recurring:
            return [event]

        base_start = event.start.instant
        base_end = event.end.instant
        if base_start is None or base_end is None:
            raise MalformedEventError(event.uid, "recurring event has no resolvable start/end")

        duration = base_end - base_start
        if duration < timedelta(0):
            raise MalformedEventError(event.uid, "recurring event ends before it starts")

        window_start, window_end = self.window.bounds(now)
        try:
            instants = evaluate_rule(
                event.recurrence_rule or "",
                self._series_start(event, base_start),
                window_start,
                window_end,
                exdates=event.exdates,
                max_occurrences=self.max_occurrences,
            )
        except (ValueError, TypeError) as e:
            raise MalformedEventError(event.uid, f"invalid recurrence rule: {e}") from e

        series_id = event.recurrence_id or event.uid
        occurrences = [
            event.as_occurrence(
                identity=f"{series_id}-{serialize_datetime_utc(instant)}",
                start=instant,
                end=instant + duration,
            )
            for instant in instants
        ]

        logger.debug(
            "Expanded %s into %d occurrences between %s and %s",
            event.uid,
            len(occurrences),
            window_start,
            window_end,
        )
        return occurrences

    def _series_start(self, event: RawEvent, base_start: datetime) -> datetime:
        """Series start in the event's own timezone, so wall-clock rules survive DST."""
        tz_name = event.start.time_zone
        if not tz_name or tz_name.upper() == "UTC":
            return base_start
        try:
            return base_start.astimezone(ZoneInfo(tz_name))
        except (ZoneInfoNotFoundError, ValueError):
            logger.debug("Unknown TZID %r for %s, expanding in UTC", tz_name, event.uid)
            return base_start


_default_expander = OccurrenceExpander()


def expand(event: RawEvent, now: datetime) -> list[RawEvent]:
    """Expand an event with the default window and limits."""
    return _default_expander.expand(event, now)
