"""iCalendar feed parser - calnotes version.

Turns raw ICS text into RawEvent models. Recurring masters are kept
unexpanded; expansion happens later against a window anchored at "now".
"""

import hashlib
import logging
from datetime import date, datetime, timedelta
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from icalendar import Calendar

from ..exceptions import ParseError
from .attendee_parser import AttendeeParser
from .datetime_utils import normalize_instant, serialize_datetime_utc
from .models import EventTime, ParseResult, RawEvent

logger = logging.getLogger(__name__)


class ICSParser:
    """iCalendar parser producing RawEvent models."""

    def __init__(self) -> None:
        self._attendee_parser = AttendeeParser()

    def parse(self, ics_content: str, source_url: Optional[str] = None) -> ParseResult:
        """Parse ICS content into structured calendar events.

        Args:
            ics_content: Raw ICS file content
            source_url: Optional source URL for audit trail

        Returns:
            Parse result with events, calendar metadata and per-event warnings

        Raises:
            ParseError: If the content is empty or is not a calendar
        """
        if not ics_content or not ics_content.strip():
            raise ParseError("Empty ICS content", source_url=source_url)

        try:
            calendar = Calendar.from_ical(ics_content)
        except Exception as e:
            logger.warning("Failed to parse ICS content from %s: %s", source_url, e)
            raise ParseError(f"Malformed ICS content: {e}", source_url=source_url) from e

        if getattr(calendar, "name", None) != "VCALENDAR":
            raise ParseError("Content is not a VCALENDAR", source_url=source_url)

        calendar_name = self._get_calendar_property(calendar, "X-WR-CALNAME")
        timezone_str = self._get_calendar_property(calendar, "X-WR-TIMEZONE")
        default_tz = self._resolve_timezone(timezone_str)

        events: list[RawEvent] = []
        warnings: list[str] = []
        total_components = 0
        recurring_event_count = 0

        for component in calendar.walk():
            total_components += 1
            if component.name != "VEVENT":
                continue

            try:
                event = self.parse_event_component(component, default_tz)
            except Exception as e:
                warning = f"Failed to parse event: {e}"
                warnings.append(warning)
                logger.warning(warning)
                continue

            if event is None:
                continue

            events.append(event)
            if event.is_recurring:
                recurring_event_count += 1

        events = self._exclude_overridden_instances(events)

        logger.debug(
            "Parsed %d events (%d recurring) from %s",
            len(events),
            recurring_event_count,
            source_url or "<inline>",
        )

        return ParseResult(
            events=events,
            source_url=source_url,
            calendar_name=calendar_name,
            timezone=timezone_str,
            total_components=total_components,
            event_count=len(events),
            recurring_event_count=recurring_event_count,
            warnings=warnings,
        )

    def parse_event_component(
        self, component: Any, default_tz: Optional[ZoneInfo] = None
    ) -> Optional[RawEvent]:
        """Parse a single VEVENT component into a RawEvent.

        Returns None for cancelled events.
        """
        status = component.get("STATUS")
        if status is not None and str(status).upper() == "CANCELLED":
            logger.debug("Skipping cancelled event %s", component.get("UID"))
            return None

        uid = self._text(component.get("UID")) or self._fingerprint(component)

        start = self._event_time(component.get("DTSTART"), default_tz)
        end = self._event_time(component.get("DTEND"), default_tz)

        duration = self._duration(component.get("DURATION"))
        if end.date is None and duration is not None and isinstance(start.date, datetime):
            end = start.model_copy(update={"date": start.date + duration})
        elif end.date is None and start.is_all_day and isinstance(start.date, datetime):
            # RFC 5545: a date-only DTSTART without DTEND lasts one day
            end = start.model_copy(update={"date": start.date + timedelta(days=1)})

        rrule_prop = component.get("RRULE")
        if isinstance(rrule_prop, list):
            rrule_prop = rrule_prop[0] if rrule_prop else None
        recurrence_rule = rrule_prop.to_ical().decode("utf-8") if rrule_prop is not None else None

        recurrence_id = None
        recurrence_id_prop = component.get("RECURRENCE-ID")
        if recurrence_id_prop is not None:
            instant = normalize_instant(self._localize(recurrence_id_prop.dt, default_tz))
            recurrence_id = serialize_datetime_utc(instant) if instant else str(recurrence_id_prop)

        return RawEvent(
            uid=uid,
            recurrence_id=recurrence_id,
            summary=self._text(component.get("SUMMARY")),
            location=self._text(component.get("LOCATION")),
            description=self._text(component.get("DESCRIPTION")),
            attendees=self._attendee_parser.parse_attendees(component),
            start=start,
            end=end,
            recurrence_rule=recurrence_rule,
            exdates=self._collect_exdates(component, default_tz),
            duration=duration,
        )

    def _event_time(self, dt_prop: Any, default_tz: Optional[ZoneInfo]) -> EventTime:
        if dt_prop is None:
            return EventTime()

        value = getattr(dt_prop, "dt", dt_prop)
        params = getattr(dt_prop, "params", {}) or {}
        tzid = params.get("TZID")

        if isinstance(value, datetime):
            value = self._localize(value, default_tz)
            return EventTime(date=value, time_zone=tzid or _tz_name(value))
        if isinstance(value, date):
            # Date-only (all-day) value: midnight UTC
            return EventTime(date=normalize_instant(value), time_zone=tzid, is_all_day=True)
        return EventTime(date=str(value), time_zone=tzid)

    def _localize(self, value: Any, default_tz: Optional[ZoneInfo]) -> Any:
        """Attach the calendar default timezone to floating datetimes."""
        if isinstance(value, datetime) and value.tzinfo is None and default_tz is not None:
            return value.replace(tzinfo=default_tz)
        return value

    def _duration(self, duration_prop: Any) -> Optional[timedelta]:
        if duration_prop is None:
            return None
        value = getattr(duration_prop, "dt", None)
        return value if isinstance(value, timedelta) else None

    def _collect_exdates(self, component: Any, default_tz: Optional[ZoneInfo]) -> list[datetime]:
        """Collect EXDATE instants, handling single and repeated EXDATE lines."""
        exdate_props = component.get("EXDATE")
        if exdate_props is None:
            return []
        if not isinstance(exdate_props, list):
            exdate_props = [exdate_props]

        exdates = []
        for prop in exdate_props:
            for item in getattr(prop, "dts", []):
                instant = normalize_instant(self._localize(getattr(item, "dt", None), default_tz))
                if instant is None:
                    logger.warning("Ignoring unparseable EXDATE %r", item)
                    continue
                exdates.append(instant)
        return exdates

    def _exclude_overridden_instances(self, events: list[RawEvent]) -> list[RawEvent]:
        """Exclude RECURRENCE-ID overrides from their master series.

        A moved instance appears in the feed as its own VEVENT with the
        master's UID and a RECURRENCE-ID naming the original slot. That slot
        is added to the master's exdates so it is not produced twice.
        """
        overrides: dict[str, list[datetime]] = {}
        for event in events:
            if event.recurrence_id and not event.is_recurring:
                instant = normalize_instant(event.recurrence_id)
                if instant is not None:
                    overrides.setdefault(event.uid, []).append(instant)

        if not overrides:
            return events

        result = []
        for event in events:
            if event.is_recurring and event.uid in overrides:
                logger.debug(
                    "Excluding %d overridden instances from series %s",
                    len(overrides[event.uid]),
                    event.uid,
                )
                event = event.model_copy(
                    update={"exdates": [*event.exdates, *overrides[event.uid]]}
                )
            result.append(event)
        return result

    def _get_calendar_property(self, calendar: Calendar, prop_name: str) -> Optional[str]:
        """Get calendar-level property as text."""
        return self._text(calendar.get(prop_name))

    def _resolve_timezone(self, tz_name: Optional[str]) -> Optional[ZoneInfo]:
        if not tz_name:
            return None
        try:
            return ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown calendar timezone %r, floating times treated as UTC", tz_name)
            return None

    @staticmethod
    def _text(prop: Any) -> Optional[str]:
        if prop is None:
            return None
        text = str(prop).strip()
        return text or None

    @staticmethod
    def _fingerprint(component: Any) -> str:
        """Stable identity for a VEVENT that has no UID."""
        digest = hashlib.sha1(component.to_ical(), usedforsecurity=False).hexdigest()
        logger.debug("VEVENT without UID, using fingerprint %s", digest[:16])
        return digest[:16]


def _tz_name(value: datetime) -> Optional[str]:
    return str(value.tzinfo) if value.tzinfo is not None else None
