"""Data models for calendar feed processing - calnotes version."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from .datetime_utils import ensure_timezone_aware, normalize_instant
from .datetime_utils import now_utc as _now_utc


class CalendarSource(BaseModel):
    """Configuration for one calendar feed."""

    name: str = Field(..., description="Human-readable name for this calendar source")
    url: str = Field(..., description="ICS calendar URL")
    timeout: int = Field(default=30, description="HTTP timeout in seconds")

    model_config = ConfigDict(frozen=True)


class Attendee(BaseModel):
    """Calendar event attendee."""

    name: Optional[str] = Field(default=None, description="Attendee display name (CN)")
    email: Optional[str] = Field(default=None, description="Attendee email address")

    @property
    def display_name(self) -> str:
        """Name if known, otherwise email, otherwise empty string."""
        return self.name or self.email or ""


class EventTime(BaseModel):
    """Start or end of an event as delivered by the feed.

    ``date`` holds whatever the parser produced: a datetime, a string, or
    nothing. Only normalize_instant() decides whether it is a usable instant.
    """

    date: Optional[Union[datetime, str]] = Field(default=None, description="Date or date string")
    time_zone: Optional[str] = Field(default=None, description="TZID reported by the feed")
    is_all_day: bool = Field(default=False, description="Date-only value")

    @property
    def instant(self) -> Optional[datetime]:
        """Normalized UTC instant, or None if the value does not resolve."""
        return normalize_instant(self.date)

    @field_serializer("date", when_used="json")
    def serialize_date(self, value: Optional[Union[datetime, str]]) -> Optional[str]:
        """Serialize datetime values to ISO format, leave strings as they are."""
        if isinstance(value, datetime):
            return value.isoformat()
        return value


class RawEvent(BaseModel):
    """A single VEVENT as parsed from a feed.

    A RawEvent without ``recurrence_rule`` is already a concrete occurrence.
    Occurrences produced by expansion carry an explicit ``id`` and never a
    rule, so they cannot be expanded twice.
    """

    uid: str = Field(..., description="UID, stable per event series")
    id: Optional[str] = Field(default=None, description="Explicit identity for expanded occurrences")
    recurrence_id: Optional[str] = Field(
        default=None, description="RECURRENCE-ID for modified instances of a series"
    )

    summary: Optional[str] = Field(default=None, description="Event title")
    location: Optional[str] = Field(default=None, description="Event location")
    description: Optional[str] = Field(default=None, description="Event description")
    attendees: list[Attendee] = Field(default_factory=list, description="Event attendees")

    start: EventTime = Field(default_factory=EventTime, description="Event start")
    end: EventTime = Field(default_factory=EventTime, description="Event end")

    recurrence_rule: Optional[str] = Field(default=None, description="RRULE value text")
    exdates: list[datetime] = Field(
        default_factory=list, description="Instants excluded from the series"
    )
    duration: Optional[timedelta] = Field(default=None, description="Series DURATION")

    @property
    def identity(self) -> str:
        """Occurrence identity: explicit id for expansions, uid otherwise."""
        return self.id or self.uid

    @property
    def is_recurring(self) -> bool:
        return bool(self.recurrence_rule)

    def as_occurrence(self, identity: str, start: datetime, end: datetime) -> "RawEvent":
        """Build a concrete occurrence of this event.

        All fields are copied; identity, start and end are replaced and the
        series-level fields (rule, exdates, duration) are cleared.
        """
        return self.model_copy(
            deep=True,
            update={
                "id": identity,
                "start": self.start.model_copy(update={"date": start}),
                "end": self.end.model_copy(update={"date": end}),
                "recurrence_rule": None,
                "exdates": [],
                "duration": None,
            },
        )

    def with_normalized_times(self) -> "RawEvent":
        """Copy of this event whose start/end dates are normalized instants (or None)."""
        return self.model_copy(
            update={
                "start": self.start.model_copy(update={"date": self.start.instant}),
                "end": self.end.model_copy(update={"date": self.end.instant}),
            }
        )

    @field_serializer("exdates", when_used="json")
    def serialize_exdates(self, values: list[datetime]) -> list[str]:
        """Serialize excluded instants to ISO format."""
        return [v.isoformat() for v in values]


class CachedEvent(BaseModel):
    """An event annotated with the calendar source it came from."""

    source: CalendarSource
    event: RawEvent

    @property
    def identity(self) -> str:
        return self.event.identity


class ParseResult(BaseModel):
    """Result of ICS parsing operation."""

    events: list[RawEvent] = Field(default_factory=list, description="Parsed calendar events")
    source_url: Optional[str] = Field(default=None, description="Source URL for tracking")
    calendar_name: Optional[str] = None
    timezone: Optional[str] = None

    # Parse statistics
    total_components: int = 0
    event_count: int = 0
    recurring_event_count: int = 0

    warnings: list[str] = Field(default_factory=list)
    parse_time: datetime = Field(default_factory=_now_utc)


@dataclass(frozen=True)
class RelevanceWindow:
    """How far behind and ahead of "now" occurrences are considered."""

    lookbehind: timedelta = timedelta(hours=1)
    lookahead: timedelta = timedelta(hours=24)

    def bounds(self, now: datetime) -> tuple[datetime, datetime]:
        """Return the (start, end) of the window anchored at now."""
        now = ensure_timezone_aware(now)
        return now - self.lookbehind, now + self.lookahead


DEFAULT_WINDOW = RelevanceWindow()
