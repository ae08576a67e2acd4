"""Shared fixtures for calnotes tests."""

from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from typing import Any, Callable, Optional

import pytest

from calnotes.calendar.datetime_utils import TEST_TIME_ENV_VAR
from calnotes.calendar.models import CalendarSource, EventTime, RawEvent


def pytest_configure(config: Any) -> None:
    """Register calnotes test markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "fast: Tests that run in well under a second")
    config.addinivalue_line("markers", "integration: Tests that wire several components together")


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Ensure CALNOTES_TEST_TIME does not leak between tests."""
    monkeypatch.delenv(TEST_TIME_ENV_VAR, raising=False)
    monkeypatch.delenv("CALNOTES_DEBUG", raising=False)
    monkeypatch.delenv("CALNOTES_LOG_LEVEL", raising=False)
    yield
    monkeypatch.delenv(TEST_TIME_ENV_VAR, raising=False)


@pytest.fixture
def now() -> datetime:
    """Fixed reference instant used by relevance tests: 2024-03-15 10:00 UTC."""
    return datetime(2024, 3, 15, 10, 0, tzinfo=UTC)


@pytest.fixture
def work_source() -> CalendarSource:
    return CalendarSource(name="work", url="https://calendar.example.com/work.ics")


@pytest.fixture
def home_source() -> CalendarSource:
    return CalendarSource(name="home", url="https://calendar.example.com/home.ics")


@pytest.fixture
def make_event() -> Callable[..., RawEvent]:
    """Factory for RawEvent instances with sensible defaults.

    Start and end may be datetimes, strings or None; ``duration`` is used
    to derive the end when only a datetime start is given.
    """

    def _make(
        uid: str = "evt-1",
        start: Any = None,
        end: Any = None,
        duration: Optional[timedelta] = timedelta(hours=1),
        summary: str = "Meeting",
        rule: Optional[str] = None,
        time_zone: Optional[str] = None,
        **kwargs: Any,
    ) -> RawEvent:
        if end is None and isinstance(start, datetime) and duration is not None:
            end = start + duration
        return RawEvent(
            uid=uid,
            summary=summary,
            start=EventTime(date=start, time_zone=time_zone),
            end=EventTime(date=end, time_zone=time_zone),
            recurrence_rule=rule,
            **kwargs,
        )

    return _make


@pytest.fixture
def sample_ics_simple() -> str:
    """ICS calendar with a single event on 2024-03-15 10:30-11:30 UTC."""
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//calnotes test//EN
X-WR-CALNAME:Work
BEGIN:VEVENT
UID:simple-001@calnotes.test
DTSTAMP:20240301T090000Z
DTSTART:20240315T103000Z
DTEND:20240315T113000Z
SUMMARY:Design review
LOCATION:Room 4
DESCRIPTION:Review the new layout
ATTENDEE;CN=Ada Lovelace:mailto:ada@example.com
ATTENDEE:mailto:bob@example.com
END:VEVENT
END:VCALENDAR
"""


@pytest.fixture
def sample_ics_recurring() -> str:
    """ICS calendar with a daily standup at 09:30-09:45 UTC since 2024-03-01."""
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//calnotes test//EN
BEGIN:VEVENT
UID:standup@calnotes.test
DTSTAMP:20240301T090000Z
DTSTART:20240301T093000Z
DTEND:20240301T094500Z
SUMMARY:Standup
RRULE:FREQ=DAILY
END:VEVENT
END:VCALENDAR
"""
