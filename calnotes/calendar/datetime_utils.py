"""DateTime utilities for calendar processing - calnotes.

Every start/end value that reaches the relevance logic goes through
normalize_instant() first, so the rest of the package only ever compares
timezone-aware UTC datetimes.
"""

import logging
import os
from datetime import UTC, date, datetime
from typing import Any, Optional

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

TEST_TIME_ENV_VAR = "CALNOTES_TEST_TIME"


def ensure_timezone_aware(dt: datetime) -> datetime:
    """Ensure datetime is timezone-aware.

    Args:
        dt: Datetime to make timezone-aware

    Returns:
        Timezone-aware datetime (UTC if originally naive)
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def to_utc(dt: datetime) -> datetime:
    """Convert a datetime to UTC, assuming UTC for naive values."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _parse_instant_string(value: str) -> Optional[datetime]:
    text = value.strip()
    if not text:
        return None

    # ISO 8601 only: partial strings like "10:30" must not borrow the wall clock
    try:
        return date_parser.isoparse(text)
    except (ValueError, OverflowError):
        logger.debug("Unparseable instant string %r", value)
        return None


def normalize_instant(value: Any) -> Optional[datetime]:
    """Coerce a date-ish value into a UTC instant, or None when unknown.

    Accepts:
    - datetime: converted to UTC (naive values are taken as UTC)
    - date: midnight UTC of that day (all-day events)
    - str: ISO 8601 in basic or extended form (partial strings such as
      "10:30" or "Monday" do not resolve)

    Anything else, including strings that do not parse, yields None. This
    function never raises.

    Examples:
        >>> normalize_instant("2024-03-15T10:00:00Z")
        datetime.datetime(2024, 3, 15, 10, 0, tzinfo=datetime.timezone.utc)
        >>> normalize_instant("not a date") is None
        True
    """
    try:
        if isinstance(value, datetime):
            return to_utc(value)
        if isinstance(value, date):
            return datetime.combine(value, datetime.min.time(), tzinfo=UTC)
        if isinstance(value, str):
            parsed = _parse_instant_string(value)
            return to_utc(parsed) if parsed is not None else None
    except (ValueError, OverflowError, TypeError) as e:
        logger.debug("Failed to normalize instant %r: %s", value, e)
    return None


def serialize_datetime_utc(dt: datetime) -> str:
    """Serialize datetime to ISO 8601 UTC string with Z suffix.

    Args:
        dt: Datetime to serialize (timezone-aware or naive)

    Returns:
        ISO 8601 string with Z suffix (e.g., "2024-11-04T16:30:00Z")

    Raises:
        ValueError: If datetime is None
    """
    if dt is None:
        raise ValueError("Cannot serialize None datetime")

    return to_utc(dt).isoformat().replace("+00:00", "Z")


def serialize_datetime_optional(dt: Optional[datetime]) -> Optional[str]:
    """Serialize optional datetime, returning None if input is None."""
    return serialize_datetime_utc(dt) if dt is not None else None


def now_utc() -> datetime:
    """Return current UTC time with tzinfo.

    Can be overridden for testing via the CALNOTES_TEST_TIME environment
    variable (ISO 8601, e.g. "2024-03-15T10:00:00Z").
    """
    test_time = os.environ.get(TEST_TIME_ENV_VAR)
    if test_time:
        override = normalize_instant(test_time)
        if override is not None:
            return override
        logger.warning("Invalid %s=%r, using wall clock", TEST_TIME_ENV_VAR, test_time)

    return datetime.now(UTC)
