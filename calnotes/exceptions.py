"""Exception hierarchy for calnotes.

Per-source errors (transport, parse) and per-event errors (malformed
recurring events) are raised at the seam where they are detected and
caught by the refresh driver or the aggregation pipeline, which log them
and carry on with the remaining sources and events.
"""

from typing import Optional


class CalNotesError(Exception):
    """Base exception for all calnotes errors."""


class TransportError(CalNotesError):
    """Feed could not be retrieved.

    Raised when:
    - The URL is unreachable or the request times out
    - The server answers with a non-success status
    - The response body is empty
    """

    def __init__(self, message: str, url: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ParseError(CalNotesError):
    """Feed text is not a valid calendar."""

    def __init__(self, message: str, source_url: Optional[str] = None):
        super().__init__(message)
        self.source_url = source_url


class MalformedEventError(CalNotesError):
    """A recurring event cannot be expanded.

    Raised when the base start or end of a series does not resolve to an
    instant, or when its recurrence rule cannot be evaluated. The event is
    skipped; other events are unaffected.
    """

    def __init__(self, uid: str, reason: str):
        super().__init__(f"Cannot expand event {uid!r}: {reason}")
        self.uid = uid
        self.reason = reason


class ConfigurationError(CalNotesError):
    """Configuration file is present but unusable."""
