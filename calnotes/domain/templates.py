"""Template fields for notes created from an occurrence."""

import logging
import re

from calnotes.calendar.datetime_utils import serialize_datetime_optional
from calnotes.calendar.models import RawEvent

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{\{\s*([a-zA-Z_]+)\s*\}\}")


def template_fields(occurrence: RawEvent) -> dict[str, str]:
    """Plain-string values a note template may reference.

    Attendees are joined by ", " using their name, or their email when the
    feed gave no name. Start and end are normalized ISO instants, or empty
    when they do not resolve.
    """
    attendees = [a.display_name for a in occurrence.attendees if a.display_name]
    return {
        "summary": occurrence.summary or "",
        "location": occurrence.location or "",
        "description": occurrence.description or "",
        "attendees": ", ".join(attendees),
        "start": serialize_datetime_optional(occurrence.start.instant) or "",
        "end": serialize_datetime_optional(occurrence.end.instant) or "",
    }


def render_template(template: str, occurrence: RawEvent) -> str:
    """Replace ``{{field}}`` placeholders; unknown placeholders are left as-is."""
    fields = template_fields(occurrence)

    def _substitute(match: re.Match) -> str:
        key = match.group(1)
        if key not in fields:
            logger.debug("Unknown template placeholder %r", key)
            return match.group(0)
        return fields[key]

    return _PLACEHOLDER.sub(_substitute, template)
