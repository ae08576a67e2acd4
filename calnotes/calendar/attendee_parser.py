"""Attendee parsing utilities for ICS calendar processing - calnotes.

Parses ATTENDEE properties from iCalendar components into Attendee models.
"""

import logging
from typing import Any, Optional

from .models import Attendee

logger = logging.getLogger(__name__)


class AttendeeParser:
    """Parser for iCalendar ATTENDEE properties."""

    def parse_attendee(self, attendee_prop: Any) -> Optional[Attendee]:
        """Parse attendee from iCalendar property.

        Args:
            attendee_prop: iCalendar ATTENDEE property (vCalAddress)

        Returns:
            Parsed Attendee or None if the property carries neither name nor email
        """
        value = str(attendee_prop).strip()
        if value.lower().startswith("mailto:"):
            value = value[len("mailto:") :]
        email = value or None

        params = getattr(attendee_prop, "params", {}) or {}
        name = params.get("CN") or None
        if name is not None:
            name = str(name).strip().strip('"') or None

        if name is None and email is None:
            logger.debug("Skipping empty ATTENDEE property")
            return None

        return Attendee(name=name, email=email)

    def parse_attendees(self, component: Any) -> list[Attendee]:
        """Parse all attendees from an iCalendar component, preserving feed order.

        Args:
            component: iCalendar component (e.g., VEVENT)

        Returns:
            List of parsed Attendee objects
        """
        attendee_props = component.get("ATTENDEE", [])

        # A single ATTENDEE comes back as a bare property, several as a list
        if not isinstance(attendee_props, list):
            attendee_props = [attendee_props] if attendee_props else []

        attendees = []
        for attendee_prop in attendee_props:
            attendee = self.parse_attendee(attendee_prop)
            if attendee:
                attendees.append(attendee)

        return attendees
