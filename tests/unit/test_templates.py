"""Tests for calnotes.domain.templates."""

from datetime import UTC, datetime

import pytest

from calnotes.calendar.models import Attendee
from calnotes.domain.templates import render_template, template_fields

pytestmark = [pytest.mark.unit, pytest.mark.fast]


def test_template_fields_are_plain_strings(make_event):
    """test_template_fields_are_plain_strings"""
    event = make_event(
        summary="Planning",
        start=datetime(2024, 3, 15, 10, tzinfo=UTC),
        location="Room 2",
        description="Quarterly planning",
        attendees=[Attendee(name="Ada", email="ada@example.com"), Attendee(email="bob@example.com")],
    )
    assert template_fields(event) == {
        "summary": "Planning",
        "location": "Room 2",
        "description": "Quarterly planning",
        "attendees": "Ada, bob@example.com",
        "start": "2024-03-15T10:00:00Z",
        "end": "2024-03-15T11:00:00Z",
    }


def test_template_fields_when_values_missing_then_empty_strings(make_event):
    """test_template_fields_when_values_missing_then_empty_strings"""
    fields = template_fields(make_event(summary=None, start="garbage"))
    assert fields["summary"] == ""
    assert fields["start"] == ""
    assert fields["end"] == ""
    assert fields["attendees"] == ""


def test_render_template_substitutes_known_placeholders(make_event):
    """test_render_template_substitutes_known_placeholders"""
    event = make_event(summary="Planning", start=datetime(2024, 3, 15, 10, tzinfo=UTC))
    rendered = render_template("# {{summary}}\nStarts {{ start }}\n{{unknown}}", event)
    assert rendered == "# Planning\nStarts 2024-03-15T10:00:00Z\n{{unknown}}"
