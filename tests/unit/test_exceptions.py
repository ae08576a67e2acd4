"""Tests for the calnotes exception hierarchy."""

import pytest

from calnotes.exceptions import (
    CalNotesError,
    ConfigurationError,
    MalformedEventError,
    ParseError,
    TransportError,
)

pytestmark = [pytest.mark.unit, pytest.mark.fast]


@pytest.mark.parametrize("exc_type", [TransportError, ParseError, MalformedEventError, ConfigurationError])
def test_all_errors_derive_from_base(exc_type):
    """test_all_errors_derive_from_base"""
    assert issubclass(exc_type, CalNotesError)


def test_transport_error_carries_url_and_status():
    """test_transport_error_carries_url_and_status"""
    error = TransportError("HTTP 503", url="https://example.com/a.ics", status_code=503)
    assert str(error) == "HTTP 503"
    assert error.url == "https://example.com/a.ics"
    assert error.status_code == 503


def test_malformed_event_error_message_names_event():
    """test_malformed_event_error_message_names_event"""
    error = MalformedEventError("uid-1", "no start")
    assert error.uid == "uid-1"
    assert error.reason == "no start"
    assert "uid-1" in str(error)
    assert "no start" in str(error)
