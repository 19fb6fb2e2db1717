"""Shared fixtures for calendar engine tests."""
import pytest

from calendar_engine.models import Event


def build_event(event_id, start, end, **fields):
    """Create an Event with a default title."""
    fields.setdefault('title', f"Event {event_id}")
    return Event(id=event_id, start=start, end=end, **fields)


@pytest.fixture
def make_event():
    """Factory fixture for Event objects."""
    return build_event
