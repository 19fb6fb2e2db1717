"""Unit tests for conflict detection."""
import pytest

from calendar_engine.conflicts import detect_conflicts, events_overlap, has_conflicts


@pytest.fixture
def meeting(make_event):
    return make_event("meeting", "2023-01-02T10:00:00Z", "2023-01-02T11:00:00Z")


def test_overlapping_event_is_conflict(make_event, meeting):
    """Test that only the partially overlapping event is reported."""
    lunch = make_event("lunch", "2023-01-02T12:00:00Z", "2023-01-02T13:00:00Z")
    candidate = make_event("new", "2023-01-02T10:30:00Z", "2023-01-02T11:30:00Z")

    assert detect_conflicts(candidate, [meeting, lunch]) == [meeting]
    assert has_conflicts(candidate, [meeting, lunch])


def test_abutting_event_is_not_conflict(make_event, meeting):
    """Test that back-to-back events do not conflict."""
    candidate = make_event("new", "2023-01-02T11:00:00Z", "2023-01-02T12:00:00Z")

    assert detect_conflicts(candidate, [meeting]) == []
    assert not has_conflicts(candidate, [meeting])


def test_event_does_not_conflict_with_itself(make_event, meeting):
    """Test that an edited event ignores its stored version."""
    edited = make_event("meeting", "2023-01-02T10:15:00Z", "2023-01-02T11:15:00Z")

    assert detect_conflicts(edited, [meeting]) == []


def test_contained_event_is_conflict(make_event, meeting):
    """Test that an event inside another conflicts."""
    candidate = make_event("new", "2023-01-02T10:15:00Z", "2023-01-02T10:45:00Z")

    assert detect_conflicts(candidate, [meeting]) == [meeting]


def test_overlap_is_symmetric(make_event):
    """Test that the overlap relation does not depend on argument order."""
    events = [
        make_event("a", "2023-01-02T09:00:00Z", "2023-01-02T10:00:00Z"),
        make_event("b", "2023-01-02T09:30:00Z", "2023-01-02T11:00:00Z"),
        make_event("c", "2023-01-02T10:00:00Z", "2023-01-02T10:30:00Z"),
        make_event("d", "2023-01-02T12:00:00Z", "2023-01-02T13:00:00Z"),
    ]

    for first in events:
        for second in events:
            assert events_overlap(first, second) == events_overlap(second, first)
