"""Unit tests for range selection."""
from datetime import date
from zoneinfo import ZoneInfo

import pytest

from calendar_engine.errors import InvalidTimestampError
from calendar_engine.selector import (
    events_for_day,
    events_in_range,
    search_events,
    split_all_day,
    upcoming_events,
)


@pytest.fixture
def late_show(make_event):
    """Event running across midnight."""
    return make_event("late", "2023-01-05T22:00:00Z", "2023-01-06T02:00:00Z")


class TestEventsForDay:
    """Test cases for selecting the events of one day."""

    def test_event_straddling_midnight_on_both_days(self, late_show):
        """Test that an overnight event appears on both days."""
        assert events_for_day([late_show], date(2023, 1, 5)) == [late_show]
        assert events_for_day([late_show], date(2023, 1, 6)) == [late_show]
        assert events_for_day([late_show], date(2023, 1, 7)) == []

    def test_all_day_span_includes_middle_day(self, make_event):
        """Test that a multi-day all-day event covers the days in between."""
        trip = make_event("trip", "2023-01-05", "2023-01-07", all_day=True)

        assert events_for_day([trip], date(2023, 1, 6)) == [trip]
        assert events_for_day([trip], date(2023, 1, 8)) == []
        assert events_for_day([trip], date(2023, 1, 4)) == []

    def test_all_day_uses_calendar_date_in_other_timezone(self, make_event):
        """Test that all-day events are not shifted by the view timezone."""
        holiday = make_event("holiday", "2023-01-06", "2023-01-06", all_day=True)
        tz = ZoneInfo("America/Los_Angeles")

        assert events_for_day([holiday], date(2023, 1, 6), tz) == [holiday]
        assert events_for_day([holiday], date(2023, 1, 5), tz) == []

    def test_event_containing_whole_day(self, make_event):
        """Test that an event spanning past both day bounds is selected."""
        conference = make_event("conf", "2023-01-01T08:00:00Z", "2023-01-10T18:00:00Z")

        assert events_for_day([conference], date(2023, 1, 5)) == [conference]

    def test_events_on_other_days_excluded(self, make_event):
        """Test that unrelated events are filtered out."""
        monday = make_event("mon", "2023-01-02T10:00:00Z", "2023-01-02T11:00:00Z")
        tuesday = make_event("tue", "2023-01-03T10:00:00Z", "2023-01-03T11:00:00Z")

        assert events_for_day([monday, tuesday], date(2023, 1, 3)) == [tuesday]


class TestEventsInRange:
    """Test cases for arbitrary ranges."""

    def test_range_bounds_are_inclusive(self, make_event):
        """Test that an event ending exactly at the range start is selected."""
        meeting = make_event("m", "2023-01-02T10:00:00Z", "2023-01-02T11:00:00Z")

        selected = events_in_range([meeting], "2023-01-02T11:00:00Z", "2023-01-02T12:00:00Z")

        assert selected == [meeting]

    def test_keeps_input_order(self, make_event):
        """Test that selection does not reorder events."""
        later = make_event("b", "2023-01-02T15:00:00Z", "2023-01-02T16:00:00Z")
        earlier = make_event("a", "2023-01-02T09:00:00Z", "2023-01-02T10:00:00Z")

        selected = events_in_range([later, earlier], "2023-01-02", "2023-01-03")

        assert [e.id for e in selected] == ["b", "a"]

    def test_invalid_bound(self):
        """Test that an unparseable bound raises InvalidTimestampError."""
        with pytest.raises(InvalidTimestampError):
            events_in_range([], "yesterday", "2023-01-03")

    def test_reversed_range(self):
        """Test that an end before the start is rejected."""
        with pytest.raises(ValueError):
            events_in_range([], "2023-01-03", "2023-01-02")


class TestHelpers:
    """Test cases for the list helpers."""

    def test_split_all_day(self, make_event):
        """Test splitting all-day from timed events."""
        timed = make_event("t", "2023-01-02T10:00:00Z", "2023-01-02T11:00:00Z")
        all_day = make_event("d", "2023-01-02", "2023-01-02", all_day=True)

        assert split_all_day([timed, all_day]) == ([all_day], [timed])

    def test_upcoming_events(self, make_event):
        """Test the soonest future events are returned first."""
        past = make_event("p", "2023-01-01T10:00:00Z", "2023-01-01T11:00:00Z")
        soon = make_event("s", "2023-01-03T10:00:00Z", "2023-01-03T11:00:00Z")
        later = make_event("l", "2023-01-09T10:00:00Z", "2023-01-09T11:00:00Z")

        upcoming = upcoming_events([later, past, soon], "2023-01-02T00:00:00Z", limit=1)

        assert upcoming == [soon]

    def test_search_events(self, make_event):
        """Test case-insensitive search over text fields."""
        lecture = make_event("l", "2023-01-02T10:00:00Z", "2023-01-02T11:00:00Z",
                             title="Lecture", location="Room 101")
        gym = make_event("g", "2023-01-02T18:00:00Z", "2023-01-02T19:00:00Z",
                         title="Gym", description="Leg day")

        assert search_events([lecture, gym], "room") == [lecture]
        assert search_events([lecture, gym], "LEG") == [gym]
