"""Unit tests for recurrence expansion."""
import logging
from datetime import datetime, timedelta, timezone

import pytest

from calendar_engine.errors import InvalidRecurrenceError, InvalidTimestampError
from calendar_engine.models import Event, Frequency, RecurrenceRule
from calendar_engine.recurrence import (
    DEFAULT_OCCURRENCE_CAP,
    expand_events,
    expand_recurring_event,
)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def recurring(rule, start="2023-01-01T09:00:00Z", end="2023-01-01T10:00:00Z", event_id="e"):
    return Event(id=event_id, title="Standup", start=start, end=end, recurrence=rule)


class TestRecurrenceRule:
    """Test cases for rule validation."""

    def test_zero_interval_rejected(self):
        """Test that interval 0 is an invalid rule."""
        with pytest.raises(InvalidRecurrenceError):
            RecurrenceRule(freq=Frequency.DAILY, interval=0)

    def test_invalid_rule_is_value_error(self):
        """Test that callers catching ValueError also catch rule errors."""
        with pytest.raises(ValueError):
            RecurrenceRule(freq=Frequency.DAILY, interval=-2)

    def test_unknown_frequency(self):
        """Test that an unknown frequency is rejected."""
        with pytest.raises(InvalidRecurrenceError):
            RecurrenceRule(freq='HOURLY')

    def test_weekday_out_of_range(self):
        """Test that weekdays must be 0-6."""
        with pytest.raises(InvalidRecurrenceError):
            RecurrenceRule(freq=Frequency.WEEKLY, by_weekday=(7,))

    def test_unknown_timezone(self):
        """Test that an unknown timezone is rejected."""
        with pytest.raises(InvalidRecurrenceError):
            RecurrenceRule(freq=Frequency.DAILY, timezone='Mars/Olympus')

    def test_from_dict_accepts_camel_case(self):
        """Test building a rule from a web client payload."""
        rule = RecurrenceRule.from_dict(
            {'freq': 'weekly', 'interval': 2, 'byWeekday': [3, 1], 'count': 4}
        )

        assert rule.freq is Frequency.WEEKLY
        assert rule.interval == 2
        assert rule.by_weekday == (1, 3)
        assert rule.count == 4
        assert rule.is_bounded


class TestExpandRecurringEvent:
    """Test cases for expand_recurring_event."""

    def test_daily_count_three(self):
        """Test a daily rule bounded by count."""
        event = recurring(RecurrenceRule(freq=Frequency.DAILY, count=3))

        occurrences = expand_recurring_event(event, "2023-01-01", "2023-12-31")

        assert [o.id for o in occurrences] == ["e-0", "e-1", "e-2"]
        assert [o.start for o in occurrences] == [
            utc(2023, 1, 1, 9), utc(2023, 1, 2, 9), utc(2023, 1, 3, 9)
        ]
        assert all(o.series_id == "e" for o in occurrences)

    def test_non_recurring_event_returned_unchanged(self):
        """Test that a plain event passes through."""
        event = Event(id="x", title="Lunch", start="2023-01-01T12:00:00Z",
                      end="2023-01-01T13:00:00Z")

        assert expand_recurring_event(event, "2023-01-01", "2023-01-02") == [event]

    def test_count_bounds_unbounded_window(self):
        """Test that exactly count occurrences are produced in a huge window."""
        event = recurring(RecurrenceRule(freq=Frequency.WEEKLY, count=7))

        occurrences = expand_recurring_event(event, "2023-01-01", "2100-01-01")

        assert len(occurrences) == 7
        starts = [o.start for o in occurrences]
        assert starts == sorted(starts)
        assert len(set(starts)) == 7

    def test_duration_preserved(self):
        """Test that every occurrence keeps the base duration."""
        event = recurring(
            RecurrenceRule(freq=Frequency.MONTHLY, count=5),
            start="2023-01-15T14:00:00Z",
            end="2023-01-15T15:30:00Z",
        )

        occurrences = expand_recurring_event(event, "2023-01-01", "2024-01-01")

        assert all(o.end - o.start == timedelta(minutes=90) for o in occurrences)

    def test_window_skips_earlier_occurrences(self):
        """Test that indexes count from the base start, not the window."""
        event = recurring(RecurrenceRule(freq=Frequency.DAILY, count=10))

        occurrences = expand_recurring_event(event, "2023-01-05", "2023-01-07")

        assert [o.id for o in occurrences] == ["e-4", "e-5"]
        assert occurrences[0].start == utc(2023, 1, 5, 9)

    def test_ids_stable_across_windows(self):
        """Test that the same date gets the same id in different windows."""
        event = recurring(RecurrenceRule(freq=Frequency.DAILY, count=10))

        wide = {o.id: o.start for o in expand_recurring_event(event, "2023-01-01", "2023-01-11")}
        narrow = {o.id: o.start for o in expand_recurring_event(event, "2023-01-05", "2023-01-07")}

        for occurrence_id, start in narrow.items():
            assert wide[occurrence_id] == start

    def test_until_is_inclusive(self):
        """Test that an occurrence starting exactly at until is kept."""
        event = recurring(
            RecurrenceRule(freq=Frequency.DAILY, until="2023-01-04T09:00:00Z")
        )

        occurrences = expand_recurring_event(event, "2023-01-01", "2023-12-31")

        assert [o.start for o in occurrences][-1] == utc(2023, 1, 4, 9)
        assert len(occurrences) == 4

    def test_count_and_until_whichever_first(self):
        """Test that count and until both bound the series."""
        by_count = recurring(
            RecurrenceRule(freq=Frequency.DAILY, count=2, until="2023-01-10T00:00:00Z")
        )
        by_until = recurring(
            RecurrenceRule(freq=Frequency.DAILY, count=10, until="2023-01-03T09:00:00Z")
        )

        assert len(expand_recurring_event(by_count, "2023-01-01", "2023-12-31")) == 2
        assert len(expand_recurring_event(by_until, "2023-01-01", "2023-12-31")) == 3

    def test_unbounded_rule_stops_at_fallback_cap(self, caplog):
        """Test that a rule without count or until is capped."""
        caplog.set_level(logging.WARNING)
        event = recurring(RecurrenceRule(freq=Frequency.DAILY))

        occurrences = expand_recurring_event(event, "2023-01-01", "2100-01-01")

        assert len(occurrences) == DEFAULT_OCCURRENCE_CAP == 100
        assert occurrences[-1].id == "e-99"
        assert "without count or until" in caplog.text

    def test_custom_cap(self):
        """Test overriding the fallback cap."""
        event = recurring(RecurrenceRule(freq=Frequency.DAILY))

        occurrences = expand_recurring_event(
            event, "2023-01-01", "2100-01-01", max_occurrences=5
        )

        assert len(occurrences) == 5

    def test_no_warning_when_window_ends_first(self, caplog):
        """Test that a window smaller than the cap does not warn."""
        caplog.set_level(logging.WARNING)
        event = recurring(RecurrenceRule(freq=Frequency.DAILY))

        occurrences = expand_recurring_event(event, "2023-01-01", "2023-01-08")

        assert len(occurrences) == 7
        assert "without count or until" not in caplog.text

    def test_weekly_by_weekday(self):
        """Test a weekly rule on Monday and Wednesday."""
        event = recurring(
            RecurrenceRule(freq=Frequency.WEEKLY, by_weekday=(1, 3), count=4),
            start="2023-01-02T09:00:00Z",
            end="2023-01-02T10:00:00Z",
        )

        starts = [o.start for o in expand_recurring_event(event, "2023-01-01", "2023-02-01")]

        assert starts == [
            utc(2023, 1, 2, 9), utc(2023, 1, 4, 9), utc(2023, 1, 9, 9), utc(2023, 1, 11, 9)
        ]

    def test_weekly_with_interval(self):
        """Test that interval 2 skips every other week."""
        event = recurring(RecurrenceRule(freq=Frequency.WEEKLY, interval=2, count=3))

        starts = [o.start for o in expand_recurring_event(event, "2023-01-01", "2023-03-01")]

        assert starts == [utc(2023, 1, 1, 9), utc(2023, 1, 15, 9), utc(2023, 1, 29, 9)]

    def test_daily_filtered_to_weekdays(self):
        """Test a daily rule limited to Monday-Friday."""
        event = recurring(
            RecurrenceRule(freq=Frequency.DAILY, by_weekday=(1, 2, 3, 4, 5), count=3),
            start="2023-01-06T09:00:00Z",
            end="2023-01-06T10:00:00Z",
        )

        starts = [o.start for o in expand_recurring_event(event, "2023-01-01", "2023-02-01")]

        assert starts == [utc(2023, 1, 6, 9), utc(2023, 1, 9, 9), utc(2023, 1, 10, 9)]

    def test_monthly_from_month_end_does_not_drift(self):
        """Test that a series starting on the 31st clamps without drifting."""
        event = recurring(
            RecurrenceRule(freq=Frequency.MONTHLY, count=4),
            start="2023-01-31T09:00:00Z",
            end="2023-01-31T10:00:00Z",
        )

        starts = [o.start for o in expand_recurring_event(event, "2023-01-01", "2024-01-01")]

        assert starts == [
            utc(2023, 1, 31, 9), utc(2023, 2, 28, 9), utc(2023, 3, 31, 9), utc(2023, 4, 30, 9)
        ]

    def test_monthly_by_month_day(self):
        """Test a monthly rule on the 1st and 15th."""
        event = recurring(
            RecurrenceRule(freq=Frequency.MONTHLY, by_month_day=(1, 15), count=3),
            start="2023-01-10T09:00:00Z",
            end="2023-01-10T10:00:00Z",
        )

        starts = [o.start for o in expand_recurring_event(event, "2023-01-01", "2024-01-01")]

        assert starts == [utc(2023, 1, 15, 9), utc(2023, 2, 1, 9), utc(2023, 2, 15, 9)]

    def test_yearly_on_leap_day(self):
        """Test a biennial rule from February 29th."""
        event = recurring(
            RecurrenceRule(freq=Frequency.YEARLY, interval=2, count=3),
            start="2020-02-29T09:00:00Z",
            end="2020-02-29T10:00:00Z",
        )

        starts = [o.start for o in expand_recurring_event(event, "2020-01-01", "2030-01-01")]

        assert starts == [utc(2020, 2, 29, 9), utc(2022, 2, 28, 9), utc(2024, 2, 29, 9)]

    def test_wall_clock_kept_across_dst(self):
        """Test that a rule with a timezone keeps local time across DST."""
        event = recurring(
            RecurrenceRule(freq=Frequency.DAILY, count=3, timezone='America/New_York'),
            start="2023-03-10T14:00:00Z",
            end="2023-03-10T15:00:00Z",
        )

        starts = [o.start for o in expand_recurring_event(event, "2023-03-01", "2023-04-01")]

        assert starts == [utc(2023, 3, 10, 14), utc(2023, 3, 11, 14), utc(2023, 3, 12, 13)]

    def test_all_day_series_keeps_dates_across_dst(self):
        """Test that an all-day series with a timezone stays on its dates."""
        event = Event(
            id="a", title="Bins", start="2023-03-01", end="2023-03-01", all_day=True,
            recurrence=RecurrenceRule(freq=Frequency.WEEKLY, count=3,
                                      timezone='America/New_York'),
        )

        occurrences = expand_recurring_event(event, "2023-02-01", "2023-04-01")

        assert [o.start for o in occurrences] == [
            utc(2023, 3, 1), utc(2023, 3, 8), utc(2023, 3, 15)
        ]
        assert occurrences[2].start_date.isoformat() == "2023-03-15"
        assert all(o.all_day for o in occurrences)

    def test_never_matching_rule_with_unbounded_window(self):
        """Test that a rule with no dates stops before the last year."""
        event = recurring(
            RecurrenceRule(freq=Frequency.YEARLY, interval=10, by_month_day=(30,)),
            start="2023-02-28T09:00:00Z",
            end="2023-02-28T10:00:00Z",
        )

        assert expand_recurring_event(
            event, "2023-01-01", datetime.max.replace(tzinfo=timezone.utc)
        ) == []

    def test_invalid_window(self):
        """Test that an unparseable window bound raises."""
        event = recurring(RecurrenceRule(freq=Frequency.DAILY, count=3))

        with pytest.raises(InvalidTimestampError):
            expand_recurring_event(event, "garbage", "2023-12-31")


def test_expand_events_keeps_plain_events():
    """Test that expand_events mixes plain events and occurrences."""
    plain = Event(id="p", title="Lunch", start="2023-01-01T12:00:00Z",
                  end="2023-01-01T13:00:00Z")
    series = recurring(RecurrenceRule(freq=Frequency.DAILY, count=2))

    expanded = expand_events([plain, series], "2023-01-01", "2023-01-10")

    assert [e.id for e in expanded] == ["p", "e-0", "e-1"]


def test_invalid_event_timestamp():
    """Test that an event with a malformed start cannot be built."""
    with pytest.raises(InvalidTimestampError):
        Event(id="bad", title="Bad", start="garbage", end="2023-01-01T10:00:00Z")
