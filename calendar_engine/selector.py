"""Select events that intersect a day or an arbitrary time range."""
from datetime import datetime, tzinfo
from typing import Iterable, List, Optional, Tuple

from calendar_engine.models import Event
from calendar_engine.timeutils import (
    InstantLike,
    end_of_day,
    local_date,
    parse_instant,
    start_of_day,
)


def _within(moment: datetime, start: datetime, end: datetime) -> bool:
    return start <= moment <= end


def event_intersects(
    event: Event,
    range_start: datetime,
    range_end: datetime,
    tz: Optional[tzinfo] = None
) -> bool:
    """
    Inclusive intersection test between an event and a closed interval.

    Timed events intersect when their start or end lies inside the
    interval, or the interval start lies inside the event. All-day events
    compare calendar dates only.
    """
    if event.all_day:
        first_day = local_date(range_start, tz)
        last_day = local_date(range_end, tz)
        return event.start_date <= last_day and event.end_date >= first_day

    return (
        _within(event.start, range_start, range_end)
        or _within(event.end, range_start, range_end)
        or _within(range_start, event.start, event.end)
    )


def events_in_range(
    events: Iterable[Event],
    start: InstantLike,
    end: InstantLike,
    tz: Optional[tzinfo] = None
) -> List[Event]:
    """
    Events intersecting the closed interval [start, end], in input order.

    Args:
        events: Event collection (raw or already expanded)
        start: Interval start
        end: Interval end
        tz: Timezone used to read the interval's calendar dates

    Returns:
        Matching events

    Raises:
        InvalidTimestampError: If start or end cannot be parsed
        ValueError: If end is before start
    """
    range_start = parse_instant(start)
    range_end = parse_instant(end)
    if range_end < range_start:
        raise ValueError(f"Range end {range_end} is before start {range_start}")

    return [
        event for event in events
        if event_intersects(event, range_start, range_end, tz)
    ]


def events_for_day(
    events: Iterable[Event],
    day: InstantLike,
    tz: Optional[tzinfo] = None
) -> List[Event]:
    """Events intersecting one calendar day in tz (UTC by default)."""
    return events_in_range(events, start_of_day(day, tz), end_of_day(day, tz), tz)


def split_all_day(events: Iterable[Event]) -> Tuple[List[Event], List[Event]]:
    """Split events into (all_day, timed) lists, keeping order."""
    all_day = []
    timed = []
    for event in events:
        (all_day if event.all_day else timed).append(event)
    return all_day, timed


def upcoming_events(
    events: Iterable[Event],
    now: InstantLike,
    limit: int = 5
) -> List[Event]:
    """The next events starting after now, soonest first."""
    moment = parse_instant(now)
    future = [event for event in events if event.start > moment]
    return sorted(future, key=lambda event: event.start)[:limit]


def search_events(events: Iterable[Event], query: str) -> List[Event]:
    """Case-insensitive match on title, description and location."""
    needle = query.lower()
    return [
        event for event in events
        if needle in event.title.lower()
        or needle in (event.description or '').lower()
        or needle in (event.location or '').lower()
    ]
