"""Recurrence expansion: turn a recurring event into dated occurrences."""
import calendar
import logging
from dataclasses import replace
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Iterator, List, Optional

from dateutil.relativedelta import relativedelta

from calendar_engine.models import Event, Frequency, RecurrenceRule
from calendar_engine.timeutils import InstantLike, sunday_based_weekday, to_utc

logger = logging.getLogger(__name__)

# Occurrences generated for a rule with neither count nor until.
DEFAULT_OCCURRENCE_CAP = 100

# Consecutive periods without a matching date before a rule is abandoned.
MAX_EMPTY_PERIODS = 1000


def _period_delta(rule: RecurrenceRule, period: int) -> relativedelta:
    steps = rule.interval * period
    if rule.freq is Frequency.DAILY:
        return relativedelta(days=steps)
    if rule.freq is Frequency.WEEKLY:
        return relativedelta(weeks=steps)
    if rule.freq is Frequency.MONTHLY:
        return relativedelta(months=steps)
    return relativedelta(years=steps)


def _period_dates(rule: RecurrenceRule, anchor: date) -> List[date]:
    """Candidate dates of one period, in order, before filtering."""
    if rule.freq is Frequency.WEEKLY and rule.by_weekday:
        week_start = anchor - timedelta(days=sunday_based_weekday(anchor))
        return [week_start + timedelta(days=day) for day in rule.by_weekday]

    if rule.freq is Frequency.MONTHLY and rule.by_month_day:
        days_in_month = calendar.monthrange(anchor.year, anchor.month)[1]
        return [
            anchor.replace(day=day) for day in rule.by_month_day
            if day <= days_in_month
        ]

    return [anchor]


def _matches(rule: RecurrenceRule, day: date) -> bool:
    if rule.by_weekday and rule.freq is not Frequency.WEEKLY:
        if sunday_based_weekday(day) not in rule.by_weekday:
            return False
    if rule.by_month_day and rule.freq is not Frequency.MONTHLY:
        if day.day not in rule.by_month_day:
            return False
    return True


def _period_floor(rule: RecurrenceRule, anchor: date) -> date:
    if rule.freq is Frequency.WEEKLY and rule.by_weekday:
        return anchor - timedelta(days=sunday_based_weekday(anchor))
    if rule.freq is Frequency.MONTHLY and rule.by_month_day:
        return anchor.replace(day=1)
    return anchor


def iter_occurrence_starts(
    base_start: datetime,
    rule: RecurrenceRule,
    stop_at: Optional[datetime] = None,
    all_day: bool = False
) -> Iterator[datetime]:
    """
    Yield occurrence start instants of a rule in ascending order.

    Period arithmetic is done on wall-clock time in the rule's timezone,
    always measured from base_start so month ends do not drift. All-day
    series step on plain dates and start at UTC midnight, whatever the
    rule's timezone. Count and until are not applied here.

    Args:
        base_start: Start of the first occurrence
        rule: Recurrence rule
        stop_at: Stop once a whole period begins at or after this instant
        all_day: Whether the series belongs to an all-day event

    Yields:
        UTC datetimes
    """
    if all_day:
        tz = timezone.utc
        base_local = datetime.combine(to_utc(base_start).date(), time.min, tzinfo=tz)
    else:
        tz = rule.tz
        base_local = base_start.astimezone(tz)
    wall_time = base_local.time()
    limit = stop_at
    if rule.until is not None and (limit is None or rule.until < limit):
        limit = rule.until + timedelta(microseconds=1)

    period = 0
    empty_periods = 0
    while True:
        try:
            anchor = (base_local + _period_delta(rule, period)).date()
        except (ValueError, OverflowError):
            logger.debug(f"Recurrence {rule.to_dict()} ran past {date.max.year}; stopping")
            return
        floor = datetime.combine(_period_floor(rule, anchor), wall_time, tzinfo=tz)
        if limit is not None and floor >= limit:
            return

        emitted = False
        for day in _period_dates(rule, anchor):
            candidate = datetime.combine(day, wall_time, tzinfo=tz)
            if candidate < base_local or not _matches(rule, day):
                continue
            emitted = True
            yield to_utc(candidate)

        if emitted:
            empty_periods = 0
        else:
            empty_periods += 1
            if empty_periods >= MAX_EMPTY_PERIODS:
                logger.warning(
                    f"Recurrence {rule.to_dict()} produced no dates for "
                    f"{MAX_EMPTY_PERIODS} periods; stopping"
                )
                return
        period += 1


def expand_recurring_event(
    event: Event,
    range_start: InstantLike,
    range_end: InstantLike,
    max_occurrences: int = DEFAULT_OCCURRENCE_CAP
) -> List[Event]:
    """
    Materialize the occurrences of an event that start within a window.

    Occurrences get the id '{base_id}-{index}', where index counts every
    generated date from the base start, so ids are stable across windows.
    A rule without count or until stops after max_occurrences dates; later
    dates are not generated.

    Args:
        event: Base event; non-recurring events are returned unchanged
        range_start: Window start (inclusive)
        range_end: Window end (exclusive)
        max_occurrences: Fallback cap for unbounded rules

    Returns:
        Occurrences ordered by start
    """
    rule = event.recurrence
    if rule is None:
        return [event]

    window_start = to_utc(range_start)
    window_end = to_utc(range_end)
    cap = rule.count if rule.count is not None else max_occurrences
    duration = event.duration

    occurrences = []
    index = 0
    truncated = False
    for start in iter_occurrence_starts(
        event.start, rule, stop_at=window_end, all_day=event.all_day
    ):
        if start >= window_end:
            break
        if rule.until is not None and start > rule.until:
            break
        if index >= cap:
            truncated = not rule.is_bounded
            break
        if start >= window_start:
            occurrences.append(
                replace(
                    event,
                    id=f"{event.id}-{index}",
                    start=start,
                    end=start + duration,
                    series_id=event.id,
                )
            )
        index += 1

    if truncated:
        logger.warning(
            f"Event '{event.id}' repeats without count or until; "
            f"expansion stopped after {cap} occurrences"
        )

    return occurrences


def expand_events(
    events: Iterable[Event],
    range_start: InstantLike,
    range_end: InstantLike,
    max_occurrences: int = DEFAULT_OCCURRENCE_CAP
) -> List[Event]:
    """Expand every recurring event of a collection, keeping input order."""
    expanded = []
    for event in events:
        expanded.extend(
            expand_recurring_event(event, range_start, range_end, max_occurrences)
        )
    return expanded
