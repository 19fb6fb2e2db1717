"""Time helpers for grid axes, pixel offsets and day boundaries."""
import math
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import List, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

from calendar_engine.errors import InvalidTimestampError

DEFAULT_SLOT_MINUTES = 15

InstantLike = Union[datetime, date, str]


def parse_instant(value: InstantLike) -> datetime:
    """
    Parse a timestamp into a timezone-aware datetime.

    Naive values are taken as UTC. Dates become midnight of that date.

    Args:
        value: datetime, date or ISO 8601 string

    Returns:
        Timezone-aware datetime (original offset preserved)

    Raises:
        InvalidTimestampError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str) and value.strip():
        try:
            parsed = isoparse(value.strip())
        except (ValueError, OverflowError) as e:
            raise InvalidTimestampError(value) from e
    else:
        raise InvalidTimestampError(value)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_utc(value: InstantLike) -> datetime:
    """Parse a timestamp and normalize it to UTC."""
    return parse_instant(value).astimezone(timezone.utc)


def resolve_timezone(name: Optional[str]) -> tzinfo:
    """
    Look up an IANA timezone by name.

    Args:
        name: Timezone name such as 'Europe/London'; empty means UTC

    Returns:
        tzinfo instance

    Raises:
        ValueError: If the timezone is unknown
    """
    if not name or name.upper() == 'UTC':
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {name}") from e


def to_local(value: InstantLike, tz: Optional[tzinfo] = None) -> datetime:
    """Convert an instant to wall-clock time in tz (unchanged when tz is None)."""
    moment = parse_instant(value)
    if tz is None:
        return moment
    return moment.astimezone(tz)


def local_date(value: InstantLike, tz: Optional[tzinfo] = None) -> date:
    """Calendar date of an instant as seen in tz."""
    return to_local(value, tz).date()


def parse_day(value: InstantLike, tz: Optional[tzinfo] = None) -> date:
    """
    Calendar date named by a value.

    Dates and 'YYYY-MM-DD' strings are taken as-is; instants are read in tz.

    Raises:
        InvalidTimestampError: If the value cannot be parsed
    """
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, str) and len(value.strip()) == 10:
        try:
            return date.fromisoformat(value.strip())
        except ValueError as e:
            raise InvalidTimestampError(value) from e
    return local_date(value, tz)


def start_of_day(day: InstantLike, tz: Optional[tzinfo] = None) -> datetime:
    """First instant of a calendar day in tz (UTC by default)."""
    tz = tz or timezone.utc
    return datetime.combine(parse_day(day, tz), time.min, tzinfo=tz)


def end_of_day(day: InstantLike, tz: Optional[tzinfo] = None) -> datetime:
    """Last representable instant of a calendar day in tz (UTC by default)."""
    tz = tz or timezone.utc
    return datetime.combine(parse_day(day, tz), time.max, tzinfo=tz)


def sunday_based_weekday(day: date) -> int:
    """Weekday number with 0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def slots_for_window(
    start_hour: int = 0,
    end_hour: int = 24,
    slot_minutes: int = 60
) -> List[str]:
    """
    Generate time-of-day labels for a grid axis.

    Args:
        start_hour: First visible hour (inclusive)
        end_hour: Last visible hour (exclusive)
        slot_minutes: Minutes between labels

    Returns:
        Ordered list of 'HH:MM' labels
    """
    if slot_minutes <= 0:
        raise ValueError(f"slot_minutes must be positive, got {slot_minutes}")
    if not 0 <= start_hour <= end_hour <= 24:
        raise ValueError(
            f"Invalid visible hours: {start_hour}-{end_hour}"
        )

    first_minute = start_hour * 60
    total_minutes = (end_hour - start_hour) * 60
    return [
        f"{(first_minute + offset) // 60:02d}:{(first_minute + offset) % 60:02d}"
        for offset in range(0, total_minutes, slot_minutes)
    ]


def _hour_height(container_height: float, start_hour: int, end_hour: int) -> float:
    if end_hour <= start_hour:
        raise ValueError(f"Invalid visible hours: {start_hour}-{end_hour}")
    return container_height / (end_hour - start_hour)


def vertical_offset(
    instant: InstantLike,
    container_height: float,
    start_hour: int = 0,
    end_hour: int = 24
) -> float:
    """
    Map an instant's wall-clock time onto the pixel axis of a time grid.

    Only hour and minute are used, so the calendar date does not matter.
    The result is not clipped to the container.

    Args:
        instant: Timestamp to place
        container_height: Pixel height of the visible hour range
        start_hour: First visible hour
        end_hour: Last visible hour

    Returns:
        Offset in pixels from the top of the grid
    """
    moment = parse_instant(instant)
    hour_height = _hour_height(container_height, start_hour, end_hour)
    hours = moment.hour + moment.minute / 60
    return (hours - start_hour) * hour_height


def time_from_offset(
    y: float,
    container_height: float,
    day: InstantLike,
    start_hour: int = 0,
    end_hour: int = 24,
    slot_minutes: int = DEFAULT_SLOT_MINUTES,
    tz: Optional[tzinfo] = None
) -> datetime:
    """
    Inverse of vertical_offset: the slot-aligned instant at pixel y on a day.

    Args:
        y: Pixel offset from the top of the grid
        container_height: Pixel height of the visible hour range
        day: Calendar day the grid column shows
        start_hour: First visible hour
        end_hour: Last visible hour
        slot_minutes: Snap granularity
        tz: Timezone of the grid (UTC by default)

    Returns:
        Timezone-aware datetime snapped to the nearest slot
    """
    hour_height = _hour_height(container_height, start_hour, end_hour)
    hours = y / hour_height + start_hour
    whole_hours = math.floor(hours)
    minutes = (hours - whole_hours) * 60
    snapped = math.floor(minutes / slot_minutes + 0.5) * slot_minutes
    return start_of_day(day, tz) + timedelta(hours=whole_hours, minutes=snapped)


def round_to_slot(instant: InstantLike, slot_minutes: int = DEFAULT_SLOT_MINUTES) -> datetime:
    """Round an instant to the nearest slot boundary (halves round up)."""
    moment = parse_instant(instant)
    minutes = (
        moment.minute
        + moment.second / 60
        + moment.microsecond / 60_000_000
    )
    rounded = math.floor(minutes / slot_minutes + 0.5) * slot_minutes
    hour_start = moment.replace(minute=0, second=0, microsecond=0)
    return hour_start + timedelta(minutes=rounded)


def week_days(anchor: InstantLike, week_starts_on: int = 1) -> List[date]:
    """
    The seven dates of the week containing anchor.

    Args:
        anchor: Any date in the week
        week_starts_on: 0 for Sunday, 1 for Monday

    Returns:
        List of seven consecutive dates
    """
    day = parse_day(anchor, None)
    offset = (sunday_based_weekday(day) - week_starts_on) % 7
    first = day - timedelta(days=offset)
    return [first + timedelta(days=i) for i in range(7)]


def month_weeks(anchor: InstantLike, week_starts_on: int = 1) -> List[List[date]]:
    """Whole weeks covering the month that contains anchor."""
    first_of_month = parse_day(anchor, None).replace(day=1)
    last_of_month = first_of_month + relativedelta(months=1) - timedelta(days=1)

    weeks = []
    week = week_days(first_of_month, week_starts_on)
    while week[0] <= last_of_month:
        weeks.append(week)
        week = [day + timedelta(days=7) for day in week]
    return weeks


def format_time(instant: InstantLike, use_24h: bool = False) -> str:
    """Format wall-clock time as '15:30' or '3:30 PM'."""
    moment = parse_instant(instant)
    if use_24h:
        return f"{moment.hour:02d}:{moment.minute:02d}"
    hour = moment.hour % 12 or 12
    suffix = 'AM' if moment.hour < 12 else 'PM'
    return f"{hour}:{moment.minute:02d} {suffix}"


def duration_minutes(start: InstantLike, end: InstantLike) -> int:
    """Whole minutes between two instants, truncated toward zero."""
    seconds = (parse_instant(end) - parse_instant(start)).total_seconds()
    return int(seconds / 60)
