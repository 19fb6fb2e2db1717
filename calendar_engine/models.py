"""Data models for the calendar engine."""
import os
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from calendar_engine.errors import InvalidRecurrenceError
from calendar_engine.timeutils import resolve_timezone, to_utc


class Frequency(str, Enum):
    """Recurrence period."""
    DAILY = 'DAILY'
    WEEKLY = 'WEEKLY'
    MONTHLY = 'MONTHLY'
    YEARLY = 'YEARLY'


class CalendarView(str, Enum):
    """Calendar view mode."""
    DAY = 'day'
    WEEK = 'week'
    MONTH = 'month'


class ImportedItemKind(str, Enum):
    """Kind of record produced by the Canvas import."""
    ASSIGNMENT = 'assignment'
    CALENDAR_EVENT = 'event'


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return default


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class RecurrenceRule:
    """How a recurring event repeats."""
    freq: Frequency
    interval: int = 1
    by_weekday: Tuple[int, ...] = ()
    by_month_day: Tuple[int, ...] = ()
    count: Optional[int] = None
    until: Optional[datetime] = None
    timezone: Optional[str] = None

    def __post_init__(self):
        try:
            freq = Frequency(
                self.freq.value if isinstance(self.freq, Frequency)
                else str(self.freq).upper()
            )
        except ValueError as e:
            raise InvalidRecurrenceError(f"Unknown frequency: {self.freq!r}") from e
        object.__setattr__(self, 'freq', freq)

        if isinstance(self.interval, bool) or not isinstance(self.interval, int):
            raise InvalidRecurrenceError(f"Interval must be an integer, got {self.interval!r}")
        if self.interval < 1:
            raise InvalidRecurrenceError(f"Interval must be at least 1, got {self.interval}")

        weekdays = tuple(sorted(set(int(day) for day in self.by_weekday)))
        if any(not 0 <= day <= 6 for day in weekdays):
            raise InvalidRecurrenceError(f"Weekdays must be 0-6, got {weekdays}")
        object.__setattr__(self, 'by_weekday', weekdays)

        month_days = tuple(sorted(set(int(day) for day in self.by_month_day)))
        if any(not 1 <= day <= 31 for day in month_days):
            raise InvalidRecurrenceError(f"Month days must be 1-31, got {month_days}")
        object.__setattr__(self, 'by_month_day', month_days)

        if self.count is not None and int(self.count) < 0:
            raise InvalidRecurrenceError(f"Count must not be negative, got {self.count}")
        if self.count is not None:
            object.__setattr__(self, 'count', int(self.count))

        if self.until is not None:
            object.__setattr__(self, 'until', to_utc(self.until))

        if self.timezone:
            try:
                resolve_timezone(self.timezone)
            except ValueError as e:
                raise InvalidRecurrenceError(str(e)) from e

    @property
    def tz(self) -> tzinfo:
        return resolve_timezone(self.timezone)

    @property
    def is_bounded(self) -> bool:
        return self.count is not None or self.until is not None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'RecurrenceRule':
        """Build a rule from a snake_case or camelCase mapping."""
        interval = _pick(data, 'interval', default=1)
        return cls(
            freq=_pick(data, 'freq', 'frequency'),
            interval=int(interval) if not isinstance(interval, bool) else interval,
            by_weekday=tuple(_pick(data, 'by_weekday', 'byWeekday', default=())),
            by_month_day=tuple(_pick(data, 'by_month_day', 'byMonthDay', default=())),
            count=_pick(data, 'count'),
            until=_pick(data, 'until'),
            timezone=_pick(data, 'timezone'),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {'freq': self.freq.value, 'interval': self.interval}
        if self.by_weekday:
            data['by_weekday'] = list(self.by_weekday)
        if self.by_month_day:
            data['by_month_day'] = list(self.by_month_day)
        if self.count is not None:
            data['count'] = self.count
        if self.until is not None:
            data['until'] = self.until.isoformat()
        if self.timezone:
            data['timezone'] = self.timezone
        return data


@dataclass(frozen=True)
class Event:
    """
    Calendar event.

    Instances are never mutated; edits produce a new Event through
    dataclasses.replace. Timestamps are stored as UTC instants.
    Occurrences of a recurring event are Events whose series_id names
    the base event.
    """
    id: str
    title: str
    start: datetime
    end: datetime
    all_day: bool = False
    description: Optional[str] = None
    color: Optional[str] = None
    location: Optional[str] = None
    recurrence: Optional[RecurrenceRule] = None
    reminders: Tuple[int, ...] = ()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    series_id: Optional[str] = None
    external_id: Optional[str] = None
    course_id: Optional[str] = None
    is_weighted: bool = False
    weight: float = 0
    points_possible: float = 0

    def __post_init__(self):
        object.__setattr__(self, 'start', to_utc(self.start))
        object.__setattr__(self, 'end', to_utc(self.end))
        for name in ('created_at', 'updated_at'):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, to_utc(value))
        if isinstance(self.recurrence, Mapping):
            object.__setattr__(self, 'recurrence', RecurrenceRule.from_dict(self.recurrence))
        object.__setattr__(self, 'reminders', tuple(int(m) for m in self.reminders))

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None

    @property
    def start_date(self) -> date:
        """Nominal calendar date of the start (used for all-day events)."""
        return self.start.date()

    @property
    def end_date(self) -> date:
        return self.end.date()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-friendly dict."""
        data = {
            'id': self.id,
            'title': self.title,
            'start': self.start.isoformat(),
            'end': self.end.isoformat(),
            'all_day': self.all_day,
            'description': self.description,
            'color': self.color,
            'location': self.location,
            'recurrence': self.recurrence.to_dict() if self.recurrence else None,
            'reminders': list(self.reminders),
            'created_at': _isoformat(self.created_at),
            'updated_at': _isoformat(self.updated_at),
        }
        if self.series_id:
            data['series_id'] = self.series_id
        if self.external_id:
            data['external_id'] = self.external_id
            data['course_id'] = self.course_id
            data['is_weighted'] = self.is_weighted
            data['weight'] = self.weight
            data['points_possible'] = self.points_possible
        return data


@dataclass(frozen=True)
class PositionedEvent:
    """An event placed in a column of its overlap cluster."""
    event: Event
    column: int
    max_columns: int

    @property
    def id(self) -> str:
        return self.event.id

    @property
    def start(self) -> datetime:
        return self.event.start

    @property
    def end(self) -> datetime:
        return self.event.end

    def to_dict(self) -> Dict[str, Any]:
        data = self.event.to_dict()
        data['column'] = self.column
        data['max_columns'] = self.max_columns
        return data


@dataclass(frozen=True)
class Task:
    """To-do item with an optional due instant."""
    id: str
    title: str
    due: Optional[datetime] = None
    notes: Optional[str] = None
    priority: str = 'med'
    completed: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.priority not in ('low', 'med', 'high'):
            raise ValueError(f"Unknown priority: {self.priority!r}")
        for name in ('due', 'created_at', 'updated_at'):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, to_utc(value))


@dataclass(frozen=True)
class AvailabilitySlot:
    """Available time range on a weekday (0=Sunday), 'HH:MM' strings."""
    day: int
    start: str
    end: str


@dataclass(frozen=True)
class AvailabilityException:
    """Override of the weekly template for one date."""
    date: date
    available: bool
    slots: Optional[Tuple[AvailabilitySlot, ...]] = None


def _default_weekly_slots() -> Tuple[AvailabilitySlot, ...]:
    return tuple(AvailabilitySlot(day, '09:00', '17:00') for day in range(1, 6))


@dataclass(frozen=True)
class Availability:
    """Weekly availability template plus per-date exceptions."""
    weekly: Tuple[AvailabilitySlot, ...] = field(default_factory=_default_weekly_slots)
    exceptions: Tuple[AvailabilityException, ...] = ()


@dataclass(frozen=True)
class ImportedItem:
    """Canvas payload validated at the import boundary."""
    kind: ImportedItemKind
    external_id: str
    title: str
    start: datetime
    end: datetime
    course_id: Optional[str]
    course_name: str
    description: str = ''
    location: str = ''
    all_day: bool = False
    is_weighted: bool = False
    weight: float = 0
    points_possible: float = 0


@dataclass
class ImportStats:
    """Result of a Canvas import run."""
    courses_processed: int = 0
    assignments_imported: int = 0
    weighted_assignments: int = 0
    events_imported: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class UpsertResult:
    """Result of writing events to the repository."""
    added: int
    updated: int
    errors: List[str]


@dataclass(frozen=True)
class ViewSettings:
    """User settings that shape the time grid."""
    slot_minutes: int = 15
    start_hour: int = 0
    end_hour: int = 24
    hour_height: float = 60
    week_starts_on: int = 1
    timezone: str = 'UTC'
    use_24h: bool = False
    month_cell_limit: int = 3

    def __post_init__(self):
        if self.week_starts_on not in (0, 1):
            raise ValueError(f"week_starts_on must be 0 or 1, got {self.week_starts_on}")
        if self.slot_minutes <= 0:
            raise ValueError(f"slot_minutes must be positive, got {self.slot_minutes}")
        if not 0 <= self.start_hour < self.end_hour <= 24:
            raise ValueError(f"Invalid visible hours: {self.start_hour}-{self.end_hour}")
        resolve_timezone(self.timezone)

    @property
    def tz(self) -> tzinfo:
        return resolve_timezone(self.timezone)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'ViewSettings':
        """Read settings from environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            slot_minutes=int(env.get('SLOT_MINUTES', '15')),
            start_hour=int(env.get('START_HOUR', '0')),
            end_hour=int(env.get('END_HOUR', '24')),
            hour_height=float(env.get('HOUR_HEIGHT', '60')),
            week_starts_on=int(env.get('WEEK_STARTS_ON', '1')),
            timezone=env.get('TIMEZONE', 'UTC'),
            use_24h=env.get('TIME_FORMAT', '12h') == '24h',
            month_cell_limit=int(env.get('MONTH_CELL_LIMIT', '3')),
        )

