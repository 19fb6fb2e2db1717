"""Event processor for validating and normalizing raw event records."""
import logging
import uuid
from datetime import datetime, time, timedelta, timezone
from typing import Any, List, Mapping, Optional

from calendar_engine.errors import CalendarError
from calendar_engine.models import Event, RecurrenceRule
from calendar_engine.palette import COLOR_NAMES
from calendar_engine.timeutils import format_time, parse_day, to_local, to_utc

logger = logging.getLogger(__name__)


def _pick(record: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return default


class EventProcessor:
    """Processor for turning raw event records into Event values."""

    MAX_TITLE_LENGTH = 200
    MAX_DESCRIPTION_LENGTH = 2000
    DEFAULT_DURATION_MINUTES = 60

    def process_records(self, records: List[Mapping[str, Any]]) -> List[Event]:
        """
        Process and validate raw event records.

        Invalid records are logged and skipped.

        Args:
            records: Event dicts from storage, forms or imports

        Returns:
            List of validated Event objects
        """
        events = []

        for record in records:
            try:
                events.append(self.parse_record(record))
            except (CalendarError, ValueError, TypeError) as e:
                logger.warning(
                    f"Failed to process event '{record.get('title')}': {e}"
                )
                continue

        logger.info(
            f"Processed {len(events)} valid events out of "
            f"{len(records)} total records"
        )
        return events

    def parse_record(self, record: Mapping[str, Any]) -> Event:
        """
        Build an Event from one raw record.

        Accepts snake_case keys and the camelCase keys used by the web
        client (allDay, repeat, createdAt, minutesBefore).

        Args:
            record: Raw event dict

        Returns:
            Event

        Raises:
            InvalidTimestampError: If a timestamp cannot be parsed
            InvalidRecurrenceError: If the recurrence rule is invalid
            ValueError: If required fields are missing or end is before start
        """
        self._validate_required_fields(record)

        all_day = bool(_pick(record, 'all_day', 'allDay', default=False))
        start, end = self._normalize_range(
            record['start'], record.get('end'), all_day
        )

        title = record['title'].strip()[:self.MAX_TITLE_LENGTH]
        description = record.get('description')
        if description:
            description = description[:self.MAX_DESCRIPTION_LENGTH]

        now = datetime.now(timezone.utc)

        return Event(
            id=str(record.get('id') or self.generate_event_id()),
            title=title,
            start=start,
            end=end,
            all_day=all_day,
            description=description,
            color=self._normalize_color(record.get('color')),
            location=record.get('location'),
            recurrence=self._parse_recurrence(_pick(record, 'recurrence', 'repeat')),
            reminders=self._parse_reminders(record.get('reminders') or []),
            created_at=_pick(record, 'created_at', 'createdAt', default=now),
            updated_at=_pick(record, 'updated_at', 'updatedAt', default=now),
            external_id=_pick(record, 'external_id', 'canvasId'),
            course_id=_pick(record, 'course_id', 'canvasCourseId'),
            is_weighted=bool(_pick(record, 'is_weighted', 'isWeighted', default=False)),
            weight=float(_pick(record, 'weight', default=0)),
            points_possible=float(
                _pick(record, 'points_possible', 'pointsPossible', default=0)
            ),
        )

    def _validate_required_fields(self, record: Mapping[str, Any]) -> None:
        """
        Check that required fields are present and non-empty.

        Raises:
            ValueError: If title or start is missing
        """
        title = record.get('title')
        if not isinstance(title, str) or not title.strip():
            raise ValueError("missing required field: title")

        if not record.get('start'):
            raise ValueError("missing required field: start")

    def _normalize_range(self, start_raw: Any, end_raw: Any, all_day: bool):
        """
        Normalize start and end to UTC instants.

        All-day events keep only their dates, stored as UTC midnight.
        Timed events without an end get the default duration.
        """
        if all_day:
            start_day = parse_day(start_raw)
            end_day = parse_day(end_raw) if end_raw else start_day
            start = datetime.combine(start_day, time.min, tzinfo=timezone.utc)
            end = datetime.combine(end_day, time.min, tzinfo=timezone.utc)
        else:
            start = to_utc(start_raw)
            if end_raw:
                end = to_utc(end_raw)
            else:
                end = start + timedelta(minutes=self.DEFAULT_DURATION_MINUTES)

        if end < start:
            raise ValueError(f"end {end.isoformat()} is before start {start.isoformat()}")
        return start, end

    def _parse_recurrence(self, value: Any) -> Optional[RecurrenceRule]:
        if not value:
            return None
        if isinstance(value, RecurrenceRule):
            return value
        return RecurrenceRule.from_dict(value)

    def _parse_reminders(self, values: List[Any]) -> List[int]:
        """Reminder offsets in minutes from ints or {'minutesBefore': n} dicts."""
        reminders = []
        for value in values:
            if isinstance(value, Mapping):
                value = _pick(value, 'minutes_before', 'minutesBefore')
            minutes = int(value)
            if minutes < 0:
                raise ValueError(f"reminder offset must not be negative: {minutes}")
            reminders.append(minutes)
        return reminders

    def _normalize_color(self, color: Optional[str]) -> Optional[str]:
        if not color:
            return None
        normalized = color.strip().lower()
        if normalized not in COLOR_NAMES:
            logger.debug(f"Unknown event colour '{color}', using default")
            return None
        return normalized

    def generate_event_id(self) -> str:
        """
        Generate a unique identifier for a new event.

        Returns:
            Random UUID string
        """
        return str(uuid.uuid4())


def format_event_time(event: Event, use_24h: bool = False, tz=None) -> str:
    """Display range such as '9:00 AM - 10:30 AM', or 'All day'."""
    if event.all_day:
        return 'All day'
    start = format_time(to_local(event.start, tz), use_24h)
    end = format_time(to_local(event.end, tz), use_24h)
    return f"{start} - {end}"


def event_duration_label(event: Event) -> str:
    """Compact duration such as '45m', '2h' or '1h 30m'."""
    if event.all_day:
        return 'All day'

    minutes = int(event.duration.total_seconds() // 60)
    if minutes < 60:
        return f"{minutes}m"

    hours, remaining = divmod(minutes, 60)
    if remaining == 0:
        return f"{hours}h"
    return f"{hours}h {remaining}m"
