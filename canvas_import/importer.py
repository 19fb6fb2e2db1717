"""Import Canvas courses, assignments and calendar events as calendar events."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from bs4 import BeautifulSoup

from calendar_engine.errors import CalendarError
from calendar_engine.event_processor import EventProcessor
from calendar_engine.models import Event, ImportedItem, ImportedItemKind, ImportStats
from calendar_engine.timeutils import end_of_day, start_of_day, to_utc
from canvas_import.client import CanvasApiError, CanvasClient

logger = logging.getLogger(__name__)


def strip_html(html: Optional[str]) -> str:
    """Plain text of a Canvas HTML description."""
    if not html:
        return ''
    soup = BeautifulSoup(html, 'html.parser')
    return soup.get_text(separator=' ', strip=True)


class CanvasImporter:
    """Turns Canvas payloads into calendar events."""

    ACTIVE_STATES = ('available', 'published')
    CALENDAR_LOOKBACK_DAYS = 30
    CALENDAR_LOOKAHEAD_DAYS = 365

    def __init__(self, client: CanvasClient, processor: Optional[EventProcessor] = None):
        """
        Initialize the importer.

        Args:
            client: Canvas API client
            processor: Used for id generation and field limits
        """
        self.client = client
        self.processor = processor or EventProcessor()

    def run(self, now: Optional[datetime] = None) -> Tuple[List[Event], ImportStats]:
        """
        Fetch everything importable for the current user.

        Failures on a single course, assignment or calendar event are
        recorded in the stats and do not stop the import. Failing to read
        the user or the course list aborts it.

        Args:
            now: Reference time for the calendar event window

        Returns:
            Tuple of (events, stats)

        Raises:
            CanvasApiError: If the user or course list cannot be read
        """
        now = now or datetime.now(timezone.utc)
        stats = ImportStats()
        events = []

        user = self.client.get_current_user()
        logger.info(f"Importing Canvas data for user {user.get('id')}")

        courses = [
            course for course in self.client.get_courses()
            if course.get('workflow_state') in self.ACTIVE_STATES
        ]
        stats.courses_processed = len(courses)

        for index, course in enumerate(courses, start=1):
            logger.info(
                f"Processing course {index}/{len(courses)}: {course.get('name')}"
            )
            try:
                assignments = self.client.get_course_assignments(str(course['id']))
            except CanvasApiError as e:
                logger.warning(f"Failed to process course {course.get('id')}: {e}")
                stats.errors.append(f"Course \"{course.get('name')}\": {e}")
                continue

            for assignment in assignments:
                try:
                    item = self.parse_assignment(assignment, course)
                    if item is None:
                        continue
                    events.append(self.to_event(item))
                    stats.assignments_imported += 1
                    if item.is_weighted:
                        stats.weighted_assignments += 1
                except (KeyError, ValueError, TypeError, CalendarError) as e:
                    logger.warning(
                        f"Failed to process assignment {assignment.get('id')}: {e}"
                    )
                    stats.errors.append(f"Assignment \"{assignment.get('name')}\": {e}")

        try:
            calendar_events = self.client.get_calendar_events(
                start_of_day(now - timedelta(days=self.CALENDAR_LOOKBACK_DAYS)).isoformat(),
                end_of_day(now + timedelta(days=self.CALENDAR_LOOKAHEAD_DAYS)).isoformat(),
                [f"course_{course['id']}" for course in courses],
            )
        except CanvasApiError as e:
            logger.warning(f"Failed to fetch calendar events: {e}")
            stats.errors.append(f"Calendar events: {e}")
            calendar_events = []

        for payload in calendar_events:
            try:
                item = self.parse_calendar_event(payload, courses)
                if item is None:
                    continue
                events.append(self.to_event(item))
                stats.events_imported += 1
            except (KeyError, ValueError, TypeError, CalendarError) as e:
                logger.warning(f"Failed to process calendar event {payload.get('id')}: {e}")
                stats.errors.append(f"Calendar event \"{payload.get('title')}\": {e}")

        logger.info(
            f"Imported {stats.assignments_imported} assignments "
            f"({stats.weighted_assignments} weighted) and {stats.events_imported} "
            f"events from {stats.courses_processed} courses"
        )
        if stats.errors:
            logger.warning(f"Canvas import completed with {len(stats.errors)} warnings")

        return events, stats

    def parse_assignment(
        self,
        assignment: Mapping[str, Any],
        course: Mapping[str, Any]
    ) -> Optional[ImportedItem]:
        """
        Validate a Canvas assignment payload.

        Returns:
            ImportedItem, or None for assignments without a due date or
            that are not published
        """
        if not assignment.get('due_at'):
            return None
        if assignment.get('workflow_state') != 'published':
            return None

        dates = assignment.get('all_dates') or [{'due_at': assignment['due_at']}]
        due_at = dates[0].get('due_at')
        if not due_at:
            return None
        due = to_utc(due_at)

        points = float(assignment.get('points_possible') or 0)
        is_weighted = not assignment.get('omit_from_final_grade') and points > 0
        course_name = course.get('name') or 'Canvas'
        description = strip_html(assignment.get('description'))

        return ImportedItem(
            kind=ImportedItemKind.ASSIGNMENT,
            external_id=f"assignment_{assignment['id']}",
            title=assignment['name'],
            start=due,
            end=due,
            course_id=str(course['id']),
            course_name=course_name,
            description=(
                f"{description}\n\nCourse: {course_name}" if description
                else f"Canvas Assignment from {course_name}"
            ),
            location=f"{course_name} ({course.get('course_code') or 'Canvas'})",
            is_weighted=is_weighted,
            weight=float(assignment.get('group_weight') or 0),
            points_possible=points,
        )

    def parse_calendar_event(
        self,
        payload: Mapping[str, Any],
        courses: Sequence[Mapping[str, Any]]
    ) -> Optional[ImportedItem]:
        """
        Validate a Canvas calendar event payload.

        Returns:
            ImportedItem, or None for events without start and end or
            that mirror an assignment
        """
        if not payload.get('start_at') or not payload.get('end_at'):
            return None
        if (payload.get('assignment') or {}).get('id'):
            return None

        course_id = self._course_id_of(payload)
        course = next(
            (c for c in courses if str(c.get('id')) == course_id), None
        )
        course_name = course.get('name') if course else 'Canvas'

        return ImportedItem(
            kind=ImportedItemKind.CALENDAR_EVENT,
            external_id=f"event_{payload['id']}",
            title=payload['title'],
            start=to_utc(payload['start_at']),
            end=to_utc(payload['end_at']),
            course_id=course_id,
            course_name=course_name,
            description=(
                strip_html(payload.get('description'))
                or f"Canvas event from {course_name}"
            ),
            location=payload.get('location_name') or course_name,
            all_day=bool(payload.get('all_day')),
        )

    def to_event(self, item: ImportedItem) -> Event:
        """Build the calendar event for an imported item."""
        now = datetime.now(timezone.utc)
        color, reminders = self._presentation_for(item)
        return Event(
            id=self.processor.generate_event_id(),
            title=item.title[:self.processor.MAX_TITLE_LENGTH],
            start=item.start,
            end=item.end,
            all_day=item.all_day,
            description=item.description[:self.processor.MAX_DESCRIPTION_LENGTH],
            color=color,
            location=item.location,
            reminders=reminders,
            created_at=now,
            updated_at=now,
            external_id=item.external_id,
            course_id=item.course_id,
            is_weighted=item.is_weighted,
            weight=item.weight,
            points_possible=item.points_possible,
        )

    def _presentation_for(self, item: ImportedItem) -> Tuple[str, Tuple[int, ...]]:
        """Colour name and reminder offsets for an imported item."""
        if item.kind is ImportedItemKind.CALENDAR_EVENT:
            return 'pink', (30,)
        if not item.is_weighted:
            return 'yellow', (60,)
        if item.weight >= 30:
            color = 'red'
        elif item.weight >= 15:
            color = 'orange'
        else:
            color = 'green'
        return color, (1440, 60)

    def _course_id_of(self, payload: Mapping[str, Any]) -> Optional[str]:
        if payload.get('context_id') is not None:
            return str(payload['context_id'])
        context_code = payload.get('context_code') or ''
        if context_code.startswith('course_'):
            return context_code[len('course_'):]
        return None


def import_summary(stats: ImportStats) -> Dict[str, Any]:
    return {
        'courses_processed': stats.courses_processed,
        'assignments_imported': stats.assignments_imported,
        'weighted_assignments': stats.weighted_assignments,
        'events_imported': stats.events_imported,
        'errors': stats.errors,
    }
