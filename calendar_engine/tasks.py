"""Selectors over the to-do list."""
from dataclasses import replace
from datetime import datetime, timezone, tzinfo
from typing import Iterable, List, Optional

from calendar_engine.models import Task
from calendar_engine.timeutils import InstantLike, local_date, parse_instant


def _open_with_due(tasks: Iterable[Task]) -> List[Task]:
    return [task for task in tasks if task.due is not None and not task.completed]


def today_tasks(
    tasks: Iterable[Task],
    now: InstantLike,
    tz: Optional[tzinfo] = None
) -> List[Task]:
    """Open tasks due on the same calendar day as now."""
    today = local_date(now, tz)
    return [task for task in _open_with_due(tasks) if local_date(task.due, tz) == today]


def overdue_tasks(
    tasks: Iterable[Task],
    now: InstantLike,
    tz: Optional[tzinfo] = None
) -> List[Task]:
    """Open tasks whose due instant has passed, excluding those due today."""
    moment = parse_instant(now)
    today = local_date(moment, tz)
    return [
        task for task in _open_with_due(tasks)
        if task.due < moment and local_date(task.due, tz) != today
    ]


def upcoming_tasks(tasks: Iterable[Task], now: InstantLike) -> List[Task]:
    """Open tasks due after now, soonest first."""
    moment = parse_instant(now)
    pending = [task for task in _open_with_due(tasks) if task.due > moment]
    return sorted(pending, key=lambda task: task.due)


def completed_tasks(tasks: Iterable[Task]) -> List[Task]:
    return [task for task in tasks if task.completed]


def search_tasks(tasks: Iterable[Task], query: str) -> List[Task]:
    needle = query.lower()
    return [
        task for task in tasks
        if needle in task.title.lower() or needle in (task.notes or '').lower()
    ]


def toggle_task(task: Task, now: Optional[datetime] = None) -> Task:
    """Return a copy of task with its completion flag flipped."""
    return replace(
        task,
        completed=not task.completed,
        updated_at=now or datetime.now(timezone.utc),
    )
