"""Time conflict checks used when validating new or edited events."""
from typing import Iterable, List

from calendar_engine.models import Event


def events_overlap(first: Event, second: Event) -> bool:
    """Half-open overlap; abutting events do not overlap."""
    return first.start < second.end and first.end > second.start


def detect_conflicts(candidate: Event, existing: Iterable[Event]) -> List[Event]:
    """
    Existing events whose time range overlaps the candidate's.

    An event sharing the candidate's id is ignored so an event being
    edited does not conflict with its stored version.

    Args:
        candidate: New or edited event
        existing: Events already on the calendar

    Returns:
        Conflicting events in input order
    """
    return [
        event for event in existing
        if event.id != candidate.id and events_overlap(candidate, event)
    ]


def has_conflicts(candidate: Event, existing: Iterable[Event]) -> bool:
    return bool(detect_conflicts(candidate, existing))
