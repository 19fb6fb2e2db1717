"""Weekly availability with per-date exceptions."""
from typing import List, Optional

from calendar_engine.models import Availability, AvailabilityException, AvailabilitySlot
from calendar_engine.timeutils import InstantLike, parse_day, sunday_based_weekday


def _exception_for(availability: Availability, day) -> Optional[AvailabilityException]:
    for exception in availability.exceptions:
        if exception.date == day:
            return exception
    return None


def availability_for_date(
    availability: Availability,
    day: InstantLike
) -> List[AvailabilitySlot]:
    """
    Available slots on a date.

    A matching exception wins over the weekly template: an unavailable
    exception yields no slots, an exception with slots yields those slots
    for the date's weekday.

    Args:
        availability: Weekly template and exceptions
        day: Calendar date

    Returns:
        Slots for the date's weekday
    """
    target = parse_day(day)
    weekday = sunday_based_weekday(target)

    exception = _exception_for(availability, target)
    if exception is not None:
        if not exception.available:
            return []
        if exception.slots is not None:
            return [slot for slot in exception.slots if slot.day == weekday]

    return [slot for slot in availability.weekly if slot.day == weekday]


def is_available_at(availability: Availability, day: InstantLike, at: str) -> bool:
    """
    Whether an 'HH:MM' time on a date falls inside an available slot.

    Slots include their start and exclude their end.
    """
    return any(
        slot.start <= at < slot.end
        for slot in availability_for_date(availability, day)
    )


def with_exception(
    availability: Availability,
    exception: AvailabilityException
) -> Availability:
    """Copy of availability with the exception for that date replaced."""
    others = tuple(e for e in availability.exceptions if e.date != exception.date)
    return Availability(weekly=availability.weekly, exceptions=others + (exception,))


def without_exception(availability: Availability, day: InstantLike) -> Availability:
    target = parse_day(day)
    return Availability(
        weekly=availability.weekly,
        exceptions=tuple(e for e in availability.exceptions if e.date != target),
    )
