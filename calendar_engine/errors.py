"""Exceptions raised by the calendar engine."""


class CalendarError(Exception):
    """Base class for input-contract violations in the calendar engine."""


class InvalidTimestampError(CalendarError, ValueError):
    """Raised when a timestamp cannot be parsed into an instant."""

    def __init__(self, value):
        self.value = value
        super().__init__(f"Invalid timestamp: {value!r}")


class InvalidRecurrenceError(CalendarError, ValueError):
    """Raised when a recurrence rule cannot be expanded safely."""
