"""Calendar provider abstractions and implementations."""

from .base import (
    Attendee,
    BusyPeriod,
    CalendarEvent,
    CalendarProvider,
    CalendarProviderError,
    InsertedEvent,
    Reminder,
    TimeSlot,
)

__all__ = [
    "Attendee",
    "BusyPeriod",
    "CalendarEvent",
    "CalendarProvider",
    "CalendarProviderError",
    "InsertedEvent",
    "Reminder",
    "TimeSlot",
]
