"""Abstract base class for calendar providers.

The engine needs exactly two calendar operations: ask which intervals are
busy, and insert an event with conferencing. Any calendar backend (Google,
Outlook, etc.) implements this ABC.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class TimeSlot:
    """A bookable start/end pair. Equality is by instant pair."""

    start: datetime
    end: datetime

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Half-open overlap: touching endpoints do not conflict."""
        return self.start < end and self.end > start


@dataclass(frozen=True)
class BusyPeriod:
    """An interval the provider reports as busy."""

    start: datetime
    end: datetime


@dataclass
class Attendee:
    email: str
    display_name: str = ""


@dataclass
class Reminder:
    method: str  # "email" | "popup"
    minutes: int


@dataclass
class CalendarEvent:
    """Represents a calendar event to be created."""

    summary: str
    start: datetime
    end: datetime
    timezone: str
    description: str = ""
    attendees: list[Attendee] = field(default_factory=list)
    reminders: list[Reminder] = field(default_factory=list)
    conference_request_id: str = ""  # idempotency key for conference creation


@dataclass
class InsertedEvent:
    event_id: str
    join_link: str
    html_link: str = ""


class CalendarProviderError(Exception):
    """Any failure talking to the calendar backend (quota, network, validation)."""


class CalendarProvider(ABC):
    """Abstract calendar backend, bound to one set of credentials."""

    @abstractmethod
    async def query_busy(
        self,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
    ) -> list[BusyPeriod]:
        """Return the busy intervals that intersect ``[time_min, time_max]``.

        Raises:
            CalendarProviderError: the query could not be completed.
        """

    @abstractmethod
    async def insert_event(
        self,
        calendar_id: str,
        event: CalendarEvent,
        *,
        with_conferencing: bool = True,
        notify_all: bool = True,
    ) -> InsertedEvent:
        """Create an event, optionally with a generated video conference.

        Args:
            calendar_id: The calendar to create the event on.
            event: Event details.
            with_conferencing: Ask the provider to attach a conference link.
            notify_all: Send invitations/updates to every attendee.

        Raises:
            CalendarProviderError: the insert failed. Not retried here.
        """
