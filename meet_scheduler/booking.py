"""Check-then-commit booking against the owner's calendar.

``book`` re-queries busy periods for the exact slot and inserts the event
only when none come back. The revalidation happens-before the insert within
one attempt, but nothing orders two attempts against each other: the provider
offers no conditional insert, so two requests can both see the slot free and
both commit. ``SlotLocks`` closes that window for requests handled by this
process only; other processes or replicas can still double-book, and only the
provider could prevent it.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Optional

from meet_scheduler.calendar_providers.base import (
    Attendee,
    CalendarEvent,
    CalendarProvider,
    CalendarProviderError,
    Reminder,
    TimeSlot,
)
from meet_scheduler.credentials import TokenManager
from meet_scheduler.errors import (
    NotConnectedError,
    ProviderError,
    SlotConflictError,
    ValidationError,
)
from meet_scheduler.models.booking import BookingRequest, ConfirmedMeeting
from meet_scheduler.models.policy import SchedulingPolicy
from meet_scheduler.slots import parse_instant

log = logging.getLogger("meet_scheduler.booking")

REMINDERS = [Reminder(method="email", minutes=60), Reminder(method="popup", minutes=15)]


def redact_pii(value: str) -> str:
    """Mask PII for logging: show first 3 and last 2 chars only."""
    if not value or len(value) <= 5:
        return "***"
    return value[:3] + "***" + value[-2:]


def booking_request_from_payload(
    body: dict[str, Any], policy: SchedulingPolicy
) -> BookingRequest:
    """Validate a ``{name, email, start, end, notes?}`` body.

    Raises:
        ValidationError: a required field is missing or malformed.
    """
    name = body.get("name")
    email = body.get("email")
    start = body.get("start")
    end = body.get("end")
    if not name or not email or not start or not end:
        raise ValidationError("Missing required fields")

    if not all(isinstance(v, str) for v in (name, email, start, end)):
        raise ValidationError("Fields must be strings")
    if "@" not in email:
        raise ValidationError("Invalid email")

    slot = parse_slot(start, end, policy)
    notes = body.get("notes")
    return BookingRequest(
        attendee_name=name.strip(),
        attendee_email=email.strip(),
        slot=slot,
        notes=str(notes) if notes else None,
    )


def parse_slot(start: str, end: str, policy: SchedulingPolicy) -> TimeSlot:
    """Parse an ISO start/end pair. Raises ValidationError."""
    try:
        slot = TimeSlot(
            start=parse_instant(start, policy.tz),
            end=parse_instant(end, policy.tz),
        )
    except (TypeError, ValueError):
        raise ValidationError("Invalid start or end time") from None
    if slot.end <= slot.start:
        raise ValidationError("End must be after start")
    return slot


class SlotLocks:
    """In-process guards keyed by the owner-local date of a slot.

    Keying by date rather than exact slot serializes bookings of overlapping
    offers too. Guards are dropped once nobody holds or waits on them.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @staticmethod
    def key_for(slot: TimeSlot, policy: SchedulingPolicy) -> str:
        return slot.start.astimezone(policy.tz).date().isoformat()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class BookingCoordinator:
    """Owns the revalidate-then-insert protocol. Never retries."""

    def __init__(
        self,
        policy: SchedulingPolicy,
        token_manager: TokenManager,
        calendar_id: str = "primary",
        locks: Optional[SlotLocks] = None,
    ) -> None:
        self._policy = policy
        self._token_manager = token_manager
        self._calendar_id = calendar_id
        self._locks = locks or SlotLocks()

    async def check_slot(self, start: datetime, end: datetime) -> bool:
        """Advisory: True iff the provider reports nothing busy in ``[start, end]``.

        Not a reservation. The slot can be taken before ``book`` runs.
        """
        handle = await self._token_manager.get_handle()
        if handle is None:
            raise NotConnectedError()
        try:
            busy = await handle.query_busy(self._calendar_id, start, end)
        except CalendarProviderError as exc:
            log.error("Slot check failed: %s", exc)
            raise ProviderError("Check failed") from exc
        return not busy

    async def book(self, request: BookingRequest) -> ConfirmedMeeting:
        """Revalidate the slot and commit it as an event with a Meet link.

        Once submitted, the commit runs to completion even if the caller is
        cancelled, so the date guard stays held until the insert settles.

        Raises:
            NotConnectedError: no usable calendar credential.
            SlotConflictError: something is now busy in the slot; re-query.
            ProviderError: the busy query or the insert failed.
        """
        handle = await self._token_manager.get_handle()
        if handle is None:
            raise NotConnectedError()
        return await asyncio.shield(self._commit(handle, request))

    async def _commit(
        self, handle: CalendarProvider, request: BookingRequest
    ) -> ConfirmedMeeting:
        slot = request.slot
        async with self._locks.hold(SlotLocks.key_for(slot, self._policy)):
            try:
                busy = await handle.query_busy(self._calendar_id, slot.start, slot.end)
            except CalendarProviderError as exc:
                log.error("Revalidation failed: %s", exc)
                raise ProviderError("Booking failed") from exc

            if busy:
                log.info(
                    "Conflict booking %s for %s: %d busy period(s)",
                    slot.start.isoformat(), redact_pii(request.attendee_email), len(busy),
                )
                raise SlotConflictError()

            event = self._build_event(request)
            try:
                inserted = await handle.insert_event(
                    self._calendar_id, event,
                    with_conferencing=True, notify_all=True,
                )
            except CalendarProviderError as exc:
                log.error("Event insert failed: %s", exc)
                raise ProviderError("Booking failed") from exc

        log.info(
            "Booked %s for %s (event %s)",
            slot.start.isoformat(), redact_pii(request.attendee_email), inserted.event_id,
        )
        if not inserted.join_link:
            # Conference creation still pending at Google; the event and its
            # invitation exist, the link shows up on the event later.
            log.warning("Event %s was created without a join link yet", inserted.event_id)
        return ConfirmedMeeting(
            event_id=inserted.event_id,
            join_link=inserted.join_link,
            slot=slot,
            html_link=inserted.html_link,
        )

    def _build_event(self, request: BookingRequest) -> CalendarEvent:
        tz = self._policy.tz
        return CalendarEvent(
            summary=f"Meeting with {request.attendee_name}",
            description=(
                f"Client: {request.attendee_name}\n"
                f"Email: {request.attendee_email}\n\n"
                f"Notes: {request.notes or 'None'}"
            ),
            start=request.slot.start.astimezone(tz),
            end=request.slot.end.astimezone(tz),
            timezone=self._policy.timezone,
            attendees=[Attendee(email=request.attendee_email,
                                display_name=request.attendee_name)],
            reminders=list(REMINDERS),
            conference_request_id=uuid.uuid4().hex,
        )
