"""Bookable dates and slots for the calendar owner.

``available_dates`` is a pure policy-window filter. ``list_available_slots``
intersects the day's candidates with the provider's busy periods and the
minimum-notice cutoff.
"""

from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional

from meet_scheduler.calendar_providers.base import BusyPeriod, CalendarProviderError, TimeSlot
from meet_scheduler.credentials import TokenManager
from meet_scheduler.errors import NotConnectedError, ProviderError, ValidationError
from meet_scheduler.models.booking import SlotView
from meet_scheduler.models.policy import SchedulingPolicy, WorkingHours
from meet_scheduler.slots import (
    day_bounds,
    format_clock,
    format_display,
    format_instant,
    generate_candidates,
    is_free,
)

log = logging.getLogger("meet_scheduler.availability")


def available_dates(
    month: int,
    year: int,
    policy: SchedulingPolicy,
    working_hours: WorkingHours,
    now: datetime,
) -> list[date]:
    """Dates in the month whose local midnight falls in ``[now, now + max days]``
    and whose weekday is open.

    Raises:
        ValueError: ``month``/``year`` out of range.
    """
    if not 1 <= month <= 12 or not 1 <= year <= 9999:
        raise ValueError(f"invalid month/year: {month}/{year}")

    tz = policy.tz
    latest = now + timedelta(days=policy.max_days_in_advance)
    _, days_in_month = calendar.monthrange(year, month)

    dates: list[date] = []
    for day_num in range(1, days_in_month + 1):
        day = date(year, month, day_num)
        midnight = datetime.combine(day, time(0, 0), tzinfo=tz)
        if now <= midnight <= latest and working_hours.is_open(day):
            dates.append(day)
    return dates


def filter_available(
    candidates: Iterable[TimeSlot],
    busy: list[BusyPeriod],
    min_time: datetime,
) -> list[TimeSlot]:
    """Keep candidates starting strictly after ``min_time`` with no busy overlap."""
    return [
        slot for slot in candidates
        if slot.start > min_time and is_free(slot, busy)
    ]


def slot_view(slot: TimeSlot, policy: SchedulingPolicy) -> SlotView:
    local_start = slot.start.astimezone(policy.tz)
    return SlotView(
        time=format_clock(local_start),
        display=format_display(local_start),
        start=format_instant(slot.start),
        end=format_instant(slot.end),
    )


class AvailabilityResolver:
    """Answers "which dates" and "which slots" for the single owner calendar."""

    def __init__(
        self,
        policy: SchedulingPolicy,
        working_hours: WorkingHours,
        token_manager: TokenManager,
        calendar_id: str = "primary",
    ) -> None:
        self._policy = policy
        self._working_hours = working_hours
        self._token_manager = token_manager
        self._calendar_id = calendar_id

    def list_available_dates(
        self, month: int, year: int, now: Optional[datetime] = None
    ) -> list[date]:
        now = now or datetime.now(timezone.utc)
        try:
            return available_dates(month, year, self._policy, self._working_hours, now)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

    async def list_available_slots(
        self, day: date, now: Optional[datetime] = None
    ) -> list[TimeSlot]:
        """Bookable slots on ``day`` in chronological order.

        Raises:
            NotConnectedError: no usable calendar credential.
            ProviderError: the busy-period query failed.
        """
        now = now or datetime.now(timezone.utc)

        handle = await self._token_manager.get_handle()
        if handle is None:
            raise NotConnectedError()

        candidates = generate_candidates(day, self._policy, self._working_hours)
        if not candidates:
            return []

        day_start, day_end = day_bounds(day, self._policy.tz)
        try:
            busy = await handle.query_busy(self._calendar_id, day_start, day_end)
        except CalendarProviderError as exc:
            log.error("Busy query failed for %s: %s", day.isoformat(), exc)
            raise ProviderError("Failed to get availability") from exc

        min_time = now + timedelta(hours=self._policy.min_hours_notice)
        slots = filter_available(candidates, busy, min_time)
        log.info(
            "%s: %d of %d candidates bookable (%d busy periods)",
            day.isoformat(), len(slots), len(candidates), len(busy),
        )
        return slots
