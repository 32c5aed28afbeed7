"""Candidate slot generation and the time helpers shared by the engine.

Everything here is pure: no I/O and no wall clock. Callers pass ``now``
explicitly wherever it matters.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable
from zoneinfo import ZoneInfo

from meet_scheduler.calendar_providers.base import BusyPeriod, TimeSlot
from meet_scheduler.models.policy import SchedulingPolicy, WorkingHours


def generate_candidates(
    day: date,
    policy: SchedulingPolicy,
    working_hours: WorkingHours,
) -> list[TimeSlot]:
    """Every slot the owner's hours allow on ``day``, in start order.

    Starts at the day's opening minute and steps by ``slot_interval_minutes``
    while a full meeting still fits before closing. When the interval is
    shorter than the meeting the candidates overlap each other; that is left
    for the busy-period check to sort out. A closed day yields ``[]``.
    """
    hours = working_hours.for_date(day)
    if hours is None:
        return []

    tz = policy.tz
    duration = timedelta(minutes=policy.meeting_duration_minutes)
    candidates: list[TimeSlot] = []

    current = hours.start_minute
    while current + policy.meeting_duration_minutes <= hours.end_minute:
        start = datetime.combine(day, time(current // 60, current % 60), tzinfo=tz)
        # Add the duration in UTC so a DST shift can't stretch the meeting.
        end = (start.astimezone(timezone.utc) + duration).astimezone(tz)
        candidates.append(TimeSlot(start=start, end=end))
        current += policy.slot_interval_minutes

    return candidates


def is_free(slot: TimeSlot, busy: Iterable[BusyPeriod]) -> bool:
    """True when no busy period overlaps ``slot`` (half-open intervals)."""
    return not any(slot.overlaps(b.start, b.end) for b in busy)


# ── Time helpers ─────────────────────────────────────────────────────


def day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Owner-local ``[00:00:00, 23:59:59]`` for ``day``."""
    return (
        datetime.combine(day, time(0, 0, 0), tzinfo=tz),
        datetime.combine(day, time(23, 59, 59), tzinfo=tz),
    )


def parse_date(value: str) -> date:
    """Parse ``YYYY-MM-DD``. Raises ValueError."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_instant(value: str, tz: ZoneInfo) -> datetime:
    """Parse an ISO 8601 instant; a naive value is read as owner-local time."""
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz)
    return dt


def format_instant(dt: datetime) -> str:
    """UTC ISO 8601 with milliseconds and a ``Z`` suffix."""
    utc = dt.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_clock(dt: datetime) -> str:
    """``HH:MM`` 24-hour."""
    return f"{dt.hour:02d}:{dt.minute:02d}"


def format_display(dt: datetime) -> str:
    """``H:MM AM/PM`` with no leading zero on the hour."""
    hour = dt.hour % 12 or 12
    period = "PM" if dt.hour >= 12 else "AM"
    return f"{hour}:{dt.minute:02d} {period}"
