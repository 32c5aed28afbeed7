"""Immutable scheduling policy and working-hours table."""

from __future__ import annotations

from datetime import date
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

WEEKDAY_NAMES = [
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
]


def parse_minute_of_day(value: str) -> int:
    """Convert ``HH:MM`` (24-hour, ``24:00`` allowed) to minutes since midnight."""
    try:
        hours_str, minutes_str = value.strip().split(":")
        hours, minutes = int(hours_str), int(minutes_str)
    except ValueError:
        raise ValueError(f"expected HH:MM, got {value!r}") from None
    if not (0 <= minutes < 60) or not (0 <= hours <= 24) or (hours == 24 and minutes):
        raise ValueError(f"time out of range: {value!r}")
    return hours * 60 + minutes


class SchedulingPolicy(BaseModel):
    """Process-wide scheduling parameters, loaded once at startup."""

    model_config = ConfigDict(frozen=True)

    max_days_in_advance: int = Field(default=15, ge=0)
    min_hours_notice: int = Field(default=4, ge=0)
    meeting_duration_minutes: int = Field(default=45, gt=0)
    slot_interval_minutes: int = Field(default=45, gt=0)
    timezone: str = "Asia/Kolkata"

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone: {value!r}") from None
        return value

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class DayHours(BaseModel):
    """Open interval for one weekday, e.g. ``{"start": "09:00", "end": "17:00"}``."""

    model_config = ConfigDict(frozen=True)

    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def _valid_time(cls, value: str) -> str:
        parse_minute_of_day(value)
        return value.strip()

    @model_validator(mode="after")
    def _end_after_start(self) -> "DayHours":
        if self.end_minute <= self.start_minute:
            raise ValueError(f"end {self.end} must be after start {self.start}")
        return self

    @property
    def start_minute(self) -> int:
        return parse_minute_of_day(self.start)

    @property
    def end_minute(self) -> int:
        return parse_minute_of_day(self.end)


class WorkingHours(BaseModel):
    """Weekday (0 = Monday … 6 = Sunday) → open interval, or ``None`` for closed.

    Weekdays missing from the table are closed.
    """

    model_config = ConfigDict(frozen=True)

    days: dict[int, DayHours | None] = {}

    @field_validator("days")
    @classmethod
    def _valid_weekdays(cls, value: dict[int, DayHours | None]) -> dict[int, DayHours | None]:
        bad = [day for day in value if not 0 <= day <= 6]
        if bad:
            raise ValueError(f"weekday keys must be 0-6, got {bad}")
        return value

    def for_weekday(self, weekday: int) -> DayHours | None:
        return self.days.get(weekday)

    def for_date(self, day: date) -> DayHours | None:
        return self.for_weekday(day.weekday())

    def is_open(self, day: date) -> bool:
        return self.for_date(day) is not None
