"""Pydantic models for booking requests and API responses."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from meet_scheduler.calendar_providers.base import TimeSlot


class BookingRequest(BaseModel):
    """What the client submits to reserve a slot."""

    attendee_name: str
    attendee_email: str
    slot: TimeSlot
    notes: Optional[str] = None


class ConfirmedMeeting(BaseModel):
    """Result of a committed booking. The provider owns the event afterwards."""

    event_id: str
    join_link: str
    slot: TimeSlot
    html_link: str = ""


# ── Response bodies (camelCase on the wire) ──────────────────────────


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class ConfigResponse(_ApiModel):
    meeting_duration_minutes: int
    max_days_in_advance: int
    min_hours_notice: int
    owner_name: str


class SlotView(_ApiModel):
    time: str      # HH:MM, owner-local
    display: str   # H:MM AM/PM, owner-local
    start: str     # ISO instant, UTC
    end: str


class BookingResponse(_ApiModel):
    success: bool = True
    meet_link: str
    event_id: str
    ics_content: str
