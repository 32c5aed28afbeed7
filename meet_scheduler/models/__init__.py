"""Data models for the scheduling layer."""

from .booking import BookingRequest, BookingResponse, ConfirmedMeeting, SlotView
from .policy import DayHours, SchedulingPolicy, WorkingHours

__all__ = [
    "BookingRequest",
    "BookingResponse",
    "ConfirmedMeeting",
    "DayHours",
    "SchedulingPolicy",
    "SlotView",
    "WorkingHours",
]
