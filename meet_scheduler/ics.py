"""Render a confirmed meeting as an iCalendar (RFC 5545) invite."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from meet_scheduler.models.booking import BookingRequest, ConfirmedMeeting

PRODID = "-//Google Meet Scheduler//EN"
_MAX_LINE_OCTETS = 75


def _fmt(dt: datetime) -> str:
    """UTC basic format, e.g. ``20261019T091500Z``."""
    return dt.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def _escape(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def _param(value: str) -> str:
    value = value.replace('"', "")
    if any(c in value for c in ":;,"):
        return f'"{value}"'
    return value


def _fold(line: str) -> str:
    """Split a content line into 75-octet chunks joined by CRLF + space."""
    if len(line.encode("utf-8")) <= _MAX_LINE_OCTETS:
        return line
    chunks: list[str] = []
    current = ""
    limit = _MAX_LINE_OCTETS
    for char in line:
        if len((current + char).encode("utf-8")) > limit:
            chunks.append(current)
            current = char
            limit = _MAX_LINE_OCTETS - 1  # continuation lines start with a space
        else:
            current += char
    chunks.append(current)
    return "\r\n ".join(chunks)


def render_ics(
    meeting: ConfirmedMeeting,
    request: BookingRequest,
    owner_name: str,
    owner_email: str,
    now: Optional[datetime] = None,
    uid: Optional[str] = None,
) -> str:
    """Build the VCALENDAR text for the attendee to import."""
    now = now or datetime.now(timezone.utc)
    uid = uid or f"{uuid.uuid4()}@scheduler"
    description = f"Notes: {request.notes or 'None'}\n\nJoin: {meeting.join_link}"

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "METHOD:PUBLISH",
        "BEGIN:VEVENT",
        f"UID:{uid}",
        f"DTSTAMP:{_fmt(now)}",
        f"DTSTART:{_fmt(meeting.slot.start)}",
        f"DTEND:{_fmt(meeting.slot.end)}",
        f"SUMMARY:{_escape(f'Meeting with {owner_name}')}",
        f"DESCRIPTION:{_escape(description)}",
        f"LOCATION:{_escape(meeting.join_link)}",
        f"ORGANIZER;CN={_param(owner_name)}:mailto:{owner_email}",
        f"ATTENDEE;CN={_param(request.attendee_name)}:mailto:{request.attendee_email}",
        "STATUS:CONFIRMED",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(_fold(line) for line in lines) + "\r\n"
