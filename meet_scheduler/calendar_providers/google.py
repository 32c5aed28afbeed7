"""Google Calendar provider implementation.

Bound to a single OAuth access token (obtained and refreshed by
:class:`~meet_scheduler.credentials.TokenManager`) and talks to the
Calendar API v3. A provider instance lives for one request only.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from functools import partial
from typing import Any

from google.auth.exceptions import GoogleAuthError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .base import (
    BusyPeriod,
    CalendarEvent,
    CalendarProvider,
    CalendarProviderError,
    InsertedEvent,
)

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
]

_PROVIDER_FAILURES = (HttpError, GoogleAuthError, OSError)


class GoogleCalendarProvider(CalendarProvider):
    """CalendarProvider backed by Google Calendar API v3."""

    def __init__(self, access_token: str, service: Any = None) -> None:
        if service is None:
            credentials = Credentials(token=access_token, scopes=SCOPES)
            service = build(
                "calendar", "v3", credentials=credentials, cache_discovery=False
            )
        self._service = service

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _run_in_executor(self, func, *args, **kwargs) -> Any:
        """Run a synchronous Google API call in the default thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, partial(func, *args, **kwargs)
        )

    @staticmethod
    def _to_rfc3339(dt: datetime) -> str:
        """Convert a datetime to an RFC 3339 string with timezone."""
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.isoformat()

    @staticmethod
    def _join_link(result: dict) -> str:
        """Pull the video join URL out of an inserted event."""
        if result.get("hangoutLink"):
            return result["hangoutLink"]
        entry_points = result.get("conferenceData", {}).get("entryPoints", [])
        for entry in entry_points:
            if entry.get("entryPointType") == "video" and entry.get("uri"):
                return entry["uri"]
        return ""

    # ------------------------------------------------------------------
    # CalendarProvider interface
    # ------------------------------------------------------------------

    async def query_busy(
        self,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
    ) -> list[BusyPeriod]:
        """Query the freebusy API for the calendar's busy intervals."""
        body = {
            "timeMin": self._to_rfc3339(time_min),
            "timeMax": self._to_rfc3339(time_max),
            "items": [{"id": calendar_id}],
        }

        try:
            response = await self._run_in_executor(
                self._service.freebusy().query(body=body).execute
            )
        except _PROVIDER_FAILURES as exc:
            raise CalendarProviderError(f"freebusy query failed: {exc}") from exc

        calendar = response.get("calendars", {}).get(calendar_id, {})
        if calendar.get("errors"):
            reasons = ", ".join(e.get("reason", "unknown") for e in calendar["errors"])
            raise CalendarProviderError(f"freebusy query rejected: {reasons}")

        busy: list[BusyPeriod] = []
        for interval in calendar.get("busy", []):
            busy.append(
                BusyPeriod(
                    start=datetime.fromisoformat(interval["start"]),
                    end=datetime.fromisoformat(interval["end"]),
                )
            )
        busy.sort(key=lambda b: b.start)
        return busy

    async def insert_event(
        self,
        calendar_id: str,
        event: CalendarEvent,
        *,
        with_conferencing: bool = True,
        notify_all: bool = True,
    ) -> InsertedEvent:
        """Insert an event into the Google Calendar.

        With conferencing enabled, Google attaches a Meet link; the request
        id makes a retried network call reuse the same conference.
        """
        body: dict[str, Any] = {
            "summary": event.summary,
            "start": {
                "dateTime": self._to_rfc3339(event.start),
                "timeZone": event.timezone,
            },
            "end": {
                "dateTime": self._to_rfc3339(event.end),
                "timeZone": event.timezone,
            },
        }
        if event.description:
            body["description"] = event.description
        if event.attendees:
            body["attendees"] = [
                {"email": a.email, "displayName": a.display_name}
                if a.display_name
                else {"email": a.email}
                for a in event.attendees
            ]
        if event.reminders:
            body["reminders"] = {
                "useDefault": False,
                "overrides": [
                    {"method": r.method, "minutes": r.minutes}
                    for r in event.reminders
                ],
            }
        if with_conferencing:
            body["conferenceData"] = {
                "createRequest": {
                    "requestId": event.conference_request_id,
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            }

        try:
            result = await self._run_in_executor(
                self._service.events()
                .insert(
                    calendarId=calendar_id,
                    body=body,
                    conferenceDataVersion=1 if with_conferencing else 0,
                    sendUpdates="all" if notify_all else "none",
                )
                .execute
            )
        except _PROVIDER_FAILURES as exc:
            raise CalendarProviderError(f"event insert failed: {exc}") from exc

        logger.info("Created event %s on calendar %s", result["id"], calendar_id)

        return InsertedEvent(
            event_id=result["id"],
            join_link=self._join_link(result),
            html_link=result.get("htmlLink", ""),
        )
