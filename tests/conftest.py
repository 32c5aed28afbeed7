"""Shared fakes and fixtures: an in-memory calendar, OAuth endpoint and store."""

import asyncio
import os
import sys
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from meet_scheduler.calendar_providers.base import (
    BusyPeriod,
    CalendarEvent,
    CalendarProvider,
    CalendarProviderError,
    InsertedEvent,
)
from meet_scheduler.credentials import CredentialStore, TokenManager
from meet_scheduler.models.credentials import CredentialSet
from meet_scheduler.models.policy import DayHours, SchedulingPolicy, WorkingHours
from meet_scheduler.oauth import OAuthError

KOLKATA = ZoneInfo("Asia/Kolkata")
MONDAY = date(2026, 10, 19)


def local(day: date, hour: int, minute: int = 0, tz: ZoneInfo = KOLKATA) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=tz)


class FakeProvider(CalendarProvider):
    """Calendar that reports busy periods intersecting the queried window."""

    def __init__(self) -> None:
        self.busy: list[BusyPeriod] = []
        self.queries: list[tuple[str, datetime, datetime]] = []
        self.inserts: list[tuple[str, CalendarEvent, bool, bool]] = []
        self.bound_tokens: list[str] = []
        self.fail_query = False
        self.fail_insert = False
        self.join_link = "https://meet.google.com/abc-defg-hij"
        self.insert_gate: asyncio.Event | None = None

    def bind(self, access_token: str) -> "FakeProvider":
        self.bound_tokens.append(access_token)
        return self

    @property
    def call_count(self) -> int:
        return len(self.queries) + len(self.inserts)

    async def query_busy(self, calendar_id, time_min, time_max):
        self.queries.append((calendar_id, time_min, time_max))
        if self.fail_query:
            raise CalendarProviderError("quota exceeded")
        return [b for b in self.busy if b.start < time_max and b.end > time_min]

    async def insert_event(self, calendar_id, event, *, with_conferencing=True, notify_all=True):
        self.inserts.append((calendar_id, event, with_conferencing, notify_all))
        if self.insert_gate is not None:
            await self.insert_gate.wait()
        if self.fail_insert:
            raise CalendarProviderError("backend error")
        self.busy.append(BusyPeriod(event.start, event.end))
        return InsertedEvent(
            event_id=f"evt_{len(self.inserts)}",
            join_link=self.join_link,
            html_link="https://calendar.google.com/event?eid=x",
        )


class FakeOAuth:
    def __init__(self) -> None:
        self.refresh_calls: list[str] = []
        self.exchange_calls: list[str] = []
        self.error: str | None = None
        self.gate: asyncio.Event | None = None

    def _issue(self, refresh_token: str) -> CredentialSet:
        n = len(self.refresh_calls) + len(self.exchange_calls)
        return CredentialSet(
            access_token=f"access-{n}",
            refresh_token=refresh_token,
            expiry=datetime(2100, 1, 1, tzinfo=timezone.utc),
        )

    def authorization_url(self, state: str) -> str:
        return f"https://accounts.example.com/consent?state={state}"

    async def refresh(self, refresh_token: str) -> CredentialSet:
        self.refresh_calls.append(refresh_token)
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise OAuthError(self.error)
        return self._issue(refresh_token)

    async def exchange_code(self, code: str) -> CredentialSet:
        self.exchange_calls.append(code)
        if self.error:
            raise OAuthError(self.error)
        return self._issue("refresh-from-code")


class MemoryStore(CredentialStore):
    def __init__(self, credentials: CredentialSet | None = None) -> None:
        self.credentials = credentials
        self.saved: list[CredentialSet] = []
        self.cleared = 0

    def load(self):
        return self.credentials

    def save(self, credentials):
        self.saved.append(credentials)
        self.credentials = credentials

    def clear(self):
        self.cleared += 1
        self.credentials = None


@pytest.fixture
def policy() -> SchedulingPolicy:
    return SchedulingPolicy(
        max_days_in_advance=15,
        min_hours_notice=4,
        meeting_duration_minutes=45,
        slot_interval_minutes=45,
        timezone="Asia/Kolkata",
    )


@pytest.fixture
def working_hours() -> WorkingHours:
    weekday = DayHours(start="09:00", end="17:00")
    return WorkingHours(days={
        0: weekday, 1: weekday, 2: weekday, 3: weekday, 4: weekday,
        5: None,
        6: DayHours(start="14:00", end="20:00"),
    })


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def oauth() -> FakeOAuth:
    return FakeOAuth()


@pytest.fixture
def fresh_credentials() -> CredentialSet:
    return CredentialSet(
        access_token="access-0",
        refresh_token="refresh-0",
        expiry=datetime(2100, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def store(fresh_credentials) -> MemoryStore:
    return MemoryStore(fresh_credentials)


@pytest.fixture
def empty_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def token_manager(store, oauth, provider) -> TokenManager:
    return TokenManager(store=store, oauth=oauth, provider_factory=provider.bind)


@pytest.fixture
def disconnected_manager(empty_store, oauth, provider) -> TokenManager:
    return TokenManager(store=empty_store, oauth=oauth, provider_factory=provider.bind)
