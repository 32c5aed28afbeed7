"""Credential persistence and the access-token lifecycle.

The stored :class:`CredentialSet` is the only mutable state shared between
requests. ``TokenManager`` serializes the read → maybe-refresh → persist
sequence behind one lock, and ``FileCredentialStore`` replaces the file
atomically so a crash or cancellation mid-write never leaves a torn record.

State machine::

    Unconnected ──connect(code)──▶ Connected ⇄ Refreshing (on a request near expiry)
         ▲                              │
         └──── disconnect() / invalid_grant on refresh
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from functools import partial
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from pydantic import ValidationError as PydanticValidationError

from meet_scheduler.calendar_providers.base import CalendarProvider
from meet_scheduler.models.credentials import CredentialSet
from meet_scheduler.oauth import OAuthError

log = logging.getLogger("meet_scheduler.credentials")

REFRESH_MARGIN = timedelta(seconds=60)


class CredentialStore(ABC):
    """Opaque durable storage for the owner's CredentialSet."""

    @abstractmethod
    def load(self) -> Optional[CredentialSet]:
        """Return the stored credentials, or None when not connected."""

    @abstractmethod
    def save(self, credentials: CredentialSet) -> None:
        """Persist credentials, replacing any previous generation."""

    @abstractmethod
    def clear(self) -> None:
        """Forget the stored credentials."""


class FileCredentialStore(CredentialStore):
    """JSON file store with atomic replace and owner-only permissions."""

    def __init__(self, path: str | os.PathLike) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[CredentialSet]:
        if not self._path.exists():
            return None
        try:
            return CredentialSet.model_validate_json(self._path.read_text())
        except (OSError, PydanticValidationError) as exc:
            # Unreadable record means the owner must reconnect.
            log.error("Could not load credentials from %s: %s", self._path, exc)
            return None

    def save(self, credentials: CredentialSet) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(credentials.model_dump(mode="json"), indent=2)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        log.info("Credentials saved to %s", self._path)

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
        log.info("Credentials cleared from %s", self._path)


class TokenExchanger(Protocol):
    async def exchange_code(self, code: str) -> CredentialSet: ...

    async def refresh(self, refresh_token: str) -> CredentialSet: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenManager:
    """Hands out request-scoped calendar handles bound to a fresh access token.

    ``get_handle()`` never raises for credential problems: a missing or
    unrefreshable credential yields ``None`` ("not connected"). Handles are
    never cached, so every request re-checks expiry. Store reads and writes on
    the request path run in the default thread pool, like the provider calls.
    """

    def __init__(
        self,
        store: CredentialStore,
        oauth: TokenExchanger,
        provider_factory: Callable[[str], CalendarProvider],
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._oauth = oauth
        self._provider_factory = provider_factory
        self._clock = clock
        self._lock = asyncio.Lock()

    def is_connected(self) -> bool:
        return self._store.load() is not None

    async def get_handle(self) -> Optional[CalendarProvider]:
        # Shielded as a whole: a cancelled request keeps holding the lock
        # until the refresh it started has been persisted.
        credentials = await asyncio.shield(self._current_credentials())
        if credentials is None:
            return None
        return self._provider_factory(credentials.access_token)

    async def connect(self, code: str) -> CredentialSet:
        """Exchange a consent-screen authorization code and persist the result.

        Raises:
            OAuthError: the code was rejected.
        """
        credentials = await self._oauth.exchange_code(code)
        async with self._lock:
            await self._in_executor(self._store.save, credentials)
        log.info("Calendar connected (refresh token: %s)",
                 "yes" if credentials.refresh_token else "no")
        return credentials

    async def disconnect(self) -> None:
        async with self._lock:
            await self._in_executor(self._store.clear)
        log.info("Calendar disconnected")

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _current_credentials(self) -> Optional[CredentialSet]:
        async with self._lock:
            credentials = await self._in_executor(self._store.load)
            if credentials is None:
                return None
            if credentials.needs_refresh(self._clock(), REFRESH_MARGIN):
                return await self._refresh(credentials)
            return credentials

    async def _refresh(self, credentials: CredentialSet) -> Optional[CredentialSet]:
        if not credentials.refresh_token:
            log.warning("Access token expired and no refresh token is stored")
            return None
        try:
            refreshed = await self._oauth.refresh(credentials.refresh_token)
        except OAuthError as exc:
            log.error("Token refresh failed: %s", exc.error)
            if exc.error == "invalid_grant":
                # Grant revoked or expired: only a new consent can fix this.
                await self._forget()
            return None
        try:
            await self._in_executor(self._store.save, refreshed)
        except OSError as exc:
            log.error("Could not persist refreshed credentials: %s", exc)
            return None
        log.info("Access token refreshed (expires %s)", refreshed.expiry)
        return refreshed

    async def _forget(self) -> None:
        try:
            await self._in_executor(self._store.clear)
        except OSError as exc:
            log.error("Could not clear revoked credentials: %s", exc)

    @staticmethod
    async def _in_executor(func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))
