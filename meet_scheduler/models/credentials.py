"""The calendar owner's OAuth credential set."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class CredentialSet(BaseModel):
    """Access/refresh token pair plus the access token's expiry.

    A credential without ``expiry`` is treated as non-expiring and is never
    refreshed. Secret material never appears in ``repr``/``str``.
    """

    access_token: str = Field(min_length=1)
    refresh_token: str = ""
    expiry: Optional[datetime] = None
    scope: Optional[str] = None
    token_type: str = "Bearer"

    @field_validator("expiry")
    @classmethod
    def _aware_expiry(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def needs_refresh(self, now: datetime, margin: timedelta) -> bool:
        """True once ``now`` is within ``margin`` of expiry."""
        if self.expiry is None:
            return False
        return now >= self.expiry - margin

    def __repr__(self) -> str:
        return (
            f"CredentialSet("
            f"access_token=<REDACTED>, "
            f"refresh_token=<REDACTED>, "
            f"expiry={self.expiry!r}, "
            f"scope={self.scope!r})"
        )

    __str__ = __repr__
