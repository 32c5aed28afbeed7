"""Owner guard for the calendar connect/disconnect endpoints.

The consent flow is started from a browser address bar, which can't send an
Authorization header, so the key is accepted either as a bearer token or as
a ``?token=`` query parameter.

Behavior matrix:
  ADMIN_API_KEY set + valid token   → allow
  ADMIN_API_KEY set + wrong/missing → 401 Unauthorized
  ADMIN_API_KEY empty + DEBUG=true  → allow (local dev convenience)
  ADMIN_API_KEY empty + DEBUG=false → 403 Forbidden (locked in production)
"""

from __future__ import annotations

import logging
import secrets

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from meet_scheduler.config import settings

log = logging.getLogger("meet_scheduler.auth")

_bearer_scheme = HTTPBearer(auto_error=False)


async def require_owner(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    token: str = Query(default=""),
) -> None:
    """FastAPI dependency: only the calendar owner may connect or disconnect."""
    key = settings.admin_api_key

    if not key:
        # No key configured
        if settings.debug:
            return  # Local dev, allow without auth
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin API key not configured. Set ADMIN_API_KEY in .env.",
        )

    supplied = credentials.credentials if credentials is not None else token
    if not supplied or not secrets.compare_digest(supplied, key):
        log.warning("Rejected owner request with missing or invalid token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing admin token.",
            headers={"WWW-Authenticate": "Bearer"},
        )
