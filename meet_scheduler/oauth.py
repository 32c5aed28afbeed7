"""Google OAuth 2.0 client for the calendar owner's consent and token refresh.

Only the token endpoint is called from here; the consent screen itself is a
browser redirect to :meth:`GoogleOAuthClient.authorization_url`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError as PydanticValidationError

from meet_scheduler.calendar_providers.google import SCOPES
from meet_scheduler.models.credentials import CredentialSet

log = logging.getLogger("meet_scheduler.oauth")

AUTH_URI = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"


class OAuthError(Exception):
    """Token endpoint refused or could not be reached.

    ``error`` is the OAuth error code (``invalid_grant`` means the grant was
    revoked or expired and the owner has to consent again).
    """

    def __init__(self, error: str, description: str = "") -> None:
        self.error = error
        self.description = description
        super().__init__(f"{error}: {description}" if description else error)


class GoogleOAuthClient:
    """Exchanges authorization codes and refresh tokens for access tokens."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._http_client = http_client

    def authorization_url(self, state: str) -> str:
        """URL of the consent screen. Offline access so we get a refresh token."""
        params = {
            "client_id": self._client_id,
            "redirect_uri": self._redirect_uri,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return f"{AUTH_URI}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> CredentialSet:
        payload = await self._token_request({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self._redirect_uri,
        })
        return self._to_credentials(payload)

    async def refresh(self, refresh_token: str) -> CredentialSet:
        payload = await self._token_request({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        })
        # Google usually omits the refresh token on refresh; keep the old one.
        return self._to_credentials(payload, fallback_refresh_token=refresh_token)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _token_request(self, data: dict[str, str]) -> dict:
        form = {
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            **data,
        }
        try:
            if self._http_client is not None:
                resp = await self._http_client.post(TOKEN_URI, data=form)
            else:
                async with httpx.AsyncClient(timeout=10.0) as client:
                    resp = await client.post(TOKEN_URI, data=form)
        except httpx.HTTPError as exc:
            raise OAuthError("network_error", str(exc)) from exc

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if resp.status_code >= 400:
            log.warning(
                "Token endpoint rejected %s grant (status %d, error=%s)",
                data["grant_type"], resp.status_code, body.get("error", "?"),
            )
            raise OAuthError(
                body.get("error", f"http_{resp.status_code}"),
                body.get("error_description", ""),
            )
        if "access_token" not in body:
            raise OAuthError("invalid_response", "no access_token in token response")
        return body

    @staticmethod
    def _to_credentials(
        payload: dict, fallback_refresh_token: str = ""
    ) -> CredentialSet:
        try:
            expiry = None
            if payload.get("expires_in") is not None:
                expiry = datetime.now(timezone.utc) + timedelta(
                    seconds=int(payload["expires_in"])
                )
            return CredentialSet(
                access_token=payload["access_token"],
                refresh_token=payload.get("refresh_token") or fallback_refresh_token,
                expiry=expiry,
                scope=payload.get("scope"),
                token_type=payload.get("token_type", "Bearer"),
            )
        except (PydanticValidationError, ValueError, TypeError, KeyError, OverflowError) as exc:
            log.warning("Malformed token response: %s", type(exc).__name__)
            raise OAuthError("invalid_response", "malformed token response") from exc
