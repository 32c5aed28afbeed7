"""FastAPI application: HTTP endpoints for the meeting scheduler.

Endpoints:

  GET  /                      Status: is the owner's calendar connected?
  GET  /health                Health check
  GET  /api/config            Public scheduling parameters
  GET  /api/available-dates   Open dates in a month (?month=&year=)
  GET  /api/availability      Bookable slots on a date (?date=YYYY-MM-DD)
  POST /api/check-slot        Advisory availability check for {start, end}
  POST /api/book              Book {name, email, start, end, notes?}
  GET  /auth/setup            Owner only: redirect to the Google consent screen
  GET  /auth/callback         OAuth redirect target, stores the tokens
  GET  /auth/disconnect       Owner only: forget the stored tokens

The booking flow:
  1. Client lists dates, then slots for one date
  2. Client posts the chosen slot to /api/book
  3. The slot is re-checked against the calendar and, if still free, inserted
     as an event with a Google Meet link
  4. Response carries the join link, event id and an .ics invite
"""

from __future__ import annotations

# Load .env into os.environ early so every settings reader sees it.
from dotenv import load_dotenv
load_dotenv()

import logging
import secrets
import time
from typing import Any, Optional

# Configure root logger early so all app loggers have a handler and are
# visible when run via `uvicorn meet_scheduler.app:app`.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-28s %(levelname)-7s %(message)s",
)

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from meet_scheduler.auth import require_owner
from meet_scheduler.availability import AvailabilityResolver, slot_view
from meet_scheduler.booking import BookingCoordinator, booking_request_from_payload, parse_slot
from meet_scheduler.calendar_providers.google import GoogleCalendarProvider
from meet_scheduler.config import settings
from meet_scheduler.credentials import FileCredentialStore, TokenManager
from meet_scheduler.errors import NotConnectedError, SchedulerError, ValidationError
from meet_scheduler.ics import render_ics
from meet_scheduler.models.booking import BookingResponse, ConfigResponse
from meet_scheduler.models.policy import SchedulingPolicy, WorkingHours
from meet_scheduler.oauth import GoogleOAuthClient, OAuthError
from meet_scheduler.slots import parse_date

log = logging.getLogger("meet_scheduler.app")

_START_TIME = time.time()

_PAGE = (
    '<html><body style="font-family: sans-serif; padding: 40px; text-align: center;">'
    "{body}</body></html>"
)


def _page(body: str, status_code: int = 200) -> HTMLResponse:
    return HTMLResponse(content=_PAGE.format(body=body), status_code=status_code)


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Request body must be JSON") from None
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def create_app(
    token_manager: Optional[TokenManager] = None,
    oauth: Optional[GoogleOAuthClient] = None,
    policy: Optional[SchedulingPolicy] = None,
    working_hours: Optional[WorkingHours] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators default to the ones described by ``settings``; tests pass
    their own.
    """
    for warning in settings.validate_startup():
        log.warning(warning)

    policy = policy or settings.scheduling_policy()
    working_hours = working_hours or settings.working_hours_table()
    oauth = oauth or GoogleOAuthClient(
        settings.google_client_id,
        settings.google_client_secret,
        settings.redirect_uri,
    )
    token_manager = token_manager or TokenManager(
        store=FileCredentialStore(settings.tokens_file),
        oauth=oauth,
        provider_factory=GoogleCalendarProvider,
    )
    resolver = AvailabilityResolver(
        policy, working_hours, token_manager, settings.google_calendar_id
    )
    coordinator = BookingCoordinator(policy, token_manager, settings.google_calendar_id)
    pending_states: set[str] = set()

    app = FastAPI(
        title="Google Meet Scheduler API",
        description="Book meetings against a single owner's Google Calendar",
        version="0.1.0",
    )
    app.state.token_manager = token_manager
    app.state.resolver = resolver
    app.state.coordinator = coordinator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SchedulerError)
    async def scheduler_error(request: Request, exc: SchedulerError) -> JSONResponse:
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    # ── Status ─────────────────────────────────────────────────

    @app.get("/")
    async def index() -> JSONResponse:
        connected = token_manager.is_connected()
        return JSONResponse({
            "status": "ok",
            "service": "Google Meet Scheduler API",
            "connected": connected,
            "setupUrl": None if connected else "/auth/setup",
        })

    @app.get("/health")
    async def health() -> JSONResponse:
        """Lightweight health check; confirms the event loop is responsive."""
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({"status": "ok", "uptime": uptime})

    # ── Scheduling API ─────────────────────────────────────────

    @app.get("/api/config")
    async def get_config() -> JSONResponse:
        return JSONResponse(ConfigResponse(
            meeting_duration_minutes=policy.meeting_duration_minutes,
            max_days_in_advance=policy.max_days_in_advance,
            min_hours_notice=policy.min_hours_notice,
            owner_name=settings.owner_name,
        ).to_json())

    @app.get("/api/available-dates")
    async def get_available_dates(month: str = "", year: str = "") -> JSONResponse:
        if not token_manager.is_connected():
            raise NotConnectedError()
        try:
            month_num, year_num = int(month), int(year)
        except ValueError:
            raise ValidationError("month and year must be integers") from None
        dates = resolver.list_available_dates(month_num, year_num)
        return JSONResponse({"dates": [d.isoformat() for d in dates]})

    @app.get("/api/availability")
    async def get_availability(date: str = "") -> JSONResponse:
        if not date:
            raise ValidationError("Date required")
        try:
            day = parse_date(date)
        except ValueError:
            raise ValidationError("Date must be YYYY-MM-DD") from None

        slots = await resolver.list_available_slots(day)
        if not slots and not working_hours.is_open(day):
            return JSONResponse({"slots": []})
        return JSONResponse({
            "slots": [slot_view(s, policy).to_json() for s in slots],
            "date": date,
        })

    @app.post("/api/check-slot")
    async def check_slot(request: Request) -> JSONResponse:
        body = await _json_body(request)
        start, end = body.get("start"), body.get("end")
        if not isinstance(start, str) or not isinstance(end, str) or not start or not end:
            raise ValidationError("start and end required")
        slot = parse_slot(start, end, policy)
        available = await coordinator.check_slot(slot.start, slot.end)
        return JSONResponse({"available": available})

    @app.post("/api/book")
    async def book(request: Request) -> JSONResponse:
        body = await _json_body(request)
        booking = booking_request_from_payload(body, policy)
        meeting = await coordinator.book(booking)
        ics = render_ics(meeting, booking, settings.owner_name, settings.owner_email)
        return JSONResponse(BookingResponse(
            meet_link=meeting.join_link,
            event_id=meeting.event_id,
            ics_content=ics,
        ).to_json())

    # ── Owner OAuth flow ───────────────────────────────────────

    @app.get("/auth/setup", dependencies=[Depends(require_owner)])
    async def auth_setup():
        if token_manager.is_connected():
            return _page(
                "<h1>Already Connected!</h1>"
                "<p>Your Google Calendar is connected.</p>"
                '<p><a href="/auth/disconnect">Disconnect</a></p>'
            )
        state = secrets.token_urlsafe(18)
        pending_states.add(state)
        return RedirectResponse(oauth.authorization_url(state))

    @app.get("/auth/callback")
    async def auth_callback(code: str = "", error: str = "", state: str = ""):
        if error:
            log.warning("OAuth consent returned error: %s", error)
            return _page("<h1>Error</h1><p>Google reported an authorization error.</p>", 400)
        if not state or state not in pending_states:
            return _page("<h1>Error</h1><p>Unknown or expired authorization request.</p>", 400)
        pending_states.discard(state)
        if not code:
            return _page("<h1>Error</h1><p>Missing authorization code.</p>", 400)

        try:
            await token_manager.connect(code)
        except OAuthError as exc:
            log.error("Authorization code exchange failed: %s", exc.error)
            return _page("<h1>Error</h1><p>Could not connect the calendar.</p>", 502)

        return _page(
            '<h1 style="color: green;">Success!</h1>'
            "<p>Google Calendar connected. You can now accept bookings.</p>"
        )

    @app.get("/auth/disconnect", dependencies=[Depends(require_owner)])
    async def auth_disconnect() -> HTMLResponse:
        await token_manager.disconnect()
        return _page('<h1>Disconnected</h1><p><a href="/auth/setup">Reconnect</a></p>')

    return app


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    import uvicorn

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = (
        "%(asctime)s %(name)-12s %(levelname)-8s %(message)s"
    )

    uvicorn.run(
        "meet_scheduler.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=log_config,
    )
