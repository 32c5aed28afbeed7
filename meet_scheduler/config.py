"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

from meet_scheduler.models.policy import DayHours, SchedulingPolicy, WorkingHours

log = logging.getLogger("meet_scheduler.config")

# Weekday numbering follows date.weekday(): 0 = Monday … 6 = Sunday.
DEFAULT_WORKING_HOURS: dict[int, DayHours | None] = {
    0: DayHours(start="09:00", end="17:00"),
    1: DayHours(start="09:00", end="17:00"),
    2: DayHours(start="09:00", end="17:00"),
    3: DayHours(start="09:00", end="17:00"),
    4: DayHours(start="09:00", end="17:00"),
    5: None,                                   # Saturday closed
    6: DayHours(start="14:00", end="20:00"),
}


class Settings(BaseSettings):
    # Google OAuth
    google_client_id: str = ""
    google_client_secret: str = ""
    redirect_uri: str = "http://localhost:3000/auth/callback"
    google_calendar_id: str = "primary"
    tokens_file: str = "tokens.json"

    # Calendar owner
    owner_name: str = "Your Name"
    owner_email: str = "your@email.com"

    # Scheduling policy
    max_days_in_advance: int = 15
    min_hours_notice: int = 4
    meeting_duration_minutes: int = 45
    slot_interval_minutes: int = 45
    timezone: str = "Asia/Kolkata"
    # JSON in the environment, e.g. WORKING_HOURS='{"0": {"start": "09:00", "end": "17:00"}, "5": null}'
    working_hours: dict[int, DayHours | None] = DEFAULT_WORKING_HOURS

    # Frontend allowed for CORS
    frontend_url: str = "http://localhost:5500"

    # Owner auth for /auth/setup and /auth/disconnect
    admin_api_key: str = ""

    # Server
    host: str = "127.0.0.1"
    port: int = 3000
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    def scheduling_policy(self) -> SchedulingPolicy:
        return SchedulingPolicy(
            max_days_in_advance=self.max_days_in_advance,
            min_hours_notice=self.min_hours_notice,
            meeting_duration_minutes=self.meeting_duration_minutes,
            slot_interval_minutes=self.slot_interval_minutes,
            timezone=self.timezone,
        )

    def working_hours_table(self) -> WorkingHours:
        return WorkingHours(days=self.working_hours)

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []
        _placeholders = {"your@email.com", "Your Name", "your-client-id"}

        # Policy must be valid (raises pydantic.ValidationError)
        policy = self.scheduling_policy()
        self.working_hours_table()

        if policy.slot_interval_minutes < policy.meeting_duration_minutes:
            warnings.append(
                "SLOT_INTERVAL_MINUTES is shorter than MEETING_DURATION_MINUTES; "
                "offered slots will overlap each other."
            )

        # OAuth client
        if not self.google_client_id or not self.google_client_secret:
            warnings.append(
                "GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET not set; "
                "the calendar cannot be connected."
            )

        if self.owner_email in _placeholders or self.owner_name in _placeholders:
            warnings.append("OWNER_NAME / OWNER_EMAIL are placeholders; invites will show them.")

        # Admin API key
        if not self.admin_api_key:
            if self.debug:
                warnings.append(
                    "ADMIN_API_KEY not set. Calendar connect/disconnect is open (DEBUG=true)."
                )
            else:
                warnings.append(
                    "ADMIN_API_KEY not set. Calendar connect/disconnect is locked. "
                    "Set ADMIN_API_KEY in .env to enable it."
                )

        return warnings


settings = Settings()
