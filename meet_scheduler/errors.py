"""Error taxonomy for availability and booking operations.

Every failure the engine surfaces is one of these. Each carries the HTTP
status the routing layer should answer with and a message that is safe to
show to the client:

  NotConnectedError  → 503  no usable calendar credential, owner must reconnect
  ValidationError    → 400  missing or malformed request fields, do not retry
  SlotConflictError  → 409  slot was taken since it was offered, re-query
  ProviderError      → 500  calendar provider failed, caller may resubmit

A closed day is not an error; it yields an empty result.
"""

from __future__ import annotations


class SchedulerError(Exception):
    """Base class for classified scheduler failures."""

    status_code: int = 500
    message: str = "Scheduler error"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class NotConnectedError(SchedulerError):
    status_code = 503
    message = "Calendar not connected"


class ValidationError(SchedulerError):
    status_code = 400
    message = "Invalid request"


class SlotConflictError(SchedulerError):
    status_code = 409
    message = "Slot no longer available"


class ProviderError(SchedulerError):
    """The calendar provider failed. Never retried by the engine."""

    status_code = 500
    message = "Calendar provider error"
