"""Error taxonomy for the event planner core."""
from typing import Optional


class PlannerError(Exception):
    """Base class for all planner errors."""


class NotFound(PlannerError):
    """Requested event or RSVP does not exist."""


class RemoteError(PlannerError):
    """Transport, storage or image host failure reported by the gateway."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ValidationError(PlannerError):
    """Caller supplied data that violates a field constraint."""
