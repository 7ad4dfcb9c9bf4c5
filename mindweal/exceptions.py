"""Domain errors raised by the scheduling core and mapped to HTTP in main.py"""

from typing import Optional


class SchedulingError(Exception):
    """Base class for expected, caller-recoverable failures"""

    status_code = 400
    code = "scheduling_error"
    default_message = "Request could not be completed"

    def __init__(self, message: Optional[str] = None, details: Optional[dict] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(SchedulingError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid input"


class NotFoundError(SchedulingError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class SlotConflictError(SchedulingError):
    """The requested interval is no longer free. Callers re-query and pick again."""

    status_code = 409
    code = "slot_conflict"
    default_message = "Someone just booked that slot. Please pick another time."


class InvalidTransitionError(SchedulingError):
    status_code = 409
    code = "invalid_transition"
    default_message = "This status change is not allowed"


class ForbiddenError(SchedulingError):
    status_code = 403
    code = "forbidden"
    default_message = "You are not allowed to change this booking"


class AuthenticationError(SchedulingError):
    status_code = 401
    code = "not_authenticated"
    default_message = "Not authenticated"
