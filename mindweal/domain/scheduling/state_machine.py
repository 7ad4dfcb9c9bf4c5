"""Booking status transitions"""

from datetime import datetime

from ...exceptions import InvalidTransitionError
from .types import BookingRecord

ALLOWED_TRANSITIONS = {
    "pending": frozenset({"confirmed", "cancelled"}),
    "confirmed": frozenset({"completed", "cancelled", "no_show"}),
    "cancelled": frozenset(),
    "completed": frozenset(),
    "no_show": frozenset(),
}

# Only meaningful once the session is over
REQUIRES_SESSION_END = frozenset({"completed", "no_show"})


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


def assert_transition(booking: BookingRecord, new_status: str, now: datetime) -> None:
    """Raise InvalidTransitionError unless ``booking`` may move to ``new_status`` at ``now``"""
    if new_status not in ALLOWED_TRANSITIONS:
        raise InvalidTransitionError(f"Unknown booking status: {new_status}")

    if not can_transition(booking.status, new_status):
        raise InvalidTransitionError(
            f"Cannot change booking from {booking.status} to {new_status}"
        )

    if new_status in REQUIRES_SESSION_END and now < booking.end:
        raise InvalidTransitionError(
            f"Cannot mark booking as {new_status} before the session has ended"
        )
