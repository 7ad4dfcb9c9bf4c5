"""HTML escaping for user-supplied text that ends up in e-mail markup"""

import html
from typing import Any, Iterable, Optional

# Booking fields typed in by clients (or therapists) rather than generated
USER_TEXT_FIELDS = (
    "client_name",
    "client_email",
    "client_phone",
    "client_notes",
    "cancellation_reason",
    "recipient_name",
    "therapist_name",
    "meeting_location",
)


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """Escape HTML special characters, quotes included. None and non-strings pass through."""
    if not isinstance(value, str):
        return value
    return html.escape(value, quote=True)


def sanitize_fields(data: dict[str, Any], fields: Iterable[str] = USER_TEXT_FIELDS) -> dict[str, Any]:
    """Copy of ``data`` with the named string fields escaped"""
    sanitized = dict(data)
    for field in fields:
        if field in sanitized:
            sanitized[field] = sanitize_string(sanitized[field])
    return sanitized
