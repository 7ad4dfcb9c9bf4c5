"""Shared validation utilities"""

import re
from datetime import date
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)(:[0-5]\d)?$")
HEX_COLOR_PATTERN = re.compile(r"^#[0-9a-fA-F]{6}$")


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    # Basic email validation pattern
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email address")

    return email


def validate_time_string(value: str) -> str:
    """
    Validate a wall-clock time and normalize it to HH:MM.

    Accepts HH:MM and HH:MM:SS (database TIME columns render seconds).

    Raises:
        ValueError: If the value is not a valid 24h time
    """
    if not isinstance(value, str) or not TIME_PATTERN.match(value.strip()):
        raise ValueError("Invalid time format (HH:mm)")
    return value.strip()[:5]


def validate_timezone_name(name: Optional[str]) -> str:
    """
    Validate an IANA timezone name such as "Asia/Kolkata".

    Raises:
        ValueError: If the name is empty or unknown
    """
    if not name or not isinstance(name, str):
        raise ValueError("Timezone is required")
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {name}") from e
    return name


def parse_calendar_date(value) -> date:
    """Parse a YYYY-MM-DD string (or pass a date through)"""
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as e:
        raise ValueError(f"Invalid date: {value}. Expected YYYY-MM-DD") from e


def validate_hex_color(value: Optional[str]) -> Optional[str]:
    if value and not HEX_COLOR_PATTERN.match(value):
        raise ValueError("Color must be a hex code like #00A99D")
    return value
