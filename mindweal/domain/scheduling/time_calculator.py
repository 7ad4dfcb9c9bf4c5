"""Time parsing and zone-aware calculations for scheduling"""

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from ...exceptions import ValidationError
from ...shared.validators import parse_calendar_date, validate_time_string, validate_timezone_name

UTC = timezone.utc


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Normalize to an aware UTC datetime. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def get_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(validate_timezone_name(name))
    except ValueError as e:
        raise ValidationError(str(e)) from e


def parse_date(value) -> date:
    try:
        return parse_calendar_date(value)
    except ValueError as e:
        raise ValidationError(str(e)) from e


def parse_wall_clock(value) -> time:
    """Parse "HH:MM" / "HH:MM:SS" into a time"""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    try:
        hhmm = validate_time_string(value)
    except ValueError as e:
        raise ValidationError(str(e)) from e
    hours, minutes = hhmm.split(":")
    return time(int(hours), int(minutes))


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval intersection: [a_start, a_end) and [b_start, b_end)"""
    return a_start < b_end and b_start < a_end


def day_of_week(day: date) -> int:
    """0 = Sunday ... 6 = Saturday"""
    return (day.weekday() + 1) % 7


def wall_clock_to_utc(day: date, clock: time, zone: ZoneInfo) -> datetime:
    """
    Interpret a wall-clock time on a local calendar day and return the UTC instant.

    Uses the zone's rules for that specific date, so a fixed rule like 09:00
    maps to different UTC instants on either side of a DST change.
    """
    return datetime.combine(day, clock, tzinfo=zone).astimezone(UTC)


def local_day_bounds(day: date, zone: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC instants of [day 00:00, next day 00:00) in ``zone``"""
    try:
        start = wall_clock_to_utc(day, time(0, 0), zone)
        end = wall_clock_to_utc(day + timedelta(days=1), time(0, 0), zone)
    except OverflowError as e:
        raise ValidationError(f"Date {day.isoformat()} is out of range") from e
    return start, end


def local_days_between(start_utc: datetime, end_utc: datetime, zone: ZoneInfo) -> list[date]:
    """Calendar days in ``zone`` that the UTC range [start_utc, end_utc) touches"""
    if end_utc <= start_utc:
        return []
    first = start_utc.astimezone(zone).date()
    last = (end_utc - timedelta(microseconds=1)).astimezone(zone).date()
    days = []
    current = first
    while current <= last:
        days.append(current)
        current += timedelta(days=1)
    return days


def format_clock(value: datetime) -> str:
    """12-hour display, e.g. "9:00 AM" """
    return value.strftime("%I:%M %p").lstrip("0")
