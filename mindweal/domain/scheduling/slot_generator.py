"""
Slot generation - turns weekly rules, blocked ranges and bookings into
bookable slots for one calendar day.

Candidates are produced lazily per availability window and merged in start
order, so callers that only need to know whether a day has *any* free slot
can stop at the first one.
"""

import heapq
from datetime import date, datetime, timedelta
from typing import Iterable, Iterator, Optional
from zoneinfo import ZoneInfo

from .time_calculator import (
    day_of_week,
    local_day_bounds,
    local_days_between,
    overlaps,
    wall_clock_to_utc,
)
from .types import BlockedRange, BookingRecord, Slot, TherapistProfile, WeeklyRule


def iter_window_candidates(
    window_start: datetime,
    window_end: datetime,
    duration: timedelta,
    step: timedelta,
) -> Iterator[tuple[datetime, datetime]]:
    """Full-length candidates inside one window. A trailing partial slot is dropped."""
    cursor = window_start
    while cursor + duration <= window_end:
        yield cursor, cursor + duration
        cursor += step


def rule_windows(
    rules: Iterable[WeeklyRule], days: Iterable[date], zone: ZoneInfo
) -> list[tuple[datetime, datetime]]:
    """UTC windows for every active rule that applies to the given local days"""
    windows = []
    active_rules = [r for r in rules if r.is_active]
    for day in days:
        weekday = day_of_week(day)
        for rule in active_rules:
            if rule.day_of_week != weekday:
                continue
            start = wall_clock_to_utc(day, rule.start_time, zone)
            end = wall_clock_to_utc(day, rule.end_time, zone)
            if start < end:
                windows.append((start, end))
    return windows


def within_booking_horizon(start: datetime, therapist: TherapistProfile, now: datetime) -> bool:
    """Not in the past, respects minimum notice, not beyond the advance window"""
    if start < now:
        return False
    if start < now + timedelta(hours=therapist.min_booking_notice):
        return False
    if start > now + timedelta(days=therapist.advance_booking_days):
        return False
    return True


def within_working_hours(
    start: datetime, end: datetime, rules: Iterable[WeeklyRule], zone: ZoneInfo
) -> bool:
    """[start, end) fits inside a single active rule window"""
    days = local_days_between(start, end, zone)
    return any(
        window_start <= start and end <= window_end
        for window_start, window_end in rule_windows(rules, days, zone)
    )


def find_blocked_conflict(
    start: datetime, end: datetime, blocked: Iterable[BlockedRange]
) -> Optional[BlockedRange]:
    for period in blocked:
        if overlaps(start, end, period.start, period.end):
            return period
    return None


def find_booking_conflict(
    start: datetime,
    end: datetime,
    bookings: Iterable[BookingRecord],
    buffer_minutes: int,
    exclude_booking_id: Optional[int] = None,
) -> Optional[BookingRecord]:
    """
    First pending/confirmed booking that collides with [start, end).

    Every session holds its buffer after it, so both sides are compared
    as [start, end + buffer).
    """
    buffer = timedelta(minutes=buffer_minutes)
    for booking in bookings:
        if not booking.is_active or booking.id == exclude_booking_id:
            continue
        if overlaps(start, end + buffer, booking.start, booking.end + buffer):
            return booking
    return None


def generate_slots(
    therapist: TherapistProfile,
    rules: Iterable[WeeklyRule],
    blocked_intervals: Iterable[BlockedRange],
    existing_bookings: Iterable[BookingRecord],
    day: date,
    duration_minutes: int,
    request_timezone: ZoneInfo,
    now: datetime,
) -> Iterator[Slot]:
    """
    Candidate slots whose start falls on ``day`` in ``request_timezone``,
    ascending and de-duplicated by start instant, each marked available or not.
    """
    therapist_zone = ZoneInfo(therapist.timezone)
    day_start, day_end = local_day_bounds(day, request_timezone)
    therapist_days = local_days_between(day_start, day_end, therapist_zone)

    duration = timedelta(minutes=duration_minutes)
    step = duration + timedelta(minutes=therapist.buffer_time)
    blocked = list(blocked_intervals)
    bookings = [b for b in existing_bookings if b.is_active]

    candidates = heapq.merge(
        *(
            iter_window_candidates(start, end, duration, step)
            for start, end in rule_windows(rules, therapist_days, therapist_zone)
        )
    )

    last_start = None
    for start, end in candidates:
        if start == last_start:
            continue
        last_start = start
        if start < day_start:
            continue
        if start >= day_end:
            break

        available = (
            within_booking_horizon(start, therapist, now)
            and find_blocked_conflict(start, end, blocked) is None
            and find_booking_conflict(start, end, bookings, therapist.buffer_time) is None
        )
        yield Slot(
            start=start,
            end=end,
            available=available,
            local_start=start.astimezone(request_timezone),
            local_end=end.astimezone(request_timezone),
        )
