"""Availability service - read side of scheduling (dates and slots)"""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from ...exceptions import NotFoundError, ValidationError
from .repository import SchedulingRepository
from .slot_generator import generate_slots
from .time_calculator import get_zone, local_day_bounds, parse_date, utc_now
from .types import DateAvailability, Slot, TherapistProfile

logger = logging.getLogger(__name__)

# A queried slot can be at most one day long
MAX_QUERY_DURATION_MINUTES = 24 * 60


class AvailabilityService:
    """
    Answers "which days have openings" and "which slots are open on this day".

    Reads are optimistic: two callers may both see the same free slot, the
    booking engine decides who gets it.
    """

    def __init__(self, repo: SchedulingRepository, clock: Callable[[], datetime] = utc_now):
        self.repo = repo
        self.clock = clock

    # ------------------------------------------------------------------------
    # Public (slug) entry points
    # ------------------------------------------------------------------------

    def get_available_dates(
        self,
        therapist_slug: str,
        duration_minutes: Optional[int] = None,
        timezone: Optional[str] = None,
    ) -> list[DateAvailability]:
        therapist = self.resolve_therapist(therapist_slug)
        return self._available_dates(therapist, duration_minutes, timezone)

    def get_available_slots(
        self,
        therapist_slug: str,
        day,
        duration_minutes: Optional[int] = None,
        timezone: Optional[str] = None,
    ) -> list[Slot]:
        therapist = self.resolve_therapist(therapist_slug)
        return self._available_slots(therapist, day, duration_minutes, timezone)

    # ------------------------------------------------------------------------
    # Internal (id) entry points, used by staff booking screens
    # ------------------------------------------------------------------------

    def list_available_dates(
        self,
        therapist_id: int,
        duration_minutes: Optional[int] = None,
        timezone: Optional[str] = None,
    ) -> list[DateAvailability]:
        therapist = self._resolve_by_id(therapist_id)
        return self._available_dates(therapist, duration_minutes, timezone)

    def list_available_slots(
        self,
        therapist_id: int,
        day,
        duration_minutes: Optional[int] = None,
        timezone: Optional[str] = None,
    ) -> list[Slot]:
        therapist = self._resolve_by_id(therapist_id)
        return self._available_slots(therapist, day, duration_minutes, timezone)

    # ------------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------------

    def resolve_therapist(self, slug: str) -> TherapistProfile:
        therapist = self.repo.get_therapist_by_slug(slug)
        if not therapist or not therapist.is_active:
            raise NotFoundError("Therapist not found")
        return therapist

    def _resolve_by_id(self, therapist_id: int) -> TherapistProfile:
        therapist = self.repo.get_therapist(therapist_id)
        if not therapist or not therapist.is_active:
            raise NotFoundError("Therapist not found")
        return therapist

    @staticmethod
    def _duration(therapist: TherapistProfile, duration_minutes: Optional[int]) -> int:
        if duration_minutes is None:
            return therapist.default_session_duration
        if not 0 < duration_minutes <= MAX_QUERY_DURATION_MINUTES:
            raise ValidationError(
                f"Duration must be between 1 and {MAX_QUERY_DURATION_MINUTES} minutes"
            )
        return duration_minutes

    def _available_dates(
        self,
        therapist: TherapistProfile,
        duration_minutes: Optional[int],
        timezone: Optional[str],
    ) -> list[DateAvailability]:
        zone = get_zone(timezone or therapist.timezone)
        duration = self._duration(therapist, duration_minutes)
        now = self.clock()

        today = now.astimezone(zone).date()
        days = [today + timedelta(days=i) for i in range(therapist.advance_booking_days + 1)]

        rules = self.repo.list_rules(therapist.id)
        if not rules:
            return [DateAvailability(date=d, has_slots=False) for d in days]

        range_start, range_end = self._load_window(days[0], days[-1], zone, therapist)
        blocked = self.repo.list_blocked(therapist.id, range_start, range_end)
        bookings = self.repo.list_active_bookings(therapist.id, range_start, range_end)

        results = []
        for day in days:
            slots = generate_slots(therapist, rules, blocked, bookings, day, duration, zone, now)
            has_slots = any(slot.available for slot in slots)
            results.append(DateAvailability(date=day, has_slots=has_slots))

        logger.info(
            f"📅 Availability for therapist {therapist.id}: "
            f"{sum(1 for r in results if r.has_slots)}/{len(results)} days open"
        )
        return results

    def _available_slots(
        self,
        therapist: TherapistProfile,
        day,
        duration_minutes: Optional[int],
        timezone: Optional[str],
    ) -> list[Slot]:
        requested = parse_date(day)
        zone = get_zone(timezone or therapist.timezone)
        duration = self._duration(therapist, duration_minutes)

        rules = self.repo.list_rules(therapist.id)
        if not rules:
            return []

        range_start, range_end = self._load_window(requested, requested, zone, therapist)
        blocked = self.repo.list_blocked(therapist.id, range_start, range_end)
        bookings = self.repo.list_active_bookings(therapist.id, range_start, range_end)

        return [
            slot
            for slot in generate_slots(
                therapist, rules, blocked, bookings, requested, duration, zone, self.clock()
            )
            if slot.available
        ]

    @staticmethod
    def _load_window(first: date, last: date, zone, therapist: TherapistProfile):
        """UTC range wide enough to cover every candidate of [first, last] plus buffers"""
        start, _ = local_day_bounds(first, zone)
        _, end = local_day_bounds(last, zone)
        margin = timedelta(days=1, minutes=therapist.buffer_time)
        try:
            return start - margin, end + margin
        except OverflowError as e:
            raise ValidationError("Date is out of range") from e
