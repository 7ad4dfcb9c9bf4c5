"""Booking service - reservation engine (create, reschedule, cancel, status)"""

import logging
import secrets
import string
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError

from ... import config
from ...exceptions import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    SlotConflictError,
    ValidationError,
)
from .policies import (
    can_manage_booking,
    can_manage_therapist,
    can_mutate_booking,
    can_view_booking,
    owns_therapist,
)
from .repository import SchedulingRepository
from .schemas import BookingCreate, BookingReschedule
from .slot_generator import (
    find_blocked_conflict,
    find_booking_conflict,
    within_booking_horizon,
    within_working_hours,
)
from .state_machine import assert_transition
from .time_calculator import as_utc, get_zone, utc_now
from .types import CLIENT_ROLE, Actor, BookingRecord, TherapistProfile

logger = logging.getLogger(__name__)

REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
REFERENCE_LENGTH = 8
REFERENCE_ATTEMPTS = 10

# Name of the PostgreSQL exclusion constraint installed by
# migrations/add_booking_overlap_constraint.py
OVERLAP_CONSTRAINT = "bookings_no_overlap_per_therapist"


def generate_booking_reference() -> str:
    suffix = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(REFERENCE_LENGTH))
    return f"{config.BOOKING_REFERENCE_PREFIX}-{suffix}"


def is_overlap_violation(error: IntegrityError) -> bool:
    return OVERLAP_CONSTRAINT in str(getattr(error, "orig", error))


class BookingService:
    """
    Commits bookings with at-most-one-winner semantics.

    Every write takes the therapist row lock, re-checks the window against the
    current bookings and blocked time, then writes. Readers never lock.
    """

    def __init__(
        self,
        repo: SchedulingRepository,
        clock: Callable[[], datetime] = utc_now,
        reference_generator: Callable[[], str] = generate_booking_reference,
    ):
        self.repo = repo
        self.clock = clock
        self.reference_generator = reference_generator

    # ========================================================================
    # CREATE
    # ========================================================================

    def create_booking(self, data: BookingCreate, actor: Optional[Actor] = None) -> BookingRecord:
        """
        Reserve a slot.

        Self-service bookings start as pending and must respect the therapist's
        notice and advance windows. Admin/reception bookings are confirmed
        immediately and skip the window check, but never the overlap check.
        """
        therapist = self._get_active_therapist(data.therapistId)
        duration, meeting_type = self._resolve_session(data, therapist)

        start = as_utc(data.startTime)
        end = start + timedelta(minutes=duration)
        is_staff = actor is not None and actor.is_staff

        if not is_staff and not within_booking_horizon(start, therapist, self.clock()):
            raise ValidationError(
                "Selected time is outside the booking window",
                details={
                    "minBookingNoticeHours": therapist.min_booking_notice,
                    "advanceBookingDays": therapist.advance_booking_days,
                },
            )
        if not is_staff:
            self._assert_working_hours(therapist, start, end)

        logger.info(
            f"📅 Booking request: therapist={therapist.id} start={start.isoformat()} "
            f"duration={duration}m staff={is_staff}"
        )

        try:
            with self.repo.transaction():
                locked = self.repo.lock_therapist(therapist.id)
                if not locked or not locked.is_active:
                    raise NotFoundError("Therapist not found")

                self._assert_window_free(locked, start, end)

                record = self.repo.insert_booking(
                    booking_reference=self._new_reference(),
                    therapist_id=locked.id,
                    session_type_id=data.sessionTypeId,
                    client_id=actor.user_id if actor and actor.role == CLIENT_ROLE else None,
                    client_name=data.clientName,
                    client_email=data.clientEmail,
                    client_phone=data.clientPhone,
                    start_datetime=start,
                    end_datetime=end,
                    timezone=data.timezone or locked.timezone,
                    status="confirmed" if is_staff else "pending",
                    meeting_type=meeting_type,
                    meeting_location=config.CLINIC_ADDRESS if meeting_type == "in_person" else None,
                    client_notes=data.clientNotes,
                    internal_notes=data.internalNotes if is_staff else None,
                    created_by=actor.user_id if actor else None,
                )
        except IntegrityError as e:
            if is_overlap_violation(e):
                logger.warning(f"⚠️ Overlap constraint rejected booking for therapist {therapist.id}")
                raise SlotConflictError() from e
            raise

        logger.info(f"✅ Booking {record.booking_reference} created ({record.status})")
        return self.repo.get_booking(record.id) or record

    # ========================================================================
    # RESCHEDULE / CANCEL
    # ========================================================================

    def reschedule_booking(
        self, booking_id: int, data: BookingReschedule, actor: Optional[Actor] = None
    ) -> tuple[BookingRecord, BookingRecord]:
        """Move a pending/confirmed booking. Returns (before, after)."""
        booking = self._get_booking(booking_id)
        therapist = self._get_therapist(booking.therapist_id)

        if not can_manage_booking(actor, booking, therapist, data.clientEmail):
            raise ForbiddenError("You are not allowed to reschedule this booking")
        if not booking.is_active:
            raise InvalidTransitionError(f"Cannot reschedule a {booking.status} booking")

        new_start = as_utc(data.startTime)
        if data.endTime is not None:
            new_end = as_utc(data.endTime)
        else:
            new_end = new_start + (booking.end - booking.start)
        if new_end <= new_start:
            raise ValidationError("End time must be after start time")

        privileged = actor is not None and (actor.is_staff or owns_therapist(actor, therapist))
        if not privileged and not within_booking_horizon(new_start, therapist, self.clock()):
            raise ValidationError("Selected time is outside the booking window")
        if not privileged:
            self._assert_working_hours(therapist, new_start, new_end)

        try:
            with self.repo.transaction():
                locked = self.repo.lock_therapist(therapist.id)
                current = self.repo.get_booking(booking_id)
                if not current.is_active:
                    raise InvalidTransitionError(f"Cannot reschedule a {current.status} booking")

                self._assert_window_free(locked, new_start, new_end, exclude_booking_id=booking_id)

                self.repo.update_booking(
                    booking_id,
                    start_datetime=new_start,
                    end_datetime=new_end,
                    timezone=data.timezone or current.timezone,
                )
        except IntegrityError as e:
            if is_overlap_violation(e):
                raise SlotConflictError() from e
            raise

        updated = self.repo.get_booking(booking_id)
        logger.info(
            f"📅 Booking {updated.booking_reference} moved "
            f"{booking.start.isoformat()} -> {updated.start.isoformat()}"
        )
        return booking, updated

    def cancel_booking(
        self,
        booking_id: int,
        reason: str,
        actor: Optional[Actor] = None,
        client_email: Optional[str] = None,
    ) -> BookingRecord:
        if not reason or not reason.strip():
            raise ValidationError("Cancellation reason is required")

        booking = self._get_booking(booking_id)
        therapist = self._get_therapist(booking.therapist_id)

        if not can_manage_booking(actor, booking, therapist, client_email):
            raise ForbiddenError("You are not allowed to cancel this booking")

        now = self.clock()
        with self.repo.transaction():
            self.repo.lock_therapist(therapist.id)
            current = self.repo.get_booking(booking_id)
            assert_transition(current, "cancelled", now)
            self.repo.update_booking(
                booking_id,
                status="cancelled",
                cancellation_reason=reason.strip(),
                cancelled_by=actor.user_id if actor else "client",
                cancelled_at=now,
            )

        logger.info(f"🗑️ Booking {booking.booking_reference} cancelled")
        return self.repo.get_booking(booking_id)

    # ========================================================================
    # STATUS
    # ========================================================================

    def transition_status(
        self, booking_id: int, new_status: str, actor: Actor, reason: Optional[str] = None
    ) -> BookingRecord:
        """
        Therapist/admin status changes: confirm, complete, no-show, cancel.

        Cancelling through here follows the same rule as cancel_booking: a
        reason is required and stored on the booking.
        """
        if new_status == "cancelled" and (not reason or not reason.strip()):
            raise ValidationError("Cancellation reason is required")

        booking = self._get_booking(booking_id)
        therapist = self._get_therapist(booking.therapist_id)

        if not can_mutate_booking(actor, booking, therapist):
            raise ForbiddenError("Only the therapist or an admin can change this booking's status")

        now = self.clock()
        with self.repo.transaction():
            self.repo.lock_therapist(therapist.id)
            current = self.repo.get_booking(booking_id)
            assert_transition(current, new_status, now)

            updates = {"status": new_status}
            if new_status == "cancelled":
                updates.update(
                    cancellation_reason=reason.strip(), cancelled_by=actor.user_id, cancelled_at=now
                )
            self.repo.update_booking(booking_id, **updates)

        logger.info(f"✅ Booking {booking.booking_reference}: {booking.status} -> {new_status}")
        return self.repo.get_booking(booking_id)

    # ========================================================================
    # READS
    # ========================================================================

    def get_booking(
        self,
        id_or_reference: str,
        actor: Optional[Actor] = None,
        client_email: Optional[str] = None,
    ) -> BookingRecord:
        """Lookup by numeric id or booking reference (MW-XXXXXXXX)"""
        key = str(id_or_reference).strip()
        if key.isdigit():
            booking = self.repo.get_booking(int(key))
        else:
            booking = self.repo.get_booking_by_reference(key.upper())
        if not booking:
            raise NotFoundError("Booking not found")

        therapist = self._get_therapist(booking.therapist_id)
        if not can_view_booking(actor, booking, therapist, client_email):
            raise ForbiddenError("You are not allowed to view this booking")
        return booking

    def list_therapist_bookings(
        self,
        actor: Actor,
        therapist_id: Optional[int] = None,
        status: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[BookingRecord]:
        """A therapist's bookings. Without therapist_id, the caller's own record is used."""
        if therapist_id is None:
            therapist = self.repo.find_therapist_for_user(actor.user_id, actor.email)
            if not therapist:
                raise NotFoundError("No therapist profile linked to this account")
        else:
            therapist = self._get_therapist(therapist_id)

        if not (actor.is_staff or can_manage_therapist(actor, therapist)):
            raise ForbiddenError("You are not allowed to view these bookings")

        return self.repo.list_therapist_bookings(
            therapist.id,
            status=status,
            start=as_utc(start) if start else None,
            end=as_utc(end) if end else None,
        )

    def list_client_bookings(self, actor: Actor) -> list[BookingRecord]:
        return self.repo.list_client_bookings(actor.user_id, actor.email)

    # ========================================================================
    # HELPERS
    # ========================================================================

    def _get_booking(self, booking_id: int) -> BookingRecord:
        booking = self.repo.get_booking(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    def _get_therapist(self, therapist_id: int) -> TherapistProfile:
        therapist = self.repo.get_therapist(therapist_id)
        if not therapist:
            raise NotFoundError("Therapist not found")
        return therapist

    def _get_active_therapist(self, therapist_id: int) -> TherapistProfile:
        therapist = self.repo.get_therapist(therapist_id)
        if not therapist or not therapist.is_active:
            raise NotFoundError("Therapist not found")
        return therapist

    def _resolve_session(self, data: BookingCreate, therapist: TherapistProfile) -> tuple[int, str]:
        """(duration minutes, meeting type) from the session type or the request"""
        if data.sessionTypeId is not None:
            session_type = self.repo.get_session_type(data.sessionTypeId)
            if (
                not session_type
                or not session_type.is_active
                or session_type.therapist_id != therapist.id
            ):
                raise NotFoundError("Session type not found")
            return session_type.duration, data.meetingType or session_type.meeting_type

        duration = data.durationMinutes or therapist.default_session_duration
        return duration, data.meetingType or "in_person"

    def _assert_working_hours(
        self, therapist: TherapistProfile, start: datetime, end: datetime
    ) -> None:
        """Self-service times must sit inside one of the therapist's weekly windows"""
        rules = self.repo.list_rules(therapist.id)
        if not within_working_hours(start, end, rules, get_zone(therapist.timezone)):
            raise ValidationError("Selected time is outside the therapist's working hours")

    def _assert_window_free(
        self,
        therapist: TherapistProfile,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> None:
        """Raise SlotConflictError if [start, end) collides with a booking or blocked time"""
        buffer = timedelta(minutes=therapist.buffer_time)
        bookings = self.repo.list_active_bookings(
            therapist.id, start - buffer, end + buffer, exclude_booking_id=exclude_booking_id
        )
        clash = find_booking_conflict(
            start, end, bookings, therapist.buffer_time, exclude_booking_id=exclude_booking_id
        )
        if clash:
            logger.warning(
                f"⚠️ Slot conflict for therapist {therapist.id} at {start.isoformat()} "
                f"(held by {clash.booking_reference})"
            )
            raise SlotConflictError()

        if find_blocked_conflict(start, end, self.repo.list_blocked(therapist.id, start, end)):
            logger.warning(f"⚠️ Blocked time for therapist {therapist.id} at {start.isoformat()}")
            raise SlotConflictError("The therapist is unavailable at that time. Please pick another time.")

    def _new_reference(self) -> str:
        for _ in range(REFERENCE_ATTEMPTS):
            reference = self.reference_generator()
            if not self.repo.reference_exists(reference):
                return reference
        raise RuntimeError("Could not generate a unique booking reference")
