"""Scheduling repository - Database operations for availability and bookings"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import AvailabilityRule, BlockedInterval, Booking, SessionType, Therapist
from .time_calculator import as_utc, parse_wall_clock
from .types import (
    ACTIVE_STATUSES,
    BlockedRange,
    BookingRecord,
    SessionTypeInfo,
    TherapistProfile,
    WeeklyRule,
)

logger = logging.getLogger(__name__)


# ============================================================================
# ROW MAPPERS
# ============================================================================


def to_therapist_profile(row: Therapist) -> TherapistProfile:
    return TherapistProfile(
        id=row.id,
        slug=row.slug,
        name=row.name,
        email=row.email,
        timezone=row.timezone,
        default_session_duration=row.default_session_duration,
        buffer_time=row.buffer_time,
        advance_booking_days=row.advance_booking_days,
        min_booking_notice=row.min_booking_notice,
        is_active=bool(row.is_active),
        user_id=row.user_id,
    )


def to_weekly_rule(row: AvailabilityRule) -> WeeklyRule:
    return WeeklyRule(
        id=row.id,
        therapist_id=row.therapist_id,
        day_of_week=row.day_of_week,
        start_time=parse_wall_clock(row.start_time),
        end_time=parse_wall_clock(row.end_time),
        is_active=bool(row.is_active),
    )


def to_blocked_range(row: BlockedInterval) -> BlockedRange:
    return BlockedRange(
        id=row.id,
        therapist_id=row.therapist_id,
        start=as_utc(row.start_datetime),
        end=as_utc(row.end_datetime),
        is_all_day=bool(row.is_all_day),
        reason=row.reason,
    )


def to_session_type_info(row: SessionType) -> SessionTypeInfo:
    return SessionTypeInfo(
        id=row.id,
        therapist_id=row.therapist_id,
        name=row.name,
        duration=row.duration,
        meeting_type=row.meeting_type,
        price=row.price,
        is_active=bool(row.is_active),
    )


def to_booking_record(row: Booking) -> BookingRecord:
    return BookingRecord(
        id=row.id,
        booking_reference=row.booking_reference,
        therapist_id=row.therapist_id,
        start=as_utc(row.start_datetime),
        end=as_utc(row.end_datetime),
        status=row.status,
        meeting_type=row.meeting_type,
        client_name=row.client_name,
        client_email=row.client_email,
        client_phone=row.client_phone,
        session_type_id=row.session_type_id,
        client_id=row.client_id,
        timezone=row.timezone,
        meeting_link=row.meeting_link,
        meeting_location=row.meeting_location,
        client_notes=row.client_notes,
        internal_notes=row.internal_notes,
        cancellation_reason=row.cancellation_reason,
        cancelled_by=row.cancelled_by,
        cancelled_at=as_utc(row.cancelled_at) if row.cancelled_at else None,
        created_by=row.created_by,
        created_at=as_utc(row.created_at) if row.created_at else None,
    )


class SchedulingRepository:
    """
    Narrow persistence interface used by the availability and booking services.

    Everything returned is a plain value from ``types``; ORM rows never leave
    this class.
    """

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------------
    # Therapists and session types
    # ------------------------------------------------------------------------

    def get_therapist(self, therapist_id: int) -> Optional[TherapistProfile]:
        row = self.db.query(Therapist).filter(Therapist.id == therapist_id).first()
        return to_therapist_profile(row) if row else None

    def get_therapist_by_slug(self, slug: str) -> Optional[TherapistProfile]:
        row = self.db.query(Therapist).filter(Therapist.slug == slug).first()
        return to_therapist_profile(row) if row else None

    def find_therapist_for_user(self, user_id: str, email: str = "") -> Optional[TherapistProfile]:
        """Therapist record linked to an auth account, by user id first, then e-mail"""
        row = None
        if user_id:
            row = self.db.query(Therapist).filter(Therapist.user_id == user_id).first()
        if row is None and email:
            row = self.db.query(Therapist).filter(Therapist.email == email.lower()).first()
        return to_therapist_profile(row) if row else None

    def get_session_type(self, session_type_id: int) -> Optional[SessionTypeInfo]:
        row = self.db.query(SessionType).filter(SessionType.id == session_type_id).first()
        return to_session_type_info(row) if row else None

    # ------------------------------------------------------------------------
    # Availability inputs
    # ------------------------------------------------------------------------

    def list_rules(self, therapist_id: int) -> list[WeeklyRule]:
        """Active weekly rules ordered by day and start time"""
        rows = (
            self.db.query(AvailabilityRule)
            .filter(
                AvailabilityRule.therapist_id == therapist_id,
                AvailabilityRule.is_active == True,  # noqa: E712
            )
            .order_by(AvailabilityRule.day_of_week, AvailabilityRule.start_time)
            .all()
        )
        return [to_weekly_rule(r) for r in rows]

    def list_blocked(self, therapist_id: int, start: datetime, end: datetime) -> list[BlockedRange]:
        """Blocked intervals intersecting [start, end)"""
        rows = (
            self.db.query(BlockedInterval)
            .filter(
                BlockedInterval.therapist_id == therapist_id,
                BlockedInterval.start_datetime < end,
                BlockedInterval.end_datetime > start,
            )
            .order_by(BlockedInterval.start_datetime)
            .all()
        )
        return [to_blocked_range(r) for r in rows]

    def list_active_bookings(
        self,
        therapist_id: int,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> list[BookingRecord]:
        """Pending/confirmed bookings intersecting [start, end)"""
        query = self.db.query(Booking).filter(
            Booking.therapist_id == therapist_id,
            Booking.status.in_(ACTIVE_STATUSES),
            Booking.start_datetime < end,
            Booking.end_datetime > start,
        )
        if exclude_booking_id is not None:
            query = query.filter(Booking.id != exclude_booking_id)
        rows = query.order_by(Booking.start_datetime).all()
        return [to_booking_record(r) for r in rows]

    # ------------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------------

    def get_booking(self, booking_id: int) -> Optional[BookingRecord]:
        row = self.db.query(Booking).filter(Booking.id == booking_id).first()
        return to_booking_record(row) if row else None

    def get_booking_by_reference(self, reference: str) -> Optional[BookingRecord]:
        row = self.db.query(Booking).filter(Booking.booking_reference == reference).first()
        return to_booking_record(row) if row else None

    def reference_exists(self, reference: str) -> bool:
        return (
            self.db.query(Booking.id).filter(Booking.booking_reference == reference).first()
            is not None
        )

    def list_therapist_bookings(
        self,
        therapist_id: int,
        status: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[BookingRecord]:
        query = self.db.query(Booking).filter(Booking.therapist_id == therapist_id)
        if status:
            query = query.filter(Booking.status == status)
        if start is not None:
            query = query.filter(Booking.start_datetime >= start)
        if end is not None:
            query = query.filter(Booking.start_datetime < end)
        return [to_booking_record(r) for r in query.order_by(Booking.start_datetime).all()]

    def list_client_bookings(self, client_id: str, client_email: str = "") -> list[BookingRecord]:
        query = self.db.query(Booking)
        if client_email:
            query = query.filter(
                (Booking.client_id == client_id) | (Booking.client_email == client_email.lower())
            )
        else:
            query = query.filter(Booking.client_id == client_id)
        return [to_booking_record(r) for r in query.order_by(Booking.start_datetime.desc()).all()]

    # ------------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------------

    @contextmanager
    def transaction(self):
        """Commit on success, roll back and re-raise on any error"""
        try:
            yield self
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def lock_therapist(self, therapist_id: int) -> Optional[TherapistProfile]:
        """
        SELECT ... FOR UPDATE on the therapist row.

        Serializes writers for one therapist until the surrounding transaction
        ends. Other therapists are unaffected.
        """
        row = (
            self.db.query(Therapist)
            .filter(Therapist.id == therapist_id)
            .with_for_update()
            .first()
        )
        return to_therapist_profile(row) if row else None

    def insert_booking(self, **fields) -> BookingRecord:
        booking = Booking(**fields)
        self.db.add(booking)
        self.db.flush()
        return to_booking_record(booking)

    def update_booking(self, booking_id: int, **updates) -> BookingRecord:
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        for key, value in updates.items():
            setattr(booking, key, value)
        self.db.flush()
        return to_booking_record(booking)
