"""Plain value types the scheduling core works on.

The repository converts ORM rows into these before they reach the slot
generator or the reservation engine, so both can run against any store.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Optional

ACTIVE_STATUSES = frozenset({"pending", "confirmed"})
TERMINAL_STATUSES = frozenset({"cancelled", "completed", "no_show"})

ADMIN_ROLE = "admin"
RECEPTION_ROLE = "reception"
THERAPIST_ROLE = "therapist"
CLIENT_ROLE = "client"


@dataclass(frozen=True)
class Actor:
    """Who is calling, as resolved by the auth service"""

    user_id: str
    role: str
    email: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    @property
    def is_staff(self) -> bool:
        return self.role in (ADMIN_ROLE, RECEPTION_ROLE)


@dataclass(frozen=True)
class TherapistProfile:
    id: int
    slug: str
    name: str
    email: str
    timezone: str
    default_session_duration: int
    buffer_time: int
    advance_booking_days: int
    min_booking_notice: int
    is_active: bool = True
    user_id: Optional[str] = None


@dataclass(frozen=True)
class WeeklyRule:
    therapist_id: int
    day_of_week: int  # 0 = Sunday
    start_time: time
    end_time: time
    is_active: bool = True
    id: Optional[int] = None


@dataclass(frozen=True)
class BlockedRange:
    therapist_id: int
    start: datetime
    end: datetime
    is_all_day: bool = False
    reason: Optional[str] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class SessionTypeInfo:
    id: int
    therapist_id: int
    name: str
    duration: int
    meeting_type: str
    price: Optional[float] = None
    is_active: bool = True


@dataclass(frozen=True)
class BookingRecord:
    id: int
    booking_reference: str
    therapist_id: int
    start: datetime
    end: datetime
    status: str
    meeting_type: str
    client_name: str
    client_email: str
    client_phone: Optional[str] = None
    session_type_id: Optional[int] = None
    client_id: Optional[str] = None
    timezone: Optional[str] = None
    meeting_link: Optional[str] = None
    meeting_location: Optional[str] = None
    client_notes: Optional[str] = None
    internal_notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


@dataclass(frozen=True)
class Slot:
    """A candidate interval. ``start``/``end`` are UTC and identify the slot."""

    start: datetime
    end: datetime
    available: bool
    local_start: datetime = field(compare=False)
    local_end: datetime = field(compare=False)


@dataclass(frozen=True)
class DateAvailability:
    date: date
    has_slots: bool
