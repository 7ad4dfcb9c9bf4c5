"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import BOOKING_STATUSES, MEETING_TYPES
from ...shared.validators import validate_email, validate_timezone_name

MIN_SESSION_MINUTES = 15
MAX_SESSION_MINUTES = 180


def _validate_duration(v):
    if v is not None and not (MIN_SESSION_MINUTES <= v <= MAX_SESSION_MINUTES):
        raise ValueError(
            f"Duration must be between {MIN_SESSION_MINUTES} and {MAX_SESSION_MINUTES} minutes"
        )
    return v


# ============================================================================
# REQUESTS
# ============================================================================


class BookingCreate(BaseModel):
    """Schema for creating a booking (public booking page or staff)"""

    therapistId: int
    sessionTypeId: Optional[int] = None
    startTime: datetime
    durationMinutes: Optional[int] = None  # Used when no session type is given
    meetingType: Optional[str] = None
    clientName: str
    clientEmail: str
    clientPhone: Optional[str] = None
    clientNotes: Optional[str] = None
    internalNotes: Optional[str] = None  # Staff only
    timezone: Optional[str] = None

    @field_validator("clientName")
    @classmethod
    def validate_client_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Name is required")
        return v.strip()

    @field_validator("clientEmail")
    @classmethod
    def validate_client_email(cls, v):
        if not v:
            raise ValueError("Email is required")
        return validate_email(v)

    @field_validator("durationMinutes")
    @classmethod
    def validate_duration(cls, v):
        return _validate_duration(v)

    @field_validator("meetingType")
    @classmethod
    def validate_meeting_type(cls, v):
        if v is not None and v not in MEETING_TYPES:
            raise ValueError(f"Meeting type must be one of: {', '.join(MEETING_TYPES)}")
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        if v:
            return validate_timezone_name(v)
        return v


class BookingReschedule(BaseModel):
    """Move a booking. Duration is kept unless endTime is given."""

    startTime: datetime
    endTime: Optional[datetime] = None
    timezone: Optional[str] = None
    clientEmail: Optional[str] = None  # Proves ownership without a session

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        if v:
            return validate_timezone_name(v)
        return v


class BookingCancel(BaseModel):
    reason: str
    clientEmail: Optional[str] = None


class BookingStatusUpdate(BaseModel):
    status: str
    reason: Optional[str] = None  # Required when status is "cancelled"

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v not in BOOKING_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(BOOKING_STATUSES)}")
        return v


# ============================================================================
# RESPONSES
# ============================================================================


class AvailableDateResponse(BaseModel):
    date: str  # YYYY-MM-DD in the requested timezone
    hasSlots: bool


class AvailabilityResponse(BaseModel):
    therapistSlug: str
    timezone: str
    durationMinutes: int
    dates: list[AvailableDateResponse]


class SlotResponse(BaseModel):
    """One bookable slot. startUtc is what gets sent back to POST /bookings."""

    startTime: str  # ISO, request timezone
    endTime: str
    startUtc: str
    endUtc: str
    displayTime: str  # "9:00 AM"
    displayEndTime: str


class SlotsResponse(BaseModel):
    therapistSlug: str
    date: str
    timezone: str
    durationMinutes: int
    slots: list[SlotResponse]


class BookingResponse(BaseModel):
    """Schema for booking response"""

    id: int
    bookingReference: str
    therapistId: int
    sessionTypeId: Optional[int] = None
    clientName: str
    clientEmail: str
    clientPhone: Optional[str] = None
    startTime: datetime
    endTime: datetime
    timezone: Optional[str] = None
    status: str
    meetingType: str
    meetingLink: Optional[str] = None
    meetingLocation: Optional[str] = None
    clientNotes: Optional[str] = None
    cancellationReason: Optional[str] = None
    cancelledAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None


class TherapistBookingResponse(BookingResponse):
    internalNotes: Optional[str] = None
    cancelledBy: Optional[str] = None
    createdBy: Optional[str] = None
