"""Therapist domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import MEETING_TYPES
from ...shared.validators import (
    validate_email,
    validate_hex_color,
    validate_time_string,
    validate_timezone_name,
)
from ..scheduling.schemas import MAX_SESSION_MINUTES, MIN_SESSION_MINUTES


def _in_range(value, low, high, label):
    if value is not None and not (low <= value <= high):
        raise ValueError(f"{label} must be between {low} and {high}")
    return value


# ============================================================================
# AVAILABILITY RULES
# ============================================================================


class AvailabilityRuleCreate(BaseModel):
    """One weekly window, wall clock in the therapist's timezone"""

    dayOfWeek: int  # 0 = Sunday
    startTime: str  # HH:MM
    endTime: str
    isActive: bool = True

    @field_validator("dayOfWeek")
    @classmethod
    def validate_day(cls, v):
        return _in_range(v, 0, 6, "Day of week")

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_time(cls, v):
        return validate_time_string(v)


class AvailabilityRuleUpdate(BaseModel):
    dayOfWeek: Optional[int] = None
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    isActive: Optional[bool] = None

    @field_validator("dayOfWeek")
    @classmethod
    def validate_day(cls, v):
        return _in_range(v, 0, 6, "Day of week")

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_time(cls, v):
        if v is not None:
            return validate_time_string(v)
        return v


class WeeklyScheduleReplace(BaseModel):
    """Replace the whole weekly schedule in one go"""

    rules: list[AvailabilityRuleCreate]


class AvailabilityRuleResponse(BaseModel):
    id: int
    dayOfWeek: int
    startTime: str
    endTime: str
    isActive: bool


# ============================================================================
# BLOCKED TIME
# ============================================================================


class BlockedIntervalCreate(BaseModel):
    """
    Either an explicit range (startDatetime/endDatetime) or, with isAllDay,
    whole calendar days (date .. endDate) in the therapist's timezone.
    """

    startDatetime: Optional[datetime] = None
    endDatetime: Optional[datetime] = None
    date: Optional[str] = None
    endDate: Optional[str] = None
    isAllDay: bool = False
    reason: Optional[str] = None


class BlockedIntervalResponse(BaseModel):
    id: int
    startDatetime: datetime
    endDatetime: datetime
    isAllDay: bool
    reason: Optional[str] = None


# ============================================================================
# SESSION TYPES
# ============================================================================


class SessionTypeCreate(BaseModel):
    name: str
    duration: int
    meetingType: str
    price: Optional[float] = None
    description: Optional[str] = None
    color: Optional[str] = "#00A99D"
    isActive: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Name is required")
        return v.strip()

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v):
        return _in_range(v, MIN_SESSION_MINUTES, MAX_SESSION_MINUTES, "Duration")

    @field_validator("meetingType")
    @classmethod
    def validate_meeting_type(cls, v):
        if v not in MEETING_TYPES:
            raise ValueError(f"Meeting type must be one of: {', '.join(MEETING_TYPES)}")
        return v

    @field_validator("price")
    @classmethod
    def validate_price(cls, v):
        if v is not None and v < 0:
            raise ValueError("Price cannot be negative")
        return v

    @field_validator("color")
    @classmethod
    def validate_color(cls, v):
        return validate_hex_color(v)


class SessionTypeUpdate(BaseModel):
    name: Optional[str] = None
    duration: Optional[int] = None
    meetingType: Optional[str] = None
    price: Optional[float] = None
    description: Optional[str] = None
    color: Optional[str] = None
    isActive: Optional[bool] = None

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v):
        return _in_range(v, MIN_SESSION_MINUTES, MAX_SESSION_MINUTES, "Duration")

    @field_validator("meetingType")
    @classmethod
    def validate_meeting_type(cls, v):
        if v is not None and v not in MEETING_TYPES:
            raise ValueError(f"Meeting type must be one of: {', '.join(MEETING_TYPES)}")
        return v

    @field_validator("color")
    @classmethod
    def validate_color(cls, v):
        return validate_hex_color(v)


class SessionTypeResponse(BaseModel):
    id: int
    therapistId: int
    name: str
    duration: int
    meetingType: str
    price: Optional[float] = None
    description: Optional[str] = None
    color: str
    isActive: bool


# ============================================================================
# BOOKING SETTINGS / THERAPISTS
# ============================================================================


class BookingSettingsUpdate(BaseModel):
    timezone: Optional[str] = None
    defaultSessionDuration: Optional[int] = None
    bufferTime: Optional[int] = None  # Minutes
    advanceBookingDays: Optional[int] = None
    minBookingNotice: Optional[int] = None  # Hours

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        if v is not None:
            return validate_timezone_name(v)
        return v

    @field_validator("defaultSessionDuration")
    @classmethod
    def validate_duration(cls, v):
        return _in_range(v, MIN_SESSION_MINUTES, MAX_SESSION_MINUTES, "Session duration")

    @field_validator("bufferTime")
    @classmethod
    def validate_buffer(cls, v):
        return _in_range(v, 0, 120, "Buffer time")

    @field_validator("advanceBookingDays")
    @classmethod
    def validate_advance(cls, v):
        return _in_range(v, 1, 365, "Advance booking days")

    @field_validator("minBookingNotice")
    @classmethod
    def validate_notice(cls, v):
        return _in_range(v, 0, 168, "Minimum booking notice")


class BookingSettingsResponse(BaseModel):
    timezone: str
    defaultSessionDuration: int
    bufferTime: int
    advanceBookingDays: int
    minBookingNotice: int


class TherapistCreate(BaseModel):
    """Admin: add a therapist"""

    name: str
    email: str
    slug: Optional[str] = None  # Derived from the name when omitted
    title: Optional[str] = None
    phone: Optional[str] = None
    userId: Optional[str] = None
    timezone: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Name is required")
        return v.strip()

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        if not v:
            raise ValueError("Email is required")
        return validate_email(v)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        if v:
            return validate_timezone_name(v)
        return v


class TherapistResponse(BaseModel):
    id: int
    slug: str
    name: str
    title: Optional[str] = None
    email: str
    timezone: str
    defaultSessionDuration: int
    bufferTime: int
    advanceBookingDays: int
    minBookingNotice: int
    isActive: bool
    archivedAt: Optional[datetime] = None


class PublicTherapistResponse(BaseModel):
    slug: str
    name: str
    title: Optional[str] = None
    timezone: str
    defaultSessionDuration: int
    sessionTypes: list[SessionTypeResponse]
