from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from . import config
from .database import Base

BOOKING_STATUSES = ("pending", "confirmed", "cancelled", "completed", "no_show")
MEETING_TYPES = ("in_person", "video", "phone")


class Therapist(Base):
    __tablename__ = "therapists"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=True, index=True)  # Auth service user id (optional)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    title = Column(String(255), nullable=True)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(50), nullable=True)
    timezone = Column(String(64), nullable=False, default=config.DEFAULT_TIMEZONE)  # IANA name
    default_session_duration = Column(
        Integer, nullable=False, default=config.DEFAULT_SESSION_DURATION
    )  # Minutes
    buffer_time = Column(
        Integer, nullable=False, default=config.DEFAULT_BUFFER_TIME
    )  # Minutes kept free after each session
    advance_booking_days = Column(
        Integer, nullable=False, default=config.DEFAULT_ADVANCE_BOOKING_DAYS
    )  # How far ahead slots are offered
    min_booking_notice = Column(
        Integer, nullable=False, default=config.DEFAULT_MIN_BOOKING_NOTICE
    )  # Hours between now and the earliest bookable start
    is_active = Column(Boolean, default=True, nullable=False)  # False = archived
    archived_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    availability_rules = relationship("AvailabilityRule", back_populates="therapist")
    blocked_intervals = relationship("BlockedInterval", back_populates="therapist")
    session_types = relationship("SessionType", back_populates="therapist")
    bookings = relationship("Booking", back_populates="therapist")


class AvailabilityRule(Base):
    __tablename__ = "availability_rules"

    id = Column(Integer, primary_key=True, index=True)
    therapist_id = Column(Integer, ForeignKey("therapists.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday ... 6 = Saturday
    start_time = Column(String(5), nullable=False)  # HH:MM, therapist wall clock
    end_time = Column(String(5), nullable=False)  # HH:MM, therapist wall clock
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    therapist = relationship("Therapist", back_populates="availability_rules")


class BlockedInterval(Base):
    __tablename__ = "blocked_intervals"

    id = Column(Integer, primary_key=True, index=True)
    therapist_id = Column(Integer, ForeignKey("therapists.id"), nullable=False, index=True)
    start_datetime = Column(DateTime(timezone=True), nullable=False)  # UTC
    end_datetime = Column(DateTime(timezone=True), nullable=False)  # UTC
    reason = Column(String(500), nullable=True)
    is_all_day = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    therapist = relationship("Therapist", back_populates="blocked_intervals")


class SessionType(Base):
    __tablename__ = "session_types"

    id = Column(Integer, primary_key=True, index=True)
    therapist_id = Column(Integer, ForeignKey("therapists.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    duration = Column(Integer, nullable=False)  # Minutes
    meeting_type = Column(String(20), nullable=False)  # in_person, video, phone
    price = Column(Float, nullable=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    color = Column(String(7), default="#00A99D", nullable=False)  # UI only
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    therapist = relationship("Therapist", back_populates="session_types")


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (Index("ix_bookings_therapist_window", "therapist_id", "start_datetime"),)

    id = Column(Integer, primary_key=True, index=True)
    booking_reference = Column(String(50), unique=True, index=True, nullable=False)
    therapist_id = Column(Integer, ForeignKey("therapists.id"), nullable=False)
    session_type_id = Column(Integer, ForeignKey("session_types.id"), nullable=True)
    client_id = Column(String(255), nullable=True)  # Auth service user id when logged in
    client_name = Column(String(255), nullable=False)
    client_email = Column(String(255), nullable=False, index=True)
    client_phone = Column(String(50), nullable=True)
    start_datetime = Column(DateTime(timezone=True), nullable=False)  # UTC
    end_datetime = Column(DateTime(timezone=True), nullable=False)  # UTC
    timezone = Column(String(64), nullable=False, default=config.DEFAULT_TIMEZONE)  # Client display zone
    status = Column(String(20), nullable=False, default="pending")  # See BOOKING_STATUSES
    meeting_type = Column(String(20), nullable=False)
    meeting_link = Column(Text, nullable=True)
    meeting_location = Column(String(255), nullable=True)
    client_notes = Column(Text, nullable=True)
    internal_notes = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancelled_by = Column(String(255), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    therapist = relationship("Therapist", back_populates="bookings")
    session_type = relationship("SessionType")
