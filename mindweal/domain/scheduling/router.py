"""Scheduling router - availability queries and booking endpoints"""

import logging
from datetime import datetime
from typing import Optional, Union

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_actor, get_optional_actor
from ...database import get_db
from .availability_service import MAX_QUERY_DURATION_MINUTES, AvailabilityService
from .booking_service import BookingService
from .integration_service import BookingSideEffects
from .repository import SchedulingRepository
from .schemas import (
    AvailabilityResponse,
    AvailableDateResponse,
    BookingCancel,
    BookingCreate,
    BookingReschedule,
    BookingResponse,
    BookingStatusUpdate,
    SlotResponse,
    SlotsResponse,
    TherapistBookingResponse,
)
from .time_calculator import format_clock, get_zone, parse_date, utc_now
from .types import Actor, BookingRecord, Slot

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Scheduling"])


def get_clock():
    """Dependency injection for the current-time source"""
    return utc_now


def get_scheduling_repository(db: Session = Depends(get_db)) -> SchedulingRepository:
    return SchedulingRepository(db)


def get_availability_service(
    repo: SchedulingRepository = Depends(get_scheduling_repository),
    clock=Depends(get_clock),
) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(repo, clock)


def get_booking_service(
    repo: SchedulingRepository = Depends(get_scheduling_repository),
    clock=Depends(get_clock),
) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(repo, clock)


def get_side_effects(request: Request) -> BookingSideEffects:
    return BookingSideEffects(request.app.state.database)


# ============================================================================
# RESPONSE BUILDERS
# ============================================================================


def slot_to_response(slot: Slot) -> SlotResponse:
    return SlotResponse(
        startTime=slot.local_start.isoformat(),
        endTime=slot.local_end.isoformat(),
        startUtc=slot.start.isoformat(),
        endUtc=slot.end.isoformat(),
        displayTime=format_clock(slot.local_start),
        displayEndTime=format_clock(slot.local_end),
    )


def booking_to_response(
    booking: BookingRecord, detailed: bool = False
) -> Union[BookingResponse, TherapistBookingResponse]:
    fields = dict(
        id=booking.id,
        bookingReference=booking.booking_reference,
        therapistId=booking.therapist_id,
        sessionTypeId=booking.session_type_id,
        clientName=booking.client_name,
        clientEmail=booking.client_email,
        clientPhone=booking.client_phone,
        startTime=booking.start,
        endTime=booking.end,
        timezone=booking.timezone,
        status=booking.status,
        meetingType=booking.meeting_type,
        meetingLink=booking.meeting_link,
        meetingLocation=booking.meeting_location,
        clientNotes=booking.client_notes,
        cancellationReason=booking.cancellation_reason,
        cancelledAt=booking.cancelled_at,
        createdAt=booking.created_at,
    )
    if detailed:
        return TherapistBookingResponse(
            **fields,
            internalNotes=booking.internal_notes,
            cancelledBy=booking.cancelled_by,
            createdBy=booking.created_by,
        )
    return BookingResponse(**fields)


def _is_internal(actor: Optional[Actor]) -> bool:
    return actor is not None and actor.role in ("admin", "reception", "therapist")


# ============================================================================
# AVAILABILITY (public)
# ============================================================================


@router.get("/therapists/{slug}/availability", response_model=AvailabilityResponse)
async def get_availability(
    slug: str,
    duration: Optional[int] = Query(
        None, ge=1, le=MAX_QUERY_DURATION_MINUTES, description="Session length in minutes"
    ),
    timezone: Optional[str] = Query(None, description="IANA timezone of the viewer"),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Which days in the booking window have at least one open slot"""
    therapist = service.resolve_therapist(slug)
    dates = service.get_available_dates(slug, duration, timezone)
    return AvailabilityResponse(
        therapistSlug=slug,
        timezone=get_zone(timezone or therapist.timezone).key,
        durationMinutes=duration or therapist.default_session_duration,
        dates=[AvailableDateResponse(date=d.date.isoformat(), hasSlots=d.has_slots) for d in dates],
    )


@router.get("/therapists/{slug}/slots", response_model=SlotsResponse)
async def get_slots(
    slug: str,
    date: str = Query(..., description="YYYY-MM-DD in the viewer's timezone"),
    duration: Optional[int] = Query(None, ge=1, le=MAX_QUERY_DURATION_MINUTES),
    timezone: Optional[str] = Query(None),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Open slots for one day"""
    therapist = service.resolve_therapist(slug)
    slots = service.get_available_slots(slug, date, duration, timezone)
    return SlotsResponse(
        therapistSlug=slug,
        date=parse_date(date).isoformat(),
        timezone=get_zone(timezone or therapist.timezone).key,
        durationMinutes=duration or therapist.default_session_duration,
        slots=[slot_to_response(s) for s in slots],
    )


# ============================================================================
# BOOKINGS
# ============================================================================


@router.post("/bookings", status_code=201)
async def create_booking(
    data: BookingCreate,
    background_tasks: BackgroundTasks,
    actor: Optional[Actor] = Depends(get_optional_actor),
    service: BookingService = Depends(get_booking_service),
    side_effects: BookingSideEffects = Depends(get_side_effects),
):
    """Reserve a slot. 409 when someone else got there first."""
    booking = service.create_booking(data, actor)
    background_tasks.add_task(side_effects.booking_created, booking.id)
    return booking_to_response(booking, detailed=_is_internal(actor))


@router.get("/bookings")
async def list_my_bookings(
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    """Bookings made by the signed-in client"""
    return [booking_to_response(b) for b in service.list_client_bookings(actor)]


@router.get("/bookings/{id_or_reference}")
async def get_booking(
    id_or_reference: str,
    email: Optional[str] = Query(None, description="Client e-mail, required without a session"),
    actor: Optional[Actor] = Depends(get_optional_actor),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.get_booking(id_or_reference, actor, email)
    return booking_to_response(booking, detailed=_is_internal(actor))


@router.patch("/bookings/{booking_id}")
async def reschedule_booking(
    booking_id: int,
    data: BookingReschedule,
    background_tasks: BackgroundTasks,
    actor: Optional[Actor] = Depends(get_optional_actor),
    service: BookingService = Depends(get_booking_service),
    side_effects: BookingSideEffects = Depends(get_side_effects),
):
    previous, booking = service.reschedule_booking(booking_id, data, actor)
    background_tasks.add_task(side_effects.booking_rescheduled, booking.id, previous)
    return booking_to_response(booking, detailed=_is_internal(actor))


@router.post("/bookings/{booking_id}/cancel")
async def cancel_booking(
    booking_id: int,
    data: BookingCancel,
    background_tasks: BackgroundTasks,
    actor: Optional[Actor] = Depends(get_optional_actor),
    service: BookingService = Depends(get_booking_service),
    side_effects: BookingSideEffects = Depends(get_side_effects),
):
    booking = service.cancel_booking(booking_id, data.reason, actor, data.clientEmail)
    background_tasks.add_task(side_effects.booking_cancelled, booking.id)
    return booking_to_response(booking, detailed=_is_internal(actor))


# ============================================================================
# THERAPIST BOOKING MANAGEMENT
# ============================================================================


@router.get("/therapist/bookings", response_model=list[TherapistBookingResponse])
async def list_therapist_bookings(
    status: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    therapist_id: Optional[int] = Query(None, alias="therapistId"),
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    """The caller's bookings (or, for staff, any therapist's via therapistId)"""
    bookings = service.list_therapist_bookings(actor, therapist_id, status, start, end)
    return [booking_to_response(b, detailed=True) for b in bookings]


@router.patch("/therapist/bookings/{booking_id}/status", response_model=TherapistBookingResponse)
async def update_booking_status(
    booking_id: int,
    data: BookingStatusUpdate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
    side_effects: BookingSideEffects = Depends(get_side_effects),
):
    booking = service.transition_status(booking_id, data.status, actor, reason=data.reason)
    background_tasks.add_task(side_effects.status_changed, booking.id)
    return booking_to_response(booking, detailed=True)


__all__ = ["router"]
