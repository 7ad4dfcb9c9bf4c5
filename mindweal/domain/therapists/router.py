"""Therapist router - FastAPI endpoints for therapist self-service and admin"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_admin_actor, get_current_actor
from ...database import get_db
from ...models import AvailabilityRule, BlockedInterval, SessionType, Therapist
from ..scheduling.router import get_clock
from ..scheduling.time_calculator import as_utc
from ..scheduling.types import Actor
from .schemas import (
    AvailabilityRuleCreate,
    AvailabilityRuleResponse,
    AvailabilityRuleUpdate,
    BlockedIntervalCreate,
    BlockedIntervalResponse,
    BookingSettingsResponse,
    BookingSettingsUpdate,
    PublicTherapistResponse,
    SessionTypeCreate,
    SessionTypeResponse,
    SessionTypeUpdate,
    TherapistCreate,
    TherapistResponse,
    WeeklyScheduleReplace,
)
from .service import TherapistService

logger = logging.getLogger(__name__)

public_router = APIRouter(prefix="/therapists", tags=["Therapists"])
router = APIRouter(prefix="/therapist", tags=["Therapist Portal"])
admin_router = APIRouter(prefix="/admin/therapists", tags=["Admin"])


def get_therapist_service(db: Session = Depends(get_db), clock=Depends(get_clock)) -> TherapistService:
    """Dependency injection for TherapistService"""
    return TherapistService(db, clock)


# Admins pass ?therapistId= to act on someone else's record
TherapistIdQuery = Query(None, alias="therapistId")


# ============================================================================
# RESPONSE BUILDERS
# ============================================================================


def rule_response(rule: AvailabilityRule) -> AvailabilityRuleResponse:
    return AvailabilityRuleResponse(
        id=rule.id,
        dayOfWeek=rule.day_of_week,
        startTime=rule.start_time,
        endTime=rule.end_time,
        isActive=rule.is_active,
    )


def blocked_response(blocked: BlockedInterval) -> BlockedIntervalResponse:
    return BlockedIntervalResponse(
        id=blocked.id,
        startDatetime=as_utc(blocked.start_datetime),
        endDatetime=as_utc(blocked.end_datetime),
        isAllDay=blocked.is_all_day,
        reason=blocked.reason,
    )


def session_type_response(session_type: SessionType) -> SessionTypeResponse:
    return SessionTypeResponse(
        id=session_type.id,
        therapistId=session_type.therapist_id,
        name=session_type.name,
        duration=session_type.duration,
        meetingType=session_type.meeting_type,
        price=session_type.price,
        description=session_type.description,
        color=session_type.color,
        isActive=session_type.is_active,
    )


def settings_response(therapist: Therapist) -> BookingSettingsResponse:
    return BookingSettingsResponse(
        timezone=therapist.timezone,
        defaultSessionDuration=therapist.default_session_duration,
        bufferTime=therapist.buffer_time,
        advanceBookingDays=therapist.advance_booking_days,
        minBookingNotice=therapist.min_booking_notice,
    )


def therapist_response(therapist: Therapist) -> TherapistResponse:
    return TherapistResponse(
        id=therapist.id,
        slug=therapist.slug,
        name=therapist.name,
        title=therapist.title,
        email=therapist.email,
        timezone=therapist.timezone,
        defaultSessionDuration=therapist.default_session_duration,
        bufferTime=therapist.buffer_time,
        advanceBookingDays=therapist.advance_booking_days,
        minBookingNotice=therapist.min_booking_notice,
        isActive=therapist.is_active,
        archivedAt=as_utc(therapist.archived_at) if therapist.archived_at else None,
    )


# ============================================================================
# PUBLIC
# ============================================================================


@public_router.get("/{slug}", response_model=PublicTherapistResponse)
async def get_public_therapist(slug: str, service: TherapistService = Depends(get_therapist_service)):
    """Booking page header: therapist and the session types on offer"""
    therapist, session_types = service.get_public_profile(slug)
    return PublicTherapistResponse(
        slug=therapist.slug,
        name=therapist.name,
        title=therapist.title,
        timezone=therapist.timezone,
        defaultSessionDuration=therapist.default_session_duration,
        sessionTypes=[session_type_response(s) for s in session_types],
    )


# ============================================================================
# AVAILABILITY RULES
# ============================================================================


@router.get("/availability", response_model=list[AvailabilityRuleResponse])
async def list_availability_rules(
    therapist_id: Optional[int] = TherapistIdQuery,
    actor: Actor = Depends(get_current_actor),
    service: TherapistService = Depends(get_therapist_service),
):
    return [rule_response(r) for r in service.list_rules(actor, therapist_id)]


@router.post("/availability", response_model=AvailabilityRuleResponse, status_code=201)
async def create_availability_rule(
    data: AvailabilityRuleCreate,
    therapist_id: Optional[int] = TherapistIdQuery,
    actor: Actor = Depends(get_current_actor),
    service: TherapistService = Depends(get_therapist_service),
):
    return rule_response(service.create_rule(actor, data, therapist_id))


@router.put("/availability", response_model=list[AvailabilityRuleResponse])
async def replace_weekly_schedule(
    data: WeeklyScheduleReplace,
    therapist_id: Optional[int] = TherapistIdQuery,
    actor: Actor = Depends(get_current_actor),
    service: TherapistService = Depends(get_therapist_service),
):
    """Replace every weekly window at once"""
    return [rule_response(r) for r in service.replace_rules(actor, data.rules, therapist_id)]


@router.patch("/availability/{rule_id}", response_model=AvailabilityRuleResponse)
async def update_availability_rule(
    rule_id: int,
    data: AvailabilityRuleUpdate,
    therapist_id: Optional[int] = TherapistIdQuery,
    actor: Actor = Depends(get_current_actor),
    service: TherapistService = Depends(get_therapist_service),
):
    return rule_response(service.update_rule(actor, rule_id, data, therapist_id))


@router.delete("/availability/{rule_id}")
async def delete_availability_rule(
    rule_id: int,
    therapist_id: Optional[int] = TherapistIdQuery,
    actor: Actor = Depends(get_current_actor),
    service: TherapistService = Depends(get_therapist_service),
):
    service.delete_rule(actor, rule_id, therapist_id)
    return {"message": "Availability rule deleted"}


# ============================================================================
# BLOCKED TIME
# ============================================================================


@router.get("/blocked-dates", response_model=list[BlockedIntervalResponse])
async def list_blocked_dates(
    include_past: bool = Query(False, alias="includePast"),
    therapist_id: Optional[int] = TherapistIdQuery,
    actor: Actor = Depends(get_current_actor),
    service: TherapistService = Depends(get_therapist_service),
):
    return [blocked_response(b) for b in service.list_blocked(actor, therapist_id, include_past)]


@router.post("/blocked-dates", response_model=BlockedIntervalResponse, status_code=201)
async def create_blocked_date(
    data: BlockedIntervalCreate,
    therapist_id: Optional[int] = TherapistIdQuery,
    actor: Actor = Depends(get_current_actor),
    service: TherapistService = Depends(get_therapist_service),
):
    return blocked_response(service.create_blocked(actor, data, therapist_id))


@router.delete("/blocked-dates/{blocked_id}")
async def delete_blocked_date(
    blocked_id: int,
    therapist_id: Optional[int] = TherapistIdQuery,
    actor: Actor = Depends(get_current_actor),
    service: TherapistService = Depends(get_therapist_service),
):
    service.delete_blocked(actor, blocked_id, therapist_id)
    return {"message": "Blocked time removed"}


# ============================================================================
# SESSION TYPES
# ============================================================================


@router.get("/session-types", response_model=list[SessionTypeResponse])
async def list_session_types(
    therapist_id: Optional[int] = TherapistIdQuery,
    actor: Actor = Depends(get_current_actor),
    service: TherapistService = Depends(get_therapist_service),
):
    return [session_type_response(s) for s in service.list_session_types(actor, therapist_id)]


@router.post("/session-types", response_model=SessionTypeResponse, status_code=201)
async def create_session_type(
    data: SessionTypeCreate,
    therapist_id: Optional[int] = TherapistIdQuery,
    actor: Actor = Depends(get_current_actor),
    service: TherapistService = Depends(get_therapist_service),
):
    return session_type_response(service.create_session_type(actor, data, therapist_id))


@router.patch("/session-types/{session_type_id}", response_model=SessionTypeResponse)
async def update_session_type(
    session_type_id: int,
    data: SessionTypeUpdate,
    therapist_id: Optional[int] = TherapistIdQuery,
    actor: Actor = Depends(get_current_actor),
    service: TherapistService = Depends(get_therapist_service),
):
    return session_type_response(service.update_session_type(actor, session_type_id, data, therapist_id))


@router.delete("/session-types/{session_type_id}", response_model=SessionTypeResponse)
async def deactivate_session_type(
    session_type_id: int,
    therapist_id: Optional[int] = TherapistIdQuery,
    actor: Actor = Depends(get_current_actor),
    service: TherapistService = Depends(get_therapist_service),
):
    return session_type_response(service.deactivate_session_type(actor, session_type_id, therapist_id))


# ============================================================================
# BOOKING SETTINGS
# ============================================================================


@router.get("/settings", response_model=BookingSettingsResponse)
async def get_booking_settings(
    therapist_id: Optional[int] = TherapistIdQuery,
    actor: Actor = Depends(get_current_actor),
    service: TherapistService = Depends(get_therapist_service),
):
    return settings_response(service.get_settings(actor, therapist_id))


@router.patch("/settings", response_model=BookingSettingsResponse)
async def update_booking_settings(
    data: BookingSettingsUpdate,
    therapist_id: Optional[int] = TherapistIdQuery,
    actor: Actor = Depends(get_current_actor),
    service: TherapistService = Depends(get_therapist_service),
):
    return settings_response(service.update_settings(actor, data, therapist_id))


# ============================================================================
# ADMIN
# ============================================================================


@admin_router.get("", response_model=list[TherapistResponse])
async def list_therapists(
    include_archived: bool = Query(False, alias="includeArchived"),
    _admin: Actor = Depends(get_admin_actor),
    service: TherapistService = Depends(get_therapist_service),
):
    return [therapist_response(t) for t in service.list_therapists(include_archived)]


@admin_router.post("", response_model=TherapistResponse, status_code=201)
async def create_therapist(
    data: TherapistCreate,
    _admin: Actor = Depends(get_admin_actor),
    service: TherapistService = Depends(get_therapist_service),
):
    return therapist_response(service.create_therapist(data))


@admin_router.get("/archived", response_model=list[TherapistResponse])
async def list_archived_therapists(
    _admin: Actor = Depends(get_admin_actor),
    service: TherapistService = Depends(get_therapist_service),
):
    return [therapist_response(t) for t in service.list_archived()]


@admin_router.post("/{therapist_id}/archive", response_model=TherapistResponse)
async def archive_therapist(
    therapist_id: int,
    _admin: Actor = Depends(get_admin_actor),
    service: TherapistService = Depends(get_therapist_service),
):
    return therapist_response(service.archive_therapist(therapist_id))


@admin_router.post("/{therapist_id}/restore", response_model=TherapistResponse)
async def restore_therapist(
    therapist_id: int,
    _admin: Actor = Depends(get_admin_actor),
    service: TherapistService = Depends(get_therapist_service),
):
    return therapist_response(service.restore_therapist(therapist_id))


__all__ = ["public_router", "router", "admin_router"]
