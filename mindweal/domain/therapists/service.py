"""Therapist service - schedule, session type and settings management"""

import logging
import re
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...exceptions import ForbiddenError, NotFoundError, ValidationError
from ...models import AvailabilityRule, BlockedInterval, SessionType, Therapist
from ..scheduling.policies import can_manage_therapist
from ..scheduling.repository import to_therapist_profile
from ..scheduling.time_calculator import as_utc, get_zone, local_day_bounds, parse_date, utc_now
from ..scheduling.types import Actor
from .repository import TherapistRepository
from .schemas import (
    AvailabilityRuleCreate,
    AvailabilityRuleUpdate,
    BlockedIntervalCreate,
    BookingSettingsUpdate,
    SessionTypeCreate,
    SessionTypeUpdate,
    TherapistCreate,
)

logger = logging.getLogger(__name__)


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "therapist"


def rules_overlap(a_start: str, a_end: str, b_start: str, b_end: str) -> bool:
    """HH:MM strings compare correctly as text"""
    return a_start < b_end and b_start < a_end


class TherapistService:
    """Service layer for therapist self-management and admin operations"""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.repo = TherapistRepository()
        self.clock = clock

    # ========================================================================
    # ACCESS
    # ========================================================================

    def get_managed_therapist(self, actor: Actor, therapist_id: Optional[int] = None) -> Therapist:
        """
        The therapist record ``actor`` is working on.

        Therapists manage their own record; admins may pass ``therapist_id``
        to manage anyone's.
        """
        if therapist_id is None:
            therapist = self.repo.get_for_user(self.db, actor.user_id, actor.email)
            if not therapist:
                raise NotFoundError("No therapist profile linked to this account")
        else:
            therapist = self.repo.get_by_id(self.db, therapist_id)
            if not therapist:
                raise NotFoundError("Therapist not found")

        if not can_manage_therapist(actor, to_therapist_profile(therapist)):
            raise ForbiddenError("You are not allowed to manage this therapist")
        return therapist

    # ========================================================================
    # AVAILABILITY RULES
    # ========================================================================

    def list_rules(self, actor: Actor, therapist_id: Optional[int] = None) -> list[AvailabilityRule]:
        therapist = self.get_managed_therapist(actor, therapist_id)
        return self.repo.list_rules(self.db, therapist.id)

    def create_rule(
        self, actor: Actor, data: AvailabilityRuleCreate, therapist_id: Optional[int] = None
    ) -> AvailabilityRule:
        therapist = self.get_managed_therapist(actor, therapist_id)
        self._validate_window(data.startTime, data.endTime)
        if data.isActive:
            self._assert_no_rule_overlap(
                self.repo.list_rules(self.db, therapist.id), data.dayOfWeek, data.startTime, data.endTime
            )

        rule = self.repo.create_rule(
            self.db,
            therapist.id,
            day_of_week=data.dayOfWeek,
            start_time=data.startTime,
            end_time=data.endTime,
            is_active=data.isActive,
        )
        logger.info(f"📅 Availability rule {rule.id} added for therapist {therapist.id}")
        return rule

    def update_rule(
        self,
        actor: Actor,
        rule_id: int,
        data: AvailabilityRuleUpdate,
        therapist_id: Optional[int] = None,
    ) -> AvailabilityRule:
        therapist = self.get_managed_therapist(actor, therapist_id)
        rule = self.repo.get_rule(self.db, rule_id, therapist.id)
        if not rule:
            raise NotFoundError("Availability rule not found")

        day = data.dayOfWeek if data.dayOfWeek is not None else rule.day_of_week
        start = data.startTime or rule.start_time
        end = data.endTime or rule.end_time
        active = data.isActive if data.isActive is not None else rule.is_active
        self._validate_window(start, end)
        if active:
            self._assert_no_rule_overlap(
                self.repo.list_rules(self.db, therapist.id), day, start, end, exclude_id=rule.id
            )

        return self.repo.update_rule(
            self.db, rule, day_of_week=day, start_time=start, end_time=end, is_active=active
        )

    def delete_rule(self, actor: Actor, rule_id: int, therapist_id: Optional[int] = None) -> None:
        therapist = self.get_managed_therapist(actor, therapist_id)
        rule = self.repo.get_rule(self.db, rule_id, therapist.id)
        if not rule:
            raise NotFoundError("Availability rule not found")
        self.repo.delete_rule(self.db, rule)
        logger.info(f"🗑️ Availability rule {rule_id} removed for therapist {therapist.id}")

    def replace_rules(
        self,
        actor: Actor,
        rules: list[AvailabilityRuleCreate],
        therapist_id: Optional[int] = None,
    ) -> list[AvailabilityRule]:
        """Replace the weekly schedule. The new set must be free of same-day overlaps."""
        therapist = self.get_managed_therapist(actor, therapist_id)

        accepted = []
        for data in rules:
            self._validate_window(data.startTime, data.endTime)
            if data.isActive:
                for other in accepted:
                    if (
                        other["is_active"]
                        and other["day_of_week"] == data.dayOfWeek
                        and rules_overlap(data.startTime, data.endTime, other["start_time"], other["end_time"])
                    ):
                        raise ValidationError("Availability windows on the same day cannot overlap")
            accepted.append(
                {
                    "day_of_week": data.dayOfWeek,
                    "start_time": data.startTime,
                    "end_time": data.endTime,
                    "is_active": data.isActive,
                }
            )

        created = self.repo.replace_rules(self.db, therapist.id, accepted)
        logger.info(f"📅 Weekly schedule replaced for therapist {therapist.id} ({len(created)} rules)")
        return created

    @staticmethod
    def _validate_window(start: str, end: str) -> None:
        if start >= end:
            raise ValidationError("Start time must be before end time")

    @staticmethod
    def _assert_no_rule_overlap(
        existing: list[AvailabilityRule],
        day_of_week: int,
        start: str,
        end: str,
        exclude_id: Optional[int] = None,
    ) -> None:
        for rule in existing:
            if rule.id == exclude_id or not rule.is_active or rule.day_of_week != day_of_week:
                continue
            if rules_overlap(start, end, rule.start_time, rule.end_time):
                raise ValidationError(
                    f"Overlaps an existing window ({rule.start_time}-{rule.end_time}) on the same day"
                )

    # ========================================================================
    # BLOCKED TIME
    # ========================================================================

    def list_blocked(
        self, actor: Actor, therapist_id: Optional[int] = None, include_past: bool = False
    ) -> list[BlockedInterval]:
        therapist = self.get_managed_therapist(actor, therapist_id)
        ending_after = None if include_past else self.clock()
        return self.repo.list_blocked(self.db, therapist.id, ending_after)

    def create_blocked(
        self, actor: Actor, data: BlockedIntervalCreate, therapist_id: Optional[int] = None
    ) -> BlockedInterval:
        therapist = self.get_managed_therapist(actor, therapist_id)

        if data.isAllDay:
            if not data.date:
                raise ValidationError("Date is required for an all-day block")
            first = parse_date(data.date)
            last = parse_date(data.endDate) if data.endDate else first
            if last < first:
                raise ValidationError("End date must not be before start date")
            zone = get_zone(therapist.timezone)
            start, _ = local_day_bounds(first, zone)
            _, end = local_day_bounds(last, zone)
        else:
            if data.startDatetime is None or data.endDatetime is None:
                raise ValidationError("Start and end are required")
            start, end = as_utc(data.startDatetime), as_utc(data.endDatetime)

        if start >= end:
            raise ValidationError("Start must be before end")

        blocked = self.repo.create_blocked(
            self.db,
            therapist.id,
            start_datetime=start,
            end_datetime=end,
            is_all_day=data.isAllDay,
            reason=data.reason.strip() if data.reason else None,
        )
        logger.info(
            f"📅 Blocked {start.isoformat()} - {end.isoformat()} for therapist {therapist.id}"
        )
        return blocked

    def delete_blocked(self, actor: Actor, blocked_id: int, therapist_id: Optional[int] = None) -> None:
        therapist = self.get_managed_therapist(actor, therapist_id)
        blocked = self.repo.get_blocked(self.db, blocked_id, therapist.id)
        if not blocked:
            raise NotFoundError("Blocked time not found")
        self.repo.delete_blocked(self.db, blocked)

    # ========================================================================
    # SESSION TYPES
    # ========================================================================

    def list_session_types(self, actor: Actor, therapist_id: Optional[int] = None) -> list[SessionType]:
        therapist = self.get_managed_therapist(actor, therapist_id)
        return self.repo.list_session_types(self.db, therapist.id)

    def create_session_type(
        self, actor: Actor, data: SessionTypeCreate, therapist_id: Optional[int] = None
    ) -> SessionType:
        therapist = self.get_managed_therapist(actor, therapist_id)
        return self.repo.create_session_type(
            self.db,
            therapist.id,
            name=data.name,
            duration=data.duration,
            meeting_type=data.meetingType,
            price=data.price,
            description=data.description,
            color=data.color or "#00A99D",
            is_active=data.isActive,
        )

    def update_session_type(
        self,
        actor: Actor,
        session_type_id: int,
        data: SessionTypeUpdate,
        therapist_id: Optional[int] = None,
    ) -> SessionType:
        therapist = self.get_managed_therapist(actor, therapist_id)
        session_type = self.repo.get_session_type(self.db, session_type_id, therapist.id)
        if not session_type:
            raise NotFoundError("Session type not found")

        return self.repo.update_session_type(
            self.db,
            session_type,
            name=data.name,
            duration=data.duration,
            meeting_type=data.meetingType,
            price=data.price,
            description=data.description,
            color=data.color,
            is_active=data.isActive,
        )

    def deactivate_session_type(
        self, actor: Actor, session_type_id: int, therapist_id: Optional[int] = None
    ) -> SessionType:
        """Existing bookings keep pointing at it, so it is hidden rather than deleted"""
        therapist = self.get_managed_therapist(actor, therapist_id)
        session_type = self.repo.get_session_type(self.db, session_type_id, therapist.id)
        if not session_type:
            raise NotFoundError("Session type not found")
        return self.repo.update_session_type(self.db, session_type, is_active=False)

    # ========================================================================
    # BOOKING SETTINGS
    # ========================================================================

    def get_settings(self, actor: Actor, therapist_id: Optional[int] = None) -> Therapist:
        return self.get_managed_therapist(actor, therapist_id)

    def update_settings(
        self, actor: Actor, data: BookingSettingsUpdate, therapist_id: Optional[int] = None
    ) -> Therapist:
        therapist = self.get_managed_therapist(actor, therapist_id)

        updates = {}
        if data.timezone is not None:
            updates["timezone"] = data.timezone
        if data.defaultSessionDuration is not None:
            updates["default_session_duration"] = data.defaultSessionDuration
        if data.bufferTime is not None:
            updates["buffer_time"] = data.bufferTime
        if data.advanceBookingDays is not None:
            updates["advance_booking_days"] = data.advanceBookingDays
        if data.minBookingNotice is not None:
            updates["min_booking_notice"] = data.minBookingNotice

        logger.info(f"⚙️ Booking settings updated for therapist {therapist.id}: {list(updates)}")
        return self.repo.update_therapist(self.db, therapist, **updates)

    # ========================================================================
    # PUBLIC PROFILE
    # ========================================================================

    def get_public_profile(self, slug: str) -> tuple[Therapist, list[SessionType]]:
        therapist = self.repo.get_by_slug(self.db, slug)
        if not therapist or not therapist.is_active:
            raise NotFoundError("Therapist not found")
        return therapist, self.repo.list_session_types(self.db, therapist.id, active_only=True)

    # ========================================================================
    # ADMIN
    # ========================================================================

    def create_therapist(self, data: TherapistCreate) -> Therapist:
        base = slugify(data.slug or data.name)
        slug, n = base, 2
        while self.repo.slug_exists(self.db, slug):
            slug = f"{base}-{n}"
            n += 1

        fields = {
            "slug": slug,
            "name": data.name,
            "email": data.email,
            "title": data.title,
            "phone": data.phone,
            "user_id": data.userId,
        }
        if data.timezone:
            fields["timezone"] = data.timezone

        therapist = self.repo.create_therapist(self.db, **fields)
        logger.info(f"✅ Therapist {therapist.id} created ({therapist.slug})")
        return therapist

    def list_therapists(self, include_archived: bool = False) -> list[Therapist]:
        return self.repo.list_therapists(self.db, include_archived)

    def list_archived(self) -> list[Therapist]:
        return self.repo.list_archived(self.db)

    def archive_therapist(self, therapist_id: int) -> Therapist:
        """Soft delete: hidden from booking, existing bookings untouched"""
        therapist = self.repo.get_by_id(self.db, therapist_id)
        if not therapist:
            raise NotFoundError("Therapist not found")
        if not therapist.is_active:
            raise ValidationError("Therapist is already archived")
        logger.info(f"🗄️ Archiving therapist {therapist_id}")
        return self.repo.update_therapist(self.db, therapist, is_active=False, archived_at=self.clock())

    def restore_therapist(self, therapist_id: int) -> Therapist:
        therapist = self.repo.get_by_id(self.db, therapist_id)
        if not therapist:
            raise NotFoundError("Therapist not found")
        if therapist.is_active:
            raise ValidationError("Therapist is not archived")
        logger.info(f"♻️ Restoring therapist {therapist_id}")
        return self.repo.update_therapist(self.db, therapist, is_active=True, archived_at=None)
