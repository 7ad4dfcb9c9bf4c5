"""Therapist repository - Database operations for therapists and their schedules"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import AvailabilityRule, BlockedInterval, SessionType, Therapist


class TherapistRepository:
    """Repository for therapist database operations"""

    # ------------------------------------------------------------------------
    # Therapists
    # ------------------------------------------------------------------------

    @staticmethod
    def get_by_id(db: Session, therapist_id: int) -> Optional[Therapist]:
        return db.query(Therapist).filter(Therapist.id == therapist_id).first()

    @staticmethod
    def get_by_slug(db: Session, slug: str) -> Optional[Therapist]:
        return db.query(Therapist).filter(Therapist.slug == slug).first()

    @staticmethod
    def get_for_user(db: Session, user_id: str, email: str = "") -> Optional[Therapist]:
        """Therapist record linked to an auth account (user id first, then e-mail)"""
        therapist = None
        if user_id:
            therapist = db.query(Therapist).filter(Therapist.user_id == user_id).first()
        if therapist is None and email:
            therapist = db.query(Therapist).filter(Therapist.email == email.lower()).first()
        return therapist

    @staticmethod
    def slug_exists(db: Session, slug: str) -> bool:
        return db.query(Therapist.id).filter(Therapist.slug == slug).first() is not None

    @staticmethod
    def list_therapists(db: Session, include_archived: bool = False) -> list[Therapist]:
        query = db.query(Therapist)
        if not include_archived:
            query = query.filter(Therapist.is_active == True)  # noqa: E712
        return query.order_by(Therapist.name).all()

    @staticmethod
    def list_archived(db: Session) -> list[Therapist]:
        return (
            db.query(Therapist)
            .filter(Therapist.is_active == False)  # noqa: E712
            .order_by(Therapist.archived_at.desc())
            .all()
        )

    @staticmethod
    def create_therapist(db: Session, **data) -> Therapist:
        therapist = Therapist(**data)
        db.add(therapist)
        db.commit()
        db.refresh(therapist)
        return therapist

    @staticmethod
    def update_therapist(db: Session, therapist: Therapist, **updates) -> Therapist:
        """Update a therapist with provided fields"""
        for key, value in updates.items():
            if hasattr(therapist, key):
                setattr(therapist, key, value)
        db.commit()
        db.refresh(therapist)
        return therapist

    # ------------------------------------------------------------------------
    # Availability rules
    # ------------------------------------------------------------------------

    @staticmethod
    def list_rules(db: Session, therapist_id: int) -> list[AvailabilityRule]:
        return (
            db.query(AvailabilityRule)
            .filter(AvailabilityRule.therapist_id == therapist_id)
            .order_by(AvailabilityRule.day_of_week, AvailabilityRule.start_time)
            .all()
        )

    @staticmethod
    def get_rule(db: Session, rule_id: int, therapist_id: int) -> Optional[AvailabilityRule]:
        return (
            db.query(AvailabilityRule)
            .filter(AvailabilityRule.id == rule_id, AvailabilityRule.therapist_id == therapist_id)
            .first()
        )

    @staticmethod
    def create_rule(db: Session, therapist_id: int, **data) -> AvailabilityRule:
        rule = AvailabilityRule(therapist_id=therapist_id, **data)
        db.add(rule)
        db.commit()
        db.refresh(rule)
        return rule

    @staticmethod
    def update_rule(db: Session, rule: AvailabilityRule, **updates) -> AvailabilityRule:
        for key, value in updates.items():
            if value is not None and hasattr(rule, key):
                setattr(rule, key, value)
        db.commit()
        db.refresh(rule)
        return rule

    @staticmethod
    def delete_rule(db: Session, rule: AvailabilityRule) -> None:
        db.delete(rule)
        db.commit()

    @staticmethod
    def replace_rules(db: Session, therapist_id: int, rules: list[dict]) -> list[AvailabilityRule]:
        """Swap the whole weekly schedule in one transaction"""
        try:
            db.query(AvailabilityRule).filter(AvailabilityRule.therapist_id == therapist_id).delete(
                synchronize_session=False
            )
            created = [AvailabilityRule(therapist_id=therapist_id, **data) for data in rules]
            db.add_all(created)
            db.commit()
        except Exception:
            db.rollback()
            raise
        for rule in created:
            db.refresh(rule)
        return created

    # ------------------------------------------------------------------------
    # Blocked intervals
    # ------------------------------------------------------------------------

    @staticmethod
    def list_blocked(
        db: Session, therapist_id: int, ending_after: Optional[datetime] = None
    ) -> list[BlockedInterval]:
        query = db.query(BlockedInterval).filter(BlockedInterval.therapist_id == therapist_id)
        if ending_after is not None:
            query = query.filter(BlockedInterval.end_datetime > ending_after)
        return query.order_by(BlockedInterval.start_datetime).all()

    @staticmethod
    def get_blocked(db: Session, blocked_id: int, therapist_id: int) -> Optional[BlockedInterval]:
        return (
            db.query(BlockedInterval)
            .filter(BlockedInterval.id == blocked_id, BlockedInterval.therapist_id == therapist_id)
            .first()
        )

    @staticmethod
    def create_blocked(db: Session, therapist_id: int, **data) -> BlockedInterval:
        blocked = BlockedInterval(therapist_id=therapist_id, **data)
        db.add(blocked)
        db.commit()
        db.refresh(blocked)
        return blocked

    @staticmethod
    def delete_blocked(db: Session, blocked: BlockedInterval) -> None:
        db.delete(blocked)
        db.commit()

    # ------------------------------------------------------------------------
    # Session types
    # ------------------------------------------------------------------------

    @staticmethod
    def list_session_types(
        db: Session, therapist_id: int, active_only: bool = False
    ) -> list[SessionType]:
        query = db.query(SessionType).filter(SessionType.therapist_id == therapist_id)
        if active_only:
            query = query.filter(SessionType.is_active == True)  # noqa: E712
        return query.order_by(SessionType.duration, SessionType.name).all()

    @staticmethod
    def get_session_type(db: Session, session_type_id: int, therapist_id: int) -> Optional[SessionType]:
        return (
            db.query(SessionType)
            .filter(SessionType.id == session_type_id, SessionType.therapist_id == therapist_id)
            .first()
        )

    @staticmethod
    def create_session_type(db: Session, therapist_id: int, **data) -> SessionType:
        session_type = SessionType(therapist_id=therapist_id, **data)
        db.add(session_type)
        db.commit()
        db.refresh(session_type)
        return session_type

    @staticmethod
    def update_session_type(db: Session, session_type: SessionType, **updates) -> SessionType:
        for key, value in updates.items():
            if value is not None and hasattr(session_type, key):
                setattr(session_type, key, value)
        db.commit()
        db.refresh(session_type)
        return session_type
