from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from mindweal.auth import get_optional_actor
from mindweal.database import Database
from mindweal.domain.scheduling.router import get_clock, get_side_effects
from mindweal.domain.scheduling.types import Actor
from mindweal.main import create_app
from mindweal.models import AvailabilityRule, BlockedInterval, Booking, SessionType, Therapist
from tests.fakes import InMemorySchedulingRepository

UTC = timezone.utc

# Monday 2026-05-25, one week before the Monday most tests book on
NOW = datetime(2026, 5, 25, 0, 0, tzinfo=UTC)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=UTC)


# ============================================================================
# IN-MEMORY
# ============================================================================


@pytest.fixture
def fake_repo():
    return InMemorySchedulingRepository()


@pytest.fixture
def clock():
    return lambda: NOW


# ============================================================================
# SQLITE
# ============================================================================


@pytest.fixture
def database():
    db = Database("sqlite://", log_slow_queries=False).open()
    db.create_all()
    yield db
    db.close()


@pytest.fixture
def session(database):
    s = database.session()
    yield s
    s.close()


def make_therapist(session, **overrides) -> Therapist:
    fields = dict(
        slug="dr-asha",
        name="Dr. Asha Rao",
        email="asha@mindweal.test",
        user_id="user-asha",
        timezone="UTC",
        default_session_duration=60,
        buffer_time=15,
        advance_booking_days=30,
        min_booking_notice=24,
        is_active=True,
    )
    fields.update(overrides)
    therapist = Therapist(**fields)
    session.add(therapist)
    session.commit()
    session.refresh(therapist)
    return therapist


def make_rule(session, therapist_id: int, day_of_week: int, start="09:00", end="12:00") -> AvailabilityRule:
    rule = AvailabilityRule(
        therapist_id=therapist_id, day_of_week=day_of_week, start_time=start, end_time=end
    )
    session.add(rule)
    session.commit()
    return rule


def make_blocked(session, therapist_id: int, start: datetime, end: datetime) -> BlockedInterval:
    blocked = BlockedInterval(therapist_id=therapist_id, start_datetime=start, end_datetime=end)
    session.add(blocked)
    session.commit()
    return blocked


def make_session_type(session, therapist_id: int, duration=60, meeting_type="video") -> SessionType:
    session_type = SessionType(
        therapist_id=therapist_id,
        name=f"{duration} minute session",
        duration=duration,
        meeting_type=meeting_type,
    )
    session.add(session_type)
    session.commit()
    session.refresh(session_type)
    return session_type


def make_booking(session, therapist_id: int, start: datetime, end: datetime, status="confirmed", **overrides):
    fields = dict(
        booking_reference=f"MW-T{start:%d%H%M}{therapist_id}",
        therapist_id=therapist_id,
        client_name="Existing Client",
        client_email="existing@example.com",
        start_datetime=start,
        end_datetime=end,
        timezone="UTC",
        status=status,
        meeting_type="video",
    )
    fields.update(overrides)
    booking = Booking(**fields)
    session.add(booking)
    session.commit()
    session.refresh(booking)
    return booking


# ============================================================================
# API
# ============================================================================


class RecordingSideEffects:
    """Captures background work instead of calling Google / Resend"""

    def __init__(self):
        self.calls = []

    async def booking_created(self, booking_id):
        self.calls.append(("created", booking_id))

    async def booking_rescheduled(self, booking_id, previous):
        self.calls.append(("rescheduled", booking_id))

    async def booking_cancelled(self, booking_id):
        self.calls.append(("cancelled", booking_id))

    async def status_changed(self, booking_id):
        self.calls.append(("status", booking_id))


class ActorSwitch:
    """Lets a test change who is calling between requests"""

    def __init__(self):
        self.actor = None

    def as_(self, user_id=None, role="client", email=""):
        self.actor = Actor(user_id=user_id, role=role, email=email) if user_id else None
        return self


@pytest.fixture
def side_effects():
    return RecordingSideEffects()


@pytest.fixture
def caller():
    return ActorSwitch()


@pytest.fixture
def client(database, side_effects, caller):
    app = create_app(database)
    app.dependency_overrides[get_clock] = lambda: (lambda: NOW)
    app.dependency_overrides[get_side_effects] = lambda: side_effects
    app.dependency_overrides[get_optional_actor] = lambda: caller.actor
    with TestClient(app) as test_client:
        yield test_client
