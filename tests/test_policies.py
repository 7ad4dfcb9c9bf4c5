import pytest

from mindweal.domain.scheduling.policies import (
    can_manage_booking,
    can_manage_therapist,
    can_mutate_booking,
    owns_therapist,
)
from mindweal.domain.scheduling.state_machine import ALLOWED_TRANSITIONS, assert_transition, can_transition
from mindweal.domain.scheduling.types import Actor, BookingRecord, TherapistProfile
from mindweal.exceptions import InvalidTransitionError
from tests.conftest import utc

THERAPIST = TherapistProfile(
    id=1,
    slug="dr-asha",
    name="Dr. Asha Rao",
    email="asha@mindweal.test",
    timezone="UTC",
    default_session_duration=60,
    buffer_time=15,
    advance_booking_days=30,
    min_booking_notice=24,
    user_id="user-asha",
)

BOOKING = BookingRecord(
    id=10,
    booking_reference="MW-ABCD1234",
    therapist_id=1,
    start=utc(2026, 6, 1, 9),
    end=utc(2026, 6, 1, 10),
    status="confirmed",
    meeting_type="video",
    client_name="Meera Iyer",
    client_email="meera@example.com",
    client_id="client-1",
)


def actor(role, user_id="someone", email=""):
    return Actor(user_id=user_id, role=role, email=email)


class TestOwnership:
    def test_by_user_id(self):
        assert owns_therapist(actor("therapist", "user-asha"), THERAPIST)

    def test_by_email_case_insensitive(self):
        assert owns_therapist(actor("therapist", "other-id", "ASHA@mindweal.test"), THERAPIST)

    def test_stranger(self):
        assert not owns_therapist(actor("therapist", "user-ravi", "ravi@mindweal.test"), THERAPIST)

    def test_anonymous(self):
        assert not owns_therapist(None, THERAPIST)


@pytest.mark.parametrize(
    "who, allowed",
    [
        (actor("admin"), True),
        (actor("therapist", "user-asha"), True),
        (actor("reception"), False),
        (actor("client", "client-1"), False),
        (actor("therapist", "user-ravi"), False),
        (None, False),
    ],
)
def test_status_changes(who, allowed):
    assert can_mutate_booking(who, BOOKING, THERAPIST) is allowed


@pytest.mark.parametrize(
    "who, allowed",
    [
        (actor("admin"), True),
        (actor("therapist", "user-asha"), True),
        (actor("reception"), False),
        (actor("client"), False),
    ],
)
def test_managing_a_therapist(who, allowed):
    assert can_manage_therapist(who, THERAPIST) is allowed


class TestManageBooking:
    def test_reception_can_reschedule_and_cancel(self):
        assert can_manage_booking(actor("reception"), BOOKING, THERAPIST)

    def test_client_by_account(self):
        assert can_manage_booking(actor("client", "client-1"), BOOKING, THERAPIST)

    def test_client_by_account_email(self):
        assert can_manage_booking(actor("client", "client-9", "Meera@Example.com"), BOOKING, THERAPIST)

    def test_anonymous_with_booking_email(self):
        assert can_manage_booking(None, BOOKING, THERAPIST, client_email=" meera@example.com ")

    def test_anonymous_without_email(self):
        assert not can_manage_booking(None, BOOKING, THERAPIST)

    def test_other_client(self):
        assert not can_manage_booking(actor("client", "client-2", "x@example.com"), BOOKING, THERAPIST)

    def test_booking_of_a_different_therapist(self):
        elsewhere = BookingRecord(**{**BOOKING.__dict__, "therapist_id": 2, "client_id": None})
        assert not can_manage_booking(actor("therapist", "user-asha"), elsewhere, THERAPIST)


# ============================================================================
# STATUS MACHINE
# ============================================================================


STATUSES = list(ALLOWED_TRANSITIONS)
EXPECTED = {
    ("pending", "confirmed"),
    ("pending", "cancelled"),
    ("confirmed", "completed"),
    ("confirmed", "cancelled"),
    ("confirmed", "no_show"),
}


@pytest.mark.parametrize("current", STATUSES)
@pytest.mark.parametrize("new", STATUSES)
def test_transition_table_is_closed(current, new):
    assert can_transition(current, new) is ((current, new) in EXPECTED)


def _booking(status):
    return BookingRecord(**{**BOOKING.__dict__, "status": status})


def test_terminal_statuses_allow_nothing():
    for status in ("cancelled", "completed", "no_show"):
        assert not ALLOWED_TRANSITIONS[status]


def test_unknown_status_is_rejected():
    with pytest.raises(InvalidTransitionError):
        assert_transition(_booking("confirmed"), "archived", utc(2026, 6, 2))


def test_completion_waits_for_session_end():
    with pytest.raises(InvalidTransitionError):
        assert_transition(_booking("confirmed"), "completed", utc(2026, 6, 1, 9, 59))
    assert_transition(_booking("confirmed"), "completed", utc(2026, 6, 1, 10))


def test_cancel_allowed_any_time_while_active():
    assert_transition(_booking("pending"), "cancelled", utc(2026, 5, 1))
    assert_transition(_booking("confirmed"), "cancelled", utc(2026, 6, 1, 9, 30))
