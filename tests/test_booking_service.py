import re
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from mindweal.domain.scheduling.availability_service import AvailabilityService
from mindweal.domain.scheduling.booking_service import BookingService
from mindweal.domain.scheduling.schemas import BookingCreate, BookingReschedule
from mindweal.domain.scheduling.types import Actor
from mindweal.exceptions import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    SlotConflictError,
    ValidationError,
)
from tests.conftest import NOW, utc

ADMIN = Actor(user_id="admin-1", role="admin", email="admin@mindweal.test")
RECEPTION = Actor(user_id="front-1", role="reception", email="front@mindweal.test")
THERAPIST = Actor(user_id="user-asha", role="therapist", email="asha@mindweal.test")
OTHER_THERAPIST = Actor(user_id="user-ravi", role="therapist", email="ravi@mindweal.test")
CLIENT = Actor(user_id="client-1", role="client", email="meera@example.com")

MONDAY_9 = utc(2026, 6, 1, 9)


@pytest.fixture
def therapist(fake_repo):
    t = fake_repo.add_therapist(slug="dr-asha", email="asha@mindweal.test", user_id="user-asha")
    fake_repo.add_rule(t.id, 1, "09:00", "12:00")
    fake_repo.add_therapist(slug="dr-ravi", email="ravi@mindweal.test", user_id="user-ravi")
    return t


@pytest.fixture
def service(fake_repo, clock):
    return BookingService(fake_repo, clock)


def request(therapist, start=MONDAY_9, **overrides) -> BookingCreate:
    fields = dict(
        therapistId=therapist.id,
        startTime=start,
        clientName="Meera Iyer",
        clientEmail="meera@example.com",
    )
    fields.update(overrides)
    return BookingCreate(**fields)


# ============================================================================
# CREATE
# ============================================================================


class TestCreateBooking:
    def test_self_service_booking_is_pending(self, service, therapist):
        booking = service.create_booking(request(therapist))
        assert booking.status == "pending"
        assert booking.start == MONDAY_9
        assert booking.end == MONDAY_9 + timedelta(minutes=60)
        assert re.fullmatch(r"MW-[A-Z0-9]{8}", booking.booking_reference)

    def test_staff_booking_is_confirmed(self, service, therapist):
        booking = service.create_booking(request(therapist, internalNotes="referral"), RECEPTION)
        assert booking.status == "confirmed"
        assert booking.internal_notes == "referral"
        assert booking.created_by == RECEPTION.user_id

    def test_client_internal_notes_are_dropped(self, service, therapist):
        booking = service.create_booking(request(therapist, internalNotes="sneaky"), CLIENT)
        assert booking.internal_notes is None
        assert booking.client_id == CLIENT.user_id

    def test_session_type_sets_duration_and_meeting_type(self, service, fake_repo, therapist):
        session_type = fake_repo.add_session_type(therapist.id, duration=45, meeting_type="phone")
        booking = service.create_booking(request(therapist, sessionTypeId=session_type.id))
        assert booking.end - booking.start == timedelta(minutes=45)
        assert booking.meeting_type == "phone"

    def test_in_person_booking_gets_clinic_address(self, service, therapist):
        booking = service.create_booking(request(therapist, meetingType="in_person"))
        assert booking.meeting_location

    def test_session_type_of_another_therapist(self, service, fake_repo, therapist):
        other = fake_repo.get_therapist_by_slug("dr-ravi")
        session_type = fake_repo.add_session_type(other.id)
        with pytest.raises(NotFoundError):
            service.create_booking(request(therapist, sessionTypeId=session_type.id))

    def test_inactive_session_type(self, service, fake_repo, therapist):
        session_type = fake_repo.add_session_type(therapist.id, is_active=False)
        with pytest.raises(NotFoundError):
            service.create_booking(request(therapist, sessionTypeId=session_type.id))

    def test_unknown_therapist(self, service, therapist):
        with pytest.raises(NotFoundError):
            service.create_booking(request(therapist, therapistId=999))

    def test_archived_therapist(self, service, fake_repo):
        archived = fake_repo.add_therapist(slug="gone", is_active=False)
        with pytest.raises(NotFoundError):
            service.create_booking(request(archived))

    def test_self_service_inside_notice_window(self, service, therapist):
        with pytest.raises(ValidationError):
            service.create_booking(request(therapist, start=NOW + timedelta(hours=3)))

    def test_self_service_beyond_advance_window(self, service, therapist):
        with pytest.raises(ValidationError):
            service.create_booking(request(therapist, start=NOW + timedelta(days=45)))

    def test_staff_skip_the_booking_window(self, service, therapist):
        booking = service.create_booking(request(therapist, start=NOW + timedelta(hours=3)), ADMIN)
        assert booking.status == "confirmed"

    @pytest.mark.parametrize(
        "start",
        [
            utc(2026, 5, 31, 3, 17),  # Sunday, no rule
            utc(2026, 6, 1, 8, 30),  # Monday, starts before the window
            utc(2026, 6, 1, 11, 30),  # Monday, runs past 12:00
        ],
    )
    def test_self_service_outside_working_hours(self, service, fake_repo, therapist, start):
        with pytest.raises(ValidationError):
            service.create_booking(request(therapist, start=start))
        assert len(fake_repo.bookings) == 0

    def test_staff_may_book_outside_working_hours(self, service, therapist):
        booking = service.create_booking(request(therapist, start=utc(2026, 5, 31, 15)), RECEPTION)
        assert booking.status == "confirmed"

    def test_self_service_reschedule_outside_working_hours(self, service, therapist):
        booking = service.create_booking(request(therapist))
        with pytest.raises(ValidationError):
            service.reschedule_booking(
                booking.id, BookingReschedule(startTime=utc(2026, 6, 2, 9), clientEmail="meera@example.com")
            )


class TestCreateConflicts:
    def test_overlapping_booking(self, service, fake_repo, therapist):
        fake_repo.add_booking(therapist.id, MONDAY_9, MONDAY_9 + timedelta(hours=1))
        with pytest.raises(SlotConflictError):
            service.create_booking(request(therapist))
        assert len(fake_repo.bookings) == 1

    def test_buffer_after_existing_booking(self, service, fake_repo, therapist):
        fake_repo.add_booking(therapist.id, MONDAY_9 - timedelta(hours=1), MONDAY_9 - timedelta(minutes=5))
        with pytest.raises(SlotConflictError):
            service.create_booking(request(therapist))

    def test_back_to_back_with_buffer_is_fine(self, service, fake_repo, therapist):
        fake_repo.add_booking(therapist.id, MONDAY_9 - timedelta(minutes=75), MONDAY_9 - timedelta(minutes=15))
        assert service.create_booking(request(therapist)).status == "pending"

    def test_cancelled_booking_does_not_conflict(self, service, fake_repo, therapist):
        fake_repo.add_booking(therapist.id, MONDAY_9, MONDAY_9 + timedelta(hours=1), status="cancelled")
        assert service.create_booking(request(therapist)).status == "pending"

    def test_blocked_interval(self, service, fake_repo, therapist):
        fake_repo.add_blocked(therapist.id, MONDAY_9 + timedelta(minutes=30), MONDAY_9 + timedelta(hours=2))
        with pytest.raises(SlotConflictError):
            service.create_booking(request(therapist))

    def test_staff_still_get_overlap_check(self, service, fake_repo, therapist):
        fake_repo.add_booking(therapist.id, MONDAY_9, MONDAY_9 + timedelta(hours=1))
        with pytest.raises(SlotConflictError):
            service.create_booking(request(therapist), ADMIN)

    def test_other_therapists_bookings_are_irrelevant(self, service, fake_repo, therapist):
        other = fake_repo.get_therapist_by_slug("dr-ravi")
        fake_repo.add_booking(other.id, MONDAY_9, MONDAY_9 + timedelta(hours=1))
        assert service.create_booking(request(therapist)).status == "pending"

    def test_second_request_for_same_slot_conflicts(self, service, therapist):
        service.create_booking(request(therapist))
        with pytest.raises(SlotConflictError):
            service.create_booking(request(therapist, clientEmail="someone@example.com"))


def test_reference_collisions_are_retried(fake_repo, clock, therapist):
    fake_repo.add_booking(therapist.id, utc(2026, 6, 8, 9), utc(2026, 6, 8, 10), booking_reference="MW-AAAAAAAA")
    references = iter(["MW-AAAAAAAA", "MW-BBBBBBBB"])
    service = BookingService(fake_repo, clock, reference_generator=lambda: next(references))
    assert service.create_booking(request(therapist)).booking_reference == "MW-BBBBBBBB"


# ============================================================================
# CANCEL
# ============================================================================


class TestCancelBooking:
    def test_cancelling_frees_the_slot(self, service, fake_repo, clock, therapist):
        booking = fake_repo.add_booking(therapist.id, MONDAY_9, MONDAY_9 + timedelta(hours=1))
        availability = AvailabilityService(fake_repo, clock)
        assert MONDAY_9 not in [s.start for s in availability.get_available_slots("dr-asha", "2026-06-01")]

        cancelled = service.cancel_booking(booking.id, "client illness", ADMIN)

        assert cancelled.status == "cancelled"
        assert cancelled.cancellation_reason == "client illness"
        assert cancelled.cancelled_by == ADMIN.user_id
        assert cancelled.cancelled_at == NOW
        assert MONDAY_9 in [s.start for s in availability.get_available_slots("dr-asha", "2026-06-01")]

    def test_reason_is_required(self, service, fake_repo, therapist):
        booking = fake_repo.add_booking(therapist.id, MONDAY_9, MONDAY_9 + timedelta(hours=1))
        with pytest.raises(ValidationError):
            service.cancel_booking(booking.id, "   ", ADMIN)

    def test_cannot_cancel_twice(self, service, fake_repo, therapist):
        booking = fake_repo.add_booking(therapist.id, MONDAY_9, MONDAY_9 + timedelta(hours=1))
        service.cancel_booking(booking.id, "changed plans", ADMIN)
        with pytest.raises(InvalidTransitionError):
            service.cancel_booking(booking.id, "again", ADMIN)

    def test_anonymous_client_with_matching_email(self, service, fake_repo, therapist):
        booking = fake_repo.add_booking(
            therapist.id, MONDAY_9, MONDAY_9 + timedelta(hours=1), client_email="meera@example.com"
        )
        cancelled = service.cancel_booking(booking.id, "travel", None, client_email="Meera@Example.com")
        assert cancelled.cancelled_by == "client"

    def test_anonymous_client_with_wrong_email(self, service, fake_repo, therapist):
        booking = fake_repo.add_booking(therapist.id, MONDAY_9, MONDAY_9 + timedelta(hours=1))
        with pytest.raises(ForbiddenError):
            service.cancel_booking(booking.id, "travel", None, client_email="stranger@example.com")

    def test_unknown_booking(self, service, therapist):
        with pytest.raises(NotFoundError):
            service.cancel_booking(12345, "whatever", ADMIN)


# ============================================================================
# STATUS
# ============================================================================


class TestTransitionStatus:
    def test_pending_cannot_be_completed(self, service, therapist):
        booking = service.create_booking(request(therapist))
        with pytest.raises(InvalidTransitionError):
            service.transition_status(booking.id, "completed", THERAPIST)

    def test_therapist_confirms_pending(self, service, therapist):
        booking = service.create_booking(request(therapist))
        assert service.transition_status(booking.id, "confirmed", THERAPIST).status == "confirmed"

    def test_complete_only_after_session_end(self, fake_repo, therapist):
        booking = fake_repo.add_booking(therapist.id, MONDAY_9, MONDAY_9 + timedelta(hours=1))

        during = BookingService(fake_repo, lambda: MONDAY_9 + timedelta(minutes=30))
        with pytest.raises(InvalidTransitionError):
            during.transition_status(booking.id, "completed", THERAPIST)

        after = BookingService(fake_repo, lambda: MONDAY_9 + timedelta(hours=1))
        assert after.transition_status(booking.id, "completed", THERAPIST).status == "completed"

    def test_no_show_after_session(self, fake_repo, therapist):
        booking = fake_repo.add_booking(therapist.id, MONDAY_9, MONDAY_9 + timedelta(hours=1))
        later = BookingService(fake_repo, lambda: MONDAY_9 + timedelta(hours=2))
        assert later.transition_status(booking.id, "no_show", ADMIN).status == "no_show"

    def test_terminal_states_are_final(self, service, fake_repo, therapist):
        booking = fake_repo.add_booking(therapist.id, MONDAY_9, MONDAY_9 + timedelta(hours=1), status="cancelled")
        with pytest.raises(InvalidTransitionError):
            service.transition_status(booking.id, "confirmed", ADMIN)

    def test_reception_cannot_change_status(self, service, fake_repo, therapist):
        booking = fake_repo.add_booking(therapist.id, MONDAY_9, MONDAY_9 + timedelta(hours=1), status="pending")
        with pytest.raises(ForbiddenError):
            service.transition_status(booking.id, "confirmed", RECEPTION)

    def test_other_therapist_cannot_change_status(self, service, fake_repo, therapist):
        booking = fake_repo.add_booking(therapist.id, MONDAY_9, MONDAY_9 + timedelta(hours=1), status="pending")
        with pytest.raises(ForbiddenError):
            service.transition_status(booking.id, "confirmed", OTHER_THERAPIST)

    def test_cancel_via_status_records_who_and_why(self, service, fake_repo, therapist):
        booking = fake_repo.add_booking(therapist.id, MONDAY_9, MONDAY_9 + timedelta(hours=1), status="pending")
        cancelled = service.transition_status(booking.id, "cancelled", THERAPIST, reason=" Therapist unwell ")
        assert cancelled.status == "cancelled"
        assert cancelled.cancellation_reason == "Therapist unwell"
        assert cancelled.cancelled_by == THERAPIST.user_id
        assert cancelled.cancelled_at == NOW

    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_cancel_via_status_requires_reason(self, service, fake_repo, therapist, reason):
        booking = fake_repo.add_booking(therapist.id, MONDAY_9, MONDAY_9 + timedelta(hours=1), status="pending")
        with pytest.raises(ValidationError):
            service.transition_status(booking.id, "cancelled", THERAPIST, reason=reason)
        assert fake_repo.get_booking(booking.id).status == "pending"


# ============================================================================
# RESCHEDULE
# ============================================================================


class TestRescheduleBooking:
    def test_moves_and_keeps_duration(self, service, therapist):
        booking = service.create_booking(request(therapist))
        before, after = service.reschedule_booking(
            booking.id, BookingReschedule(startTime=utc(2026, 6, 1, 10, 15)), ADMIN
        )
        assert before.start == MONDAY_9
        assert after.start == utc(2026, 6, 1, 10, 15)
        assert after.end == utc(2026, 6, 1, 11, 15)
        assert after.booking_reference == booking.booking_reference

    def test_may_overlap_its_own_old_slot(self, service, therapist):
        booking = service.create_booking(request(therapist))
        _, after = service.reschedule_booking(
            booking.id, BookingReschedule(startTime=MONDAY_9 + timedelta(minutes=30)), THERAPIST
        )
        assert after.start == MONDAY_9 + timedelta(minutes=30)

    def test_explicit_end(self, service, therapist):
        booking = service.create_booking(request(therapist))
        _, after = service.reschedule_booking(
            booking.id,
            BookingReschedule(startTime=utc(2026, 6, 2, 9), endTime=utc(2026, 6, 2, 9, 30)),
            ADMIN,
        )
        assert after.duration_minutes == 30

    def test_end_before_start(self, service, therapist):
        booking = service.create_booking(request(therapist))
        with pytest.raises(ValidationError):
            service.reschedule_booking(
                booking.id,
                BookingReschedule(startTime=utc(2026, 6, 2, 9), endTime=utc(2026, 6, 2, 8)),
                ADMIN,
            )

    def test_conflict_leaves_booking_unchanged(self, service, fake_repo, therapist):
        booking = service.create_booking(request(therapist))
        fake_repo.add_booking(therapist.id, utc(2026, 6, 1, 10, 15), utc(2026, 6, 1, 11, 15))
        with pytest.raises(SlotConflictError):
            service.reschedule_booking(booking.id, BookingReschedule(startTime=utc(2026, 6, 1, 10, 30)), ADMIN)
        assert fake_repo.get_booking(booking.id).start == MONDAY_9

    def test_cancelled_booking_cannot_move(self, service, fake_repo, therapist):
        booking = fake_repo.add_booking(therapist.id, MONDAY_9, MONDAY_9 + timedelta(hours=1), status="cancelled")
        with pytest.raises(InvalidTransitionError):
            service.reschedule_booking(booking.id, BookingReschedule(startTime=utc(2026, 6, 2, 9)), ADMIN)

    def test_client_by_email_respects_booking_window(self, service, therapist):
        booking = service.create_booking(request(therapist))
        with pytest.raises(ValidationError):
            service.reschedule_booking(
                booking.id,
                BookingReschedule(startTime=NOW + timedelta(hours=2), clientEmail="meera@example.com"),
            )

    def test_client_by_email_can_move(self, service, fake_repo, therapist):
        fake_repo.add_rule(therapist.id, 2, "09:00", "12:00")  # Tuesday
        booking = service.create_booking(request(therapist))
        _, after = service.reschedule_booking(
            booking.id, BookingReschedule(startTime=utc(2026, 6, 2, 9), clientEmail="meera@example.com")
        )
        assert after.start == utc(2026, 6, 2, 9)

    def test_stranger_cannot_move(self, service, therapist):
        booking = service.create_booking(request(therapist))
        with pytest.raises(ForbiddenError):
            service.reschedule_booking(booking.id, BookingReschedule(startTime=utc(2026, 6, 2, 9)), OTHER_THERAPIST)


# ============================================================================
# READS
# ============================================================================


class TestGetBooking:
    def test_by_reference_case_insensitive(self, service, therapist):
        booking = service.create_booking(request(therapist))
        found = service.get_booking(booking.booking_reference.lower(), ADMIN)
        assert found.id == booking.id

    def test_by_id(self, service, therapist):
        booking = service.create_booking(request(therapist))
        assert service.get_booking(str(booking.id), THERAPIST).id == booking.id

    def test_anonymous_needs_client_email(self, service, therapist):
        booking = service.create_booking(request(therapist))
        with pytest.raises(ForbiddenError):
            service.get_booking(booking.booking_reference)
        assert service.get_booking(booking.booking_reference, client_email="meera@example.com").id == booking.id

    def test_missing(self, service, therapist):
        with pytest.raises(NotFoundError):
            service.get_booking("MW-NOPE0000", ADMIN)


def test_therapist_lists_own_bookings(service, fake_repo, therapist):
    service.create_booking(request(therapist))
    other = fake_repo.get_therapist_by_slug("dr-ravi")
    fake_repo.add_booking(other.id, MONDAY_9, MONDAY_9 + timedelta(hours=1))

    mine = service.list_therapist_bookings(THERAPIST)
    assert [b.therapist_id for b in mine] == [therapist.id]

    with pytest.raises(ForbiddenError):
        service.list_therapist_bookings(OTHER_THERAPIST, therapist_id=therapist.id)
    assert len(service.list_therapist_bookings(RECEPTION, therapist_id=therapist.id)) == 1


class ExclusionConstraintRepo:
    """Wraps the fake so inserts fail the way PostgreSQL's EXCLUDE constraint does"""

    def __init__(self, inner, message):
        self._inner = inner
        self._message = message

    def __getattr__(self, name):
        return getattr(self._inner, name)

    def insert_booking(self, **fields):
        raise IntegrityError("INSERT INTO bookings ...", {}, Exception(self._message))


def test_exclusion_constraint_becomes_slot_conflict(fake_repo, clock, therapist):
    repo = ExclusionConstraintRepo(
        fake_repo, 'conflicting key value violates exclusion constraint "bookings_no_overlap_per_therapist"'
    )
    with pytest.raises(SlotConflictError):
        BookingService(repo, clock).create_booking(request(therapist))


def test_other_integrity_errors_propagate(fake_repo, clock, therapist):
    repo = ExclusionConstraintRepo(fake_repo, 'duplicate key value violates unique constraint "bookings_pkey"')
    with pytest.raises(IntegrityError):
        BookingService(repo, clock).create_booking(request(therapist))
