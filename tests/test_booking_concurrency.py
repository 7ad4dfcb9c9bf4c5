"""Two clients racing for the same slot: exactly one wins."""

import threading
from concurrent.futures import ThreadPoolExecutor

from mindweal.domain.scheduling.booking_service import BookingService
from mindweal.domain.scheduling.schemas import BookingCreate
from mindweal.exceptions import SlotConflictError
from tests.conftest import utc

START = utc(2026, 6, 1, 9)


def _race(service, requests):
    barrier = threading.Barrier(len(requests))

    def attempt(data):
        barrier.wait()
        try:
            return service.create_booking(data)
        except SlotConflictError as e:
            return e

    with ThreadPoolExecutor(max_workers=len(requests)) as pool:
        return list(pool.map(attempt, requests))


def _request(therapist_id, email, start=START):
    return BookingCreate(
        therapistId=therapist_id, startTime=start, clientName="Racer", clientEmail=email
    )


def test_same_slot_has_one_winner(fake_repo, clock):
    therapist = fake_repo.add_therapist(slug="dr-asha")
    fake_repo.add_rule(therapist.id, 1, "09:00", "12:00")  # Monday
    service = BookingService(fake_repo, clock)

    results = _race(service, [_request(therapist.id, f"client{i}@example.com") for i in range(2)])

    winners = [r for r in results if not isinstance(r, SlotConflictError)]
    losers = [r for r in results if isinstance(r, SlotConflictError)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert len(fake_repo.list_active_bookings(therapist.id, START, utc(2026, 6, 1, 10))) == 1


def test_many_clients_one_slot(fake_repo, clock):
    therapist = fake_repo.add_therapist(slug="dr-asha")
    fake_repo.add_rule(therapist.id, 1, "09:00", "12:00")  # Monday
    service = BookingService(fake_repo, clock)

    results = _race(service, [_request(therapist.id, f"client{i}@example.com") for i in range(8)])

    assert sum(not isinstance(r, SlotConflictError) for r in results) == 1
    assert len(fake_repo.bookings) == 1


def test_different_therapists_do_not_contend(fake_repo, clock):
    first = fake_repo.add_therapist(slug="dr-asha")
    fake_repo.add_rule(first.id, 1, "09:00", "12:00")  # Monday
    second = fake_repo.add_therapist(slug="dr-ravi")
    fake_repo.add_rule(second.id, 1, "09:00", "12:00")  # Monday
    service = BookingService(fake_repo, clock)

    results = _race(
        service,
        [_request(first.id, "a@example.com"), _request(second.id, "b@example.com")],
    )

    assert not any(isinstance(r, SlotConflictError) for r in results)
    assert {r.therapist_id for r in results} == {first.id, second.id}


def test_disjoint_slots_for_same_therapist_both_succeed(fake_repo, clock):
    therapist = fake_repo.add_therapist(slug="dr-asha", buffer_time=0)
    fake_repo.add_rule(therapist.id, 1, "09:00", "12:00")  # Monday
    service = BookingService(fake_repo, clock)

    results = _race(
        service,
        [
            _request(therapist.id, "a@example.com", START),
            _request(therapist.id, "b@example.com", utc(2026, 6, 1, 10)),
        ],
    )

    assert not any(isinstance(r, SlotConflictError) for r in results)
    assert fake_repo.commits == 2
