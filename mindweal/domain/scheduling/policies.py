"""Who may do what with a booking. Every route and service check goes through here."""

from typing import Optional

from .types import Actor, BookingRecord, TherapistProfile


def owns_therapist(actor: Optional[Actor], therapist: TherapistProfile) -> bool:
    if actor is None:
        return False
    if therapist.user_id and actor.user_id == therapist.user_id:
        return True
    return bool(actor.email) and actor.email.lower() == therapist.email.lower()


def can_manage_therapist(actor: Optional[Actor], therapist: TherapistProfile) -> bool:
    """Rules, blocked time, session types and booking settings"""
    if actor is None:
        return False
    return actor.is_admin or owns_therapist(actor, therapist)


def can_mutate_booking(
    actor: Optional[Actor], booking: BookingRecord, therapist: TherapistProfile
) -> bool:
    """
    Status transitions (confirm / complete / no-show).

    Admins always; otherwise only the therapist the booking belongs to.
    Reception deliberately does not pass this check.
    """
    if actor is None or booking.therapist_id != therapist.id:
        return False
    return actor.is_admin or owns_therapist(actor, therapist)


def can_manage_booking(
    actor: Optional[Actor],
    booking: BookingRecord,
    therapist: TherapistProfile,
    client_email: Optional[str] = None,
) -> bool:
    """
    Reschedule and cancel.

    Staff (admin, reception) and the owning therapist always. The client may
    act on their own booking either through their account or, without a
    session, by presenting the e-mail the booking was made with.
    """
    if actor is not None:
        if actor.is_staff or can_mutate_booking(actor, booking, therapist):
            return True
        if booking.client_id and actor.user_id == booking.client_id:
            return True
        if actor.email and actor.email.lower() == booking.client_email.lower():
            return True

    if client_email:
        return client_email.strip().lower() == booking.client_email.lower()
    return False


def can_view_booking(
    actor: Optional[Actor],
    booking: BookingRecord,
    therapist: TherapistProfile,
    client_email: Optional[str] = None,
) -> bool:
    return can_manage_booking(actor, booking, therapist, client_email)
