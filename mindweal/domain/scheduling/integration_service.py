"""
Post-commit side effects of booking changes: Meet links and e-mails.

These run from FastAPI BackgroundTasks after the response is sent. Each run
opens its own session from the injected Database, since the request session
is already closed by then. Nothing here can undo a committed booking.
"""

import logging
from typing import Optional

from ... import config
from ...database import Database
from ...services import google_calendar_service, notification_service
from .repository import SchedulingRepository
from .time_calculator import format_clock, get_zone
from .types import BookingRecord, TherapistProfile

logger = logging.getLogger(__name__)


def booking_email_data(booking: BookingRecord, therapist: TherapistProfile) -> dict:
    """Template variables, with times rendered in the client's timezone"""
    zone = get_zone(booking.timezone or therapist.timezone)
    local_start = booking.start.astimezone(zone)
    local_end = booking.end.astimezone(zone)
    return {
        "booking_reference": booking.booking_reference,
        "status": booking.status,
        "client_name": booking.client_name,
        "client_email": booking.client_email,
        "client_notes": booking.client_notes,
        "therapist_name": therapist.name,
        "date": local_start.strftime("%A, %B %d, %Y"),
        "start_time": format_clock(local_start),
        "end_time": format_clock(local_end),
        "timezone": zone.key,
        "meeting_type": booking.meeting_type,
        "meeting_link": booking.meeting_link,
        "meeting_location": booking.meeting_location,
        "cancellation_reason": booking.cancellation_reason,
        "manage_url": f"{config.APP_URL}/bookings/{booking.booking_reference}",
    }


class BookingSideEffects:
    """Best-effort follow-ups for committed booking changes"""

    def __init__(
        self,
        database: Database,
        notify=notification_service.send_booking_notification,
        create_meeting_link=google_calendar_service.create_meeting_link,
    ):
        self.database = database
        self.notify = notify
        self.create_meeting_link = create_meeting_link

    async def booking_created(self, booking_id: int) -> None:
        try:
            booking, therapist = self._load(booking_id)
            if booking is None:
                return

            if booking.meeting_type == "video" and not booking.meeting_link:
                booking = await self._attach_meeting_link(booking, therapist)

            data = booking_email_data(booking, therapist)
            await self.notify("booking_received", data, booking.client_email)
            await self.notify("booking_new_therapist", data, therapist.email)
        except Exception as e:
            logger.error(f"❌ Post-booking side effects failed for booking {booking_id}: {e}")

    async def booking_rescheduled(self, booking_id: int, previous: BookingRecord) -> None:
        try:
            booking, therapist = self._load(booking_id)
            if booking is None:
                return

            data = booking_email_data(booking, therapist)
            before = booking_email_data(previous, therapist)
            data["previous_date"] = before["date"]
            data["previous_start_time"] = before["start_time"]

            await self.notify(
                "booking_rescheduled", {**data, "recipient_name": booking.client_name}, booking.client_email
            )
            await self.notify(
                "booking_rescheduled", {**data, "recipient_name": therapist.name}, therapist.email
            )
        except Exception as e:
            logger.error(f"❌ Reschedule notifications failed for booking {booking_id}: {e}")

    async def booking_cancelled(self, booking_id: int) -> None:
        try:
            booking, therapist = self._load(booking_id)
            if booking is None:
                return

            data = booking_email_data(booking, therapist)
            await self.notify(
                "booking_cancelled", {**data, "recipient_name": booking.client_name}, booking.client_email
            )
            await self.notify(
                "booking_cancelled", {**data, "recipient_name": therapist.name}, therapist.email
            )
        except Exception as e:
            logger.error(f"❌ Cancellation notifications failed for booking {booking_id}: {e}")

    async def status_changed(self, booking_id: int) -> None:
        """Only confirmation and cancellation are worth telling the client about"""
        try:
            booking, therapist = self._load(booking_id)
            if booking is None:
                return

            data = booking_email_data(booking, therapist)
            if booking.status == "confirmed":
                await self.notify("booking_confirmed", data, booking.client_email)
            elif booking.status == "cancelled":
                await self.notify(
                    "booking_cancelled", {**data, "recipient_name": booking.client_name}, booking.client_email
                )
        except Exception as e:
            logger.error(f"❌ Status notification failed for booking {booking_id}: {e}")

    # ------------------------------------------------------------------------

    def _load(self, booking_id: int) -> tuple[Optional[BookingRecord], Optional[TherapistProfile]]:
        db = self.database.session()
        try:
            repo = SchedulingRepository(db)
            booking = repo.get_booking(booking_id)
            if booking is None:
                logger.warning(f"⚠️ Booking {booking_id} vanished before side effects ran")
                return None, None
            return booking, repo.get_therapist(booking.therapist_id)
        finally:
            db.close()

    async def _attach_meeting_link(
        self, booking: BookingRecord, therapist: TherapistProfile
    ) -> BookingRecord:
        link = await self.create_meeting_link(
            start=booking.start,
            end=booking.end,
            summary=f"{config.APP_NAME} session: {booking.client_name} with {therapist.name}",
            attendees=[booking.client_email, therapist.email],
            request_id=booking.booking_reference,
        )
        if not link:
            logger.warning(f"⚠️ No meeting link for booking {booking.booking_reference}")
            return booking

        db = self.database.session()
        try:
            repo = SchedulingRepository(db)
            with repo.transaction():
                updated = repo.update_booking(booking.id, meeting_link=link)
            logger.info(f"✅ Meeting link stored for booking {booking.booking_reference}")
            return updated
        finally:
            db.close()
