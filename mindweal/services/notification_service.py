"""
Booking Notification Service
Single entry point for booking e-mails. Delivery is best effort: failures are
logged and reported back, never raised to the caller.
"""

import logging

from .. import email_service
from ..email_templates import (
    booking_cancelled_template,
    booking_confirmed_client_template,
    booking_received_client_template,
    booking_rescheduled_template,
    new_booking_therapist_template,
)

logger = logging.getLogger(__name__)

# template name -> (subject builder, MJML builder)
TEMPLATES = {
    "booking_received": (
        lambda d: (
            f"Session confirmed - {d.get('date', '')}"
            if d.get("status") == "confirmed"
            else f"Booking request received - {d.get('date', '')}"
        ),
        booking_received_client_template,
    ),
    "booking_new_therapist": (
        lambda d: f"New booking: {d.get('client_name', '')} on {d.get('date', '')}",
        new_booking_therapist_template,
    ),
    "booking_rescheduled": (
        lambda d: f"Session rescheduled to {d.get('date', '')} {d.get('start_time', '')}",
        booking_rescheduled_template,
    ),
    "booking_cancelled": (
        lambda d: f"Session cancelled - {d.get('date', '')}",
        booking_cancelled_template,
    ),
    "booking_confirmed": (
        lambda d: f"Your session on {d.get('date', '')} is confirmed",
        booking_confirmed_client_template,
    ),
}


async def send_booking_notification(template: str, data: dict, recipient: str) -> bool:
    """
    Render ``template`` with ``data`` and e-mail it to ``recipient``.

    Returns True when the provider accepted the message.
    """
    if not recipient:
        logger.debug(f"⚠️ No recipient for {template} notification")
        return False

    if template not in TEMPLATES:
        logger.error(f"❌ Unknown notification template: {template}")
        return False

    subject_builder, template_builder = TEMPLATES[template]
    try:
        logger.info(f"📧 Sending {template} email to {recipient}")
        await email_service.send_email(
            to=recipient,
            subject=subject_builder(data),
            mjml_content=template_builder(data),
            tags=email_service.build_tags(
                template=template, booking_reference=data.get("booking_reference")
            ),
        )
        logger.info(f"✅ {template} email sent successfully to {recipient}")
        return True
    except email_service.EmailDeliveryError as e:
        logger.error(f"❌ Failed to send {template} email to {recipient}: {e}")
        return False
