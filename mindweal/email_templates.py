"""
MJML Email Templates
Booking e-mails for clients and therapists, MJML for cross-client rendering
"""

from typing import Optional

from . import config
from .shared.sanitization import sanitize_fields

# Brand colors - MindWeal teal
THEME = {
    "primary": "#00A99D",
    "primary_dark": "#008C82",
    "primary_light": "#E0F5F3",
    "background": "#f8fafc",
    "card_bg": "#ffffff",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "warning": "#f59e0b",
    "danger": "#ef4444",
}

MEETING_TYPE_LABELS = {
    "in_person": "In person",
    "video": "Video session",
    "phone": "Phone call",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 20px 0 20px">
          <mj-column>
            <mj-text font-size="22px" font-weight="700" color="{THEME['primary']}" padding="0">
              {config.APP_NAME}
            </mj-text>
            <mj-divider border-color="{THEME['border']}" border-width="1px" padding="24px 0" />
          </mj-column>
        </mj-section>

        <!-- Main Content -->
        <mj-section background-color="#ffffff" padding="0 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <!-- Footer -->
        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              {config.APP_NAME} &middot; {config.CLINIC_ADDRESS}
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _session_details(data: dict) -> str:
    """Date, time and where the session happens"""
    meeting_type = data.get("meeting_type", "")
    where = ""
    if meeting_type == "video" and data.get("meeting_link"):
        where = f'<a href="{data["meeting_link"]}" style="color: {THEME["primary"]};">Join video session</a>'
    elif meeting_type == "in_person" and data.get("meeting_location"):
        where = data["meeting_location"]

    return f"""
    <mj-text align="center" font-size="16px" color="{THEME['text_primary']}" padding="16px 0 0 0">
      📅 {data.get('date', '')}
    </mj-text>
    <mj-text align="center" font-size="16px" color="{THEME['text_primary']}" padding="0">
      ⏰ {data.get('start_time', '')} - {data.get('end_time', '')} ({data.get('timezone', '')})
    </mj-text>
    <mj-text align="center" font-size="14px" color="{THEME['text_muted']}" padding="0 0 20px 0">
      {MEETING_TYPE_LABELS.get(meeting_type, meeting_type)} {('&middot; ' + where) if where else ''}
    </mj-text>
    <mj-text font-size="14px" color="{THEME['text_muted']}">
      Booking reference: <strong>{data.get('booking_reference', '')}</strong>
    </mj-text>
    """


def booking_received_client_template(data: dict) -> str:
    """Sent to the client right after booking. Pending bookings await the therapist."""
    data = sanitize_fields(data)
    if data.get("status") == "confirmed":
        headline = "Your session is confirmed"
        intro = f"Your session with <strong>{data.get('therapist_name', '')}</strong> is confirmed."
    else:
        headline = "Booking request received"
        intro = (
            f"Thanks for booking with <strong>{data.get('therapist_name', '')}</strong>. "
            "We'll let you know as soon as your session is confirmed."
        )

    content = f"""
    <mj-text>
      Hi {data.get('client_name', '')},
    </mj-text>

    <mj-text>
      {intro}
    </mj-text>

    {_session_details(data)}
    """

    return get_base_template(
        title=headline,
        preview_text=f"{headline} - {data.get('date', '')}",
        content_sections=content,
        cta_url=data.get("manage_url"),
        cta_label="Manage booking",
    )


def new_booking_therapist_template(data: dict) -> str:
    data = sanitize_fields(data)
    content = f"""
    <mj-text>
      Hi {data.get('therapist_name', '')},
    </mj-text>

    <mj-text>
      <strong>{data.get('client_name', '')}</strong> ({data.get('client_email', '')}) booked a session with you.
    </mj-text>

    {_session_details(data)}
    """
    if data.get("client_notes"):
        content += f"""
    <mj-text font-size="14px" color="{THEME['text_muted']}">
      Notes from client: {data['client_notes']}
    </mj-text>
    """

    return get_base_template(
        title="New Booking",
        preview_text=f"New booking from {data.get('client_name', '')}",
        content_sections=content,
    )


def booking_rescheduled_template(data: dict) -> str:
    data = sanitize_fields(data)
    content = f"""
    <mj-text>
      Hi {data.get('recipient_name', '')},
    </mj-text>

    <mj-text>
      The session between <strong>{data.get('client_name', '')}</strong> and
      <strong>{data.get('therapist_name', '')}</strong> has been moved.
    </mj-text>

    <mj-text font-size="14px" color="{THEME['text_muted']}" padding="16px 0 0 0">
      Previously: <s>{data.get('previous_date', '')} {data.get('previous_start_time', '')}</s>
    </mj-text>

    {_session_details(data)}
    """

    return get_base_template(
        title="Session Rescheduled",
        preview_text=f"New time: {data.get('date', '')} {data.get('start_time', '')}",
        content_sections=content,
        cta_url=data.get("manage_url"),
        cta_label="View booking",
    )


def booking_cancelled_template(data: dict) -> str:
    data = sanitize_fields(data)
    content = f"""
    <mj-text>
      Hi {data.get('recipient_name', '')},
    </mj-text>

    <mj-text>
      The session on <strong>{data.get('date', '')}</strong> at
      <strong>{data.get('start_time', '')}</strong> has been cancelled.
    </mj-text>

    <mj-text font-size="14px" color="{THEME['text_muted']}" padding="16px 0">
      Reason: {data.get('cancellation_reason', '')}
    </mj-text>

    <mj-text font-size="14px" color="{THEME['text_muted']}">
      Booking reference: <strong>{data.get('booking_reference', '')}</strong>
    </mj-text>
    """

    return get_base_template(
        title="Session Cancelled",
        preview_text=f"Session on {data.get('date', '')} cancelled",
        content_sections=content,
    )


def booking_confirmed_client_template(data: dict) -> str:
    """Therapist confirmed a pending request"""
    data = sanitize_fields(data)
    content = f"""
    <mj-text>
      Hi {data.get('client_name', '')},
    </mj-text>

    <mj-text>
      <strong>{data.get('therapist_name', '')}</strong> confirmed your session.
    </mj-text>

    {_session_details(data)}
    """

    return get_base_template(
        title="Session Confirmed",
        preview_text=f"Confirmed: {data.get('date', '')} {data.get('start_time', '')}",
        content_sections=content,
        cta_url=data.get("manage_url"),
        cta_label="Manage booking",
    )
