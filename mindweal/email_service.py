"""
Email delivery: MJML booking templates compiled to HTML and sent with Resend.
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailDeliveryError(Exception):
    """Email could not be compiled or handed to the provider"""


def compile_mjml_to_html(mjml_content: str) -> str:
    try:
        result = mjml_to_html(mjml_content)
    except Exception as e:
        logger.error(f"❌ MJML compilation failed: {e}")
        raise EmailDeliveryError(f"Failed to compile MJML template: {str(e)}") from e

    # Newer mjml releases return an object with .html/.errors, older ones a dict
    if isinstance(result, dict):
        html, errors = result.get("html", ""), result.get("errors")
    else:
        html, errors = getattr(result, "html", str(result)), getattr(result, "errors", None)
    if errors:
        logger.warning(f"⚠️ MJML warnings: {errors}")
    return html


def build_tags(**values: Optional[str]) -> list[dict]:
    """Resend tags (name/value pairs) for delivery analytics, skipping empty values"""
    return [{"name": name, "value": str(value)} for name, value in values.items() if value]


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
    tags: Optional[list[dict]] = None,
) -> dict:
    """
    Compile ``mjml_content`` and hand the message to Resend.

    Raises EmailDeliveryError when Resend isn't configured, the template
    doesn't compile, or the API call fails. Returns Resend's response.
    """
    if not RESEND_API_KEY:
        logger.error("❌ RESEND_API_KEY missing, cannot send email")
        raise EmailDeliveryError("Email service not configured")

    recipients = [to] if isinstance(to, str) else list(to)
    params = {
        "from": from_address or EMAIL_FROM_ADDRESS,
        "to": recipients,
        "subject": subject,
        "html": compile_mjml_to_html(mjml_content),
    }
    if tags:
        params["tags"] = tags

    try:
        response = resend.Emails.send(params)
    except Exception as e:
        logger.error(f"❌ Resend rejected email to {recipients}: {e}")
        raise EmailDeliveryError(f"Failed to send email: {str(e)}") from e

    logger.info(f"📧 Email '{subject}' delivered to Resend for {recipients}")
    return response
