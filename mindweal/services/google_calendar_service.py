"""
Google Calendar Service
Creates calendar events with Google Meet links for video sessions
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx

from .. import config

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"

# Access token for the clinic calendar account, refreshed on demand
_token_cache: dict = {"access_token": None, "expires_at": None}


def is_configured() -> bool:
    return bool(
        config.GOOGLE_CLIENT_ID
        and config.GOOGLE_CLIENT_SECRET
        and config.GOOGLE_CALENDAR_REFRESH_TOKEN
    )


async def get_valid_access_token() -> Optional[str]:
    """
    Get a valid access token, refreshing if necessary
    Returns None if refresh fails
    """
    expires_at = _token_cache["expires_at"]
    now = datetime.now(timezone.utc)
    if _token_cache["access_token"] and expires_at and expires_at > now + timedelta(minutes=5):
        return _token_cache["access_token"]

    try:
        logger.info("🔄 Refreshing Google Calendar access token...")
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": config.GOOGLE_CLIENT_ID,
                    "client_secret": config.GOOGLE_CLIENT_SECRET,
                    "refresh_token": config.GOOGLE_CALENDAR_REFRESH_TOKEN,
                    "grant_type": "refresh_token",
                },
            )

        if response.status_code != 200:
            logger.error(f"❌ Token refresh failed: {response.text}")
            return None

        tokens = response.json()
        access_token = tokens.get("access_token")
        if not access_token:
            logger.error("❌ No access token in refresh response")
            return None

        _token_cache["access_token"] = access_token
        _token_cache["expires_at"] = now + timedelta(seconds=tokens.get("expires_in", 3600))
        logger.info("✅ Google Calendar token refreshed successfully")
        return access_token

    except httpx.HTTPError as e:
        logger.error(f"❌ Error refreshing Google Calendar token: {str(e)}")
        return None


async def create_meeting_link(
    start: datetime,
    end: datetime,
    summary: str,
    attendees: list[str],
    request_id: str,
    description: Optional[str] = None,
) -> Optional[str]:
    """
    Create a calendar event with a Google Meet conference attached.

    ``request_id`` makes the conference request idempotent (the booking
    reference is used). Returns the Meet URL, or None when the integration is
    not configured or Google rejects the request.
    """
    if not is_configured():
        logger.info("ℹ️ Google Calendar not configured, skipping meeting link")
        return None

    access_token = await get_valid_access_token()
    if not access_token:
        return None

    event_data = {
        "summary": summary,
        "description": description or "",
        "start": {"dateTime": start.isoformat(), "timeZone": "UTC"},
        "end": {"dateTime": end.isoformat(), "timeZone": "UTC"},
        "attendees": [{"email": email} for email in attendees if email],
        "conferenceData": {
            "createRequest": {
                "requestId": request_id,
                "conferenceSolutionKey": {"type": "hangoutsMeet"},
            }
        },
    }

    try:
        async with httpx.AsyncClient(timeout=15.0) as client:
            response = await client.post(
                f"{GOOGLE_CALENDAR_API}/calendars/{config.GOOGLE_CALENDAR_ID}/events",
                params={"conferenceDataVersion": 1, "sendUpdates": "none"},
                headers={"Authorization": f"Bearer {access_token}"},
                json=event_data,
            )
    except httpx.HTTPError as e:
        logger.error(f"❌ Error creating calendar event: {str(e)}")
        return None

    if response.status_code not in [200, 201]:
        logger.error(f"❌ Failed to create calendar event: {response.text}")
        return None

    return extract_meet_link(response.json())


def extract_meet_link(event: dict) -> Optional[str]:
    """Meet URL from a Calendar event payload"""
    if event.get("hangoutLink"):
        return event["hangoutLink"]
    for entry in event.get("conferenceData", {}).get("entryPoints", []):
        if entry.get("entryPointType") == "video" and entry.get("uri"):
            return entry["uri"]
    return None
