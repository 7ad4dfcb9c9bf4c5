import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./mindweal.db")

# Connection pool (ignored for SQLite)
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "20"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "30"))
DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))
DB_LOG_SLOW_QUERIES = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
DB_SLOW_QUERY_THRESHOLD = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))

# Public site base URL, used for "manage your booking" links in e-mails
APP_URL = os.getenv("APP_URL", "http://localhost:3000")
APP_NAME = os.getenv("APP_NAME", "MindWeal")

# Booking defaults (applied to new therapists and missing query params)
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "Asia/Kolkata")
DEFAULT_SESSION_DURATION = int(os.getenv("DEFAULT_SESSION_DURATION", "60"))
DEFAULT_BUFFER_TIME = int(os.getenv("DEFAULT_BUFFER_TIME", "15"))
DEFAULT_ADVANCE_BOOKING_DAYS = int(os.getenv("DEFAULT_ADVANCE_BOOKING_DAYS", "30"))
DEFAULT_MIN_BOOKING_NOTICE = int(os.getenv("DEFAULT_MIN_BOOKING_NOTICE", "24"))
BOOKING_REFERENCE_PREFIX = os.getenv("BOOKING_REFERENCE_PREFIX", "MW")
CLINIC_ADDRESS = os.getenv("CLINIC_ADDRESS", "MindWeal Clinic, New Delhi")

# Auth service (issues sessions; we only resolve them)
AUTH_SERVICE_URL = os.getenv("AUTH_SERVICE_URL", "http://localhost:3000")
AUTH_SESSION_PATH = os.getenv("AUTH_SESSION_PATH", "/api/auth/get-session")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "MindWeal <noreply@mindweal.in>")

# Google Calendar (Meet links for video sessions)
# Refresh token of the clinic calendar account; links are skipped when unset
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_CALENDAR_REFRESH_TOKEN = os.getenv("GOOGLE_CALENDAR_REFRESH_TOKEN")
GOOGLE_CALENDAR_ID = os.getenv("GOOGLE_CALENDAR_ID", "primary")

# Comma separated list of allowed CORS origins
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", APP_URL).split(",") if o.strip()]
