import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./interpreter_booking.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

APP_ENV = os.getenv("APP_ENV", "dev")

# JWT access tokens issued to customers, interpreters and admins
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "720"))

# Notifications go through the arq queue when enabled, inline otherwise
NOTIFICATION_QUEUE_ENABLED = os.getenv("NOTIFICATION_QUEUE_ENABLED", "true").lower() == "true"

# OneSignal push configuration (separate apps for prod and dev)
ONESIGNAL_APP_ID = os.getenv("ONESIGNAL_APP_ID")
ONESIGNAL_API_KEY = os.getenv("ONESIGNAL_API_KEY")
ONESIGNAL_API_URL = os.getenv("ONESIGNAL_API_URL", "https://onesignal.com/api/v1/notifications")
PUSH_TITLE = os.getenv("PUSH_TITLE", "DigitalTolk")

# Twilio SMS configuration
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
SMS_NUMBER = os.getenv("SMS_NUMBER")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "DigitalTolk <noreply@digitaltolk.se>")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@digitaltolk.se")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Business window used to hold back night-time pushes
BUSINESS_TIMEZONE = os.getenv("BUSINESS_TIMEZONE", "Europe/Stockholm")
NIGHT_START_HOUR = int(os.getenv("NIGHT_START_HOUR", "22"))
NIGHT_END_HOUR = int(os.getenv("NIGHT_END_HOUR", "7"))

# Booking rules
IMMEDIATE_LEAD_MINUTES = int(os.getenv("IMMEDIATE_LEAD_MINUTES", "5"))
CANCEL_NOTICE_HOURS = int(os.getenv("CANCEL_NOTICE_HOURS", "24"))
HISTORY_PAGE_SIZE = int(os.getenv("HISTORY_PAGE_SIZE", "15"))


@dataclass(frozen=True)
class BookingConfig:
    """Business constants passed explicitly into booking services"""

    admin_email: str = ADMIN_EMAIL
    immediate_lead_minutes: int = IMMEDIATE_LEAD_MINUTES
    cancel_notice_hours: int = CANCEL_NOTICE_HOURS
    history_page_size: int = HISTORY_PAGE_SIZE
    sms_from_number: Optional[str] = SMS_NUMBER
    frontend_url: str = FRONTEND_URL


def get_booking_config() -> BookingConfig:
    return BookingConfig()
