# backend/config.py
import os

from dotenv import load_dotenv

load_dotenv()


def _as_bool(value, default=False):
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _as_list(value):
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class Config:
    """Deployment configuration, read from the environment once at start-up."""

    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///bishvilam.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Identity tokens
    TOKEN_MAX_AGE = int(os.getenv("TOKEN_MAX_AGE", 60 * 60 * 24 * 7))

    # Stripe
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_API_URL = os.getenv("STRIPE_API_URL", "https://api.stripe.com/v1")
    PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "ils")

    # Mailjet
    MAILJET_API_KEY = os.getenv("MAILJET_API_KEY")
    MAILJET_API_SECRET = os.getenv("MAILJET_API_SECRET")
    MAILJET_API_URL = os.getenv("MAILJET_API_URL", "https://api.mailjet.com/v3.1/send")
    MAIL_FROM = os.getenv("MAIL_FROM", "noreply@bishvilam.com")
    MAIL_FROM_NAME = os.getenv("MAIL_FROM_NAME", "בישבילם - מרכז ההכשרה")
    ADMIN_EMAILS = _as_list(os.getenv("ADMIN_EMAILS"))

    # Twilio
    TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
    TWILIO_FROM = os.getenv("TWILIO_FROM")
    ADMIN_SMS_TO = os.getenv("ADMIN_SMS_TO")

    # Post-commit notifications
    NOTIFICATION_ASYNC = _as_bool(os.getenv("NOTIFICATION_ASYNC"), default=True)
    NOTIFICATION_MAX_ATTEMPTS = int(os.getenv("NOTIFICATION_MAX_ATTEMPTS", 3))
    NOTIFICATION_RETRY_DELAY = float(os.getenv("NOTIFICATION_RETRY_DELAY", 5))

    # Announcement emails go out in small batches to stay under Mailjet limits
    ANNOUNCEMENT_BATCH_SIZE = int(os.getenv("ANNOUNCEMENT_BATCH_SIZE", 10))
    ANNOUNCEMENT_BATCH_DELAY = float(os.getenv("ANNOUNCEMENT_BATCH_DELAY", 1))

    # Nominatim
    GEOCODER_URL = os.getenv(
        "GEOCODER_URL", "https://nominatim.openstreetmap.org/search"
    )
    GEOCODER_COUNTRY = os.getenv("GEOCODER_COUNTRY", "il")

    RATELIMIT_ENABLED = _as_bool(os.getenv("RATELIMIT_ENABLED"), default=True)
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    STRIPE_SECRET_KEY = None
    MAILJET_API_KEY = None
    MAILJET_API_SECRET = None
    ADMIN_EMAILS = []
    TWILIO_ACCOUNT_SID = None
    TWILIO_AUTH_TOKEN = None
    ADMIN_SMS_TO = None
    NOTIFICATION_ASYNC = False
    NOTIFICATION_MAX_ATTEMPTS = 1
    NOTIFICATION_RETRY_DELAY = 0
    ANNOUNCEMENT_BATCH_DELAY = 0
    RATELIMIT_ENABLED = False
