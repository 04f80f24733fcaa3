# backend/garagepos/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the instance (local, single machine)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///garagepos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Re-check stock >= qty inside the checkout transaction
    ENFORCE_STOCK_AT_COMMIT = _env_flag("ENFORCE_STOCK_AT_COMMIT", True)

    # "day": every expense of the calendar day; "user": only the closing user's
    DAY_END_EXPENSE_SCOPE = os.environ.get("DAY_END_EXPENSE_SCOPE", "day")

    # Optional folders for the daily journal text file and day-end JSON backups
    JOURNAL_DIR = os.environ.get("JOURNAL_DIR")
    BACKUP_DIR = os.environ.get("BACKUP_DIR")

    EMAILJS_API_URL = os.environ.get("EMAILJS_API_URL", "https://api.emailjs.com/api/v1.0/email/send")
    NOTIFICATION_TIMEOUT_SECONDS = float(os.environ.get("NOTIFICATION_TIMEOUT_SECONDS", "10"))

    LOGIN_TOKEN_TTL_HOURS = int(os.environ.get("LOGIN_TOKEN_TTL_HOURS", "24"))
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "5"))
    SERVICE_REMINDER_DAYS = int(os.environ.get("SERVICE_REMINDER_DAYS", "90"))
    SERVICE_REMINDER_MILEAGE = int(os.environ.get("SERVICE_REMINDER_MILEAGE", "5000"))

    # Shown on WhatsApp reminders and report headers
    GARAGE_NAME = os.environ.get("GARAGE_NAME", "Garage Master")

    # Country calling code used when building WhatsApp links
    WHATSAPP_COUNTRY_CODE = os.environ.get("WHATSAPP_COUNTRY_CODE", "94")


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    JOURNAL_DIR = None
    BACKUP_DIR = None
    # Fast hashing for tests
    BCRYPT_ROUNDS = 4
