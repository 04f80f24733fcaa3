from __future__ import annotations

from typing import Any

from ..extensions import db
from ..models import Setting
from ..validation import ValidationError


EMAIL_SETTINGS_KEY = "email_settings"

EMAIL_FIELDS = ("recipient", "auto_email", "service_id", "template_id", "public_key")


def get_setting(key: str, default: Any = None) -> Any:
    row = db.session.query(Setting).filter_by(key=key).first()
    if row is None or row.value is None:
        return default
    return row.value


def put_setting(key: str, value: Any, *, user_id: int | None = None) -> Setting:
    row = db.session.query(Setting).filter_by(key=key).first()
    if row is None:
        row = Setting(key=key)
        db.session.add(row)
    row.value = value
    row.updated_by_user_id = user_id
    db.session.commit()
    return row


def default_email_settings() -> dict:
    return {
        "recipient": "",
        "auto_email": False,
        "service_id": "",
        "template_id": "",
        "public_key": "",
    }


def get_email_settings() -> dict:
    settings = default_email_settings()
    stored = get_setting(EMAIL_SETTINGS_KEY) or {}
    settings.update({k: stored[k] for k in EMAIL_FIELDS if k in stored})
    return settings


def email_settings_complete(settings: dict) -> bool:
    return all(settings.get(k) for k in ("recipient", "service_id", "template_id", "public_key"))


def save_email_settings(payload: dict, *, user_id: int | None = None) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    unknown = sorted(set(payload) - set(EMAIL_FIELDS))
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")

    settings = get_email_settings()
    for key in EMAIL_FIELDS:
        if key not in payload:
            continue
        if key == "auto_email":
            settings[key] = bool(payload[key])
        else:
            settings[key] = str(payload[key] or "").strip()

    if settings["auto_email"] and not email_settings_complete(settings):
        raise ValidationError("Please fill all EmailJS fields to enable auto-email")

    put_setting(EMAIL_SETTINGS_KEY, settings, user_id=user_id)
    return settings


def email_status(settings: dict) -> str:
    return "ACTIVE" if settings.get("auto_email") and settings.get("public_key") else "DISABLED"
