# Overview: Day-end summary email through the EmailJS REST API.

"""
Notification Service

Sends the day-end figures to the configured recipient using an EmailJS
template. Sending is optional (auto_email setting) and never part of a
business transaction: every failure surfaces as SideEffectFailure for the
caller to log.
"""
from __future__ import annotations

import httpx
from flask import current_app

from ..validation import SideEffectFailure
from . import settings_service
from .journal_service import format_money
from garagepos.time_utils import local_today


def day_end_template_params(report, *, recipient: str, generated_by: str) -> dict:
    return {
        "to_email": recipient,
        "report_date": report.business_date.isoformat(),
        "float_cash": format_money(report.float_cents),
        "cash_sales": format_money(report.cash_sales_cents),
        "credit_sales": format_money(report.credit_sales_cents),
        "expenses": format_money(report.expenses_cents),
        "expected_cash": format_money(report.expected_cents),
        "actual_cash": format_money(report.cash_in_hand_cents),
        "variance": format_money(report.variance_cents),
        "total_revenue": format_money(report.total_sales_cents),
        "estimated_profit": format_money(report.net_profit_cents),
        "generated_by": generated_by,
    }


def sample_template_params(recipient: str) -> dict:
    return {
        "to_email": recipient,
        "report_date": local_today().isoformat(),
        "float_cash": "TEST-FLOAT",
        "cash_sales": "TEST-SALES",
        "credit_sales": "TEST-CREDIT",
        "expenses": "TEST-EXPENSES",
        "expected_cash": "TEST-EXPECTED",
        "actual_cash": "TEST-ACTUAL",
        "variance": "TEST-VARIANCE",
        "total_revenue": "TEST-REVENUE",
        "estimated_profit": "TEST-PROFIT",
        "generated_by": "TEST-USER",
    }


def send_email(settings: dict, template_params: dict) -> None:
    if not settings_service.email_settings_complete(settings):
        raise SideEffectFailure("Email settings are incomplete")

    payload = {
        "service_id": settings["service_id"],
        "template_id": settings["template_id"],
        "user_id": settings["public_key"],
        "template_params": template_params,
    }
    url = current_app.config["EMAILJS_API_URL"]
    timeout = current_app.config.get("NOTIFICATION_TIMEOUT_SECONDS", 10)

    try:
        with httpx.Client(timeout=timeout) as client:
            response = client.post(url, json=payload)
    except httpx.TimeoutException as exc:
        raise SideEffectFailure("Timeout sending email", {"reason": str(exc)}) from exc
    except httpx.HTTPError as exc:
        raise SideEffectFailure("Email connection error", {"reason": str(exc)}) from exc

    if response.status_code != 200:
        raise SideEffectFailure(
            "Email provider rejected the message",
            {"status_code": response.status_code, "body": response.text[:200]},
        )
    current_app.logger.info("Email sent to %s", settings["recipient"])


def send_day_end_email(report, *, generated_by: str) -> bool:
    """Returns False when auto email is disabled; raises SideEffectFailure on failure."""
    settings = settings_service.get_email_settings()
    if not settings.get("auto_email") or not settings.get("public_key"):
        return False
    send_email(settings, day_end_template_params(report, recipient=settings["recipient"], generated_by=generated_by))
    return True


def send_test_email(overrides: dict | None = None) -> None:
    settings = settings_service.get_email_settings()
    for key, value in (overrides or {}).items():
        if key in settings_service.EMAIL_FIELDS and key != "auto_email":
            settings[key] = str(value or "").strip()
    if not settings_service.email_settings_complete(settings):
        raise SideEffectFailure("Please fill all fields to test")
    send_email(settings, sample_template_params(settings["recipient"]))
