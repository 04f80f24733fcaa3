# backend/garagepos/routes/system.py
"""
System endpoints: health, runtime settings, backup and journal.
"""

import time
from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import require_auth, require_role
from ..extensions import db
from ..models import BusinessSession, InventoryItem, User
from ..models.auth import ROLE_ADMIN
from ..services import backup_service, journal_service, notification_service, settings_service, terminal_service
from ..validation import ServiceError, coerce_int, parse_date_arg
from garagepos.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Database connectivity with a few row counts."""
    start_time = time.time()
    try:
        details = {
            "users": db.session.query(User).count(),
            "inventory_items": db.session.query(InventoryItem).count(),
            "open_sessions": db.session.query(BusinessSession).filter_by(status="open").count(),
        }
        return {
            "status": "healthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "details": details,
        }
    except SQLAlchemyError:
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Database error",
        }


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    status = "healthy" if database["status"] == "healthy" else "unhealthy"
    return jsonify({
        "status": status,
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
        "terminals": len(terminal_service.registry()),
    }), 200 if status == "healthy" else 503


# =============================================================================
# EMAIL SETTINGS
# =============================================================================

@system_bp.get("/api/settings/email")
@require_auth
@require_role(ROLE_ADMIN)
def get_email_settings_route():
    settings = settings_service.get_email_settings()
    return jsonify({"settings": settings, "status": settings_service.email_status(settings)}), 200


@system_bp.put("/api/settings/email")
@require_auth
@require_role(ROLE_ADMIN)
def save_email_settings_route():
    try:
        settings = settings_service.save_email_settings(request.get_json(silent=True), user_id=g.current_user.id)
        return jsonify({"settings": settings, "status": settings_service.email_status(settings)}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to save email settings")
        return jsonify({"error": "Internal server error"}), 500


@system_bp.post("/api/settings/email/test")
@require_auth
@require_role(ROLE_ADMIN)
def test_email_route():
    """Send sample figures using the stored settings, overridden by the body."""
    try:
        notification_service.send_test_email(request.get_json(silent=True) or {})
        return jsonify({"message": "Test email sent"}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to send test email")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# BACKUP
# =============================================================================

@system_bp.get("/api/backup")
@require_auth
@require_role(ROLE_ADMIN)
def export_backup_route():
    response = jsonify(backup_service.export_backup())
    response.headers["Content-Disposition"] = f'attachment; filename="{backup_service.backup_file_name()}"'
    return response, 200


@system_bp.post("/api/backup/restore")
@require_auth
@require_role(ROLE_ADMIN)
def restore_backup_route():
    """Overwrites inventory, services and sales with the uploaded document."""
    try:
        counts = backup_service.restore_backup(request.get_json(silent=True))
        terminal_service.refresh_catalog(g.terminal)
        return jsonify({"restored": counts, "message": "Data restored successfully"}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to restore backup")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# JOURNAL
# =============================================================================

@system_bp.get("/api/journal")
@require_auth
@require_role(ROLE_ADMIN)
def journal_route():
    try:
        entries = journal_service.list_entries(
            business_date=parse_date_arg(request.args.get("date"), "date"),
            kind=request.args.get("kind"),
            limit=coerce_int(request.args.get("limit") or 200, "limit"),
        )
        return jsonify({"entries": [entry.to_dict() for entry in entries]}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
