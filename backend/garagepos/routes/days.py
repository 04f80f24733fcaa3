# Overview: Flask API routes for the business day: start, preview, end, float override.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role, is_admin
from ..models.auth import ROLE_ADMIN
from ..services import day_service, reconciliation_service, terminal_service
from ..validation import ServiceError, coerce_int, parse_date_arg


days_bp = Blueprint("days", __name__, url_prefix="/api/days")


@days_bp.post("/start")
@require_auth
def start_day_route():
    """
    Open the business day for the current user.

    Request body: {"opening_float_cents": 500000}
    """
    try:
        data = request.get_json(silent=True) or {}
        session = terminal_service.start_day(g.terminal, data.get("opening_float_cents"))
        return jsonify({"session": session.to_dict()}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to start business day")
        return jsonify({"error": "Internal server error"}), 500


@days_bp.get("/active")
@require_auth
def active_day_route():
    session = day_service.get_active_session(g.current_user.id)
    return jsonify({
        "session": session.to_dict() if session else None,
        "next_invoice_no": day_service.next_invoice_number(session) if session else None,
    }), 200


@days_bp.get("/preview")
@require_auth
def preview_day_end_route():
    """
    Day-end figures before confirmation. Admins may pass ?session_id= to
    preview another user's open day.
    """
    try:
        session_id = request.args.get("session_id")
        if session_id and is_admin():
            data = reconciliation_service.preview_day_end(
                coerce_int(session_id, "session_id"), manager_override=True
            )
        else:
            active = day_service.get_active_session(g.current_user.id)
            if not active:
                raise day_service.NoActiveSession("No active session")
            data = reconciliation_service.preview_day_end(active.id, user_id=g.current_user.id)
        return jsonify({"preview": data}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to preview day end")
        return jsonify({"error": "Internal server error"}), 500


@days_bp.post("/end")
@require_auth
def end_day_route():
    """
    Reconcile and close the business day.

    Request body: {"cash_in_hand_cents": 1250000, "session_id": 7 (admin only)}

    The response carries warnings for journal/backup/email failures; the day
    is closed regardless.
    """
    try:
        data = request.get_json(silent=True) or {}
        cash = data.get("cash_in_hand_cents")
        other_session = data.get("session_id")

        if other_session not in (None, "") and is_admin():
            session_id = coerce_int(other_session, "session_id")
            if session_id != g.terminal.session_id:
                report = reconciliation_service.reconcile(
                    session_id, cash, user_id=g.current_user.id, manager_override=True
                )
                return jsonify({"report": report.to_dict()}), 200

        report = terminal_service.end_day(g.terminal, cash)
        return jsonify({"report": report.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to end business day")
        return jsonify({"error": "Internal server error"}), 500


@days_bp.put("/<int:session_id>/float")
@require_auth
@require_role(ROLE_ADMIN)
def adjust_float_route(session_id: int):
    try:
        data = request.get_json(silent=True) or {}
        session = day_service.adjust_float(session_id, data.get("float_cash_cents"))
        return jsonify({"session": session.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust float")
        return jsonify({"error": "Internal server error"}), 500


@days_bp.get("")
@require_auth
def list_days_route():
    """Admins see every user's days; staff see their own."""
    try:
        user_id = None if is_admin() else g.current_user.id
        limit = coerce_int(request.args.get("limit") or 100, "limit")
        sessions = day_service.list_sessions(status=request.args.get("status"), user_id=user_id, limit=limit)
        return jsonify({"sessions": [s.to_dict() for s in sessions]}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@days_bp.get("/reports")
@require_auth
def list_reports_route():
    try:
        reports = reconciliation_service.list_reports(
            start=parse_date_arg(request.args.get("start"), "start"),
            end=parse_date_arg(request.args.get("end"), "end"),
            user_id=None if is_admin() else g.current_user.id,
        )
        return jsonify({"reports": [r.to_dict() for r in reports]}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@days_bp.get("/<int:session_id>/report")
@require_auth
def get_report_route(session_id: int):
    try:
        record = reconciliation_service.get_report(session_id)
        if record.user_id != g.current_user.id and not is_admin():
            return jsonify({"error": "Permission denied"}), 403
        return jsonify({"report": record.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
