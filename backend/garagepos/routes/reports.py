# Overview: Flask API routes for dashboards and reports; read-only.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_role, is_admin
from ..models.auth import ROLE_ADMIN
from ..services import reporting_service
from ..validation import ServiceError, coerce_int, parse_date_arg


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _range():
    return (
        parse_date_arg(request.args.get("start"), "start"),
        parse_date_arg(request.args.get("end"), "end"),
    )


@reports_bp.get("/dashboard")
@require_auth
def dashboard_route():
    """Staff see their own sales only; admins see everyone's."""
    data = reporting_service.dashboard(user_id=None if is_admin() else g.current_user.id)
    return jsonify(data), 200


@reports_bp.get("/sales")
@require_auth
@require_role(ROLE_ADMIN)
def sales_summary_route():
    """Query params: start, end, group_by = day | month | year."""
    try:
        start, end = _range()
        data = reporting_service.sales_summary(
            start=start, end=end, group_by=request.args.get("group_by") or "day"
        )
        return jsonify(data), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@reports_bp.get("/daily")
@require_auth
@require_role(ROLE_ADMIN)
def daily_report_route():
    try:
        day = parse_date_arg(request.args.get("date"), "date")
        return jsonify(reporting_service.daily_report(day)), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@reports_bp.get("/products")
@require_auth
@require_role(ROLE_ADMIN)
def product_performance_route():
    try:
        start, end = _range()
        return jsonify({"products": reporting_service.product_performance(start=start, end=end)}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@reports_bp.get("/categories")
@require_auth
@require_role(ROLE_ADMIN)
def category_breakdown_route():
    try:
        start, end = _range()
        return jsonify(reporting_service.category_breakdown(start=start, end=end)), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@reports_bp.get("/stock")
@require_auth
@require_role(ROLE_ADMIN)
def stock_report_route():
    try:
        threshold = request.args.get("threshold")
        data = reporting_service.stock_report(
            low_stock_threshold=coerce_int(threshold, "threshold") if threshold else None
        )
        return jsonify(data), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@reports_bp.get("/stock-movement")
@require_auth
@require_role(ROLE_ADMIN)
def stock_movement_route():
    return jsonify(reporting_service.stock_movement()), 200


@reports_bp.get("/snapshot")
@require_auth
@require_role(ROLE_ADMIN)
def period_snapshot_route():
    try:
        start, end = _range()
        return jsonify(reporting_service.period_snapshot(start=start, end=end)), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
