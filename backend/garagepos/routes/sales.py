# Overview: Flask API routes for the sales ledger and credit settlement.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, is_admin
from ..services import sales_service
from ..validation import ServiceError, coerce_int, parse_date_arg


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    Query params: start, end (YYYY-MM-DD), session_id, vehicle_no,
    payment_method, unpaid=1, limit. Staff only see their own sales.
    """
    try:
        args = request.args
        sales = sales_service.list_sales(
            start=parse_date_arg(args.get("start"), "start"),
            end=parse_date_arg(args.get("end"), "end"),
            session_id=coerce_int(args["session_id"], "session_id") if args.get("session_id") else None,
            user_id=None if is_admin() else g.current_user.id,
            vehicle_no=args.get("vehicle_no"),
            payment_method=args.get("payment_method"),
            unpaid_only=args.get("unpaid") in ("1", "true"),
            limit=coerce_int(args["limit"], "limit") if args.get("limit") else None,
        )
        return jsonify({"sales": [s.to_dict() for s in sales]}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        if sale.user_id != g.current_user.id and not is_admin():
            return jsonify({"error": "Permission denied"}), 403
        return jsonify({"sale": sale.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.post("/<int:sale_id>/mark-paid")
@require_auth
def mark_paid_route(sale_id: int):
    try:
        sale = sales_service.mark_as_paid(sale_id)
        return jsonify({"sale": sale.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to mark sale as paid")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/vehicles/<vehicle_no>/history")
@require_auth
def vehicle_history_route(vehicle_no: str):
    try:
        sales = sales_service.vehicle_history(vehicle_no)
        return jsonify({
            "vehicle_no": vehicle_no.strip().upper(),
            "sales": [s.to_dict() for s in sales],
            "outstanding_credit_cents": sales_service.outstanding_credit_cents(vehicle_no=vehicle_no),
        }), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
