# Overview: Flask API routes for expenses.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN
from ..services import expense_service
from ..validation import ServiceError, parse_date_arg


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.get("")
@require_auth
def list_expenses_route():
    try:
        expenses = expense_service.list_expenses(
            start=parse_date_arg(request.args.get("start"), "start"),
            end=parse_date_arg(request.args.get("end"), "end"),
            search=request.args.get("q"),
        )
        return jsonify({
            "expenses": [expense.to_dict() for expense in expenses],
            "totals": expense_service.expense_totals(),
        }), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@expenses_bp.post("")
@require_auth
def create_expense_route():
    """Request body: {"category": "Utilities", "amount_cents": 250000, "description": "..."}"""
    try:
        expense = expense_service.create_expense(request.get_json(silent=True), user_id=g.current_user.id)
        return jsonify({"expense": expense.to_dict()}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.delete("/<int:expense_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_expense_route(expense_id: int):
    try:
        expense_service.delete_expense(expense_id)
        return jsonify({"message": "Expense deleted"}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
