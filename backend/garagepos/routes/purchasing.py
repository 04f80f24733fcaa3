# Overview: Flask API routes for suppliers, supplier payments and GRNs.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN
from ..services import purchasing_service, terminal_service
from ..validation import ServiceError, parse_date_arg


purchasing_bp = Blueprint("purchasing", __name__, url_prefix="/api/purchasing")


# =============================================================================
# SUPPLIERS
# =============================================================================

@purchasing_bp.get("/suppliers")
@require_auth
@require_role(ROLE_ADMIN)
def list_suppliers_route():
    balances = purchasing_service.supplier_balances()
    return jsonify({
        "suppliers": balances,
        "total_outstanding_cents": sum(s["outstanding_cents"] for s in balances),
    }), 200


@purchasing_bp.post("/suppliers")
@require_auth
@require_role(ROLE_ADMIN)
def create_supplier_route():
    try:
        supplier = purchasing_service.create_supplier(request.get_json(silent=True))
        return jsonify({"supplier": supplier.to_dict()}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500


@purchasing_bp.put("/suppliers/<int:supplier_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_supplier_route(supplier_id: int):
    try:
        supplier = purchasing_service.update_supplier(supplier_id, request.get_json(silent=True))
        return jsonify({"supplier": supplier.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update supplier")
        return jsonify({"error": "Internal server error"}), 500


@purchasing_bp.delete("/suppliers/<int:supplier_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_supplier_route(supplier_id: int):
    try:
        purchasing_service.delete_supplier(supplier_id)
        return jsonify({"message": "Supplier deleted"}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@purchasing_bp.get("/suppliers/<int:supplier_id>/ledger")
@require_auth
@require_role(ROLE_ADMIN)
def supplier_ledger_route(supplier_id: int):
    try:
        return jsonify(purchasing_service.supplier_ledger(supplier_id)), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@purchasing_bp.post("/suppliers/<int:supplier_id>/payments")
@require_auth
@require_role(ROLE_ADMIN)
def pay_supplier_route(supplier_id: int):
    """Request body: {"amount_cents": 500000}; allocated to the oldest GRNs first."""
    try:
        data = request.get_json(silent=True) or {}
        result = purchasing_service.pay_supplier(supplier_id, data.get("amount_cents"))
        return jsonify({"payment": result.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record supplier payment")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# GRN
# =============================================================================

@purchasing_bp.get("/grns")
@require_auth
@require_role(ROLE_ADMIN)
def list_grns_route():
    try:
        supplier_id = request.args.get("supplier_id", type=int)
        grns = purchasing_service.list_grns(
            start=parse_date_arg(request.args.get("start"), "start"),
            end=parse_date_arg(request.args.get("end"), "end"),
            supplier_id=supplier_id,
        )
        return jsonify({"grns": [grn.to_dict() for grn in grns]}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@purchasing_bp.post("/grns")
@require_auth
@require_role(ROLE_ADMIN)
def create_grn_route():
    """
    Request body:
    {
        "supplier_id": 3,
        "reference": "INV-889",
        "paid_cents": 0,
        "items": [{"item_id": 1, "qty": 10, "cost_cents": 12000}]
    }
    """
    try:
        grn = purchasing_service.create_grn(request.get_json(silent=True), user_id=g.current_user.id)
        terminal_service.refresh_catalog(g.terminal)
        return jsonify({"grn": grn.to_dict()}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create GRN")
        return jsonify({"error": "Internal server error"}), 500


@purchasing_bp.get("/grns/<int:grn_id>")
@require_auth
@require_role(ROLE_ADMIN)
def get_grn_route(grn_id: int):
    try:
        return jsonify({"grn": purchasing_service.get_grn(grn_id).to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@purchasing_bp.delete("/grns/<int:grn_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_grn_route(grn_id: int):
    try:
        purchasing_service.delete_grn(grn_id)
        return jsonify({"message": "GRN deleted. Stock was not changed."}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@purchasing_bp.get("/grns/report")
@require_auth
@require_role(ROLE_ADMIN)
def grn_report_route():
    try:
        report = purchasing_service.grn_report(
            parse_date_arg(request.args.get("start"), "start"),
            parse_date_arg(request.args.get("end"), "end"),
        )
        return jsonify(report), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
