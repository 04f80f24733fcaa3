# Overview: Flask API routes for the POS screen; cart editing, vehicle lookup and checkout.

# backend/garagepos/routes/pos.py
"""
POS API Routes

The cart lives on the caller's terminal (g.terminal) and every endpoint
that changes it returns the whole cart so the screen can redraw.

Checkout request body:
{
    "vehicle_no": "CAB-1234",           required
    "customer_name": "Nimal",           optional (walk-in)
    "customer_phone": "0771234567",     optional ("-" for walk-in)
    "mileage": 45000,                   optional
    "payment_method": "cash"|"credit",
    "cash_received_cents": 1000000      cash only
}
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..services import catalog_service, day_service, sales_service, terminal_service
from ..validation import ServiceError


pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")


def _cart_response(status: int = 200):
    return jsonify({"cart": g.terminal.cart.to_dict()}), status


@pos_bp.get("/catalog")
@require_auth
def catalog_route():
    """Items and services, re-read for this terminal and filtered for the grid."""
    terminal_service.refresh_catalog(g.terminal)
    catalog = g.terminal.catalog
    items = catalog.search(request.args.get("q"), request.args.get("category"))
    return jsonify({
        "items": [
            {
                "id": i.id,
                "part_name": i.part_name,
                "part_number": i.part_number,
                "category": i.category,
                "price_cents": i.price_cents,
                "stock": i.stock,
            }
            for i in items
        ],
        "services": [{"id": s.id, "name": s.name, "price_cents": s.price_cents} for s in catalog.services],
        "categories": ["All"] + catalog.categories(),
    }), 200


@pos_bp.post("/catalog/refresh")
@require_auth
def refresh_catalog_route():
    terminal_service.refresh_catalog(g.terminal)
    return jsonify({"message": "Catalog refreshed", "item_count": len(g.terminal.catalog.items)}), 200


@pos_bp.get("/cart")
@require_auth
def get_cart_route():
    return _cart_response()


@pos_bp.post("/cart/items")
@require_auth
def add_item_route():
    try:
        data = request.get_json(silent=True) or {}
        terminal_service.add_item(g.terminal, data.get("item_id"))
        return _cart_response()

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add item to cart")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.post("/cart/scan")
@require_auth
def scan_route():
    """Barcode scanner input: {"part_number": "..."} adds one unit."""
    try:
        data = request.get_json(silent=True) or {}
        terminal_service.scan_part_number(g.terminal, data.get("part_number"))
        return _cart_response()

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to scan item")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.post("/cart/services")
@require_auth
def add_service_route():
    try:
        data = request.get_json(silent=True) or {}
        terminal_service.add_service(g.terminal, data.get("service_id"))
        return _cart_response()

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add service to cart")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.post("/cart/charges")
@require_auth
def add_charge_route():
    try:
        data = request.get_json(silent=True) or {}
        terminal_service.add_charge(g.terminal, data.get("name"), data.get("amount_cents"))
        return _cart_response()

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add charge to cart")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.post("/cart/credit")
@require_auth
def add_credit_route():
    """Add the vehicle's outstanding credit as one settlement line."""
    try:
        data = request.get_json(silent=True) or {}
        terminal_service.add_outstanding_credit(g.terminal, data.get("vehicle_no"))
        return _cart_response()

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add credit to cart")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.delete("/cart/lines/<int:index>")
@require_auth
def remove_line_route(index: int):
    try:
        terminal_service.remove_line(g.terminal, index)
        return _cart_response()

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@pos_bp.put("/cart/discount")
@require_auth
def set_discount_route():
    try:
        data = request.get_json(silent=True) or {}
        terminal_service.set_discount(g.terminal, data.get("discount_cents"))
        return _cart_response()

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@pos_bp.post("/cart/redeem")
@require_auth
def redeem_points_route():
    """{"customer_phone": "...", "points": 120} ; points omitted = maximum redeemable."""
    try:
        data = request.get_json(silent=True) or {}
        terminal_service.redeem_points(g.terminal, data.get("customer_phone"), data.get("points"))
        return _cart_response()

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to redeem points")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.delete("/cart")
@require_auth
def clear_cart_route():
    terminal_service.clear_cart(g.terminal)
    return _cart_response()


@pos_bp.get("/vehicles/<vehicle_no>")
@require_auth
def vehicle_lookup_route(vehicle_no: str):
    data = sales_service.vehicle_lookup(vehicle_no, phone=request.args.get("phone"))
    return jsonify(data), 200


@pos_bp.get("/next-invoice")
@require_auth
def next_invoice_route():
    session = day_service.get_active_session(g.current_user.id)
    if not session:
        return jsonify({"error": "No active session"}), 409
    return jsonify({"session_id": session.id, "next_invoice_no": day_service.next_invoice_number(session)}), 200


@pos_bp.post("/checkout")
@require_auth
def checkout_route():
    try:
        data = request.get_json(silent=True)
        sale = terminal_service.checkout_cart(g.terminal, data)
        return jsonify({"sale": sale.to_dict(), "cart": g.terminal.cart.to_dict()}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to checkout")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.get("/categories")
@require_auth
def categories_route():
    return jsonify({"categories": catalog_service.list_categories()}), 200
