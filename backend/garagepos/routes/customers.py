# Overview: Flask API routes for customers, vehicle profiles and service reminders.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth
from ..services import customer_service
from ..validation import ServiceError


customers_bp = Blueprint("customers", __name__, url_prefix="/api")


# =============================================================================
# CUSTOMERS
# =============================================================================

@customers_bp.get("/customers")
@require_auth
def list_customers_route():
    customers = customer_service.list_customers(search=request.args.get("q"))
    return jsonify({
        "customers": [c.to_dict() for c in customers],
        "overview": customer_service.customer_overview(),
    }), 200


@customers_bp.put("/customers")
@require_auth
def upsert_customer_route():
    """Request body: {"phone": "...", "name": "...", "vehicle_no": "...", "points": 10}"""
    try:
        customer, created = customer_service.upsert_customer(request.get_json(silent=True))
        return jsonify({"customer": customer.to_dict(), "created": created}), 201 if created else 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to save customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/customers/<phone>")
@require_auth
def customer_details_route(phone: str):
    try:
        return jsonify(customer_service.customer_details(phone)), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


# =============================================================================
# VEHICLE PROFILES
# =============================================================================

@customers_bp.get("/vehicles")
@require_auth
def list_vehicles_route():
    vehicles = customer_service.list_vehicles(search=request.args.get("q"))
    return jsonify({"vehicles": [v.to_dict(include_images=False) for v in vehicles]}), 200


@customers_bp.get("/vehicles/<vehicle_no>")
@require_auth
def get_vehicle_route(vehicle_no: str):
    try:
        return jsonify({"vehicle": customer_service.get_vehicle(vehicle_no).to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.put("/vehicles")
@require_auth
def upsert_vehicle_route():
    try:
        vehicle = customer_service.upsert_vehicle(request.get_json(silent=True))
        return jsonify({"vehicle": vehicle.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to save vehicle")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.post("/vehicles/<vehicle_no>/images")
@require_auth
def add_vehicle_images_route(vehicle_no: str):
    """Request body: {"images": ["data:image/jpeg;base64,..."], "customer_phone": "..."}"""
    try:
        data = request.get_json(silent=True) or {}
        vehicle = customer_service.add_vehicle_images(
            vehicle_no, data.get("images"), customer_phone=data.get("customer_phone")
        )
        return jsonify({"vehicle": vehicle.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add vehicle images")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.delete("/vehicles/<vehicle_no>/images/<int:index>")
@require_auth
def remove_vehicle_image_route(vehicle_no: str, index: int):
    try:
        vehicle = customer_service.remove_vehicle_image(vehicle_no, index)
        return jsonify({"vehicle": vehicle.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


# =============================================================================
# SERVICE REMINDERS
# =============================================================================

@customers_bp.get("/reminders")
@require_auth
def reminders_route():
    """Query params: q (vehicle or name), filter = all | overdue | upcoming."""
    try:
        reminders = customer_service.service_reminders(
            search=request.args.get("q"),
            status=request.args.get("filter") or "all",
        )
        return jsonify({
            "reminders": [r.to_dict() for r in reminders],
            "overdue_count": sum(1 for r in reminders if r.is_overdue),
        }), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
