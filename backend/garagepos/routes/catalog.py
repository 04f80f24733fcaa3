# Overview: Flask API routes for inventory items and service definitions.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN
from ..services import catalog_service, terminal_service
from ..validation import ServiceError


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


# =============================================================================
# INVENTORY ITEMS
# =============================================================================

@catalog_bp.get("/items")
@require_auth
def list_items_route():
    items = catalog_service.list_items(search=request.args.get("q"), category=request.args.get("category"))
    return jsonify({"items": [i.to_dict() for i in items]}), 200


@catalog_bp.get("/items/<int:item_id>")
@require_auth
def get_item_route(item_id: int):
    try:
        return jsonify({"item": catalog_service.get_item(item_id).to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@catalog_bp.get("/items/by-part-number/<part_number>")
@require_auth
def find_by_part_number_route(part_number: str):
    item = catalog_service.find_item_by_part_number(part_number)
    if not item:
        return jsonify({"error": "Item not found!"}), 404
    return jsonify({"item": item.to_dict()}), 200


@catalog_bp.post("/items")
@require_auth
@require_role(ROLE_ADMIN)
def create_item_route():
    """
    Request body:
    {
        "part_name": "Oil Filter",
        "part_number": "OF-100",
        "category": "Filters",
        "price_cents": 150000,
        "buying_price_cents": 110000,
        "stock": 10
    }
    """
    try:
        item = catalog_service.create_item(request.get_json(silent=True))
        terminal_service.refresh_catalog(g.terminal)
        return jsonify({"item": item.to_dict()}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create item")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.put("/items/<int:item_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_item_route(item_id: int):
    try:
        item = catalog_service.update_item(item_id, request.get_json(silent=True))
        terminal_service.refresh_catalog(g.terminal)
        return jsonify({"item": item.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update item")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.delete("/items/<int:item_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_item_route(item_id: int):
    try:
        catalog_service.delete_item(item_id)
        terminal_service.refresh_catalog(g.terminal)
        return jsonify({"message": "Item deleted"}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete item")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.get("/categories")
@require_auth
def list_categories_route():
    return jsonify({"categories": catalog_service.list_categories()}), 200


# =============================================================================
# SERVICES
# =============================================================================

@catalog_bp.get("/services")
@require_auth
def list_services_route():
    return jsonify({"services": [s.to_dict() for s in catalog_service.list_services()]}), 200


@catalog_bp.post("/services")
@require_auth
@require_role(ROLE_ADMIN)
def create_service_route():
    """Request body: {"service_name": "Body Wash", "cost_cents": 150000}"""
    try:
        service = catalog_service.create_service(request.get_json(silent=True))
        terminal_service.refresh_catalog(g.terminal)
        return jsonify({"service": service.to_dict()}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create service")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.put("/services/<int:service_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_service_route(service_id: int):
    try:
        service = catalog_service.update_service(service_id, request.get_json(silent=True))
        terminal_service.refresh_catalog(g.terminal)
        return jsonify({"service": service.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update service")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.delete("/services/<int:service_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_service_route(service_id: int):
    try:
        catalog_service.delete_service(service_id)
        terminal_service.refresh_catalog(g.terminal)
        return jsonify({"message": "Service deleted"}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete service")
        return jsonify({"error": "Internal server error"}), 500
