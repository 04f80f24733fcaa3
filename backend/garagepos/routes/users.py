# Overview: Flask API routes for user management (admin only).

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN, ROLE_STAFF
from ..services import auth_service, terminal_service
from ..validation import ServiceError


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def list_users_route():
    users = auth_service.list_users()
    return jsonify({"users": [u.to_dict() for u in users]}), 200


@users_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_user_route():
    """
    Request body: {"username": "...", "password": "...", "role": "staff"|"admin"}
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.create_user(
            data.get("username"),
            data.get("password"),
            role=data.get("role") or ROLE_STAFF,
        )
        return jsonify({"user": user.to_dict()}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.delete("/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_user_route(user_id: int):
    try:
        auth_service.delete_user(user_id, acting_user_id=g.current_user.id)
        terminal_service.registry().drop_user(user_id)
        return jsonify({"message": "User removed"}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.put("/<int:user_id>/password")
@require_auth
@require_role(ROLE_ADMIN)
def reset_password_route(user_id: int):
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.change_password(user_id, data.get("password"))
        return jsonify({"user": user.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reset password")
        return jsonify({"error": "Internal server error"}), 500
