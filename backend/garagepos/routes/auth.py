# Overview: Flask API routes for login, logout and the current terminal.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..services import auth_service, terminal_service
from ..validation import ServiceError


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and open a terminal.

    Request body: {"username": "...", "password": "..."}
    Returns the user, a bearer token and the terminal (restored open day,
    empty cart).
    """
    try:
        data = request.get_json(silent=True) or {}
        username = (data.get("username") or "").strip()
        password = data.get("password")

        if not username or not password:
            return jsonify({"error": "Please enter both username and password"}), 400

        user = auth_service.authenticate(username, password)
        if not user:
            return jsonify({"error": "Invalid username or password"}), 401

        _record, token = auth_service.issue_token(user.id)
        terminal = terminal_service.open_terminal(token, user)

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "terminal": terminal.to_dict(),
            "message": "Login successful",
        }), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the token and drop the terminal (its cart is discarded)."""
    try:
        terminal_service.close_terminal(g.token)
        auth_service.revoke_token(g.token)
        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({
        "user": g.current_user.to_dict(),
        "terminal": g.terminal.to_dict(),
    }), 200


@auth_bp.post("/password")
@require_auth
def change_own_password_route():
    try:
        data = request.get_json(silent=True) or {}
        current = data.get("current_password")
        new_password = data.get("new_password")
        if not auth_service.verify_password(current, g.current_user.password_hash):
            return jsonify({"error": "Current password is incorrect"}), 400
        auth_service.change_password(g.current_user.id, new_password)
        return jsonify({"message": "Password updated"}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Internal server error"}), 500
