# Overview: Authentication and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .models.auth import ROLE_ADMIN
from .services import auth_service, terminal_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid login token.

    Sets on flask.g:
    - g.current_user: the authenticated User
    - g.token: the bearer token (plaintext, request-scoped only)
    - g.terminal: the user's TerminalState, recreated if the server restarted
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = auth_service.validate_token(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.token = token
        g.terminal = terminal_service.terminal_for(token, context.user)

        return f(*args, **kwargs)

    return decorated_function


def require_role(role: str):
    """Require the authenticated user to have the given role. Admins pass every check."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"error": "Authentication required"}), 401
            if user.role != role and user.role != ROLE_ADMIN:
                return jsonify({"error": "Permission denied", "required_role": role}), 403
            return f(*args, **kwargs)

        return decorated_function

    return decorator


def is_admin() -> bool:
    user = getattr(g, "current_user", None)
    return bool(user and user.role == ROLE_ADMIN)
