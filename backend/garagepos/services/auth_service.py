# Overview: Users, password hashing and bearer login tokens.

"""
Authentication Service

Every sale, expense and business day is attributed to a user, so the till
requires a login. Passwords are hashed with bcrypt; login tokens are random
64-char hex strings stored as SHA-256 hashes (high-entropy input, fast hash).

The built-in "admin" account can never be deleted.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User, LoginToken
from ..models.auth import ROLES, ROLE_ADMIN, ROLE_STAFF
from ..validation import ValidationError, ConflictError, NotFoundError
from garagepos.time_utils import utcnow


BUILTIN_ADMIN_USERNAME = "admin"
MIN_PASSWORD_LENGTH = 4


@dataclass
class LoginContext:
    """Who is behind a validated token."""
    user: User
    token: LoginToken


def validate_password_strength(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Returns True if password matches hash, False otherwise."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def create_user(username: str, password: str, role: str = ROLE_STAFF) -> User:
    username = (username or "").strip()
    if not username:
        raise ValidationError("username is required")
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(sorted(ROLES))}")

    if db.session.query(User).filter_by(username=username).first():
        raise ConflictError("Username already exists", {"username": username})

    user = User(username=username, password_hash=hash_password(password), role=role, is_active=True)
    db.session.add(user)
    db.session.commit()
    current_app.logger.info("User %s created with role %s", username, role)
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.username.asc()).all()


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def delete_user(user_id: int, *, acting_user_id: int) -> None:
    user = get_user(user_id)
    if user.username == BUILTIN_ADMIN_USERNAME:
        raise ConflictError("The built-in admin account cannot be deleted")
    if user.id == acting_user_id:
        raise ConflictError("You cannot delete your own account")

    # Keep history attributable: deactivate and revoke instead of a hard delete
    user.is_active = False
    db.session.query(LoginToken).filter_by(user_id=user.id, is_revoked=False).update(
        {"is_revoked": True, "revoked_at": utcnow()}, synchronize_session=False
    )
    db.session.commit()
    current_app.logger.info("User %s deactivated", user.username)


def change_password(user_id: int, new_password: str) -> User:
    user = get_user(user_id)
    user.password_hash = hash_password(new_password)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Returns the active user for a username/password pair, else None.

    The same None is returned for unknown users and wrong passwords.
    """
    user = db.session.query(User).filter_by(username=(username or "").strip()).first()
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def issue_token(user_id: int) -> tuple[LoginToken, str]:
    """
    Returns (token_record, plaintext_token).
    Only the hash is stored.
    """
    plaintext = generate_token()
    now = utcnow()
    ttl = timedelta(hours=current_app.config.get("LOGIN_TOKEN_TTL_HOURS", 24))
    record = LoginToken(
        user_id=user_id,
        token_hash=hash_token(plaintext),
        created_at=now,
        last_used_at=now,
        expires_at=now + ttl,
        is_revoked=False,
    )
    db.session.add(record)
    db.session.commit()
    return record, plaintext


def validate_token(token: str) -> LoginContext | None:
    """
    Returns None if the token is unknown, revoked, expired, or its user was
    deactivated. Touches last_used_at on success.
    """
    if not token:
        return None
    record = db.session.query(LoginToken).filter_by(token_hash=hash_token(token)).first()
    if not record or record.is_revoked:
        return None

    now = utcnow()
    if record.expires_at and record.expires_at.replace(tzinfo=None) <= now:
        return None

    user = db.session.get(User, record.user_id)
    if not user or not user.is_active:
        return None

    record.last_used_at = now
    db.session.commit()
    return LoginContext(user=user, token=record)


def revoke_token(token: str) -> bool:
    record = db.session.query(LoginToken).filter_by(token_hash=hash_token(token)).first()
    if not record or record.is_revoked:
        return False
    record.is_revoked = True
    record.revoked_at = utcnow()
    db.session.commit()
    return True


def ensure_default_admin(password: str = "1234") -> User:
    """Create the built-in admin on first run; returns the existing one otherwise."""
    user = db.session.query(User).filter_by(username=BUILTIN_ADMIN_USERNAME).first()
    if user:
        return user
    return create_user(BUILTIN_ADMIN_USERNAME, password, role=ROLE_ADMIN)
