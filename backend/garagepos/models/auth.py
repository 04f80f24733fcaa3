from __future__ import annotations

from ..extensions import db
from garagepos.time_utils import to_utc_z


ROLE_ADMIN = "admin"
ROLE_STAFF = "staff"
ROLES = {ROLE_ADMIN, ROLE_STAFF}


class User(db.Model):
    """
    Till operator.

    Role gates navigation only: admins manage catalog, purchasing, users and
    settings; staff run the POS and their own business day.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(16), nullable=False, default=ROLE_STAFF)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class LoginToken(db.Model):
    """
    Bearer token issued at login.

    Tokens are stored hashed (SHA-256); the plaintext only exists on the
    client. Revoked at logout.
    """
    __tablename__ = "login_tokens"
    __table_args__ = (
        db.Index("ix_login_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", backref=db.backref("login_tokens", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at) if self.last_used_at else None,
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }
