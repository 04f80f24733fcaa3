"""
Auth service tests: password hashing, login tokens, user lifecycle.
"""

from datetime import timedelta

import pytest

from garagepos.models import LoginToken, User
from garagepos.services import auth_service
from garagepos.time_utils import utcnow
from garagepos.validation import ConflictError, ValidationError


class TestPasswords:
    def test_hash_is_not_plaintext(self, app):
        hashed = auth_service.hash_password("1234")
        assert hashed != "1234"
        assert auth_service.verify_password("1234", hashed)
        assert not auth_service.verify_password("4321", hashed)

    def test_short_password_rejected(self, app):
        with pytest.raises(ValidationError):
            auth_service.hash_password("123")

    def test_malformed_hash_does_not_raise(self, app):
        assert auth_service.verify_password("1234", "not-a-bcrypt-hash") is False


class TestUsers:
    def test_default_admin_created_once(self, db_session):
        first = auth_service.ensure_default_admin()
        second = auth_service.ensure_default_admin()

        assert first.id == second.id
        assert first.role == "admin"
        assert auth_service.authenticate("admin", "1234").id == first.id

    def test_duplicate_username(self, make_user):
        make_user("kamal")
        with pytest.raises(ConflictError):
            make_user("kamal")

    def test_unknown_role(self, make_user):
        with pytest.raises(ValidationError):
            make_user("kamal", role="owner")

    def test_builtin_admin_cannot_be_deleted(self, admin_user, staff_user):
        with pytest.raises(ConflictError):
            auth_service.delete_user(admin_user.id, acting_user_id=staff_user.id)

    def test_deleted_user_keeps_history_but_cannot_log_in(self, db_session, admin_user, staff_user):
        auth_service.delete_user(staff_user.id, acting_user_id=admin_user.id)

        assert db_session.get(User, staff_user.id).is_active is False
        assert auth_service.authenticate("kamal", "1234") is None


class TestTokens:
    def test_token_stored_hashed(self, db_session, staff_user):
        record, plaintext = auth_service.issue_token(staff_user.id)

        assert record.token_hash == auth_service.hash_token(plaintext)
        assert db_session.query(LoginToken).filter_by(token_hash=plaintext).count() == 0
        assert auth_service.validate_token(plaintext).user.id == staff_user.id

    def test_expired_token(self, db_session, staff_user):
        record, plaintext = auth_service.issue_token(staff_user.id)
        record.expires_at = utcnow() - timedelta(seconds=1)
        db_session.commit()

        assert auth_service.validate_token(plaintext) is None

    def test_revoked_token(self, staff_user):
        _record, plaintext = auth_service.issue_token(staff_user.id)

        assert auth_service.revoke_token(plaintext) is True
        assert auth_service.revoke_token(plaintext) is False
        assert auth_service.validate_token(plaintext) is None
