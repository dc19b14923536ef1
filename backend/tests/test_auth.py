"""
Authentication tests.

Verifies:
- Protected endpoints return 401 without a valid token
- Login, logout and token revocation
- Password strength on registration
- Idle and deactivated sessions are rejected
"""

from datetime import timedelta

import pytest

from backoffice.extensions import db
from backoffice.models import SessionToken
from backoffice.services import auth_service, session_service
from backoffice.services.auth_service import PasswordValidationError
from backoffice.validation import ConflictError

from conftest import TEST_PASSWORD, get_auth_token, auth_headers


# =============================================================================
# UNAUTHENTICATED ACCESS - 401
# =============================================================================


class TestUnauthenticatedAccess:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/users"),
            ("GET", "/api/customers"),
            ("GET", "/api/customers/all"),
            ("POST", "/api/customers"),
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/orders"),
            ("POST", "/api/orders"),
            ("PUT", "/api/orders/1"),
            ("DELETE", "/api/orders/1"),
            ("GET", "/api/payments"),
            ("POST", "/api/payments/pay-order-debt"),
            ("POST", "/api/payments/pay-multiple-orders"),
            ("GET", "/api/debts/customer-debts"),
            ("GET", "/api/stocks"),
            ("POST", "/api/stocks/update-stats"),
            ("GET", "/api/dashboard/stats"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/orders", headers=auth_headers("not-a-token"))
        assert resp.status_code == 401

    def test_healthcheck_is_public(self, client, db_session):
        resp = client.get("/healthcheck")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"


# =============================================================================
# LOGIN / LOGOUT
# =============================================================================


class TestLogin:

    def test_login_returns_token(self, client, user):
        resp = client.post("/api/users/login", json={"username": "admin", "password": TEST_PASSWORD})
        assert resp.status_code == 200
        assert len(resp.json["token"]) == 64
        assert resp.json["user"]["username"] == "admin"

    def test_wrong_password(self, client, user):
        resp = client.post("/api/users/login", json={"username": "admin", "password": "Wrong123!"})
        assert resp.status_code == 401

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/users/login", json={"username": "admin"})
        assert resp.status_code == 400

    def test_token_is_stored_hashed(self, client, user):
        token = get_auth_token(client, "admin", TEST_PASSWORD)
        stored = db.session.query(SessionToken).one()
        assert stored.token_hash == session_service.hash_token(token)
        assert stored.token_hash != token

    def test_logout_revokes_token(self, client, user):
        token = get_auth_token(client, "admin", TEST_PASSWORD)
        assert client.get("/api/users", headers=auth_headers(token)).status_code == 200

        resp = client.post("/api/users/logout", headers=auth_headers(token))
        assert resp.status_code == 200
        assert client.get("/api/users", headers=auth_headers(token)).status_code == 401
        assert client.post("/api/users/logout", headers=auth_headers(token)).status_code == 401


# =============================================================================
# REGISTRATION
# =============================================================================


class TestRegister:

    def test_register(self, client, db_session):
        resp = client.post("/api/users/register", json={"username": "clerk", "password": TEST_PASSWORD})
        assert resp.status_code == 201
        assert get_auth_token(client, "clerk", TEST_PASSWORD)

    def test_weak_password(self, client, db_session):
        resp = client.post("/api/users/register", json={"username": "clerk", "password": "short"})
        assert resp.status_code == 400

    def test_duplicate_username(self, client, user):
        resp = client.post("/api/users/register", json={"username": "admin", "password": TEST_PASSWORD})
        assert resp.status_code == 409


@pytest.mark.parametrize("password", ["Sh0rt!", "alllower123!", "ALLUPPER123!", "NoDigits!!", "NoSpecial123"])
def test_password_strength_rules(password):
    with pytest.raises(PasswordValidationError):
        auth_service.validate_password_strength(password)


def test_create_user_duplicate(db_session, user):
    with pytest.raises(ConflictError):
        auth_service.create_user("admin", TEST_PASSWORD)


def test_authenticate_inactive_user(db_session, user):
    user.is_active = False
    db.session.commit()
    assert auth_service.authenticate("admin", TEST_PASSWORD) is None


# =============================================================================
# SESSION LIFETIME
# =============================================================================


class TestSessionLifetime:

    def test_idle_session_is_revoked(self, db_session, user):
        session, token = session_service.create_session(user.id)
        session.last_used_at = session.last_used_at - timedelta(hours=3)
        db.session.commit()

        assert session_service.validate_session(token) is None
        assert db.session.get(SessionToken, session.id).revoked_reason == "Idle timeout"

    def test_expired_session(self, db_session, user):
        session, token = session_service.create_session(user.id)
        session.expires_at = session.created_at - timedelta(seconds=1)
        db.session.commit()

        assert session_service.validate_session(token) is None

    def test_deactivated_user(self, db_session, user):
        _, token = session_service.create_session(user.id)
        user.is_active = False
        db.session.commit()

        assert session_service.validate_session(token) is None

    def test_valid_session_returns_user(self, db_session, user):
        _, token = session_service.create_session(user.id)
        assert session_service.validate_session(token).id == user.id
