"""
Auth System Unit & Integration Tests

Tests cover:
  - Password hashing (bcrypt)
  - JWT token generation / verification / expiry
  - Auth API: login, refresh (rotation), logout, me, password change
  - Authentication gate: 401 without a token, public prefixes
  - Permission decorators on real endpoints
"""

from datetime import datetime, timedelta, timezone

import jwt as pyjwt
import pytest

from app.models import db
from app.models.auth import Session
from app.utils.crypto import hash_password, verify_password

TEST_PASSWORD = "Secret123!"  # make_user default


def _login(client, user, password=TEST_PASSWORD):
    return client.post("/api/v1/auth/login", json={"email": user.email, "password": password})


# ═══════════════════════════════════════════════════════════════
# BLOCK 1: Crypto — bcrypt
# ═══════════════════════════════════════════════════════════════

class TestCrypto:
    def test_hash_and_verify(self):
        pw = "MySecretPassword123!"
        hashed = hash_password(pw)
        assert hashed != pw
        assert verify_password(pw, hashed) is True

    def test_wrong_password(self):
        hashed = hash_password("correct")
        assert verify_password("wrong", hashed) is False

    def test_empty_hash(self):
        assert verify_password("anything", "") is False
        assert verify_password("anything", None) is False

    def test_different_hashes_per_call(self):
        h1 = hash_password("same")
        h2 = hash_password("same")
        assert h1 != h2
        assert verify_password("same", h1)
        assert verify_password("same", h2)


# ═══════════════════════════════════════════════════════════════
# BLOCK 2: JWT Service
# ═══════════════════════════════════════════════════════════════

class TestJWTService:
    def test_access_token_subject_is_string(self, app):
        from app.services.jwt_service import decode_access_token, generate_access_token, user_id_from_payload
        token = generate_access_token(42, ["manager"])
        payload = decode_access_token(token)
        assert payload["sub"] == "42"
        assert user_id_from_payload(payload) == 42
        assert payload["roles"] == ["manager"]
        assert payload["type"] == "access"

    def test_refresh_token_hash(self, app):
        from app.services.jwt_service import decode_refresh_token, generate_refresh_token
        raw, token_hash, expires_at = generate_refresh_token(42)
        payload = decode_refresh_token(raw)
        assert payload["type"] == "refresh"
        assert len(token_hash) == 64
        assert expires_at > datetime.now(timezone.utc)

    def test_expired_token(self, app):
        from app.services.jwt_service import decode_access_token
        payload = {
            "sub": "1", "roles": [], "type": "access",
            "iat": datetime.now(timezone.utc) - timedelta(hours=2),
            "exp": datetime.now(timezone.utc) - timedelta(hours=1),
        }
        token = pyjwt.encode(payload, app.config["JWT_SECRET_KEY"] or app.config["SECRET_KEY"], algorithm="HS256")
        with pytest.raises(pyjwt.ExpiredSignatureError):
            decode_access_token(token)

    def test_wrong_token_type(self, app):
        from app.services.jwt_service import decode_access_token, generate_refresh_token
        raw, _, _ = generate_refresh_token(1)
        with pytest.raises(pyjwt.InvalidTokenError):
            decode_access_token(raw)

    def test_non_numeric_subject(self):
        from app.services.jwt_service import user_id_from_payload
        with pytest.raises(pyjwt.InvalidTokenError):
            user_id_from_payload({"sub": "alice"})


# ═══════════════════════════════════════════════════════════════
# BLOCK 3: Auth API
# ═══════════════════════════════════════════════════════════════

class TestAuthAPI:
    def test_login_success(self, client, make_user):
        user = make_user("manager")
        res = _login(client, user)
        assert res.status_code == 200
        data = res.get_json()
        assert data["token_type"] == "Bearer"
        assert data["expires_in"] > 0
        assert data["user"]["email"] == user.email
        assert data["user"]["roles"] == ["manager"]
        assert Session.query.filter_by(user_id=user.id, is_active=True).count() == 1

    def test_login_is_case_insensitive_on_email(self, client, make_user):
        user = make_user(email="mixed@example.com")
        res = client.post("/api/v1/auth/login", json={"email": "MIXED@example.com", "password": TEST_PASSWORD})
        assert res.status_code == 200
        assert res.get_json()["user"]["id"] == user.id

    def test_login_wrong_password(self, client, make_user):
        user = make_user()
        res = _login(client, user, password="WrongPass")
        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid email or password"

    def test_login_inactive(self, client, make_user):
        user = make_user(is_active=False)
        res = _login(client, user)
        assert res.status_code == 403

    def test_login_missing_fields(self, client):
        res = client.post("/api/v1/auth/login", json={})
        assert res.status_code == 400

    def test_refresh_rotates(self, client, make_user):
        user = make_user("user")
        refresh_token = _login(client, user).get_json()["refresh_token"]

        res = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        assert res.status_code == 200
        rotated = res.get_json()["refresh_token"]
        assert rotated != refresh_token

        # The old token is single-use
        res = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        assert res.status_code == 401

        res = client.post("/api/v1/auth/refresh", json={"refresh_token": rotated})
        assert res.status_code == 200

    def test_refresh_invalid_token(self, client):
        res = client.post("/api/v1/auth/refresh", json={"refresh_token": "invalid.token.here"})
        assert res.status_code == 401

    def test_refresh_deactivated_user(self, client, make_user):
        user = make_user()
        refresh_token = _login(client, user).get_json()["refresh_token"]
        user.is_active = False
        db.session.commit()
        res = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        assert res.status_code == 401

    def test_logout(self, client, make_user):
        user = make_user()
        refresh_token = _login(client, user).get_json()["refresh_token"]

        res = client.post("/api/v1/auth/logout", json={"refresh_token": refresh_token})
        assert res.status_code == 200

        res = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        assert res.status_code == 401

    def test_logout_all(self, client, make_user, auth_headers):
        user = make_user()
        _login(client, user)
        _login(client, user)
        res = client.post("/api/v1/auth/logout", json={"all": True}, headers=auth_headers(user))
        assert res.status_code == 200
        assert Session.query.filter_by(user_id=user.id, is_active=True).count() == 0

    def test_me_endpoint(self, client, make_user):
        user = make_user("user")
        token = _login(client, user).get_json()["access_token"]
        res = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 200
        data = res.get_json()
        assert data["email"] == user.email
        assert data["permissions"] == ["calendar", "dashboard", "time_logging"]

    def test_me_without_auth(self, client):
        res = client.get("/api/v1/auth/me")
        assert res.status_code == 401

    def test_change_password(self, client, make_user, auth_headers):
        user = make_user()
        headers = auth_headers(user)

        res = client.post(
            "/api/v1/auth/change-password",
            json={"current_password": "nope", "new_password": "AnotherPass1"},
            headers=headers,
        )
        assert res.status_code == 400

        res = client.post(
            "/api/v1/auth/change-password",
            json={"current_password": TEST_PASSWORD, "new_password": "short"},
            headers=headers,
        )
        assert res.status_code == 400

        res = client.post(
            "/api/v1/auth/change-password",
            json={"current_password": TEST_PASSWORD, "new_password": "AnotherPass1"},
            headers=headers,
        )
        assert res.status_code == 200
        assert _login(client, user, password="AnotherPass1").status_code == 200


# ═══════════════════════════════════════════════════════════════
# BLOCK 4: Authentication gate & permission decorators
# ═══════════════════════════════════════════════════════════════

class TestAuthGate:
    def test_protected_route_needs_token(self, client, auth_enabled):
        res = client.get("/api/v1/resources")
        assert res.status_code == 401
        assert res.get_json()["error"] == "Authentication required"

    def test_expired_token_reason(self, client, app, auth_enabled):
        payload = {
            "sub": "1", "roles": [], "type": "access",
            "iat": datetime.now(timezone.utc) - timedelta(hours=2),
            "exp": datetime.now(timezone.utc) - timedelta(hours=1),
        }
        token = pyjwt.encode(payload, app.config["JWT_SECRET_KEY"] or app.config["SECRET_KEY"], algorithm="HS256")
        res = client.get("/api/v1/resources", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Token expired"

    def test_valid_token_passes(self, client, make_user, auth_headers, auth_enabled):
        user = make_user("user")
        res = client.get("/api/v1/resources", headers=auth_headers(user))
        assert res.status_code == 200

    def test_health_is_public(self, client, auth_enabled):
        res = client.get("/api/v1/health")
        assert res.status_code == 200

    def test_login_is_public(self, client, make_user, auth_enabled):
        user = make_user()
        assert _login(client, user).status_code == 200

    def test_non_json_write_rejected(self, client):
        res = client.post("/api/v1/resources", data="name=x", content_type="application/x-www-form-urlencoded")
        assert res.status_code == 415

    def test_permission_denied_body(self, client, make_user, auth_headers):
        user = make_user("user")
        res = client.post("/api/v1/resources", json={"name": "X"}, headers=auth_headers(user))
        assert res.status_code == 403
        body = res.get_json()
        assert body["error"] == "Permission denied"
        assert body["required"] == "resource_management"
