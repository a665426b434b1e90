"""
Auth tests - password hashing, session tokens, login, the 401 shapes,
registration and the per-request activity entry.
"""

from datetime import datetime, timedelta, timezone

import jwt as pyjwt
import pytest

from portal.models import db
from portal.models.audit import ActivityLog
from portal.models.auth import User
from portal.services.jwt_service import (
    decode_session_token,
    generate_session_token,
    verify_session,
)
from portal.utils.crypto import hash_password, verify_password


def _expired_token(app, user_id: str) -> str:
    payload = {
        "sub": user_id,
        "type": "access",
        "iat": datetime.now(timezone.utc) - timedelta(days=8),
        "exp": datetime.now(timezone.utc) - timedelta(days=1),
    }
    return pyjwt.encode(payload, app.config["JWT_SECRET_KEY"], algorithm="HS256")


# ═══════════════════════════════════════════════════════════════
# BLOCK 1: Crypto - bcrypt
# ═══════════════════════════════════════════════════════════════

class TestCrypto:
    def test_hash_and_verify(self):
        pw = "MySecretPassword123!"
        hashed = hash_password(pw)
        assert hashed != pw
        assert hashed.startswith("$2b$")
        assert verify_password(pw, hashed) is True

    def test_wrong_password(self):
        hashed = hash_password("correct")
        assert verify_password("wrong", hashed) is False

    def test_empty_hash(self):
        assert verify_password("anything", "") is False
        assert verify_password("anything", None) is False

    def test_non_string_password_never_verifies(self):
        hashed = hash_password("1234567")
        assert verify_password(1234567, hashed) is False
        assert verify_password(None, hashed) is False

    def test_different_hashes_per_call(self):
        h1 = hash_password("same")
        h2 = hash_password("same")
        assert h1 != h2  # bcrypt uses random salt
        assert verify_password("same", h1)
        assert verify_password("same", h2)


# ═══════════════════════════════════════════════════════════════
# BLOCK 2: JWT Service
# ═══════════════════════════════════════════════════════════════

class TestJWTService:
    def test_round_trip(self, app):
        token = generate_session_token("user-42")
        payload = decode_session_token(token)
        assert payload["sub"] == "user-42"
        assert payload["type"] == "access"
        assert verify_session(token) == "user-42"

    def test_lifetime_is_seven_days(self, app):
        payload = decode_session_token(generate_session_token("u"))
        assert payload["exp"] - payload["iat"] == app.config["JWT_ACCESS_EXPIRES"] == 604800

    def test_expired_token(self, app):
        token = _expired_token(app, "u")
        with pytest.raises(pyjwt.ExpiredSignatureError):
            decode_session_token(token)
        assert verify_session(token) is None

    def test_wrong_type(self, app):
        token = pyjwt.encode(
            {"sub": "u", "type": "refresh", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            app.config["JWT_SECRET_KEY"], algorithm="HS256",
        )
        assert verify_session(token) is None

    def test_wrong_signature(self, app):
        token = pyjwt.encode(
            {"sub": "u", "type": "access", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            "some-other-secret-that-is-long-enough-for-hs256", algorithm="HS256",
        )
        assert verify_session(token) is None

    def test_garbage(self, app):
        assert verify_session("not.a.valid.jwt.token") is None
        assert verify_session("") is None


# ═══════════════════════════════════════════════════════════════
# BLOCK 3: Login
# ═══════════════════════════════════════════════════════════════

class TestLogin:
    def test_login_success(self, client, client_user):
        res = client.post("/api/v1/auth/login", json={
            "email": "Cora.Client@acme.com", "password": "Secret123!",
        })
        assert res.status_code == 200
        body = res.get_json()
        assert body["token_type"] == "Bearer"
        assert verify_session(body["token"]) == client_user.id
        assert body["user"]["email"] == "cora.client@acme.com"
        assert "password_hash" not in body["user"]

        db.session.refresh(client_user)
        assert client_user.last_login is not None
        assert ActivityLog.query.filter_by(user_id=client_user.id, action="LOGIN").count() == 1

    def test_wrong_password(self, client, client_user):
        res = client.post("/api/v1/auth/login", json={
            "email": "cora.client@acme.com", "password": "nope",
        })
        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid credentials"

    def test_unknown_email_same_shape(self, client):
        res = client.post("/api/v1/auth/login", json={
            "email": "ghost@acme.com", "password": "whatever",
        })
        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid credentials"

    def test_inactive_user(self, client, client_co, make_user):
        make_user(client_co, "client_viewer", "sleepy@acme.com", is_active=False)
        res = client.post("/api/v1/auth/login", json={
            "email": "sleepy@acme.com", "password": "Secret123!",
        })
        assert res.status_code == 401
        assert res.get_json()["error"] == "User not found or inactive"

    def test_missing_fields(self, client):
        res = client.post("/api/v1/auth/login", json={"email": "a@acme.com"})
        assert res.status_code == 400

    @pytest.mark.parametrize("body", [
        {"email": "cora.client@acme.com", "password": 1234567},
        {"email": ["cora.client@acme.com"], "password": "Secret123!"},
        {"email": "cora.client@acme.com", "password": {"$ne": ""}},
    ])
    def test_non_string_credentials(self, client, client_user, body):
        res = client.post("/api/v1/auth/login", json=body)
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"
        assert ActivityLog.query.filter_by(action="LOGIN").count() == 0


# ═══════════════════════════════════════════════════════════════
# BLOCK 4: Authentication error shapes
# ═══════════════════════════════════════════════════════════════

class TestAuthErrors:
    def test_no_token(self, client):
        res = client.get("/api/v1/auth/me")
        assert res.status_code == 401
        assert res.get_json() == {"error": "No token provided", "code": "ERR_NOT_AUTHENTICATED"}

    def test_not_bearer(self, client):
        res = client.get("/api/v1/auth/me", headers={"Authorization": "Basic abc"})
        assert res.get_json()["error"] == "No token provided"

    def test_invalid_token(self, client):
        res = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer garbage"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid token"

    def test_expired_token(self, app, client, client_user):
        token = _expired_token(app, client_user.id)
        res = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid token"

    def test_inactive_matches_nonexistent(self, client, client_user, auth_headers):
        ghost = client.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Bearer {generate_session_token('no-such-user')}"},
        )

        client_user.is_active = False
        db.session.commit()
        inactive = client.get("/api/v1/auth/me", headers=auth_headers(client_user))

        assert ghost.status_code == inactive.status_code == 401
        assert ghost.get_json() == inactive.get_json() == {
            "error": "User not found or inactive",
            "code": "ERR_NOT_AUTHENTICATED",
        }

    def test_forbidden_is_distinct(self, client, client_viewer_user, auth_headers):
        res = client.post("/api/v1/companies", headers=auth_headers(client_viewer_user),
                          json={"name": "X", "type": "client"})
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"


# ═══════════════════════════════════════════════════════════════
# BLOCK 5: Session endpoints
# ═══════════════════════════════════════════════════════════════

class TestSessionEndpoints:
    def test_me(self, client, partner_user, partner_co, auth_headers):
        res = client.get("/api/v1/auth/me", headers=auth_headers(partner_user))
        assert res.status_code == 200
        body = res.get_json()
        assert body["user"]["id"] == partner_user.id
        assert body["company"]["id"] == partner_co.id
        assert "users.manage" in body["permissions"]
        assert body["manageable_roles"] == ["client_editor"]

    def test_request_activity_is_recorded(self, client, client_user, auth_headers):
        client.get("/api/v1/auth/me", headers=auth_headers(client_user),
                   environ_base={"REMOTE_ADDR": "10.1.2.3"})
        entry = ActivityLog.query.filter_by(user_id=client_user.id, action="GET /api/v1/auth/me").one()
        assert entry.ip_address == "10.1.2.3"

    def test_logout(self, client, client_user, auth_headers):
        res = client.post("/api/v1/auth/logout", headers=auth_headers(client_user))
        assert res.status_code == 200
        assert ActivityLog.query.filter_by(user_id=client_user.id, action="LOGOUT").count() == 1

    def test_change_password(self, client, client_user, auth_headers):
        res = client.put("/api/v1/auth/password", headers=auth_headers(client_user), json={
            "current_password": "Secret123!", "new_password": "Brand-new-1",
        })
        assert res.status_code == 200
        db.session.refresh(client_user)
        assert verify_password("Brand-new-1", client_user.password_hash)

    def test_change_password_wrong_current(self, client, client_user, auth_headers):
        res = client.put("/api/v1/auth/password", headers=auth_headers(client_user), json={
            "current_password": "wrong", "new_password": "Brand-new-1",
        })
        assert res.status_code == 403

    def test_change_password_too_short(self, client, client_user, auth_headers):
        res = client.put("/api/v1/auth/password", headers=auth_headers(client_user), json={
            "current_password": "Secret123!", "new_password": "12345",
        })
        assert res.status_code == 400

    def test_change_password_non_string(self, client, client_user, auth_headers):
        res = client.put("/api/v1/auth/password", headers=auth_headers(client_user), json={
            "current_password": "Secret123!", "new_password": 12345678,
        })
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"
        db.session.refresh(client_user)
        assert verify_password("Secret123!", client_user.password_hash)


# ═══════════════════════════════════════════════════════════════
# BLOCK 6: Registration
# ═══════════════════════════════════════════════════════════════

class TestRegister:
    def _payload(self, company, **overrides):
        body = {
            "email": "newbie@acme.com",
            "password": "Secret123!",
            "first_name": "New",
            "last_name": "Bie",
            "company_id": company.id,
        }
        body.update(overrides)
        return body

    def test_client_viewer_role_is_forced(self, client, client_co):
        res = client.post("/api/v1/auth/register", json=self._payload(client_co, role="owner"))
        assert res.status_code == 201
        body = res.get_json()
        assert body["user"]["role"] == "client_viewer"
        assert verify_session(body["token"]) == body["user"]["id"]

    def test_partner_company_gets_partner_viewer(self, client, partner_co):
        res = client.post("/api/v1/auth/register",
                          json=self._payload(partner_co, email="fresh@initech.com"))
        assert res.status_code == 201
        assert res.get_json()["user"]["role"] == "partner_viewer"

    def test_domain_mismatch(self, client, client_co):
        res = client.post("/api/v1/auth/register",
                          json=self._payload(client_co, email="intruder@globex.com"))
        assert res.status_code == 400
        assert User.query.filter_by(email="intruder@globex.com").first() is None

    def test_owner_company_closed(self, client, owner_co):
        res = client.post("/api/v1/auth/register",
                          json=self._payload(owner_co, email="sneaky@northwind.com"))
        assert res.status_code == 403

    def test_duplicate_email(self, client, client_co, client_user):
        res = client.post("/api/v1/auth/register",
                          json=self._payload(client_co, email=client_user.email))
        assert res.status_code == 409

    def test_unknown_company(self, client, client_co):
        res = client.post("/api/v1/auth/register",
                          json=self._payload(client_co, company_id="missing"))
        assert res.status_code == 404

    def test_missing_fields(self, client):
        res = client.post("/api/v1/auth/register", json={"email": "x@acme.com"})
        assert res.status_code == 400
