"""
tests/test_api_auth.py -- Integration tests for the /auth endpoints and the Access Guard.

Coverage:
  - POST /auth/login: success (token, no-store, no password), MISSING_CREDENTIALS,
    INVALID_CREDENTIALS, ACCOUNT_DEACTIVATED
  - GET /auth/verify: identity echo; NO_TOKEN, INVALID_TOKEN, TOKEN_EXPIRED, USER_INACTIVE
  - PUT /auth/change-password, POST /auth/refresh, POST /auth/logout
  - GET /auth/setup-status once a user exists
  - Login rate limit: 429 RATE_LIMITED with Retry-After

Fixtures used (from conftest.py):
  - api_client: (client, token, uid) -- admin username="testadmin", password="testpass123".
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from api.limiter import limiter
from core.config import get_settings


def _headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _make_user(client: TestClient, token: str, username: str, password: str = "secret123") -> str:
    resp = client.post("/user", json={"username": username, "password": password}, headers=_headers(token))
    assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
    return resp.json()["user"]["id"]


def _login(client: TestClient, username: str, password: str):
    return client.post("/auth/login", json={"username": username, "password": password})


class TestLogin:
    def test_login_success(self, api_client: tuple[TestClient, str, str]) -> None:
        """Valid credentials return a token, the user without any password field, and no-store."""
        client, _token, uid = api_client
        resp = _login(client, "testadmin", "testpass123")
        assert resp.status_code == 200, f"Expected 200, got {resp.status_code}: {resp.text}"
        assert resp.headers["cache-control"] == "no-store"
        data = resp.json()
        assert data["success"] is True
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == get_settings().token_expire_seconds
        assert data["user"]["id"] == uid
        assert "password" not in data["user"]
        assert "hashed_password" not in data["user"]

    def test_login_token_passes_guard(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, uid = api_client
        token = _login(client, "testadmin", "testpass123").json()["token"]
        resp = client.get("/auth/verify", headers=_headers(token))
        assert resp.status_code == 200
        assert resp.json()["user"]["id"] == uid

    def test_login_missing_credentials(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        resp = client.post("/auth/login", json={"username": "testadmin"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "MISSING_CREDENTIALS"

    def test_login_wrong_password(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        resp = _login(client, "testadmin", "not-the-password")
        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "INVALID_CREDENTIALS"
        assert set(body) == {"error", "code", "details"}

    def test_login_unknown_user_same_error(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        resp = _login(client, "ghost", "whatever")
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_CREDENTIALS"

    def test_login_deactivated_account(self, api_client: tuple[TestClient, str, str]) -> None:
        """Correct password on a deactivated account is 403; a wrong one stays 400."""
        client, token, _uid = api_client
        uid = _make_user(client, token, "sleepy", "secret123")
        resp = client.put(f"/user/{uid}", json={"is_active": False}, headers=_headers(token))
        assert resp.status_code == 200, resp.text

        resp = _login(client, "sleepy", "secret123")
        assert resp.status_code == 403
        assert resp.json()["code"] == "ACCOUNT_DEACTIVATED"
        assert _login(client, "sleepy", "wrong").status_code == 400


class TestAccessGuard:
    def test_verify_returns_identity(self, api_client: tuple[TestClient, str, str]) -> None:
        client, token, uid = api_client
        resp = client.get("/auth/verify", headers=_headers(token))
        assert resp.status_code == 200
        data = resp.json()
        assert data["valid"] is True
        assert data["user"] == {"id": uid, "username": "testadmin", "display_name": "Test Admin", "role_id": None}

    def test_no_token(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        resp = client.get("/auth/verify")
        assert resp.status_code == 401
        assert resp.json()["code"] == "NO_TOKEN"

    def test_non_bearer_scheme(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        resp = client.get("/auth/verify", headers={"Authorization": "Basic dXNlcjpwYXNz"})
        assert resp.json()["code"] == "NO_TOKEN"

    def test_invalid_token(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        resp = client.get("/auth/verify", headers=_headers("garbage.token.value"))
        assert resp.status_code == 401
        assert resp.json()["code"] == "INVALID_TOKEN"

    def test_expired_token(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, uid = api_client
        past = datetime.now(timezone.utc) - timedelta(days=2)
        expired = jwt.encode(
            {"sub": uid, "username": "testadmin", "iat": past, "exp": past + timedelta(days=1)},
            get_settings().secret_key,
            algorithm="HS256",
        )
        resp = client.get("/auth/verify", headers=_headers(expired))
        assert resp.status_code == 401
        assert resp.json()["code"] == "TOKEN_EXPIRED"

    def test_deactivated_user_token_rejected(self, api_client: tuple[TestClient, str, str]) -> None:
        """A still-valid token for a user deactivated afterwards fails with USER_INACTIVE."""
        client, token, _uid = api_client
        uid = _make_user(client, token, "soon-inactive")
        user_token = _login(client, "soon-inactive", "secret123").json()["token"]
        client.put(f"/user/{uid}", json={"is_active": False}, headers=_headers(token))
        resp = client.get("/auth/verify", headers=_headers(user_token))
        assert resp.status_code == 401
        assert resp.json()["code"] == "USER_INACTIVE"

    def test_deleted_user_token_rejected(self, api_client: tuple[TestClient, str, str]) -> None:
        client, token, _uid = api_client
        uid = _make_user(client, token, "soon-gone")
        user_token = _login(client, "soon-gone", "secret123").json()["token"]
        client.delete(f"/user/{uid}", headers=_headers(token))
        resp = client.get("/auth/verify", headers=_headers(user_token))
        assert resp.status_code == 401
        assert resp.json()["code"] == "USER_NOT_FOUND"


class TestSessionLifecycle:
    def test_change_password(self, api_client: tuple[TestClient, str, str]) -> None:
        client, token, _uid = api_client
        _make_user(client, token, "changer", "oldpass1")
        user_token = _login(client, "changer", "oldpass1").json()["token"]

        body = {"current_password": "oldpass1", "new_password": "newpass1"}
        resp = client.put("/auth/change-password", json=body, headers=_headers(user_token))
        assert resp.status_code == 200, resp.text
        assert _login(client, "changer", "newpass1").status_code == 200
        assert _login(client, "changer", "oldpass1").status_code == 400
        # The token issued before the change is still accepted
        assert client.get("/auth/verify", headers=_headers(user_token)).status_code == 200

    def test_change_password_errors(self, api_client: tuple[TestClient, str, str]) -> None:
        client, token, _uid = api_client
        _make_user(client, token, "careful", "oldpass1")
        user_token = _login(client, "careful", "oldpass1").json()["token"]
        headers = _headers(user_token)

        resp = client.put("/auth/change-password", json={"current_password": "oldpass1"}, headers=headers)
        assert resp.json()["code"] == "MISSING_FIELDS"

        resp = client.put(
            "/auth/change-password", json={"current_password": "oldpass1", "new_password": "abc"}, headers=headers
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "PASSWORD_TOO_SHORT"

        resp = client.put(
            "/auth/change-password", json={"current_password": "nope", "new_password": "newpass1"}, headers=headers
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_CREDENTIALS"

    def test_change_password_requires_auth(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        resp = client.put("/auth/change-password", json={"current_password": "a", "new_password": "bbbbbb"})
        assert resp.status_code == 401

    def test_refresh(self, api_client: tuple[TestClient, str, str]) -> None:
        client, token, uid = api_client
        resp = client.post("/auth/refresh", headers=_headers(token))
        assert resp.status_code == 200
        new_token = resp.json()["token"]
        assert client.get("/auth/verify", headers=_headers(new_token)).json()["user"]["id"] == uid
        # The old token is not revoked
        assert client.get("/auth/verify", headers=_headers(token)).status_code == 200

    def test_logout_acknowledges_only(self, api_client: tuple[TestClient, str, str]) -> None:
        client, token, _uid = api_client
        resp = client.post("/auth/logout", headers=_headers(token))
        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert client.get("/auth/verify", headers=_headers(token)).status_code == 200

    def test_logout_requires_auth(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        assert client.post("/auth/logout").status_code == 401

    def test_setup_status_with_users(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        data = client.get("/auth/setup-status").json()
        assert data["first_user_required"] is False
        assert data["user_count"] >= 1


@pytest.fixture()
def strict_login_limit(monkeypatch: pytest.MonkeyPatch):
    """Lower LOGIN_RATE_LIMIT to 2/minute for one test, with fresh counters."""
    monkeypatch.setenv("LOGIN_RATE_LIMIT", "2/minute")
    get_settings.cache_clear()
    limiter.reset()
    yield
    monkeypatch.undo()
    get_settings.cache_clear()
    limiter.reset()


class TestLoginRateLimit:
    def test_limit_exceeded(self, api_client: tuple[TestClient, str, str], strict_login_limit) -> None:
        client, _token, _uid = api_client
        for _ in range(2):
            assert _login(client, "testadmin", "wrong-password").status_code == 400

        resp = _login(client, "testadmin", "testpass123")
        assert resp.status_code == 429
        body = resp.json()
        assert body["code"] == "RATE_LIMITED"
        assert body["error"] == "Too many requests."
        assert int(resp.headers["Retry-After"]) > 0
