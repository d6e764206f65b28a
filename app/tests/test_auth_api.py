# app/tests/test_auth_api.py
"""Tests for the account HTTP endpoints and cookie transport."""
import argon2
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from app.config import AppConfig
from app.main import app
from auth.errors import StorageError
from auth.middleware import COOKIE_KEY, get_optional_user, get_required_user
from auth.models import User, utcnow
from auth.password import PasswordHasher
from auth.service import CredentialService
from auth.sessions import SessionManager
from auth.store import UserStore
from persistence.db import PersistenceError, init_db, reset_db


@pytest.fixture(autouse=True)
def reset_database():
    """Reset database before and after each test."""
    reset_db()
    init_db()
    yield
    reset_db()


@pytest.fixture
def service():
    """Swap in a service with cheap hashing parameters."""
    original = app.state.credential_service
    fast = CredentialService(
        users=UserStore(),
        sessions=SessionManager(),
        hasher=PasswordHasher(argon2.PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)),
    )
    app.state.credential_service = fast
    yield fast
    app.state.credential_service = original


@pytest.fixture
def client(service):
    """Create test client."""
    return TestClient(app)


def _register(client, username="alice", password="wonderland"):
    return client.post("/api/auth/register", json={"username": username, "password": password})


class TestRegisterEndpoint:
    """Tests for POST /api/auth/register."""

    def test_register_success_sets_cookie(self, client):
        response = _register(client)

        assert response.status_code == 200
        data = response.json()
        assert data["errors"] is None
        assert data["user"]["username"] == "alice"
        assert "password_hash" not in data["user"]
        assert COOKIE_KEY in response.cookies

    def test_cookie_is_http_only(self, client):
        response = _register(client)
        header = response.headers["set-cookie"]

        assert header.startswith(f"{COOKIE_KEY}=")
        assert "HttpOnly" in header
        assert "samesite=lax" in header.lower()

    def test_register_short_username(self, client):
        response = _register(client, username="abc")

        assert response.status_code == 200
        assert response.json() == {
            "errors": [{"field": "username", "message": "must be at least 4 characters long"}],
            "user": None,
        }
        assert "set-cookie" not in response.headers

    def test_register_duplicate(self, client):
        _register(client)
        response = _register(client, password="other123")

        assert response.json()["errors"] == [{"field": "username", "message": "username already taken"}]

    def test_missing_field_is_422(self, client):
        response = client.post("/api/auth/register", json={"username": "alice"})
        assert response.status_code == 422

    def test_storage_failure_is_generic_500(self, client, service, monkeypatch):
        def fail(username, password_hash, db=None):
            raise StorageError("disk full")

        monkeypatch.setattr(service.users, "create_user", fail)
        response = _register(client)

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error"}

    def test_session_failure_leaves_no_account(self, client, service, monkeypatch):
        """A 500 from the session write means the username is still free."""
        def fail(ctx, user_id, db=None):
            raise PersistenceError("disk I/O error")

        monkeypatch.setattr(service.sessions, "create_session", fail)
        assert _register(client).status_code == 500

        monkeypatch.undo()
        response = _register(client)
        assert response.json()["errors"] is None
        assert response.json()["user"]["username"] == "alice"


class TestLoginEndpoint:
    """Tests for POST /api/auth/login."""

    def test_login_unknown_user(self, client):
        response = client.post("/api/auth/login", json={"username": "nobody", "password": "whatever"})
        assert response.json()["errors"] == [{"field": "username", "message": "user does not exist!"}]

    def test_login_wrong_password(self, client):
        _register(client)
        client.cookies.clear()

        response = client.post("/api/auth/login", json={"username": "alice", "password": "nope"})
        assert response.json()["errors"] == [{"field": "password", "message": "incorrect password"}]

    def test_login_then_me(self, client):
        _register(client)
        client.cookies.clear()

        response = client.post("/api/auth/login", json={"username": "alice", "password": "wonderland"})
        assert response.json()["user"]["username"] == "alice"

        me = client.get("/api/auth/me")
        assert me.json()["username"] == "alice"


class TestMeAndLogoutEndpoints:
    """Tests for GET /api/auth/me and POST /api/auth/logout."""

    def test_me_anonymous(self, client):
        response = client.get("/api/auth/me")

        assert response.status_code == 200
        assert response.json() is None

    def test_me_after_register(self, client):
        user = _register(client).json()["user"]

        me = client.get("/api/auth/me").json()
        assert me["id"] == user["id"]

    def test_me_with_forged_cookie(self, client):
        client.cookies.set(COOKIE_KEY, "forged-token")
        assert client.get("/api/auth/me").json() is None

    def test_me_uses_optional_user_dependency(self, client):
        stub = User(id=7, username="carol", password_hash="x", created_at=utcnow(), updated_at=utcnow())
        app.dependency_overrides[get_optional_user] = lambda: stub
        try:
            response = client.get("/api/auth/me")
        finally:
            app.dependency_overrides.pop(get_optional_user, None)

        assert response.json()["id"] == 7
        assert response.json()["username"] == "carol"

    def test_logout_clears_cookie(self, client):
        _register(client)
        response = client.post("/api/auth/logout")

        assert response.json() is True
        header = response.headers["set-cookie"]
        assert header.startswith(f"{COOKIE_KEY}=")
        assert "Max-Age=0" in header

        assert client.get("/api/auth/me").json() is None

    def test_logout_without_session(self, client):
        response = client.post("/api/auth/logout")

        assert response.json() is True
        assert "Max-Age=0" in response.headers["set-cookie"]


class TestRequiredUserDependency:
    """Tests for get_required_user."""

    @pytest.fixture
    def protected_client(self, service):
        protected = FastAPI()
        protected.state.config = AppConfig()
        protected.state.credential_service = service

        @protected.get("/private")
        def private(user: User = Depends(get_required_user)):
            return {"username": user.username}

        return TestClient(protected)

    def test_anonymous_gets_401(self, protected_client):
        response = protected_client.get("/private")
        assert response.status_code == 401

    def test_logged_in_user_passes(self, protected_client, service, client):
        _register(client)
        protected_client.cookies.set(COOKIE_KEY, client.cookies[COOKIE_KEY])

        response = protected_client.get("/private")
        assert response.status_code == 200
        assert response.json() == {"username": "alice"}


class TestHealthAndHeaders:
    """Tests for /health and response headers."""

    def test_health(self, client):
        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["service"] == "session-auth"

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-Id": "abc-123"})
        assert response.headers["X-Request-Id"] == "abc-123"

    def test_request_id_generated(self, client):
        response = client.get("/health", headers={"X-Request-Id": "bad id!"})
        assert response.headers["X-Request-Id"] != "bad id!"
        assert len(response.headers["X-Request-Id"]) == 36

    def test_security_headers(self, client):
        response = client.get("/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_non_numeric_content_length_is_400(self, client):
        response = client.get("/health", headers={"Content-Length": "abc"})

        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid Content-Length header"}

    def test_oversized_content_length_is_413(self, client):
        response = client.get("/health", headers={"Content-Length": "10000000"})
        assert response.status_code == 413
