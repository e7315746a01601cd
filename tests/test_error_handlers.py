"""Tests for the FastAPI boundary: error handlers and bearer dependencies."""

import asyncio
from datetime import timedelta
from typing import Annotated

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from shopauth.auth.models import Account, Principal, utcnow
from shopauth.auth.service import AuthService
from shopauth.cache.memory import InMemoryCache
from shopauth.core.exceptions import (
    AccountLockedError,
    ConflictError,
    RateLimitError,
    StoreError,
    ValidationError,
)
from shopauth.fastapi import get_current_principal, register_error_handlers, require_admin
from shopauth.store.memory import InMemoryAccountStore
from shopauth.testing import RecordingNotificationSender, create_test_settings


def build_app(include_generic: bool = False) -> FastAPI:
    app = FastAPI()
    register_error_handlers(app, include_generic=include_generic)

    @app.get("/validation")
    async def validation():
        raise ValidationError("Password must contain at least one digit", field="password")

    @app.get("/conflict")
    async def conflict():
        raise ConflictError("An account with this email already exists")

    @app.get("/locked")
    async def locked():
        raise AccountLockedError(utcnow() + timedelta(minutes=30))

    @app.get("/limited")
    async def limited():
        raise RateLimitError("Too many login attempts. Try again later", retry_after=42)

    @app.get("/internal")
    async def internal():
        raise StoreError("AccessDenied on bucket private-credentials", operation="get_object")

    @app.get("/pydantic")
    async def pydantic_error():
        Account.model_validate({})

    @app.get("/boom")
    async def boom():
        raise RuntimeError("unexpected")

    @app.get("/me")
    async def me(principal: Annotated[Principal, Depends(get_current_principal)]):
        return {"email": principal.email, "role": principal.role}

    @app.get("/admin")
    async def admin(principal: Annotated[Principal, Depends(require_admin)]):
        return {"ok": True}

    return app


@pytest.fixture
def service():
    return AuthService(
        create_test_settings(),
        InMemoryAccountStore(),
        InMemoryCache(),
        RecordingNotificationSender(),
    )


@pytest.fixture
def client(service):
    app = build_app()
    app.state.auth_service = service
    with TestClient(app) as test_client:
        yield test_client


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestErrorHandlers:
    """Tests for mapping shopauth errors to responses."""

    def test_validation_error(self, client):
        """Test 400 with the offending field (never its value)."""
        response = client.get("/validation")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["field"] == "password"
        assert "digit" in error["message"]

    def test_conflict_error(self, client):
        """Test 409 for duplicate registration."""
        response = client.get("/conflict")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "USER_EXISTS"

    def test_locked_error(self, client):
        """Test 401 with the lockout end."""
        response = client.get("/locked")

        assert response.status_code == 401
        error = response.json()["error"]
        assert error["code"] == "ACCOUNT_LOCKED"
        assert "locked_until" in error
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_rate_limit_error(self, client):
        """Test 429 with Retry-After."""
        response = client.get("/limited")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "42"
        assert response.json()["error"]["retry_after"] == 42

    def test_internal_error_is_generic(self, client):
        """Test that store details are not exposed to clients."""
        response = client.get("/internal")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "SERVER_ERROR"
        assert "private-credentials" not in error["message"]

    def test_pydantic_validation_error(self, client):
        """Test that model validation failures become 400 with details."""
        response = client.get("/pydantic")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert any(detail["field"] == "email" for detail in error["details"])

    def test_generic_handler(self):
        """Test the optional catch-all handler."""
        app = build_app(include_generic=True)
        with TestClient(app, raise_server_exceptions=False) as test_client:
            response = test_client.get("/boom")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "SERVER_ERROR"
        assert "unexpected" not in response.json()["error"]["message"]


class TestBearerDependencies:
    """Tests for get_current_principal and require_admin."""

    def test_valid_token(self, client, service):
        """Test that a valid bearer token resolves to the principal."""
        token = service.signer.issue_access_token(Account(email="a@x.com"))

        response = client.get("/me", headers=bearer(token))

        assert response.status_code == 200
        assert response.json() == {"email": "a@x.com", "role": "Client"}

    def test_missing_token(self, client):
        """Test 401 without an Authorization header."""
        response = client.get("/me")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_invalid_token(self, client):
        """Test 401 for a garbage token."""
        response = client.get("/me", headers=bearer("garbage"))

        assert response.status_code == 401

    def test_expired_token(self, client, service):
        """Test 401 for an expired token."""
        token = service.signer.issue_access_token(
            Account(email="a@x.com"), expires_delta=timedelta(minutes=-5)
        )

        response = client.get("/me", headers=bearer(token))

        assert response.status_code == 401

    def test_revoked_token(self, client, service):
        """Test that a logged-out access token is rejected."""
        token = service.signer.issue_access_token(Account(email="a@x.com"))
        asyncio.run(service.logout(None, token))

        response = client.get("/me", headers=bearer(token))

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Token has been revoked"

    def test_require_admin(self, client, service):
        """Test that only admins pass require_admin."""
        client_token = service.signer.issue_access_token(Account(email="a@x.com"))
        admin_token = service.signer.issue_access_token(Account(email="b@x.com", role="Admin"))

        assert client.get("/admin", headers=bearer(client_token)).status_code == 403
        assert client.get("/admin", headers=bearer(admin_token)).status_code == 200

    def test_missing_auth_service(self):
        """Test that an unconfigured app fails with a server error."""
        with TestClient(build_app()) as test_client:
            response = test_client.get("/me", headers=bearer("anything"))

        assert response.status_code == 500
