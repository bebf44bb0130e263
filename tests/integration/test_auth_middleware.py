# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the authentication middleware.

Tests the middleware in isolation from the database.
"""

import time
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from jose import jwt
from pydantic import SecretStr

from lms_messaging.api.middleware.auth import AuthMiddleware, get_current_user
from lms_messaging.domains.auth.jwt import JWTManager

pytestmark = pytest.mark.integration


@pytest.fixture
def jwt_settings() -> MagicMock:
    """Create mock JWT settings."""
    settings = MagicMock()
    settings.secret_key = SecretStr("test-secret-key-for-jwt-testing")
    settings.algorithm = "HS256"
    settings.access_token_expire_minutes = 30
    return settings


@pytest.fixture
def jwt_manager(jwt_settings: MagicMock) -> JWTManager:
    """Create JWT manager with test settings."""
    return JWTManager(jwt_settings)


@pytest.fixture
def client(jwt_manager: JWTManager) -> TestClient:
    """App that echoes the authenticated user."""
    app = FastAPI()
    app.add_middleware(AuthMiddleware, jwt_manager=jwt_manager)

    @app.get("/health")
    async def health(request: Request) -> dict:
        return {"user": get_current_user(request) is not None}

    @app.get("/api/v1/messages/conversations")
    async def protected(request: Request) -> dict:
        user = get_current_user(request)
        if user is None:
            return {"user": None}
        return {"user": user.id, "role": user.role}

    return TestClient(app)


class TestAuthMiddleware:
    """Tests for AuthMiddleware."""

    def test_public_path_bypasses_auth(self, client: TestClient, jwt_manager: JWTManager) -> None:
        """Test public paths never decode the token."""
        token = jwt_manager.create_access_token(5)

        response = client.get("/health", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json() == {"user": False}

    def test_valid_token_sets_user(self, client: TestClient, jwt_manager: JWTManager) -> None:
        """Test a valid bearer token populates the current user."""
        token = jwt_manager.create_access_token(5, role="admin")

        response = client.get(
            "/api/v1/messages/conversations", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.json() == {"user": 5, "role": "admin"}

    def test_missing_token_leaves_user_empty(self, client: TestClient) -> None:
        """Test the middleware does not reject; the route decides."""
        response = client.get("/api/v1/messages/conversations")

        assert response.status_code == 200
        assert response.json() == {"user": None}

    def test_expired_token_leaves_user_empty(self, client: TestClient, jwt_manager: JWTManager) -> None:
        """Test an expired token is treated as anonymous."""
        token = jwt_manager.create_access_token(5, expires_minutes=-1)

        response = client.get(
            "/api/v1/messages/conversations", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.json() == {"user": None}

    def test_non_bearer_scheme_ignored(self, client: TestClient, jwt_manager: JWTManager) -> None:
        """Test only Bearer authorization is accepted."""
        token = jwt_manager.create_access_token(5)

        response = client.get(
            "/api/v1/messages/conversations", headers={"Authorization": f"Basic {token}"}
        )

        assert response.json() == {"user": None}

    def test_unicode_digit_subject_is_anonymous(self, client: TestClient) -> None:
        """Test a signed token whose subject is not an ASCII user id is ignored."""
        token = jwt.encode(
            {"sub": "²", "type": "access", "exp": int(time.time()) + 60},
            "test-secret-key-for-jwt-testing",
            algorithm="HS256",
        )

        response = client.get(
            "/api/v1/messages/conversations", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 200
        assert response.json() == {"user": None}
