# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for authentication and tenant middleware.

Tests the middleware components in isolation from database.
"""

from unittest.mock import MagicMock, patch

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from pydantic import SecretStr

from edurecords.api.middleware.auth import AuthMiddleware, get_current_user
from edurecords.api.middleware.tenant import TenantMiddleware, get_tenant_id
from edurecords.domains.auth import Capability, JWTManager

pytestmark = pytest.mark.integration


@pytest.fixture
def jwt_settings() -> MagicMock:
    """Create mock JWT settings."""
    settings = MagicMock()
    settings.secret_key = SecretStr("test-secret-key-for-jwt-testing")
    settings.algorithm = "HS256"
    return settings


@pytest.fixture
def jwt_manager(jwt_settings: MagicMock) -> JWTManager:
    return JWTManager(jwt_settings)


def _whoami_app() -> FastAPI:
    """App with both middlewares and an endpoint echoing request state."""
    app = FastAPI()
    app.add_middleware(TenantMiddleware)
    app.add_middleware(AuthMiddleware)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.get("/api/v1/whoami")
    async def whoami(request: Request) -> dict:
        user = get_current_user(request)
        return {
            "user_id": user.id if user else None,
            "tenant_id": get_tenant_id(request),
            "capabilities": sorted(c.value for c in user.capabilities) if user else [],
        }

    return app


class TestAuthMiddleware:
    """Tests for AuthMiddleware."""

    def test_public_path_bypasses_auth(self) -> None:
        client = TestClient(_whoami_app())
        response = client.get("/health")

        assert response.status_code == 200

    @patch("edurecords.api.middleware.auth.get_settings")
    def test_valid_token_sets_user(
        self,
        mock_settings: MagicMock,
        jwt_settings: MagicMock,
        jwt_manager: JWTManager,
    ) -> None:
        """Test that a valid token sets the user and resolves capabilities."""
        mock_settings.return_value.jwt = jwt_settings
        token = jwt_manager.create_access_token(
            "teacher-7", tenant_id="tenant-a", roles=["teacher"]
        )

        client = TestClient(_whoami_app())
        response = client.get("/api/v1/whoami", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        body = response.json()
        assert body["user_id"] == "teacher-7"
        assert body["tenant_id"] == "tenant-a"
        assert body["capabilities"] == [Capability.RECORD_FACTS.value]

    @patch("edurecords.api.middleware.auth.get_settings")
    def test_permission_codes_grant_capabilities(
        self,
        mock_settings: MagicMock,
        jwt_settings: MagicMock,
        jwt_manager: JWTManager,
    ) -> None:
        mock_settings.return_value.jwt = jwt_settings
        token = jwt_manager.create_access_token(
            "ops-1", tenant_id="tenant-a", permissions=["closed_year:override"]
        )

        client = TestClient(_whoami_app())
        response = client.get("/api/v1/whoami", headers={"Authorization": f"Bearer {token}"})

        assert response.json()["capabilities"] == [Capability.OVERRIDE_CLOSED_YEAR.value]

    @patch("edurecords.api.middleware.auth.get_settings")
    def test_no_token_sets_user_none(
        self,
        mock_settings: MagicMock,
        jwt_settings: MagicMock,
    ) -> None:
        mock_settings.return_value.jwt = jwt_settings

        client = TestClient(_whoami_app())
        response = client.get("/api/v1/whoami")

        assert response.status_code == 200
        assert response.json()["user_id"] is None
        assert response.json()["tenant_id"] is None

    @patch("edurecords.api.middleware.auth.get_settings")
    def test_non_bearer_header_ignored(
        self,
        mock_settings: MagicMock,
        jwt_settings: MagicMock,
        jwt_manager: JWTManager,
    ) -> None:
        mock_settings.return_value.jwt = jwt_settings
        token = jwt_manager.create_access_token("u1", tenant_id="tenant-a")

        client = TestClient(_whoami_app())
        response = client.get("/api/v1/whoami", headers={"Authorization": f"Token {token}"})

        assert response.json()["user_id"] is None

    @patch("edurecords.api.middleware.auth.get_settings")
    def test_expired_token_sets_user_none(
        self,
        mock_settings: MagicMock,
        jwt_settings: MagicMock,
        jwt_manager: JWTManager,
    ) -> None:
        mock_settings.return_value.jwt = jwt_settings
        token = jwt_manager.create_access_token(
            "u1", tenant_id="tenant-a", expires_in_minutes=-1
        )

        client = TestClient(_whoami_app())
        response = client.get("/api/v1/whoami", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json()["user_id"] is None


class TestTenantMiddleware:
    """Tests for TenantMiddleware."""

    @patch("edurecords.api.middleware.auth.get_settings")
    def test_matching_tenant_header_accepted(
        self,
        mock_settings: MagicMock,
        jwt_settings: MagicMock,
        jwt_manager: JWTManager,
    ) -> None:
        mock_settings.return_value.jwt = jwt_settings
        token = jwt_manager.create_access_token("u1", tenant_id="tenant-a")

        client = TestClient(_whoami_app())
        response = client.get(
            "/api/v1/whoami",
            headers={"Authorization": f"Bearer {token}", "X-Tenant-ID": "tenant-a"},
        )

        assert response.status_code == 200
        assert response.json()["tenant_id"] == "tenant-a"

    @patch("edurecords.api.middleware.auth.get_settings")
    def test_mismatched_tenant_header_rejected(
        self,
        mock_settings: MagicMock,
        jwt_settings: MagicMock,
        jwt_manager: JWTManager,
    ) -> None:
        mock_settings.return_value.jwt = jwt_settings
        token = jwt_manager.create_access_token("u1", tenant_id="tenant-a")

        client = TestClient(_whoami_app())
        response = client.get(
            "/api/v1/whoami",
            headers={"Authorization": f"Bearer {token}", "X-Tenant-ID": "tenant-b"},
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Tenant mismatch"
        assert "X-Tenant-ID" in response.json()["hint"]

    def test_header_alone_does_not_bind_tenant(self) -> None:
        """An unauthenticated request cannot pick a tenant by header."""
        client = TestClient(_whoami_app())
        response = client.get("/api/v1/whoami", headers={"X-Tenant-ID": "tenant-b"})

        assert response.status_code == 200
        assert response.json()["tenant_id"] is None
