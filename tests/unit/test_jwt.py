# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for JWT token utilities.

Tests the JWTManager class and token operations.
"""

from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from jose import jwt
from pydantic import SecretStr

from edurecords.domains.auth.jwt import (
    InvalidTokenError,
    JWTManager,
    TokenExpiredError,
    TokenPayload,
)


@pytest.fixture
def jwt_settings() -> MagicMock:
    """Create mock JWT settings."""
    settings = MagicMock()
    settings.secret_key = SecretStr("test-secret-key-for-jwt-testing")
    settings.algorithm = "HS256"
    return settings


@pytest.fixture
def jwt_manager(jwt_settings: MagicMock) -> JWTManager:
    """Create JWT manager with test settings."""
    return JWTManager(jwt_settings)


class TestJWTManager:
    """Tests for JWTManager class."""

    def test_round_trip_preserves_claims(self, jwt_manager: JWTManager) -> None:
        """Test that decoding a created token returns its claims."""
        user_id = str(uuid4())
        tenant_id = str(uuid4())

        token = jwt_manager.create_access_token(
            user_id=user_id,
            tenant_id=tenant_id,
            roles=["direction"],
            permissions=["reopening:manage"],
        )
        payload = jwt_manager.decode_token(token)

        assert isinstance(payload, TokenPayload)
        assert payload.sub == user_id
        assert payload.tenant_id == tenant_id
        assert payload.roles == ["direction"]
        assert payload.permissions == ["reopening:manage"]
        assert payload.jti is not None
        assert payload.exp > payload.iat

    def test_token_without_tenant(self, jwt_manager: JWTManager) -> None:
        """Test that tenant_id is optional."""
        payload = jwt_manager.decode_token(jwt_manager.create_access_token(user_id="u1"))

        assert payload.tenant_id is None
        assert payload.roles == []

    def test_expired_token_raises(self, jwt_manager: JWTManager) -> None:
        """Test that an expired token raises TokenExpiredError."""
        token = jwt_manager.create_access_token(user_id="u1", expires_in_minutes=-1)

        with pytest.raises(TokenExpiredError):
            jwt_manager.decode_token(token)

    def test_wrong_signature_raises(self, jwt_manager: JWTManager) -> None:
        """Test that a token signed with another key is rejected."""
        token = jwt.encode(
            {"sub": "u1", "exp": 9999999999, "iat": 0}, "another-key", algorithm="HS256"
        )

        with pytest.raises(InvalidTokenError):
            jwt_manager.decode_token(token)

    def test_garbage_token_raises(self, jwt_manager: JWTManager) -> None:
        """Test that a malformed token is rejected."""
        with pytest.raises(InvalidTokenError):
            jwt_manager.decode_token("not-a-token")

    def test_missing_subject_raises(
        self, jwt_manager: JWTManager, jwt_settings: MagicMock
    ) -> None:
        """Test that a token without sub is invalid."""
        token = jwt.encode(
            {"exp": 9999999999, "iat": 0},
            jwt_settings.secret_key.get_secret_value(),
            algorithm="HS256",
        )

        with pytest.raises(InvalidTokenError):
            jwt_manager.decode_token(token)

    def test_expires_at_matches_lifetime(self, jwt_manager: JWTManager) -> None:
        token = jwt_manager.create_access_token(user_id="u1", expires_in_minutes=60)

        payload = jwt_manager.decode_token(token)

        assert (payload.expires_at.timestamp() - payload.iat) == 3600
