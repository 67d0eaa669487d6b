# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Access token verification with python-jose.

Tokens come from the identity provider. The records service only checks
the signature and expiry, then reads who the caller is (sub), which
tenant they act in (tenant_id) and what they hold (roles, permissions).
Signing is kept for service-to-service calls and tests.

Example:
    >>> tokens = JWTManager(get_settings().jwt)
    >>> claims = tokens.decode_token(request_token)
    >>> claims.tenant_id
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError as JoseError, jwt
from pydantic import BaseModel, Field, ValidationError

from edurecords.core.config.settings import JWTSettings

logger = logging.getLogger(__name__)


class TokenPayload(BaseModel):
    """Claims of a records access token.

    Attributes:
        sub: Acting user id.
        tenant_id: Tenant the user acts in; writes are refused without one.
        roles: Role codes, mapped to capabilities by resolve_capabilities.
        permissions: Extra permission codes such as "closed_year:override".
        exp: Expiry, seconds since the epoch.
        iat: Issue time, seconds since the epoch.
        jti: Token id.
    """

    sub: str
    tenant_id: str | None = None
    roles: list[str] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)
    exp: int
    iat: int
    jti: str | None = None

    @property
    def expires_at(self) -> datetime:
        return datetime.fromtimestamp(self.exp, tz=timezone.utc)


class JWTError(Exception):
    """Token could not be accepted."""


class TokenExpiredError(JWTError):
    pass


class InvalidTokenError(JWTError):
    pass


class JWTManager:
    """Sign and verify records access tokens."""

    def __init__(self, settings: JWTSettings) -> None:
        self._settings = settings

    @property
    def _key(self) -> str:
        return self._settings.secret_key.get_secret_value()

    def create_access_token(
        self,
        user_id: str,
        tenant_id: str | None = None,
        roles: list[str] | None = None,
        permissions: list[str] | None = None,
        expires_in_minutes: int = 30,
    ) -> str:
        """Sign a token for `user_id`.

        A negative lifetime yields an already expired token.
        """
        issued = datetime.now(timezone.utc)
        claims = TokenPayload(
            sub=str(user_id),
            tenant_id=str(tenant_id) if tenant_id else None,
            roles=roles or [],
            permissions=permissions or [],
            exp=int((issued + timedelta(minutes=expires_in_minutes)).timestamp()),
            iat=int(issued.timestamp()),
            jti=secrets.token_urlsafe(16),
        )
        return jwt.encode(claims.model_dump(), self._key, algorithm=self._settings.algorithm)

    def decode_token(self, token: str) -> TokenPayload:
        """Verify `token` and return its claims.

        Raises:
            TokenExpiredError: If exp is in the past.
            InvalidTokenError: If the signature, the encoding or a required
                claim is wrong.
        """
        try:
            raw = jwt.decode(token, self._key, algorithms=[self._settings.algorithm])
        except ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except JoseError as e:
            logger.warning("Rejected access token: %s", e)
            raise InvalidTokenError(f"Invalid token: {e}") from e

        try:
            return TokenPayload.model_validate(raw)
        except ValidationError as e:
            logger.warning("Access token is missing claims: %s", e.error_count())
            raise InvalidTokenError("Invalid token: missing or malformed claims") from e
