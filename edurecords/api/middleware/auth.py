# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Bearer token authentication.

AuthMiddleware turns the Authorization header into request.state.user.
It never rejects a request itself: a missing, expired or forged token
leaves the user unset and the route dependencies answer 401. This keeps
the health check and the docs reachable without a token.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from edurecords.core.config import get_settings
from edurecords.domains.auth import (
    Capability,
    JWTError,
    JWTManager,
    TokenPayload,
    resolve_capabilities,
)

logger = logging.getLogger(__name__)

PUBLIC_PATHS = frozenset({"/", "/health", "/docs", "/redoc", "/openapi.json"})


@dataclass(frozen=True)
class CurrentUser:
    """Caller of a records request.

    Capabilities are resolved once, when the token is accepted.
    """

    id: str
    tenant_id: str | None
    roles: tuple[str, ...]
    permissions: tuple[str, ...]
    capabilities: frozenset[Capability]

    @classmethod
    def from_token(cls, payload: TokenPayload) -> "CurrentUser":
        return cls(
            id=payload.sub,
            tenant_id=payload.tenant_id,
            roles=tuple(payload.roles),
            permissions=tuple(payload.permissions),
            capabilities=resolve_capabilities(payload.roles, payload.permissions),
        )

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities


def bearer_token(request: Request) -> str | None:
    """Token of a "Bearer <token>" Authorization header, if any."""
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip() or " " in token.strip():
        return None
    return token.strip()


class AuthMiddleware(BaseHTTPMiddleware):
    """Set request.state.user from the bearer token."""

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)
        self._tokens = JWTManager(get_settings().jwt)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response],
    ) -> Response:
        request.state.user = None
        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        token = bearer_token(request)
        if token is not None:
            try:
                request.state.user = CurrentUser.from_token(self._tokens.decode_token(token))
            except JWTError as e:
                logger.debug("Token not accepted on %s: %s", request.url.path, e)

        return await call_next(request)


def get_current_user(request: Request) -> CurrentUser | None:
    return getattr(request.state, "user", None)
