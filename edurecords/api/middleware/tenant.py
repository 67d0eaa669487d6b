# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant resolution middleware.

The tenant always comes from the authenticated token. An X-Tenant-ID
header may be sent by clients that act for several tenants; when present
it must name the token's tenant, otherwise the request is rejected
before it reaches any handler.

The resolved tenant is stored in request.state.tenant_id.
"""

import logging
import uuid
from typing import Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from edurecords.utils.logging import bind_request_context, clear_context

logger = logging.getLogger(__name__)

TENANT_HEADER = "X-Tenant-ID"
REQUEST_ID_HEADER = "X-Request-ID"


class TenantMiddleware(BaseHTTPMiddleware):
    """Bind request.state.tenant_id from the authenticated user.

    Must run after AuthMiddleware, so it is added to the app before it.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response],
    ) -> Response:
        request.state.tenant_id = None
        user = getattr(request.state, "user", None)
        header_tenant = request.headers.get(TENANT_HEADER)

        if user is not None:
            if header_tenant and user.tenant_id and header_tenant != user.tenant_id:
                logger.warning(
                    "Tenant header %s does not match token tenant %s for user %s",
                    header_tenant,
                    user.tenant_id,
                    user.id,
                )
                return JSONResponse(
                    status_code=status.HTTP_403_FORBIDDEN,
                    content={
                        "detail": "Tenant mismatch",
                        "hint": f"{TENANT_HEADER} must match the tenant of the access token",
                    },
                )
            request.state.tenant_id = user.tenant_id

        bind_request_context(
            request_id=request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex,
            tenant_id=request.state.tenant_id,
            user_id=user.id if user is not None else None,
        )
        try:
            return await call_next(request)
        finally:
            clear_context()


def get_tenant_id(request: Request) -> str | None:
    return getattr(request.state, "tenant_id", None)
