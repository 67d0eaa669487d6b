# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Reopening window API endpoints.

- POST / - Open a window on a closed academic year
- GET / - List windows, optionally by year and activity
- POST /expire - Terminate the tenant's windows past valid_until
- GET /{window_id} - Get window details
- POST /{window_id}/terminate - End an active window early
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query, status

from edurecords.api.dependencies import (
    RequireCapability,
    get_reopening_service,
    require_auth,
    require_tenant,
)
from edurecords.api.middleware.auth import CurrentUser
from edurecords.domains.auth import Capability
from edurecords.domains.reopening import ReopeningService, is_active
from edurecords.infrastructure.database.models import ReopeningWindow
from edurecords.models.reopening import (
    ExpireWindowsResponse,
    ReopeningWindowCreateRequest,
    ReopeningWindowResponse,
    ReopeningWindowTerminateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_response(window: ReopeningWindow) -> ReopeningWindowResponse:
    response = ReopeningWindowResponse.model_validate(window)
    response.is_active = is_active(window)
    return response


@router.post(
    "",
    response_model=ReopeningWindowResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open reopening window",
)
async def create_reopening_window(
    data: ReopeningWindowCreateRequest,
    current_user: CurrentUser = Depends(require_auth),
    tenant_id: str = Depends(require_tenant),
    service: ReopeningService = Depends(get_reopening_service),
) -> ReopeningWindowResponse:
    window = await service.create(
        tenant_id,
        data.academic_year_id,
        reason=data.reason,
        scopes=data.scopes,
        valid_from=data.valid_from,
        valid_until=data.valid_until,
        actor_id=current_user.id,
        capabilities=current_user.capabilities,
        notes=data.notes,
    )
    return _to_response(window)


@router.get(
    "",
    response_model=list[ReopeningWindowResponse],
    summary="List reopening windows",
)
async def list_reopening_windows(
    academic_year_id: Annotated[str | None, Query()] = None,
    active: Annotated[bool | None, Query(description="Only active or only ended windows")] = None,
    current_user: CurrentUser = Depends(require_auth),
    tenant_id: str = Depends(require_tenant),
    service: ReopeningService = Depends(get_reopening_service),
) -> list[ReopeningWindowResponse]:
    windows = await service.list_windows(tenant_id, year_id=academic_year_id, active=active)
    return [_to_response(w) for w in windows]


@router.post(
    "/expire",
    response_model=ExpireWindowsResponse,
    summary="Expire due reopening windows",
)
async def expire_reopening_windows(
    current_user: CurrentUser = Depends(RequireCapability(Capability.MANAGE_REOPENING)),
    tenant_id: str = Depends(require_tenant),
    service: ReopeningService = Depends(get_reopening_service),
) -> ExpireWindowsResponse:
    terminated = await service.expire_due(tenant_id=tenant_id)
    return ExpireWindowsResponse(terminated=terminated)


@router.get(
    "/{window_id}",
    response_model=ReopeningWindowResponse,
    summary="Get reopening window",
)
async def get_reopening_window(
    window_id: str,
    current_user: CurrentUser = Depends(require_auth),
    tenant_id: str = Depends(require_tenant),
    service: ReopeningService = Depends(get_reopening_service),
) -> ReopeningWindowResponse:
    return _to_response(await service.get_window(tenant_id, window_id))


@router.post(
    "/{window_id}/terminate",
    response_model=ReopeningWindowResponse,
    summary="Terminate reopening window early",
)
async def terminate_reopening_window(
    window_id: str,
    data: Annotated[ReopeningWindowTerminateRequest | None, Body()] = None,
    current_user: CurrentUser = Depends(require_auth),
    tenant_id: str = Depends(require_tenant),
    service: ReopeningService = Depends(get_reopening_service),
) -> ReopeningWindowResponse:
    window = await service.terminate_early(
        tenant_id,
        window_id,
        actor_id=current_user.id,
        capabilities=current_user.capabilities,
        notes=data.notes if data else None,
    )
    return _to_response(window)
