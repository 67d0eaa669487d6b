# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Academic year API endpoints.

This module provides endpoints for the academic year lifecycle:
- POST / - Create a new academic year
- GET / - List academic years
- GET /{year_id} - Get academic year details
- POST /{year_id}/close - Close the year and consolidate it
- POST /{year_id}/consolidate - Re-run consolidation on a closed year
- POST /{year_id}/consolidation-jobs - Queue a resumable consolidation

There is no endpoint to reopen a closed year. Corrections go through
reopening windows.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query, status

from edurecords.api.dependencies import (
    RequireCapability,
    get_academic_year_service,
    require_auth,
    require_tenant,
)
from edurecords.api.middleware.auth import CurrentUser
from edurecords.domains.academic_year import AcademicYearService
from edurecords.domains.auth import Capability
from edurecords.models.academic_year import (
    AcademicYearCloseRequest,
    AcademicYearCloseResponse,
    AcademicYearCreateRequest,
    AcademicYearListResponse,
    AcademicYearResponse,
    ConsolidationJobResponse,
    ConsolidationReportResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=AcademicYearResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create academic year",
)
async def create_academic_year(
    data: AcademicYearCreateRequest,
    current_user: CurrentUser = Depends(RequireCapability(Capability.MANAGE_ACADEMIC_YEAR)),
    tenant_id: str = Depends(require_tenant),
    service: AcademicYearService = Depends(get_academic_year_service),
) -> AcademicYearResponse:
    logger.info(
        "Creating academic year %s (%s to %s) by %s",
        data.year,
        data.start_date,
        data.end_date,
        current_user.id,
    )
    year = await service.create(
        tenant_id,
        data.year,
        data.start_date,
        data.end_date,
        actor_id=current_user.id,
        capabilities=current_user.capabilities,
    )
    return AcademicYearResponse.model_validate(year)


@router.get(
    "",
    response_model=AcademicYearListResponse,
    summary="List academic years",
)
async def list_academic_years(
    current_user: CurrentUser = Depends(require_auth),
    tenant_id: str = Depends(require_tenant),
    service: AcademicYearService = Depends(get_academic_year_service),
) -> AcademicYearListResponse:
    years = await service.list(tenant_id)
    items = [AcademicYearResponse.model_validate(y) for y in years]
    return AcademicYearListResponse(items=items, total=len(items))


@router.get(
    "/{year_id}",
    response_model=AcademicYearResponse,
    summary="Get academic year",
)
async def get_academic_year(
    year_id: str,
    current_user: CurrentUser = Depends(require_auth),
    tenant_id: str = Depends(require_tenant),
    service: AcademicYearService = Depends(get_academic_year_service),
) -> AcademicYearResponse:
    return AcademicYearResponse.model_validate(await service.get(tenant_id, year_id))


@router.post(
    "/{year_id}/close",
    response_model=AcademicYearCloseResponse,
    summary="Close academic year",
    description=(
        "Close an ACTIVE academic year and freeze its outcomes into historical records. "
        "The closure stands even if consolidation reports errors."
    ),
)
async def close_academic_year(
    year_id: str,
    data: Annotated[AcademicYearCloseRequest | None, Body()] = None,
    current_user: CurrentUser = Depends(RequireCapability(Capability.MANAGE_ACADEMIC_YEAR)),
    tenant_id: str = Depends(require_tenant),
    service: AcademicYearService = Depends(get_academic_year_service),
) -> AcademicYearCloseResponse:
    year, report = await service.close(
        tenant_id,
        year_id,
        actor_id=current_user.id,
        capabilities=current_user.capabilities,
        justification=data.justification if data else None,
    )
    return AcademicYearCloseResponse(
        year=AcademicYearResponse.model_validate(year),
        consolidation=ConsolidationReportResponse.model_validate(report),
    )


@router.post(
    "/{year_id}/consolidate",
    response_model=ConsolidationReportResponse,
    summary="Consolidate closed academic year",
    description=(
        "Run consolidation on a CLOSED year. With resume=true, rows missing after a "
        "crashed or timed-out run are created and existing rows are left untouched."
    ),
)
async def consolidate_academic_year(
    year_id: str,
    resume: Annotated[bool, Query(description="Fill in missing records only")] = False,
    current_user: CurrentUser = Depends(RequireCapability(Capability.MANAGE_ACADEMIC_YEAR)),
    tenant_id: str = Depends(require_tenant),
    service: AcademicYearService = Depends(get_academic_year_service),
) -> ConsolidationReportResponse:
    report = await service.consolidate(
        tenant_id,
        year_id,
        actor_id=current_user.id,
        capabilities=current_user.capabilities,
        resume=resume,
    )
    return ConsolidationReportResponse.model_validate(report)


@router.post(
    "/{year_id}/consolidation-jobs",
    response_model=ConsolidationJobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue consolidation of a closed academic year",
    description=(
        "Hand consolidation of a large CLOSED year to the background workers. The job "
        "runs in resume mode, so retries and repeated requests only create missing "
        "records, then finalize the year's enrollments."
    ),
)
async def queue_consolidation(
    year_id: str,
    current_user: CurrentUser = Depends(RequireCapability(Capability.MANAGE_ACADEMIC_YEAR)),
    tenant_id: str = Depends(require_tenant),
    service: AcademicYearService = Depends(get_academic_year_service),
) -> ConsolidationJobResponse:
    from edurecords.infrastructure.background.tasks import consolidate_academic_year as job

    await service.ensure_consolidatable(tenant_id, year_id, current_user.capabilities)
    message = job.send(tenant_id, year_id, resume=True, requested_by=current_user.id)
    logger.info(
        "Queued consolidation of year %s (tenant %s) as message %s",
        year_id,
        tenant_id,
        message.message_id,
    )
    return ConsolidationJobResponse(
        academic_year_id=year_id,
        message_id=message.message_id,
        queue=message.queue_name,
        resume=True,
    )
