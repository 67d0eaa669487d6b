# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Student history endpoints (read-only)."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from edurecords.api.dependencies import get_consolidation_service, require_auth, require_tenant
from edurecords.api.middleware.auth import CurrentUser
from edurecords.domains.consolidation import ConsolidationService
from edurecords.models.history import HistoricalRecordResponse, StudentHistoryResponse

router = APIRouter()


@router.get(
    "/{student_id}/history",
    response_model=StudentHistoryResponse,
    summary="Get student academic history",
)
async def get_student_history(
    student_id: str,
    academic_year_id: Annotated[str | None, Query(description="Restrict to one year")] = None,
    current_user: CurrentUser = Depends(require_auth),
    tenant_id: str = Depends(require_tenant),
    service: ConsolidationService = Depends(get_consolidation_service),
) -> StudentHistoryResponse:
    records = await service.student_history(tenant_id, student_id, academic_year_id)
    items = [HistoricalRecordResponse.model_validate(r) for r in records]
    return StudentHistoryResponse(student_id=student_id, items=items, total=len(items))
