# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

This module provides dependency functions for FastAPI endpoints.
Dependencies are used to:
- Get the database session and the academic repository
- Get the authenticated user and their tenant
- Build domain services over the request's session
- Run the closed-year mutation gate before a write

Example:
    @router.post("/grades")
    async def record_grade(
        data: GradeCreateRequest,
        current_user: CurrentUser = Depends(RequireCapability(Capability.RECORD_FACTS)),
        gate: MutationGate = Depends(get_mutation_gate),
    ):
        ...
"""

import logging
from typing import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from edurecords.api.middleware.auth import CurrentUser, get_current_user
from edurecords.api.middleware.tenant import get_tenant_id
from edurecords.domains.academic_year import AcademicYearService
from edurecords.domains.auth import Capability
from edurecords.domains.consolidation import ConsolidationService
from edurecords.domains.mutation_gate import GateDecision, MutationGate, MutationRequest
from edurecords.domains.progression import ProgressionValidator
from edurecords.domains.records import AcademicRecordsService
from edurecords.domains.reopening import ReopeningService
from edurecords.infrastructure.audit import AuditService, DatabaseAuditSink
from edurecords.infrastructure.database.connection import get_session
from edurecords.infrastructure.database.repository import SqlAlchemyAcademicRepository
from edurecords.infrastructure.notifications import NotificationService

logger = logging.getLogger(__name__)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get a records database session for the request.

    Yields:
        AsyncSession, committed on success and rolled back on error.
    """
    async with get_session() as session:
        yield session


def get_repository(db: AsyncSession = Depends(get_db)) -> SqlAlchemyAcademicRepository:
    return SqlAlchemyAcademicRepository(db)


def get_audit_service(db: AsyncSession = Depends(get_db)) -> AuditService:
    return AuditService(DatabaseAuditSink(db))


def get_notification_service() -> NotificationService:
    return NotificationService()


# =========================================================================
# Authentication Dependencies
# =========================================================================

def require_auth(request: Request) -> CurrentUser:
    """Require an authenticated user.

    Raises:
        HTTPException: 401 if not authenticated.
    """
    user = get_current_user(request)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_tenant(request: Request, user: CurrentUser = Depends(require_auth)) -> str:
    """Require a tenant on the authenticated token.

    Returns:
        Tenant id.

    Raises:
        HTTPException: 400 if the token carries no tenant.
    """
    tenant_id = get_tenant_id(request) or user.tenant_id
    if not tenant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Tenant context required",
        )
    return tenant_id


class RequireCapability:
    """Dependency for requiring a capability.

    Example:
        @router.post("/academic-years")
        async def create_year(
            user: CurrentUser = Depends(RequireCapability(Capability.MANAGE_ACADEMIC_YEAR)),
        ):
            ...
    """

    def __init__(self, capability: Capability) -> None:
        self.capability = capability

    def __call__(self, request: Request) -> CurrentUser:
        user = require_auth(request)
        if not user.can(self.capability):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing capability: {self.capability.value}",
            )
        return user


# =========================================================================
# Service Dependencies
# =========================================================================

def get_progression_validator(
    repo: SqlAlchemyAcademicRepository = Depends(get_repository),
    audit: AuditService = Depends(get_audit_service),
) -> ProgressionValidator:
    return ProgressionValidator(repo, audit)


def get_consolidation_service(
    repo: SqlAlchemyAcademicRepository = Depends(get_repository),
) -> ConsolidationService:
    return ConsolidationService(repo)


def get_academic_year_service(
    repo: SqlAlchemyAcademicRepository = Depends(get_repository),
    audit: AuditService = Depends(get_audit_service),
    notifications: NotificationService = Depends(get_notification_service),
    progression: ProgressionValidator = Depends(get_progression_validator),
) -> AcademicYearService:
    return AcademicYearService(repo, audit, notifications, progression=progression)


def get_reopening_service(
    repo: SqlAlchemyAcademicRepository = Depends(get_repository),
    audit: AuditService = Depends(get_audit_service),
    notifications: NotificationService = Depends(get_notification_service),
) -> ReopeningService:
    return ReopeningService(repo, audit, notifications)


def get_mutation_gate(
    repo: SqlAlchemyAcademicRepository = Depends(get_repository),
    audit: AuditService = Depends(get_audit_service),
    reopening: ReopeningService = Depends(get_reopening_service),
    notifications: NotificationService = Depends(get_notification_service),
) -> MutationGate:
    return MutationGate(repo, audit, reopening, notifications)


def get_records_service(
    repo: SqlAlchemyAcademicRepository = Depends(get_repository),
    progression: ProgressionValidator = Depends(get_progression_validator),
) -> AcademicRecordsService:
    return AcademicRecordsService(repo, progression)


async def check_gate(
    gate: MutationGate,
    request: Request,
    user: CurrentUser,
    tenant_id: str,
    override: bool = False,
    **entity_ids: str | None,
) -> GateDecision:
    """Run the mutation gate for the current write request.

    Args:
        gate: Mutation gate.
        request: HTTP request, for route and method.
        user: Authenticated user.
        tenant_id: Tenant of the user.
        override: Caller asks to bypass the gate.
        **entity_ids: Ids the write touches (teaching_unit_id, lesson_id, ...).

    Returns:
        GateDecision with the resolved academic year id.

    Raises:
        BlockedByClosedYearError: If the write targets a closed year.
    """
    return await gate.check(
        MutationRequest(
            tenant_id=tenant_id,
            actor_id=user.id,
            route=request.url.path,
            method=request.method,
            capabilities=user.capabilities,
            override=override,
            **entity_ids,
        )
    )
