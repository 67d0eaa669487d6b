# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Academic year lifecycle.

This module provides the AcademicYearService class for:
- Creating academic years (ACTIVE)
- Closing a year (ACTIVE -> CLOSED), which freezes it
- Triggering consolidation and progression finalization at close

CLOSED is terminal. There is no reopen operation; writes to a closed
year are only possible through a reopening window.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Sequence

from edurecords.domains.auth.capabilities import Capability
from edurecords.domains.consolidation import ConsolidationReport, ConsolidationService
from edurecords.domains.exceptions import (
    NotFoundOrForeignTenantError,
    PermissionDeniedError,
    StateConflictError,
    ValidationError,
)
from edurecords.domains.progression import ProgressionValidator
from edurecords.domains.repository import AcademicRepository
from edurecords.infrastructure.audit import AuditActions, AuditEvent, AuditModules, AuditService
from edurecords.infrastructure.database.models import AcademicYear
from edurecords.infrastructure.events.types import Audiences, EventTypes
from edurecords.infrastructure.notifications import NotificationService
from edurecords.models.enums import YearStatus
from edurecords.utils.datetime import utc_now

logger = logging.getLogger(__name__)


def require_capability(capabilities: frozenset[Capability], capability: Capability) -> None:
    """Raise PermissionDeniedError unless the capability is granted."""
    if capability not in capabilities:
        raise PermissionDeniedError(
            f"Missing capability: {capability.value}",
            hint="Ask an institution administrator to perform this operation",
        )


class AcademicYearService:
    """Service for the academic year state machine.

    Attributes:
        repo: Academic repository.
        audit: Audit service.
        notifications: Notification dispatcher.
        consolidation: Consolidation service run at close.
        progression: Progression validator used to finalize enrollments.
    """

    def __init__(
        self,
        repo: AcademicRepository,
        audit: AuditService,
        notifications: NotificationService,
        consolidation: ConsolidationService | None = None,
        progression: ProgressionValidator | None = None,
    ) -> None:
        self.repo = repo
        self.audit = audit
        self.notifications = notifications
        self.consolidation = consolidation or ConsolidationService(repo)
        self.progression = progression or ProgressionValidator(repo, audit)

    async def create(
        self,
        tenant_id: str,
        year: int,
        start_date: date,
        end_date: date,
        actor_id: str,
        capabilities: frozenset[Capability],
    ) -> AcademicYear:
        """Create a new ACTIVE academic year.

        Raises:
            PermissionDeniedError: Without MANAGE_ACADEMIC_YEAR.
            ValidationError: If end_date is not after start_date.
            StateConflictError: If the year number already exists.
        """
        require_capability(capabilities, Capability.MANAGE_ACADEMIC_YEAR)
        if end_date <= start_date:
            raise ValidationError(
                "End date must be after start date",
                hint="Check the academic year dates",
            )
        if await self.repo.get_year_by_number(tenant_id, year) is not None:
            raise StateConflictError(
                f"Academic year {year} already exists",
                hint="Use the existing academic year",
            )

        academic_year = AcademicYear(
            tenant_id=tenant_id,
            year=year,
            status=YearStatus.ACTIVE.value,
            start_date=start_date,
            end_date=end_date,
        )
        self.repo.add(academic_year)
        await self.repo.flush()
        await self.repo.commit()

        logger.info("Created academic year %s (%s) for tenant %s", year, academic_year.id, tenant_id)

        await self.audit.record(
            AuditEvent(
                tenant_id=tenant_id,
                module=AuditModules.ACADEMIC_YEAR,
                action=AuditActions.CREATE,
                entity="academic_year",
                entity_id=academic_year.id,
                actor_id=actor_id,
                after={
                    "year": year,
                    "status": YearStatus.ACTIVE.value,
                    "start_date": start_date.isoformat(),
                    "end_date": end_date.isoformat(),
                },
            )
        )
        await self.notifications.notify(
            EventTypes.AcademicYear.CREATED,
            tenant_id,
            f"Academic year {year} created",
            {"academic_year_id": academic_year.id, "year": year},
            [Audiences.INSTITUTION_ADMINS],
        )
        return academic_year

    async def list(self, tenant_id: str) -> Sequence[AcademicYear]:
        return await self.repo.list_years(tenant_id)

    async def get(self, tenant_id: str, year_id: str) -> AcademicYear:
        academic_year = await self.repo.get_year(tenant_id, year_id)
        if academic_year is None:
            raise NotFoundOrForeignTenantError("Academic year", year_id)
        return academic_year

    async def close(
        self,
        tenant_id: str,
        year_id: str,
        actor_id: str,
        capabilities: frozenset[Capability],
        justification: str | None = None,
    ) -> tuple[AcademicYear, ConsolidationReport]:
        """Close an academic year and consolidate it.

        The closure is committed before consolidation starts. A failing
        consolidation is reported, never rolled back into the closure.

        Args:
            tenant_id: Tenant of the caller.
            year_id: Academic year identifier.
            actor_id: User closing the year.
            capabilities: Capabilities of the caller.
            justification: Optional note stored on the audit entry.

        Returns:
            Tuple of (closed year, consolidation report).

        Raises:
            PermissionDeniedError: Without MANAGE_ACADEMIC_YEAR.
            NotFoundOrForeignTenantError: If the year is not in the tenant.
            StateConflictError: If the year is already closed.
        """
        require_capability(capabilities, Capability.MANAGE_ACADEMIC_YEAR)
        academic_year = await self.get(tenant_id, year_id)
        if academic_year.status != YearStatus.ACTIVE:
            raise StateConflictError(
                f"Academic year {academic_year.year} is already closed",
                hint="Open a reopening window to correct records of a closed year",
            )

        previous_status = academic_year.status
        academic_year.status = YearStatus.CLOSED.value
        academic_year.closed_at = utc_now()
        academic_year.closed_by = actor_id
        await self.repo.commit()
        logger.info("Closed academic year %s (tenant %s) by %s", year_id, tenant_id, actor_id)

        try:
            report = await self.consolidation.consolidate(tenant_id, year_id, generated_by=actor_id)
        except Exception as e:
            logger.error(
                "Consolidation failed for closed year %s: %s", year_id, str(e), exc_info=True
            )
            await self.repo.rollback()
            report = ConsolidationReport(
                errors=[f"Consolidation failed: {str(e) or e.__class__.__name__}"]
            )

        finalized = await self._finalize_progression(tenant_id, year_id)
        report.finalized_enrollments = finalized

        # A rollback above expires loaded instances
        academic_year = await self.get(tenant_id, year_id)
        units = await self.repo.list_teaching_units(tenant_id, year_id)
        enrollments = await self.repo.list_enrollments(tenant_id, year_id)
        statistics = {
            "teaching_units": len(units),
            "enrollments": len(enrollments),
            "finalized_enrollments": finalized,
            "historical_records_created": report.total_created,
            "consolidation_errors": len(report.errors),
        }

        await self.audit.record(
            AuditEvent(
                tenant_id=tenant_id,
                module=AuditModules.ACADEMIC_YEAR,
                action=AuditActions.CLOSE,
                entity="academic_year",
                entity_id=year_id,
                actor_id=actor_id,
                before={"status": previous_status},
                after={
                    "status": YearStatus.CLOSED.value,
                    "closed_at": academic_year.closed_at.isoformat(),
                    "closed_by": actor_id,
                    "statistics": statistics,
                },
                note=justification
                or (
                    f"Academic year {academic_year.year} closed: "
                    f"{report.total_created} historical record(s) generated"
                ),
            )
        )
        await self.notifications.notify(
            EventTypes.AcademicYear.CLOSED,
            tenant_id,
            f"Academic year {academic_year.year} closed",
            {"academic_year_id": year_id, "year": academic_year.year, "statistics": statistics},
            [Audiences.INSTITUTION_ADMINS],
        )
        return academic_year, report

    async def _finalize_progression(self, tenant_id: str, year_id: str) -> int:
        """Recompute final status of every enrollment; failures are logged."""
        try:
            return await self.progression.finalize_year(tenant_id, year_id)
        except Exception as e:
            logger.error(
                "Progression finalization failed for year %s: %s", year_id, str(e), exc_info=True
            )
            await self.repo.rollback()
            return 0

    async def ensure_consolidatable(
        self,
        tenant_id: str,
        year_id: str,
        capabilities: frozenset[Capability],
    ) -> AcademicYear:
        """Check a consolidation may be requested before it is queued.

        Raises:
            PermissionDeniedError: Without MANAGE_ACADEMIC_YEAR.
            NotFoundOrForeignTenantError: If the year is not in the tenant.
            StateConflictError: If the year is not CLOSED.
        """
        require_capability(capabilities, Capability.MANAGE_ACADEMIC_YEAR)
        academic_year = await self.get(tenant_id, year_id)
        if academic_year.status != YearStatus.CLOSED:
            raise StateConflictError(
                f"Academic year {academic_year.year} is not closed",
                hint="Close the academic year before consolidating it",
            )
        return academic_year

    async def run_consolidation(
        self,
        tenant_id: str,
        year_id: str,
        generated_by: str | None,
        resume: bool = False,
    ) -> ConsolidationReport:
        """Consolidate a closed year, then finalize its enrollments.

        Finalization always runs, even when the strict guard finds the
        records already written: a run cut short after the closure
        commit may have left enrollments pending, and recomputing a
        final status from the same snapshots is idempotent. Callers
        check capabilities; the background actor calls this directly.
        """
        report = await self.consolidation.consolidate(
            tenant_id, year_id, generated_by=generated_by, resume=resume
        )
        report.finalized_enrollments = await self._finalize_progression(tenant_id, year_id)

        if report.total_created:
            await self.notifications.notify(
                EventTypes.AcademicYear.CONSOLIDATED,
                tenant_id,
                "Academic year consolidated",
                {
                    "academic_year_id": year_id,
                    "total_created": report.total_created,
                    "finalized_enrollments": report.finalized_enrollments,
                    "errors": len(report.errors),
                },
                [Audiences.INSTITUTION_ADMINS],
            )
        return report

    async def consolidate(
        self,
        tenant_id: str,
        year_id: str,
        actor_id: str | None,
        capabilities: frozenset[Capability],
        resume: bool = False,
    ) -> ConsolidationReport:
        """Run consolidation on an already closed year.

        Used by operators after a crash or timeout with resume=True.
        """
        require_capability(capabilities, Capability.MANAGE_ACADEMIC_YEAR)
        return await self.run_consolidation(tenant_id, year_id, actor_id, resume=resume)
