# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class-level progression between academic years.

Rules for a new annual enrollment, based on the student's latest
enrollment in an earlier year:
- No earlier enrollment: allowed (first enrollment).
- Earlier final status still pending: allowed.
- APPROVED: only the next class level (ordinal + 1).
- FAILED: only the same class level, unless the failed subjects of that
  year are within the tenant's tolerance (then treated as APPROVED), or
  an override is requested by a caller with OVERRIDE_PROGRESSION in a
  tenant that allows it. Overrides are audited.

At year close, finalize_year() writes final_status and a suggested next
class level on every enrollment of the year.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from edurecords.domains.auth.capabilities import Capability
from edurecords.domains.exceptions import NotFoundOrForeignTenantError
from edurecords.domains.repository import AcademicRepository
from edurecords.infrastructure.audit import AuditActions, AuditEvent, AuditModules, AuditService
from edurecords.infrastructure.database.models import AnnualEnrollment
from edurecords.models.enums import AcademicSituation, FinalStatus

logger = logging.getLogger(__name__)

FAILED_SITUATIONS = frozenset({AcademicSituation.FAILED, AcademicSituation.FAILED_ATTENDANCE})


@dataclass
class ProgressionDecision:
    """Outcome of a progression check.

    Attributes:
        allowed: Whether the enrollment may proceed.
        reason: Human-readable explanation.
        previous_status: Final status of the earlier enrollment, if any.
        previous_ordinal: Class level ordinal of the earlier enrollment.
        target_ordinal: Class level ordinal requested.
        override_applied: An override unlocked a blocked transition.
    """

    allowed: bool
    reason: str
    previous_status: FinalStatus | None = None
    previous_ordinal: int | None = None
    target_ordinal: int | None = None
    override_applied: bool = False


@dataclass
class FinalStatusSummary:
    """Aggregate of a student's historical records for one year."""

    status: FinalStatus
    failed_subjects: int
    total_subjects: int
    tolerated: int


class ProgressionValidator:
    """Validate enrollments against the student's previous outcome.

    Attributes:
        repo: Academic repository.
        audit: Audit service for overrides.
    """

    def __init__(self, repo: AcademicRepository, audit: AuditService) -> None:
        self.repo = repo
        self.audit = audit

    async def _tolerance(self, tenant_id: str) -> tuple[int, bool]:
        settings = await self.repo.get_tenant_settings(tenant_id)
        if settings is None:
            return 0, False
        return settings.tolerated_failed_subjects or 0, bool(
            settings.allow_failed_progression_override
        )

    async def final_status_for(
        self, tenant_id: str, student_id: str, year_id: str
    ) -> FinalStatusSummary:
        """Aggregate a student's frozen records for one year.

        No records at all counts as FAILED. Otherwise the student is
        APPROVED when the failed subjects do not exceed the tenant's
        tolerated count.
        """
        tolerated, _ = await self._tolerance(tenant_id)
        records = await self.repo.list_historical_records(tenant_id, student_id, year_id)
        failed = sum(1 for r in records if r.academic_situation in FAILED_SITUATIONS)

        if not records:
            status = FinalStatus.FAILED
        elif failed <= tolerated:
            status = FinalStatus.APPROVED
        else:
            status = FinalStatus.FAILED

        return FinalStatusSummary(
            status=status,
            failed_subjects=failed,
            total_subjects=len(records),
            tolerated=tolerated,
        )

    async def validate(
        self,
        tenant_id: str,
        student_id: str,
        target_class_level_id: str,
        target_year_id: str,
        capabilities: frozenset[Capability],
        override: bool = False,
        actor_id: str | None = None,
    ) -> ProgressionDecision:
        """Check whether a student may be enrolled at a class level.

        Args:
            tenant_id: Tenant of the caller.
            student_id: Student being enrolled.
            target_class_level_id: Requested class level.
            target_year_id: Academic year of the new enrollment.
            capabilities: Capabilities of the caller.
            override: Caller asks to bypass a FAILED block.
            actor_id: Caller, recorded on override audits.

        Returns:
            ProgressionDecision.

        Raises:
            NotFoundOrForeignTenantError: If the year or class level is
                not in the tenant.
        """
        target_year = await self.repo.get_year(tenant_id, target_year_id)
        if target_year is None:
            raise NotFoundOrForeignTenantError("Academic year", target_year_id)
        target_level = await self.repo.get_class_level(tenant_id, target_class_level_id)
        if target_level is None:
            raise NotFoundOrForeignTenantError("Class level", target_class_level_id)

        previous = await self.repo.find_latest_prior_enrollment(
            tenant_id, student_id, target_year.year
        )
        if previous is None:
            return ProgressionDecision(
                allowed=True,
                reason="First enrollment",
                target_ordinal=target_level.ordinal,
            )

        previous_level = await self.repo.get_class_level(tenant_id, previous.class_level_id)
        previous_ordinal = previous_level.ordinal if previous_level is not None else None

        if previous.final_status is None:
            return ProgressionDecision(
                allowed=True,
                reason="Previous year outcome is still pending",
                previous_ordinal=previous_ordinal,
                target_ordinal=target_level.ordinal,
            )

        status = FinalStatus(previous.final_status)
        tolerated, tenant_allows_override = await self._tolerance(tenant_id)

        if status == FinalStatus.FAILED:
            summary = await self.final_status_for(
                tenant_id, student_id, previous.academic_year_id
            )
            if summary.total_subjects and summary.failed_subjects <= tolerated:
                logger.info(
                    "Student %s failed %d subject(s), within tolerance of %d",
                    student_id,
                    summary.failed_subjects,
                    tolerated,
                )
                status = FinalStatus.APPROVED

        decision = ProgressionDecision(
            allowed=False,
            reason="",
            previous_status=FinalStatus(previous.final_status),
            previous_ordinal=previous_ordinal,
            target_ordinal=target_level.ordinal,
        )

        if previous_ordinal is None:
            decision.allowed = True
            decision.reason = "Previous class level is unknown"
            return decision

        if status == FinalStatus.APPROVED:
            if target_level.ordinal == previous_ordinal + 1:
                decision.allowed = True
                decision.reason = "Approved student moves to the next class level"
            else:
                decision.reason = (
                    f"Approved student must enroll at class level {previous_ordinal + 1}"
                )
            return decision

        if target_level.ordinal == previous_ordinal:
            decision.allowed = True
            decision.reason = "Failed student repeats the same class level"
            return decision

        if (
            override
            and Capability.OVERRIDE_PROGRESSION in capabilities
            and tenant_allows_override
        ):
            decision.allowed = True
            decision.override_applied = True
            decision.reason = "Progression override applied"
            logger.warning(
                "Progression override for student %s: ordinal %s -> %s by %s",
                student_id,
                previous_ordinal,
                target_level.ordinal,
                actor_id,
            )
            await self.audit.record(
                AuditEvent(
                    tenant_id=tenant_id,
                    module=AuditModules.PROGRESSION,
                    action=AuditActions.PROGRESSION_OVERRIDE,
                    entity="student",
                    entity_id=student_id,
                    actor_id=actor_id,
                    before={
                        "enrollment_id": previous.id,
                        "final_status": previous.final_status,
                        "ordinal": previous_ordinal,
                    },
                    after={
                        "academic_year_id": target_year_id,
                        "class_level_id": target_class_level_id,
                        "ordinal": target_level.ordinal,
                    },
                    note="Failed student enrolled past the same class level by override",
                )
            )
            return decision

        decision.reason = (
            "Student failed the previous year and may only re-enroll at the same "
            "class level; an override requires elevated permission and tenant approval"
        )
        return decision

    async def suggest_next_level(
        self, tenant_id: str, enrollment: AnnualEnrollment, status: FinalStatus
    ) -> str:
        """Next class level for APPROVED when one exists, else the current one."""
        if status == FinalStatus.FAILED:
            return enrollment.class_level_id
        current = await self.repo.get_class_level(tenant_id, enrollment.class_level_id)
        if current is None:
            return enrollment.class_level_id
        following = await self.repo.get_class_level_by_ordinal(tenant_id, current.ordinal + 1)
        return following.id if following is not None else enrollment.class_level_id

    async def finalize_year(self, tenant_id: str, year_id: str) -> int:
        """Write final status and suggested level on every enrollment of a year.

        Failures are logged per enrollment and never raised.

        Returns:
            Number of enrollments updated.
        """
        updated = 0
        enrollments = await self.repo.list_enrollments(tenant_id, year_id)
        for enrollment in enrollments:
            try:
                summary = await self.final_status_for(tenant_id, enrollment.student_id, year_id)
                suggested = await self.suggest_next_level(tenant_id, enrollment, summary.status)
                async with self.repo.savepoint():
                    enrollment.final_status = summary.status.value
                    enrollment.suggested_class_level_id = suggested
                    await self.repo.flush()
                updated += 1
            except Exception as e:
                logger.error(
                    "Failed to finalize enrollment %s: %s", enrollment.id, str(e), exc_info=True
                )
        await self.repo.commit()
        logger.info("Finalized %d/%d enrollment(s) of year %s", updated, len(enrollments), year_id)
        return updated
