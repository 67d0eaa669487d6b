# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Closed-year enforcement for academic writes.

Every write of an academic fact passes through MutationGate.check()
before the handler runs. The gate resolves the academic year the write
belongs to, in this order, stopping at the first hit:

    academic_year_id -> teaching unit -> class group -> lesson
    -> evaluation -> enrollment -> grade entry

Then:
- no year resolved, or year ACTIVE: allowed
- year CLOSED, no active reopening window: blocked
- window active but the route is outside its scopes: blocked
- window active and the route is in scope: audited, then allowed

Callers holding OVERRIDE_CLOSED_YEAR may set override=True to bypass
the gate entirely. Every bypass is audited and logged at WARNING.
Reads are never gated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from edurecords.domains.auth.capabilities import Capability
from edurecords.domains.exceptions import BlockedByClosedYearError
from edurecords.domains.reopening.scopes import READ_METHODS, permission_check, scope_for_route
from edurecords.domains.reopening.service import ReopeningService
from edurecords.domains.repository import AcademicRepository
from edurecords.infrastructure.audit import AuditActions, AuditEvent, AuditModules, AuditService
from edurecords.infrastructure.database.models import AcademicYear
from edurecords.infrastructure.events.types import Audiences, EventTypes
from edurecords.infrastructure.notifications import NotificationService
from edurecords.models.enums import InstitutionType, YearStatus

logger = logging.getLogger(__name__)


@dataclass
class MutationRequest:
    """A write about to be applied.

    Attributes:
        tenant_id: Tenant of the caller.
        actor_id: Caller.
        route: Request path.
        method: HTTP method.
        capabilities: Capabilities of the caller.
        academic_year_id: Year given directly on the request.
        teaching_unit_id: Teaching unit the write touches.
        class_group_id: Class group the write touches.
        lesson_id: Lesson of an attendance fact.
        evaluation_id: Evaluation of a grade or evaluation edit.
        enrollment_id: Annual enrollment being changed.
        grade_entry_id: Grade entry being changed.
        override: Ask to bypass the gate.
    """

    tenant_id: str
    actor_id: str | None
    route: str
    method: str
    capabilities: frozenset[Capability] = field(default_factory=frozenset)
    academic_year_id: str | None = None
    teaching_unit_id: str | None = None
    class_group_id: str | None = None
    lesson_id: str | None = None
    evaluation_id: str | None = None
    enrollment_id: str | None = None
    grade_entry_id: str | None = None
    override: bool = False


@dataclass
class GateDecision:
    """Outcome of a gate check. Handlers use academic_year_id as resolved here."""

    allowed: bool
    academic_year_id: str | None = None
    window_id: str | None = None
    bypassed: bool = False
    reason: str = ""


class MutationGate:
    """Enforce the closed-year freeze on writes.

    Attributes:
        repo: Academic repository.
        audit: Audit service.
        reopening: Reopening service used to find the active window.
        notifications: Optional dispatcher told about overrides.
    """

    def __init__(
        self,
        repo: AcademicRepository,
        audit: AuditService,
        reopening: ReopeningService,
        notifications: NotificationService | None = None,
    ) -> None:
        self.repo = repo
        self.audit = audit
        self.reopening = reopening
        self.notifications = notifications

    async def resolve_year(self, request: MutationRequest) -> AcademicYear | None:
        """Resolve the academic year of a write through the fallback chain."""
        tenant_id = request.tenant_id
        if request.academic_year_id:
            year = await self.repo.get_year(tenant_id, request.academic_year_id)
            if year is not None:
                return year

        chain = (
            (request.teaching_unit_id, self.repo.year_id_for_teaching_unit),
            (request.class_group_id, self.repo.year_id_for_class_group),
            (request.lesson_id, self.repo.year_id_for_lesson),
            (request.evaluation_id, self.repo.year_id_for_evaluation),
            (request.enrollment_id, self.repo.year_id_for_enrollment),
            (request.grade_entry_id, self.repo.year_id_for_grade_entry),
        )
        for entity_id, lookup in chain:
            if not entity_id:
                continue
            year_id = await lookup(tenant_id, entity_id)
            if year_id is None:
                continue
            year = await self.repo.get_year(tenant_id, year_id)
            if year is not None:
                return year
        return None

    async def _institution_type(self, tenant_id: str) -> InstitutionType:
        settings = await self.repo.get_tenant_settings(tenant_id)
        if settings is None:
            return InstitutionType.SECONDARY
        return InstitutionType(settings.institution_type)

    async def check(self, request: MutationRequest) -> GateDecision:
        """Decide whether a write may proceed.

        Returns:
            GateDecision with the resolved academic year id.

        Raises:
            BlockedByClosedYearError: If the write targets a closed year
                and no active window covers it.
        """
        if request.method.upper() in READ_METHODS:
            return GateDecision(allowed=True, reason="Reads are not gated")

        year = await self.resolve_year(request)
        year_id = year.id if year is not None else None

        if request.override and Capability.OVERRIDE_CLOSED_YEAR in request.capabilities:
            return await self._bypass(request, year)

        if year is None:
            return GateDecision(allowed=True, reason="No academic year resolved")

        if year.status != YearStatus.CLOSED:
            return GateDecision(allowed=True, academic_year_id=year_id, reason="Year is active")

        window = await self.reopening.active_window(request.tenant_id, year.id)
        if window is None:
            raise BlockedByClosedYearError(
                f"Academic year {year.year} is closed",
                hint=(
                    "Closed years are read-only. Ask an administrator to open a "
                    "reopening window for the required scope"
                ),
                academic_year_id=year.id,
            )

        institution_type = await self._institution_type(request.tenant_id)
        if not permission_check(request.route, request.method, window.scopes, institution_type):
            required = scope_for_route(request.route, institution_type)
            raise BlockedByClosedYearError(
                (
                    f"Academic year {year.year} is closed. The active reopening window "
                    f"only allows: {', '.join(window.scopes)}"
                ),
                hint=f"This operation requires a reopening window with scope {required.value}",
                academic_year_id=year.id,
                required_scope=required.value,
                window_id=window.id,
            )

        await self.audit.record(
            AuditEvent(
                tenant_id=request.tenant_id,
                module=AuditModules.MUTATION_GATE,
                action=AuditActions.SCOPED_WRITE,
                entity="academic_year",
                entity_id=year.id,
                actor_id=request.actor_id,
                after={
                    "window_id": window.id,
                    "reason": window.reason,
                    "scopes": list(window.scopes),
                    "route": f"{request.method.upper()} {request.route}",
                },
                note=(
                    f"Write during reopening of academic year {year.year}. "
                    f"Window {window.id}, scopes: {', '.join(window.scopes)}."
                ),
            )
        )
        return GateDecision(
            allowed=True,
            academic_year_id=year.id,
            window_id=window.id,
            reason="Authorized by reopening window",
        )

    async def _bypass(self, request: MutationRequest, year: AcademicYear | None) -> GateDecision:
        year_id = year.id if year is not None else None
        logger.warning(
            "Closed-year gate bypassed by %s: %s %s (year %s, tenant %s)",
            request.actor_id,
            request.method.upper(),
            request.route,
            year_id,
            request.tenant_id,
        )
        await self.audit.record(
            AuditEvent(
                tenant_id=request.tenant_id,
                module=AuditModules.MUTATION_GATE,
                action=AuditActions.OVERRIDE,
                entity="academic_year",
                entity_id=year_id,
                actor_id=request.actor_id,
                before={"status": year.status if year is not None else None},
                after={
                    "route": f"{request.method.upper()} {request.route}",
                    "teaching_unit_id": request.teaching_unit_id,
                    "class_group_id": request.class_group_id,
                    "lesson_id": request.lesson_id,
                    "evaluation_id": request.evaluation_id,
                    "enrollment_id": request.enrollment_id,
                    "grade_entry_id": request.grade_entry_id,
                },
                note="Closed-year gate bypassed with explicit override",
            )
        )
        if self.notifications is not None:
            await self.notifications.notify(
                EventTypes.Gate.OVERRIDE_USED,
                request.tenant_id,
                "Closed-year gate bypassed",
                {
                    "academic_year_id": year_id,
                    "actor_id": request.actor_id,
                    "route": f"{request.method.upper()} {request.route}",
                },
                [Audiences.PLATFORM_OPERATORS],
            )
        return GateDecision(
            allowed=True,
            academic_year_id=year_id,
            bypassed=True,
            reason="Override applied",
        )
