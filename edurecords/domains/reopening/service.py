# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Reopening windows for closed academic years.

A reopening window is the only way to write into a CLOSED year. It is
scoped (which categories of writes it authorizes), time-boxed and
audited. A window is active while it is not terminated and valid_until
has not passed. At most one window per year is active at any time; the
database backs this with a partial unique index on open windows.

Windows end either early (terminate_early) or by expiry (expire_due,
run by the scheduler). Both set the termination fields, which are the
only fields that change after creation.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Sequence

from sqlalchemy.exc import IntegrityError

from edurecords.domains.academic_year.service import require_capability
from edurecords.domains.auth.capabilities import Capability
from edurecords.domains.exceptions import (
    NotFoundOrForeignTenantError,
    StateConflictError,
    ValidationError,
)
from edurecords.domains.repository import AcademicRepository
from edurecords.infrastructure.audit import AuditActions, AuditEvent, AuditModules, AuditService
from edurecords.infrastructure.database.models import ReopeningWindow
from edurecords.infrastructure.events.types import Audiences, EventTypes
from edurecords.infrastructure.notifications import NotificationService
from edurecords.models.enums import ReopeningScope, YearStatus
from edurecords.utils.datetime import ensure_utc, is_expired, isoformat_utc, utc_now

logger = logging.getLogger(__name__)

EXPIRY_NOTE = "Expired automatically"


def _window_conflict(year: int, existing: ReopeningWindow | None = None) -> StateConflictError:
    if existing is None:
        hint = "Terminate the current window or wait until it ends"
        details = None
    else:
        hint = (
            "Terminate the current window or wait until it ends on "
            f"{isoformat_utc(existing.valid_until)}"
        )
        details = {"window_id": existing.id}
    return StateConflictError(
        f"Academic year {year} already has an active reopening window",
        hint=hint,
        details=details,
    )


def is_active(window: ReopeningWindow, now: datetime | None = None) -> bool:
    """A window is active while not terminated and not past valid_until."""
    return window.terminated_at is None and not is_expired(window.valid_until, now)


def _snapshot(window: ReopeningWindow) -> dict:
    return {
        "academic_year_id": window.academic_year_id,
        "scopes": list(window.scopes),
        "valid_from": isoformat_utc(window.valid_from),
        "valid_until": isoformat_utc(window.valid_until),
        "terminated_at": isoformat_utc(window.terminated_at),
    }


def normalize_scopes(scopes: Iterable[str]) -> list[str]:
    """Validate scope names and return them deduplicated, in input order.

    Raises:
        ValidationError: If the list is empty or contains an unknown scope.
    """
    normalized: list[str] = []
    for scope in scopes:
        try:
            value = ReopeningScope(str(scope).upper()).value
        except ValueError:
            valid = ", ".join(s.value for s in ReopeningScope)
            raise ValidationError(
                f"Unknown reopening scope: {scope}",
                hint=f"Valid scopes: {valid}",
            )
        if value not in normalized:
            normalized.append(value)
    if not normalized:
        raise ValidationError(
            "At least one scope is required",
            hint="Choose what the window authorizes, e.g. GRADES",
        )
    return normalized


class ReopeningService:
    """Manage reopening windows.

    Attributes:
        repo: Academic repository.
        audit: Audit service.
        notifications: Notification dispatcher.
    """

    def __init__(
        self,
        repo: AcademicRepository,
        audit: AuditService,
        notifications: NotificationService,
    ) -> None:
        self.repo = repo
        self.audit = audit
        self.notifications = notifications

    async def create(
        self,
        tenant_id: str,
        year_id: str,
        reason: str,
        scopes: Iterable[str],
        valid_from: datetime,
        valid_until: datetime,
        actor_id: str,
        capabilities: frozenset[Capability],
        notes: str | None = None,
    ) -> ReopeningWindow:
        """Open a reopening window on a closed year.

        Args:
            tenant_id: Tenant of the caller.
            year_id: Closed academic year.
            reason: Mandatory justification.
            scopes: Categories of writes to authorize.
            valid_from: Start of validity.
            valid_until: End of validity.
            actor_id: User authorizing the window.
            capabilities: Capabilities of the caller.
            notes: Optional free-form notes.

        Returns:
            The created window.

        Raises:
            PermissionDeniedError: Without MANAGE_REOPENING.
            ValidationError: On blank reason, bad scopes or dates.
            NotFoundOrForeignTenantError: If the year is not in the tenant.
            StateConflictError: If the year is not closed or already has
                an active window.
        """
        require_capability(capabilities, Capability.MANAGE_REOPENING)

        if not reason or not reason.strip():
            raise ValidationError(
                "A reason is required to reopen a closed academic year",
                hint="Describe why the closed year must be corrected",
            )
        granted = normalize_scopes(scopes)
        valid_from = ensure_utc(valid_from)
        valid_until = ensure_utc(valid_until)
        now = utc_now()
        if valid_until <= valid_from:
            raise ValidationError(
                "valid_until must be after valid_from",
                hint="Check the window dates",
            )
        if valid_until < now:
            raise ValidationError(
                "valid_until must not be in the past",
                hint="Choose an end date in the future",
            )

        year = await self.repo.get_year(tenant_id, year_id)
        if year is None:
            raise NotFoundOrForeignTenantError("Academic year", year_id)
        if year.status != YearStatus.CLOSED:
            raise StateConflictError(
                f"Academic year {year.year} is not closed",
                hint="Only closed academic years can be reopened; active years accept writes",
            )

        stale = await self.repo.list_expired_windows(now, tenant_id=tenant_id, year_id=year_id)
        for window in stale:
            await self._expire(window, now)
        if stale:
            await self.repo.commit()

        existing = await self.repo.find_active_window(tenant_id, year_id, now)
        if existing is not None:
            raise _window_conflict(year.year, existing)

        window = ReopeningWindow(
            tenant_id=tenant_id,
            academic_year_id=year_id,
            reason=reason.strip(),
            scopes=granted,
            valid_from=valid_from,
            valid_until=valid_until,
            authorized_by=actor_id,
            notes=notes,
        )
        label = year.year
        self.repo.add(window)
        try:
            await self.repo.flush()
        except IntegrityError as e:
            # Another request opened a window on this year first
            await self.repo.rollback()
            logger.info("Concurrent reopening of year %s rejected: %s", label, e.orig)
            raise _window_conflict(label) from e
        await self.repo.commit()

        logger.warning(
            "Reopening window %s opened on closed year %s (scopes: %s) by %s",
            window.id,
            year.year,
            ", ".join(granted),
            actor_id,
        )

        await self.audit.record(
            AuditEvent(
                tenant_id=tenant_id,
                module=AuditModules.REOPENING,
                action=AuditActions.CREATE,
                entity="reopening_window",
                entity_id=window.id,
                actor_id=actor_id,
                after=_snapshot(window),
                note=(
                    f"Reopening of academic year {year.year}. Reason: {window.reason}. "
                    f"Scopes: {', '.join(granted)}."
                ),
            )
        )
        await self.notifications.notify(
            EventTypes.Reopening.CREATED,
            tenant_id,
            f"Academic year {year.year} reopened",
            {
                "window_id": window.id,
                "academic_year_id": year_id,
                "year": year.year,
                "reason": window.reason,
                "scopes": granted,
                "valid_until": valid_until.isoformat(),
            },
            [Audiences.INSTITUTION_ADMINS, Audiences.PLATFORM_OPERATORS],
        )
        return window

    async def active_window(
        self, tenant_id: str, year_id: str, now: datetime | None = None
    ) -> ReopeningWindow | None:
        return await self.repo.find_active_window(tenant_id, year_id, ensure_utc(now) or utc_now())

    async def get_window(self, tenant_id: str, window_id: str) -> ReopeningWindow:
        window = await self.repo.get_window(tenant_id, window_id)
        if window is None:
            raise NotFoundOrForeignTenantError("Reopening window", window_id)
        return window

    async def list_windows(
        self,
        tenant_id: str,
        year_id: str | None = None,
        active: bool | None = None,
    ) -> Sequence[ReopeningWindow]:
        return await self.repo.list_windows(tenant_id, year_id=year_id, active=active, now=utc_now())

    async def terminate_early(
        self,
        tenant_id: str,
        window_id: str,
        actor_id: str,
        capabilities: frozenset[Capability],
        notes: str | None = None,
    ) -> ReopeningWindow:
        """End an active window before valid_until.

        Raises:
            PermissionDeniedError: Without MANAGE_REOPENING.
            NotFoundOrForeignTenantError: If the window is not in the tenant.
            StateConflictError: If the window is no longer active.
        """
        require_capability(capabilities, Capability.MANAGE_REOPENING)
        window = await self.get_window(tenant_id, window_id)
        now = utc_now()
        if not is_active(window, now):
            raise StateConflictError(
                "Reopening window is not active",
                hint="The window has already ended; no termination is needed",
            )

        before = _snapshot(window)
        window.terminated_at = now
        window.terminated_by = actor_id
        window.termination_notes = notes
        await self.repo.flush()
        await self.repo.commit()

        logger.info("Reopening window %s terminated early by %s", window.id, actor_id)

        await self.audit.record(
            AuditEvent(
                tenant_id=tenant_id,
                module=AuditModules.REOPENING,
                action=AuditActions.TERMINATE,
                entity="reopening_window",
                entity_id=window.id,
                actor_id=actor_id,
                before=before,
                after=_snapshot(window),
                note=f"Reopening window terminated before its end. Notes: {notes or 'none'}.",
            )
        )
        await self.notifications.notify(
            EventTypes.Reopening.TERMINATED,
            tenant_id,
            "Reopening window terminated",
            {"window_id": window.id, "academic_year_id": window.academic_year_id},
            [Audiences.INSTITUTION_ADMINS, Audiences.PLATFORM_OPERATORS],
        )
        return window

    async def _expire(self, window: ReopeningWindow, now: datetime) -> None:
        before = _snapshot(window)
        window.terminated_at = now
        window.termination_notes = EXPIRY_NOTE
        await self.repo.flush()
        await self.audit.record(
            AuditEvent(
                tenant_id=window.tenant_id,
                module=AuditModules.REOPENING,
                action=AuditActions.EXPIRE,
                entity="reopening_window",
                entity_id=window.id,
                before=before,
                after=_snapshot(window),
                note="Reopening window reached valid_until",
            )
        )

    async def expire_due(self, tenant_id: str | None = None, now: datetime | None = None) -> int:
        """Terminate every window whose valid_until has passed.

        Args:
            tenant_id: Restrict to one tenant, all tenants when None.
            now: Reference time, defaults to the current UTC time.

        Returns:
            Number of windows terminated.
        """
        now = ensure_utc(now) or utc_now()
        due = await self.repo.list_expired_windows(now, tenant_id=tenant_id)
        for window in due:
            await self._expire(window, now)
        await self.repo.commit()

        for window in due:
            await self.notifications.notify(
                EventTypes.Reopening.EXPIRED,
                window.tenant_id,
                "Reopening window expired",
                {"window_id": window.id, "academic_year_id": window.academic_year_id},
                [Audiences.INSTITUTION_ADMINS],
            )

        if due:
            logger.info("Expired %d reopening window(s)", len(due))
        return len(due)
