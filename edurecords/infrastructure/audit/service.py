# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Audit trail recording.

Domain services describe what happened as an AuditEvent and hand it to
AuditService.record(). Recording is fire-and-forget: a failing sink is
logged and never changes the outcome of the operation being audited.

Sinks:
- DatabaseAuditSink: appends to audit_logs inside a savepoint so a failed
  insert does not poison the caller's transaction.
- LoggingAuditSink: writes the event as a structured log line.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from edurecords.infrastructure.database.models import AuditLog
from edurecords.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class AuditModules:
    ACADEMIC_YEAR = "academic_year"
    REOPENING = "reopening"
    MUTATION_GATE = "mutation_gate"
    PROGRESSION = "progression"
    CONSOLIDATION = "consolidation"


class AuditActions:
    CREATE = "CREATE"
    CLOSE = "CLOSE"
    TERMINATE = "TERMINATE"
    EXPIRE = "EXPIRE"
    SCOPED_WRITE = "SCOPED_WRITE"
    OVERRIDE = "OVERRIDE"
    PROGRESSION_OVERRIDE = "PROGRESSION_OVERRIDE"


@dataclass
class AuditEvent:
    """One audit trail entry.

    Attributes:
        tenant_id: Tenant the event belongs to.
        module: Subsystem emitting the event (see AuditModules).
        action: What happened (see AuditActions).
        entity: Kind of entity affected.
        entity_id: Identifier of the affected entity.
        actor_id: User who triggered the event, None for system jobs.
        before: State before the change.
        after: State after the change.
        note: Free-form human-readable context.
    """

    tenant_id: str
    module: str
    action: str
    entity: str
    entity_id: str | None = None
    actor_id: str | None = None
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    note: str | None = None
    occurred_at: datetime = field(default_factory=utc_now)


class AuditSink(Protocol):
    async def write(self, event: AuditEvent) -> None: ...


class DatabaseAuditSink:
    """Append audit events to the audit_logs table."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def write(self, event: AuditEvent) -> None:
        async with self.db.begin_nested():
            self.db.add(
                AuditLog(
                    tenant_id=event.tenant_id,
                    module=event.module,
                    action=event.action,
                    entity=event.entity,
                    entity_id=event.entity_id,
                    actor_id=event.actor_id,
                    before=event.before,
                    after=event.after,
                    note=event.note,
                    created_at=event.occurred_at,
                )
            )


class LoggingAuditSink:
    """Write audit events as log lines instead of the audit_logs table.

    Not wired by default. Pass it to AuditService where no database
    session exists.
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        self.log = log or logging.getLogger("edurecords.audit")

    async def write(self, event: AuditEvent) -> None:
        self.log.info(
            "audit %s.%s %s=%s actor=%s tenant=%s note=%s",
            event.module,
            event.action,
            event.entity,
            event.entity_id,
            event.actor_id,
            event.tenant_id,
            event.note,
        )


class AuditService:
    """Record audit events without ever failing the caller."""

    def __init__(self, sink: AuditSink) -> None:
        self.sink = sink

    async def record(self, event: AuditEvent) -> bool:
        """Record an audit event.

        Args:
            event: Event to record.

        Returns:
            True if the sink accepted the event, False if it failed.
        """
        try:
            await self.sink.write(event)
        except Exception as e:
            logger.error(
                "Failed to record audit event %s.%s for %s %s: %s",
                event.module,
                event.action,
                event.entity,
                event.entity_id,
                str(e),
                exc_info=True,
            )
            return False
        return True
