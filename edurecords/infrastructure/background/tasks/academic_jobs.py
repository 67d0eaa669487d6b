# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Academic lifecycle actors.

Actors:
    - expire_reopening_windows_job: Sweeps reopening windows past their
      end date. Called by the scheduler on an interval.
    - consolidate_academic_year: Runs consolidation for a closed year.
      Safe to re-run: with resume=True only missing records are created.
"""

import logging
from typing import Any

import dramatiq

from edurecords.core.config import get_settings
from edurecords.domains.academic_year import AcademicYearService
from edurecords.domains.reopening import ReopeningService
from edurecords.infrastructure.audit import AuditService, DatabaseAuditSink
from edurecords.infrastructure.background.broker import Priority, Queues, setup_dramatiq
from edurecords.infrastructure.background.tasks.base import run_async
from edurecords.infrastructure.database.connection import get_worker_session
from edurecords.infrastructure.database.repository import SqlAlchemyAcademicRepository
from edurecords.infrastructure.notifications import NotificationService

setup_dramatiq()

logger = logging.getLogger(__name__)
_worker = get_settings().worker


async def expire_windows(tenant_id: str | None = None) -> int:
    async with get_worker_session() as session:
        service = ReopeningService(
            SqlAlchemyAcademicRepository(session),
            AuditService(DatabaseAuditSink(session)),
            NotificationService(),
        )
        return await service.expire_due(tenant_id=tenant_id)


async def consolidate_year(
    tenant_id: str,
    academic_year_id: str,
    resume: bool,
    requested_by: str | None,
) -> dict[str, Any]:
    async with get_worker_session() as session:
        service = AcademicYearService(
            SqlAlchemyAcademicRepository(session),
            AuditService(DatabaseAuditSink(session)),
            NotificationService(),
        )
        report = await service.run_consolidation(
            tenant_id, academic_year_id, generated_by=requested_by, resume=resume
        )
    return {
        "total_created": report.total_created,
        "skipped_existing": report.skipped_existing,
        "already_generated": report.already_generated,
        "finalized_enrollments": report.finalized_enrollments,
        "errors": report.errors,
    }


@dramatiq.actor(
    queue_name=Queues.MAINTENANCE,
    max_retries=1,
    time_limit=_worker.expiry_time_limit_ms,
    priority=Priority.NORMAL,
)
def expire_reopening_windows_job(tenant_id: str | None = None) -> dict[str, Any]:
    """Scheduler job: terminate reopening windows past valid_until.

    Args:
        tenant_id: Restrict the sweep to one tenant.

    Returns:
        Number of windows terminated.
    """
    try:
        terminated = run_async(expire_windows(tenant_id))
        if terminated:
            logger.info("Reopening window sweep terminated %d window(s)", terminated)
        return {"status": "completed", "terminated": terminated}
    except Exception as e:
        logger.error("Reopening window sweep failed: %s", e, exc_info=True)
        raise


@dramatiq.actor(
    queue_name=Queues.CONSOLIDATION,
    max_retries=_worker.consolidation_max_retries,
    time_limit=_worker.consolidation_time_limit_ms,
    priority=Priority.HIGH,
)
def consolidate_academic_year(
    tenant_id: str,
    academic_year_id: str,
    resume: bool = True,
    requested_by: str | None = None,
) -> dict[str, Any]:
    """Consolidate a closed academic year in the background.

    Retries and timeouts re-run the actor; resume mode makes each re-run
    create only the records still missing. Every run also finalizes the
    year's pending enrollments, so a crash between the two steps heals.
    """
    logger.info(
        "Consolidation job for year %s (tenant %s, resume=%s)",
        academic_year_id,
        tenant_id,
        resume,
    )
    try:
        result = run_async(consolidate_year(tenant_id, academic_year_id, resume, requested_by))
    except Exception as e:
        logger.error(
            "Consolidation job for year %s failed: %s", academic_year_id, e, exc_info=True
        )
        raise

    logger.info(
        "Consolidation job for year %s completed: %d created, %d errors",
        academic_year_id,
        result["total_created"],
        len(result["errors"]),
    )
    return result
