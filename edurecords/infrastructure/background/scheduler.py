# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Periodic dispatch of Dramatiq actors.

The API process owns an APScheduler instance whose interval triggers only
enqueue messages. The work itself (sweeping expired reopening windows)
runs in the Dramatiq workers, so a slow sweep never blocks the API loop.

Example:
    scheduler = await start_scheduler()
    scheduler.stats()
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

import dramatiq
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from edurecords.core.config import get_settings

logger = logging.getLogger(__name__)

WINDOW_EXPIRY_JOB = "Expire Reopening Windows"


@dataclass
class ScheduledJob:
    """An actor sent on a fixed interval.

    Attributes:
        name: Human-readable job name.
        actor_name: Registered Dramatiq actor to send.
        interval: Time between two sends.
        kwargs: Keyword arguments of the message.
        enabled: Disabled jobs are kept but never sent.
        last_sent: When the last message was enqueued.
        sent_count: Messages enqueued so far.
        error_count: Sends that failed.
    """

    name: str
    actor_name: str
    interval: timedelta
    kwargs: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid4()))
    enabled: bool = True
    last_sent: datetime | None = None
    sent_count: int = 0
    error_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "actor_name": self.actor_name,
            "interval_seconds": int(self.interval.total_seconds()),
            "enabled": self.enabled,
            "last_sent": self.last_sent.isoformat() if self.last_sent else None,
            "sent_count": self.sent_count,
            "error_count": self.error_count,
        }


class DramatiqScheduler:
    """Send Dramatiq actors on interval triggers.

    Jobs can be registered before start(); they are handed to APScheduler
    once it runs.
    """

    def __init__(self) -> None:
        self._scheduler: AsyncIOScheduler | None = None
        self._jobs: dict[str, ScheduledJob] = {}

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    def _get_actor(self, actor_name: str) -> dramatiq.Actor:
        # Importing the task package declares the actors on the broker
        from edurecords.infrastructure.background import tasks  # noqa: F401

        return dramatiq.get_broker().get_actor(actor_name)

    def add_interval_job(
        self,
        name: str,
        actor_name: str,
        interval: timedelta,
        kwargs: dict[str, Any] | None = None,
        enabled: bool = True,
        run_now: bool = False,
    ) -> ScheduledJob:
        """Register an actor to be sent every `interval`.

        Args:
            name: Job name.
            actor_name: Dramatiq actor to send.
            interval: Time between sends, must be positive.
            kwargs: Message keyword arguments.
            enabled: Whether the job sends at all.
            run_now: Send once as soon as the scheduler runs.

        Raises:
            ValueError: If the interval is not positive.
        """
        if interval <= timedelta(0):
            raise ValueError(f"Interval of job {name} must be positive")

        job = ScheduledJob(
            name=name,
            actor_name=actor_name,
            interval=interval,
            kwargs=kwargs or {},
            enabled=enabled,
        )
        self._jobs[job.id] = job
        if self._scheduler is not None:
            self._register(job, run_now)

        logger.info("Scheduled %s every %s (actor %s)", name, interval, actor_name)
        return job

    def _register(self, job: ScheduledJob, run_now: bool) -> None:
        if not job.enabled or self._scheduler is None:
            return
        # next_run_time=None would add the job paused
        first_run = {"next_run_time": datetime.now(timezone.utc)} if run_now else {}
        self._scheduler.add_job(
            self._dispatch,
            trigger=IntervalTrigger(seconds=int(job.interval.total_seconds())),
            args=[job.id],
            id=job.id,
            name=job.name,
            **first_run,
        )

    async def _dispatch(self, job_id: str) -> None:
        job = self._jobs.get(job_id)
        if job is None or not job.enabled:
            return

        try:
            self._get_actor(job.actor_name).send(**job.kwargs)
        except Exception as e:
            job.error_count += 1
            logger.error("Could not enqueue %s (%s): %s", job.name, job.actor_name, e)
            return

        job.last_sent = datetime.now(timezone.utc)
        job.sent_count += 1
        logger.debug("Enqueued %s", job.name)

    def get_job(self, job_id: str) -> ScheduledJob | None:
        return self._jobs.get(job_id)

    def jobs(self) -> list[ScheduledJob]:
        return list(self._jobs.values())

    async def start(self) -> None:
        if self._scheduler is not None:
            return
        self._scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self._scheduler.start()
        for job in self._jobs.values():
            self._register(job, run_now=False)
        logger.info("Scheduler started with %d job(s)", len(self._jobs))

    async def stop(self) -> None:
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        self._jobs.clear()
        logger.info("Scheduler stopped")

    def stats(self) -> dict[str, Any]:
        jobs = self._jobs.values()
        return {
            "is_running": self.is_running,
            "job_count": len(self._jobs),
            "enabled_count": sum(1 for j in jobs if j.enabled),
            "sent_total": sum(j.sent_count for j in jobs),
            "error_total": sum(j.error_count for j in jobs),
            "jobs": [j.to_dict() for j in jobs],
        }


_scheduler: DramatiqScheduler | None = None


def get_scheduler() -> DramatiqScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = DramatiqScheduler()
    return _scheduler


async def start_scheduler() -> DramatiqScheduler:
    """Start the scheduler with the reopening window sweep.

    The first sweep runs immediately so windows that ended while the API
    was down are terminated at startup.
    """
    settings = get_settings()
    scheduler = get_scheduler()
    await scheduler.start()
    scheduler.add_interval_job(
        WINDOW_EXPIRY_JOB,
        "expire_reopening_windows_job",
        timedelta(minutes=settings.scheduler.window_expiry_interval_minutes),
        run_now=True,
    )
    return scheduler


async def stop_scheduler() -> None:
    global _scheduler
    if _scheduler is not None:
        await _scheduler.stop()
        _scheduler = None
