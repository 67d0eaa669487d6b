# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Liveness check.

Only the records database decides between healthy and degraded. The
broker and the window expiry scheduler are reported for operators; the
API keeps serving writes without them.
"""

import logging
from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel

from edurecords import __version__
from edurecords.core.config import get_settings
from edurecords.infrastructure.background import get_broker_manager, get_scheduler
from edurecords.infrastructure.database.connection import check_database_connection
from edurecords.utils.datetime import utc_now

logger = logging.getLogger(__name__)

router = APIRouter()

_started_at = utc_now()


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    environment: str
    uptime_seconds: int
    database: bool
    broker: bool
    window_expiry_scheduled: bool


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    database_ok = await check_database_connection()
    if not database_ok:
        logger.warning("Health check: records database unreachable")

    now = utc_now()
    return HealthResponse(
        status="healthy" if database_ok else "degraded",
        timestamp=now,
        version=__version__,
        environment=get_settings().environment,
        uptime_seconds=int((now - _started_at).total_seconds()),
        database=database_ok,
        broker=get_broker_manager().is_initialized,
        window_expiry_scheduled=get_scheduler().is_running,
    )
