# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""ASGI entry point.

Usage:
    uvicorn edurecords.main:app --host 0.0.0.0 --port 34100
    edurecords-api
"""

import uvicorn

from edurecords.api import create_app
from edurecords.core.config import get_settings

app = create_app()


def run() -> None:
    """Run the API server with the API_* settings."""
    settings = get_settings()
    uvicorn.run(
        "edurecords.main:app",
        host=settings.api.host,
        port=settings.api.port,
        workers=1 if settings.api.reload else settings.api.workers,
        reload=settings.api.reload,
        log_level=settings.log_level.lower(),
    )
