# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Logging setup for the API and the workers.

structlog renders JSON outside development, so gate overrides,
consolidation summaries and window sweeps can be searched by tenant or
academic year in the log store. Development gets colored console lines.

Modules log with ``logging.getLogger(__name__)``. The tenant middleware
binds request_id, tenant_id and user_id for the duration of a request.

Example:
    >>> setup_logging(get_settings())
    >>> get_logger(__name__).info("Year closed", academic_year_id=year.id)
"""

import logging
import sys
from typing import TYPE_CHECKING

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from edurecords.core.config.settings import Settings

# Libraries whose INFO output drowns the records lines
NOISY_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "httpx",
    "sqlalchemy",
    "asyncio",
    "apscheduler",
    "dramatiq",
)

SHARED_PROCESSORS: tuple[Processor, ...] = (
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.UnicodeDecoder(),
)


def _renderers(json_output: bool) -> list[Processor]:
    if json_output:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=True)]


def setup_logging(settings: "Settings") -> None:
    """Configure structlog and the standard library root logger."""
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    json_output = not (settings.is_development or settings.debug)

    structlog.configure(
        processors=[*SHARED_PROCESSORS, *_renderers(json_output)],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        stream=sys.stdout,
        level=level,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("edurecords").setLevel(level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_context(**values: object) -> None:
    """Attach `values` to every later log line of this context."""
    structlog.contextvars.bind_contextvars(**values)


def bind_request_context(
    request_id: str,
    tenant_id: str | None = None,
    user_id: str | None = None,
) -> None:
    """Bind the ids of the request being served; anonymous ids are skipped."""
    identity = {"tenant_id": tenant_id, "user_id": user_id}
    bind_context(request_id=request_id, **{k: v for k, v in identity.items() if v})


def clear_context() -> None:
    """Drop everything bound for the current request."""
    structlog.contextvars.clear_contextvars()
