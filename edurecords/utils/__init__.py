# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Utility functions and helpers for EduRecords.

This package contains cross-cutting utilities:
- logging: Structured logging with structlog
- datetime: Timezone-aware datetime operations
"""

from edurecords.utils.datetime import ensure_utc, is_expired, isoformat_utc, utc_now
from edurecords.utils.logging import (
    bind_context,
    bind_request_context,
    clear_context,
    get_logger,
    setup_logging,
)

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "bind_context",
    "bind_request_context",
    "clear_context",
    # Datetime
    "utc_now",
    "ensure_utc",
    "is_expired",
    "isoformat_utc",
]
