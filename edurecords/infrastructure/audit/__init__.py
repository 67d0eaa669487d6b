# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Audit trail recording."""

from edurecords.infrastructure.audit.service import (
    AuditActions,
    AuditEvent,
    AuditModules,
    AuditService,
    AuditSink,
    DatabaseAuditSink,
    LoggingAuditSink,
)

__all__ = [
    "AuditActions",
    "AuditEvent",
    "AuditModules",
    "AuditService",
    "AuditSink",
    "DatabaseAuditSink",
    "LoggingAuditSink",
]
