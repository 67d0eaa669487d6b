# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification dispatch."""

from edurecords.infrastructure.notifications.service import (
    NotificationResult,
    NotificationService,
)

__all__ = ["NotificationResult", "NotificationService"]
