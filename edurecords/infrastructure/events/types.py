# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Centralized event type definitions for EduRecords.

Subscribers may use wildcard patterns such as ``"reopening.*"``.
"""


class EventTypes:
    """All event types in EduRecords organized by domain."""

    class AcademicYear:
        """Year lifecycle events."""

        CREATED = "academic_year.created"
        CLOSED = "academic_year.closed"
        CONSOLIDATED = "academic_year.consolidated"

    class Reopening:
        """Reopening window events."""

        CREATED = "reopening.window.created"
        TERMINATED = "reopening.window.terminated"
        EXPIRED = "reopening.window.expired"

    class Gate:
        """Mutation gate events."""

        OVERRIDE_USED = "gate.override.used"


class Audiences:
    """Recipient groups a notification is addressed to."""

    INSTITUTION_ADMINS = "institution_admins"
    PLATFORM_OPERATORS = "platform_operators"
