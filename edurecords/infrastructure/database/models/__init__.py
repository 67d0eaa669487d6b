# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy models for the records database."""

from edurecords.infrastructure.database.models.academic import (
    AcademicYear,
    AnnualEnrollment,
    AttendanceMark,
    AuditLog,
    ClassGroup,
    ClassGroupMember,
    ClassLevel,
    EnrollmentSubject,
    Evaluation,
    GradeEntry,
    HistoricalRecord,
    Lesson,
    ReopeningWindow,
    Subject,
    TeachingUnit,
    TenantAcademicSettings,
)
from edurecords.infrastructure.database.models.base import Base, new_id

__all__ = [
    "Base",
    "new_id",
    "AcademicYear",
    "AnnualEnrollment",
    "AttendanceMark",
    "AuditLog",
    "ClassGroup",
    "ClassGroupMember",
    "ClassLevel",
    "EnrollmentSubject",
    "Evaluation",
    "GradeEntry",
    "HistoricalRecord",
    "Lesson",
    "ReopeningWindow",
    "Subject",
    "TeachingUnit",
    "TenantAcademicSettings",
]
