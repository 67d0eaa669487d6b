# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enumerations shared by persistence, domain services and API schemas.

Values are stored as plain strings in the database.
"""

from enum import StrEnum


class YearStatus(StrEnum):
    """Lifecycle state of an academic year. CLOSED is terminal."""

    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


class InstitutionType(StrEnum):
    """Grading regime of a tenant."""

    SECONDARY = "SECONDARY"
    HIGHER = "HIGHER"


class AttendanceStatus(StrEnum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    JUSTIFIED = "JUSTIFIED"


class AttendanceSituation(StrEnum):
    REGULAR = "REGULAR"
    IRREGULAR = "IRREGULAR"


class EvaluationKind(StrEnum):
    """Kind of an evaluation instrument."""

    TEST = "TEST"
    ASSIGNMENT = "ASSIGNMENT"
    EXAM = "EXAM"
    RECOVERY = "RECOVERY"
    FINAL_EXAM = "FINAL_EXAM"


class GradeStatus(StrEnum):
    """Outcome of the grade calculator for one student in one unit."""

    APPROVED = "APPROVED"
    FAILED = "FAILED"


class AcademicSituation(StrEnum):
    """Frozen outcome stored on a historical record."""

    APPROVED = "APPROVED"
    FAILED = "FAILED"
    FAILED_ATTENDANCE = "FAILED_ATTENDANCE"


class FinalStatus(StrEnum):
    """Year-end outcome of an annual enrollment. None means pending."""

    APPROVED = "APPROVED"
    FAILED = "FAILED"


class ReopeningScope(StrEnum):
    """Categories of writes a reopening window may authorize."""

    GRADES = "GRADES"
    ATTENDANCE = "ATTENDANCE"
    EVALUATIONS = "EVALUATIONS"
    ENROLLMENTS = "ENROLLMENTS"
    GENERAL = "GENERAL"
