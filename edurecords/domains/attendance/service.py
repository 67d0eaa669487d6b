# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Attendance frequency calculation.

A student's frequency in a teaching unit is the share of the unit's
lessons they attended or were excused from:

    percentage = (present + justified) / total_lessons * 100

rounded to 2 decimals. A lesson with no mark for the student counts as
an unjustified absence. Students at or above REGULARITY_THRESHOLD are
REGULAR; a unit with no lessons yields 0% and IRREGULAR.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable

from edurecords.domains.exceptions import NotFoundOrForeignTenantError
from edurecords.domains.repository import AcademicRepository
from edurecords.models.enums import AttendanceSituation, AttendanceStatus

logger = logging.getLogger(__name__)

REGULARITY_THRESHOLD = 75.0


@dataclass(frozen=True)
class FrequencyResult:
    """Attendance totals of one student in one teaching unit.

    Attributes:
        total_lessons: Lessons held in the unit.
        present: Lessons the student attended.
        justified: Excused absences.
        unjustified: Unexcused absences, including unmarked lessons.
        percentage: Attendance percentage, 2 decimals.
        situation: REGULAR or IRREGULAR.
        threshold: Minimum percentage used for the situation.
        given_hours: Sum of the hours of the lessons held.
    """

    total_lessons: int
    present: int
    justified: int
    unjustified: int
    percentage: float
    situation: AttendanceSituation
    threshold: float = REGULARITY_THRESHOLD
    given_hours: int = 0

    @property
    def is_regular(self) -> bool:
        return self.situation == AttendanceSituation.REGULAR


def compute_frequency(
    lesson_ids: Iterable[str],
    marks: dict[str, str],
    threshold: float = REGULARITY_THRESHOLD,
) -> FrequencyResult:
    """Classify every lesson and compute the attendance percentage.

    Args:
        lesson_ids: Ids of all lessons held in the unit.
        marks: Attendance status per lesson id for the student.
        threshold: Minimum percentage for REGULAR.

    Returns:
        FrequencyResult for the student.
    """
    lessons = list(lesson_ids)
    total = len(lessons)
    if total == 0:
        return FrequencyResult(
            total_lessons=0,
            present=0,
            justified=0,
            unjustified=0,
            percentage=0.0,
            situation=AttendanceSituation.IRREGULAR,
            threshold=threshold,
        )

    present = 0
    justified = 0
    for lesson_id in lessons:
        status = marks.get(lesson_id)
        if status == AttendanceStatus.PRESENT:
            present += 1
        elif status == AttendanceStatus.JUSTIFIED:
            justified += 1

    unjustified = total - present - justified
    percentage = round((present + justified) / total * 100, 2)
    situation = (
        AttendanceSituation.REGULAR if percentage >= threshold else AttendanceSituation.IRREGULAR
    )

    return FrequencyResult(
        total_lessons=total,
        present=present,
        justified=justified,
        unjustified=unjustified,
        percentage=percentage,
        situation=situation,
        threshold=threshold,
    )


class FrequencyCalculator:
    """Load attendance facts and compute frequency.

    Attributes:
        repo: Academic repository.
    """

    def __init__(self, repo: AcademicRepository, threshold: float = REGULARITY_THRESHOLD) -> None:
        self.repo = repo
        self.threshold = threshold

    async def calculate(self, tenant_id: str, unit_id: str, student_id: str) -> FrequencyResult:
        """Compute a student's frequency in a teaching unit.

        Args:
            tenant_id: Tenant of the caller.
            unit_id: Teaching unit identifier.
            student_id: Student identifier.

        Returns:
            FrequencyResult for the student.

        Raises:
            NotFoundOrForeignTenantError: If the unit is not in the tenant.
        """
        unit = await self.repo.get_teaching_unit(tenant_id, unit_id)
        if unit is None:
            raise NotFoundOrForeignTenantError("Teaching unit", unit_id)

        lessons = await self.repo.list_lessons(tenant_id, unit_id)
        marks = await self.repo.list_attendance_marks(tenant_id, unit_id, student_id)

        result = compute_frequency(
            (lesson.id for lesson in lessons),
            {mark.lesson_id: mark.status for mark in marks},
            self.threshold,
        )
        result = replace(result, given_hours=sum(lesson.hours or 0 for lesson in lessons))
        logger.debug(
            "Frequency for student %s in unit %s: %.2f%% (%s)",
            student_id,
            unit_id,
            result.percentage,
            result.situation,
        )
        return result
