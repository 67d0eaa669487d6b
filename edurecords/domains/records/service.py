# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Writes of raw academic facts.

Lessons, attendance marks, evaluations, grade entries, annual
enrollments and teaching-unit edits. Callers run these only after the
mutation gate allowed the write; the service itself checks existence,
tenant ownership and value rules, and validates enrollments against the
progression rules.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Sequence

from edurecords.domains.auth.capabilities import Capability
from edurecords.domains.exceptions import (
    NotFoundOrForeignTenantError,
    StateConflictError,
    ValidationError,
)
from edurecords.domains.grading import validate_grade_value
from edurecords.domains.progression import ProgressionDecision, ProgressionValidator
from edurecords.domains.repository import AcademicRepository
from edurecords.infrastructure.database.models import (
    AnnualEnrollment,
    AttendanceMark,
    EnrollmentSubject,
    Evaluation,
    GradeEntry,
    Lesson,
    TeachingUnit,
)
from edurecords.models.enums import AttendanceStatus, EvaluationKind

logger = logging.getLogger(__name__)


class AcademicRecordsService:
    """Create and update raw academic facts.

    Attributes:
        repo: Academic repository.
        progression: Progression validator for enrollments.
    """

    def __init__(self, repo: AcademicRepository, progression: ProgressionValidator) -> None:
        self.repo = repo
        self.progression = progression

    async def _unit(self, tenant_id: str, unit_id: str) -> TeachingUnit:
        unit = await self.repo.get_teaching_unit(tenant_id, unit_id)
        if unit is None:
            raise NotFoundOrForeignTenantError("Teaching unit", unit_id)
        return unit

    async def record_lesson(
        self, tenant_id: str, teaching_unit_id: str, held_on: date, hours: int = 1
    ) -> Lesson:
        await self._unit(tenant_id, teaching_unit_id)
        if hours <= 0:
            raise ValidationError("Lesson hours must be positive", hint="Use at least 1 hour")
        lesson = Lesson(
            tenant_id=tenant_id,
            teaching_unit_id=teaching_unit_id,
            held_on=held_on,
            hours=hours,
        )
        self.repo.add(lesson)
        await self.repo.flush()
        return lesson

    async def record_attendance(
        self,
        tenant_id: str,
        lesson_id: str,
        student_id: str,
        status: AttendanceStatus,
    ) -> AttendanceMark:
        """Create or replace a student's mark for a lesson."""
        if await self.repo.get_lesson(tenant_id, lesson_id) is None:
            raise NotFoundOrForeignTenantError("Lesson", lesson_id)

        mark = await self.repo.find_attendance_mark(tenant_id, lesson_id, student_id)
        if mark is None:
            mark = AttendanceMark(
                tenant_id=tenant_id,
                lesson_id=lesson_id,
                student_id=student_id,
                status=status.value,
            )
            self.repo.add(mark)
        else:
            mark.status = status.value
        await self.repo.flush()
        return mark

    async def record_evaluation(
        self,
        tenant_id: str,
        teaching_unit_id: str,
        kind: EvaluationKind,
        held_on: date,
        name: str = "",
        period: int | None = None,
        weight: Decimal = Decimal("1"),
        teacher_id: str | None = None,
    ) -> Evaluation:
        """Create an evaluation. The author defaults to the unit's teacher."""
        unit = await self._unit(tenant_id, teaching_unit_id)
        if period is not None and period < 1:
            raise ValidationError("Period must be 1 or greater", hint="Use 1, 2 or 3 for trimesters")
        evaluation = Evaluation(
            tenant_id=tenant_id,
            teaching_unit_id=teaching_unit_id,
            teacher_id=teacher_id or unit.teacher_id,
            kind=kind.value,
            period=period,
            held_on=held_on,
            name=name,
            weight=weight,
        )
        self.repo.add(evaluation)
        await self.repo.flush()
        return evaluation

    async def record_grade(
        self,
        tenant_id: str,
        evaluation_id: str,
        student_id: str,
        value: Decimal,
    ) -> GradeEntry:
        """Create a grade entry.

        Raises:
            ValidationError: If the value is outside 0..20.
            NotFoundOrForeignTenantError: If the evaluation is not in the tenant.
            StateConflictError: If the student already has a grade for it.
        """
        validate_grade_value(float(value))
        if await self.repo.get_evaluation(tenant_id, evaluation_id) is None:
            raise NotFoundOrForeignTenantError("Evaluation", evaluation_id)
        if await self.repo.find_grade_entry(tenant_id, evaluation_id, student_id) is not None:
            raise StateConflictError(
                "The student already has a grade for this evaluation",
                hint="Update the existing grade entry instead",
            )
        entry = GradeEntry(
            tenant_id=tenant_id,
            evaluation_id=evaluation_id,
            student_id=student_id,
            value=value,
        )
        self.repo.add(entry)
        await self.repo.flush()
        return entry

    async def update_grade(self, tenant_id: str, grade_entry_id: str, value: Decimal) -> GradeEntry:
        validate_grade_value(float(value))
        entry = await self.repo.get_grade_entry(tenant_id, grade_entry_id)
        if entry is None:
            raise NotFoundOrForeignTenantError("Grade entry", grade_entry_id)
        entry.value = value
        await self.repo.flush()
        return entry

    async def enroll_student(
        self,
        tenant_id: str,
        student_id: str,
        academic_year_id: str,
        class_level_id: str,
        capabilities: frozenset[Capability],
        class_group_id: str | None = None,
        subject_ids: Sequence[str] = (),
        override: bool = False,
        actor_id: str | None = None,
    ) -> tuple[AnnualEnrollment, ProgressionDecision]:
        """Create an annual enrollment after checking progression.

        Raises:
            NotFoundOrForeignTenantError: If a referenced entity is not in
                the tenant.
            StateConflictError: If the student is already enrolled in the year.
            ValidationError: If progression rules reject the class level.
        """
        if class_group_id is not None:
            group = await self.repo.get_class_group(tenant_id, class_group_id)
            if group is None:
                raise NotFoundOrForeignTenantError("Class group", class_group_id)
            if group.academic_year_id != academic_year_id:
                raise ValidationError(
                    "Class group belongs to another academic year",
                    hint="Pick a class group of the enrollment's academic year",
                )
        for subject_id in subject_ids:
            if await self.repo.get_subject(tenant_id, subject_id) is None:
                raise NotFoundOrForeignTenantError("Subject", subject_id)

        if await self.repo.find_enrollment(tenant_id, student_id, academic_year_id) is not None:
            raise StateConflictError(
                "The student is already enrolled in this academic year",
                hint="Update the existing enrollment instead",
            )

        decision = await self.progression.validate(
            tenant_id,
            student_id,
            class_level_id,
            academic_year_id,
            capabilities,
            override=override,
            actor_id=actor_id,
        )
        if not decision.allowed:
            raise ValidationError(
                decision.reason,
                hint="Enroll the student at the class level their previous outcome allows",
                details={
                    "previous_status": decision.previous_status,
                    "previous_ordinal": decision.previous_ordinal,
                    "target_ordinal": decision.target_ordinal,
                },
            )

        enrollment = AnnualEnrollment(
            tenant_id=tenant_id,
            student_id=student_id,
            academic_year_id=academic_year_id,
            class_level_id=class_level_id,
            class_group_id=class_group_id,
            is_active=True,
        )
        self.repo.add(enrollment)
        await self.repo.flush()
        for subject_id in dict.fromkeys(subject_ids):
            self.repo.add(
                EnrollmentSubject(
                    tenant_id=tenant_id,
                    enrollment_id=enrollment.id,
                    subject_id=subject_id,
                )
            )
        await self.repo.flush()

        logger.info(
            "Enrolled student %s in year %s at class level %s%s",
            student_id,
            academic_year_id,
            class_level_id,
            " (override)" if decision.override_applied else "",
        )
        return enrollment, decision

    async def update_teaching_unit(
        self,
        tenant_id: str,
        teaching_unit_id: str,
        name: str | None = None,
        teacher_id: str | None = None,
        planned_hours: int | None = None,
        class_group_id: str | None = None,
    ) -> TeachingUnit:
        unit = await self._unit(tenant_id, teaching_unit_id)
        if planned_hours is not None:
            if planned_hours < 0:
                raise ValidationError("Planned hours cannot be negative", hint="Use 0 or more")
            unit.planned_hours = planned_hours
        if class_group_id is not None:
            group = await self.repo.get_class_group(tenant_id, class_group_id)
            if group is None:
                raise NotFoundOrForeignTenantError("Class group", class_group_id)
            unit.class_group_id = class_group_id
        if name is not None:
            unit.name = name
        if teacher_id is not None:
            unit.teacher_id = teacher_id
        await self.repo.flush()
        return unit
