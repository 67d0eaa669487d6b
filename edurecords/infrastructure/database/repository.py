# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy implementation of the academic repository.

Every statement filters on tenant_id. Lookups that cross tables (a
lesson's academic year, a grade entry's academic year) join through the
owning teaching unit so a foreign-tenant id never resolves.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import and_, exists, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, AsyncSessionTransaction

from edurecords.infrastructure.database.models import (
    AcademicYear,
    AnnualEnrollment,
    AttendanceMark,
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

logger = logging.getLogger(__name__)


class SqlAlchemyAcademicRepository:
    """Academic repository backed by an AsyncSession.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    def add(self, entity: Any) -> None:
        self.db.add(entity)

    async def flush(self) -> None:
        await self.db.flush()

    def savepoint(self) -> AsyncSessionTransaction:
        """Nested transaction; a failed insert inside it leaves the session usable."""
        return self.db.begin_nested()

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()

    async def _first(self, query) -> Any:
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _all(self, query) -> list[Any]:
        result = await self.db.execute(query)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Academic years and tenant policy
    # ------------------------------------------------------------------

    async def get_year(self, tenant_id: str, year_id: str) -> AcademicYear | None:
        return await self._first(
            select(AcademicYear).where(
                AcademicYear.tenant_id == tenant_id,
                AcademicYear.id == year_id,
            )
        )

    async def get_year_by_number(self, tenant_id: str, year: int) -> AcademicYear | None:
        return await self._first(
            select(AcademicYear).where(
                AcademicYear.tenant_id == tenant_id,
                AcademicYear.year == year,
            )
        )

    async def list_years(self, tenant_id: str) -> Sequence[AcademicYear]:
        return await self._all(
            select(AcademicYear)
            .where(AcademicYear.tenant_id == tenant_id)
            .order_by(AcademicYear.year.desc())
        )

    async def get_tenant_settings(self, tenant_id: str) -> TenantAcademicSettings | None:
        return await self._first(
            select(TenantAcademicSettings).where(TenantAcademicSettings.tenant_id == tenant_id)
        )

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    async def get_teaching_unit(self, tenant_id: str, unit_id: str) -> TeachingUnit | None:
        return await self._first(
            select(TeachingUnit).where(
                TeachingUnit.tenant_id == tenant_id,
                TeachingUnit.id == unit_id,
            )
        )

    async def list_teaching_units(self, tenant_id: str, year_id: str) -> Sequence[TeachingUnit]:
        return await self._all(
            select(TeachingUnit)
            .where(
                TeachingUnit.tenant_id == tenant_id,
                TeachingUnit.academic_year_id == year_id,
            )
            .order_by(TeachingUnit.created_at)
        )

    async def get_subject(self, tenant_id: str, subject_id: str) -> Subject | None:
        return await self._first(
            select(Subject).where(Subject.tenant_id == tenant_id, Subject.id == subject_id)
        )

    async def get_class_group(self, tenant_id: str, group_id: str) -> ClassGroup | None:
        return await self._first(
            select(ClassGroup).where(ClassGroup.tenant_id == tenant_id, ClassGroup.id == group_id)
        )

    async def get_class_level(self, tenant_id: str, level_id: str) -> ClassLevel | None:
        return await self._first(
            select(ClassLevel).where(ClassLevel.tenant_id == tenant_id, ClassLevel.id == level_id)
        )

    async def get_class_level_by_ordinal(self, tenant_id: str, ordinal: int) -> ClassLevel | None:
        return await self._first(
            select(ClassLevel).where(
                ClassLevel.tenant_id == tenant_id,
                ClassLevel.ordinal == ordinal,
            )
        )

    # ------------------------------------------------------------------
    # Rosters
    # ------------------------------------------------------------------

    async def list_group_students(self, tenant_id: str, group_id: str) -> list[str]:
        result = await self.db.execute(
            select(ClassGroupMember.student_id).where(
                ClassGroupMember.tenant_id == tenant_id,
                ClassGroupMember.class_group_id == group_id,
                ClassGroupMember.is_active.is_(True),
            )
        )
        return list(result.scalars().all())

    async def list_subject_students(
        self, tenant_id: str, year_id: str, subject_id: str
    ) -> list[str]:
        result = await self.db.execute(
            select(AnnualEnrollment.student_id)
            .join(EnrollmentSubject, EnrollmentSubject.enrollment_id == AnnualEnrollment.id)
            .where(
                AnnualEnrollment.tenant_id == tenant_id,
                AnnualEnrollment.academic_year_id == year_id,
                AnnualEnrollment.is_active.is_(True),
                EnrollmentSubject.subject_id == subject_id,
            )
            .distinct()
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Raw facts
    # ------------------------------------------------------------------

    async def get_lesson(self, tenant_id: str, lesson_id: str) -> Lesson | None:
        return await self._first(
            select(Lesson).where(Lesson.tenant_id == tenant_id, Lesson.id == lesson_id)
        )

    async def list_lessons(self, tenant_id: str, unit_id: str) -> Sequence[Lesson]:
        return await self._all(
            select(Lesson)
            .where(Lesson.tenant_id == tenant_id, Lesson.teaching_unit_id == unit_id)
            .order_by(Lesson.held_on)
        )

    async def list_attendance_marks(
        self, tenant_id: str, unit_id: str, student_id: str
    ) -> Sequence[AttendanceMark]:
        return await self._all(
            select(AttendanceMark)
            .join(Lesson, Lesson.id == AttendanceMark.lesson_id)
            .where(
                AttendanceMark.tenant_id == tenant_id,
                AttendanceMark.student_id == student_id,
                Lesson.teaching_unit_id == unit_id,
            )
        )

    async def find_attendance_mark(
        self, tenant_id: str, lesson_id: str, student_id: str
    ) -> AttendanceMark | None:
        return await self._first(
            select(AttendanceMark).where(
                AttendanceMark.tenant_id == tenant_id,
                AttendanceMark.lesson_id == lesson_id,
                AttendanceMark.student_id == student_id,
            )
        )

    async def get_evaluation(self, tenant_id: str, evaluation_id: str) -> Evaluation | None:
        return await self._first(
            select(Evaluation).where(
                Evaluation.tenant_id == tenant_id,
                Evaluation.id == evaluation_id,
            )
        )

    async def list_evaluations(
        self, tenant_id: str, unit_id: str, teacher_id: str | None = None
    ) -> Sequence[Evaluation]:
        query = select(Evaluation).where(
            Evaluation.tenant_id == tenant_id,
            Evaluation.teaching_unit_id == unit_id,
        )
        if teacher_id is not None:
            query = query.where(Evaluation.teacher_id == teacher_id)
        return await self._all(query.order_by(Evaluation.held_on))

    async def get_grade_entry(self, tenant_id: str, grade_entry_id: str) -> GradeEntry | None:
        return await self._first(
            select(GradeEntry).where(
                GradeEntry.tenant_id == tenant_id,
                GradeEntry.id == grade_entry_id,
            )
        )

    async def find_grade_entry(
        self, tenant_id: str, evaluation_id: str, student_id: str
    ) -> GradeEntry | None:
        return await self._first(
            select(GradeEntry).where(
                GradeEntry.tenant_id == tenant_id,
                GradeEntry.evaluation_id == evaluation_id,
                GradeEntry.student_id == student_id,
            )
        )

    async def list_grade_entries(
        self, tenant_id: str, evaluation_ids: Sequence[str], student_id: str
    ) -> Sequence[GradeEntry]:
        if not evaluation_ids:
            return []
        return await self._all(
            select(GradeEntry).where(
                GradeEntry.tenant_id == tenant_id,
                GradeEntry.student_id == student_id,
                GradeEntry.evaluation_id.in_(list(evaluation_ids)),
            )
        )

    # ------------------------------------------------------------------
    # Historical records
    # ------------------------------------------------------------------

    async def has_historical_records(self, tenant_id: str, year_id: str) -> bool:
        result = await self.db.execute(
            select(
                exists().where(
                    HistoricalRecord.tenant_id == tenant_id,
                    HistoricalRecord.academic_year_id == year_id,
                )
            )
        )
        return bool(result.scalar())

    async def historical_record_exists(
        self, tenant_id: str, student_id: str, year_id: str, unit_id: str
    ) -> bool:
        result = await self.db.execute(
            select(
                exists().where(
                    HistoricalRecord.tenant_id == tenant_id,
                    HistoricalRecord.student_id == student_id,
                    HistoricalRecord.academic_year_id == year_id,
                    HistoricalRecord.teaching_unit_id == unit_id,
                )
            )
        )
        return bool(result.scalar())

    async def list_historical_records(
        self, tenant_id: str, student_id: str, year_id: str | None = None
    ) -> Sequence[HistoricalRecord]:
        query = (
            select(HistoricalRecord)
            .join(AcademicYear, AcademicYear.id == HistoricalRecord.academic_year_id)
            .where(
                HistoricalRecord.tenant_id == tenant_id,
                HistoricalRecord.student_id == student_id,
            )
        )
        if year_id is not None:
            query = query.where(HistoricalRecord.academic_year_id == year_id)
        return await self._all(
            query.order_by(AcademicYear.year.desc(), HistoricalRecord.generated_at)
        )

    # ------------------------------------------------------------------
    # Reopening windows
    # ------------------------------------------------------------------

    async def get_window(self, tenant_id: str, window_id: str) -> ReopeningWindow | None:
        return await self._first(
            select(ReopeningWindow).where(
                ReopeningWindow.tenant_id == tenant_id,
                ReopeningWindow.id == window_id,
            )
        )

    @staticmethod
    def _active_clause(now: datetime):
        return and_(
            ReopeningWindow.terminated_at.is_(None),
            ReopeningWindow.valid_until >= now,
        )

    async def find_active_window(
        self, tenant_id: str, year_id: str, now: datetime
    ) -> ReopeningWindow | None:
        return await self._first(
            select(ReopeningWindow)
            .where(
                ReopeningWindow.tenant_id == tenant_id,
                ReopeningWindow.academic_year_id == year_id,
                self._active_clause(now),
            )
            .limit(1)
        )

    async def list_windows(
        self,
        tenant_id: str,
        year_id: str | None = None,
        active: bool | None = None,
        now: datetime | None = None,
    ) -> Sequence[ReopeningWindow]:
        query = select(ReopeningWindow).where(ReopeningWindow.tenant_id == tenant_id)
        if year_id is not None:
            query = query.where(ReopeningWindow.academic_year_id == year_id)
        if active is not None and now is not None:
            if active:
                query = query.where(self._active_clause(now))
            else:
                query = query.where(
                    or_(
                        ReopeningWindow.terminated_at.is_not(None),
                        ReopeningWindow.valid_until < now,
                    )
                )
        return await self._all(query.order_by(ReopeningWindow.created_at.desc()))

    async def list_expired_windows(
        self, now: datetime, tenant_id: str | None = None, year_id: str | None = None
    ) -> Sequence[ReopeningWindow]:
        query = select(ReopeningWindow).where(
            ReopeningWindow.terminated_at.is_(None),
            ReopeningWindow.valid_until < now,
        )
        if tenant_id is not None:
            query = query.where(ReopeningWindow.tenant_id == tenant_id)
        if year_id is not None:
            query = query.where(ReopeningWindow.academic_year_id == year_id)
        return await self._all(query)

    # ------------------------------------------------------------------
    # Enrollments
    # ------------------------------------------------------------------

    async def get_enrollment(self, tenant_id: str, enrollment_id: str) -> AnnualEnrollment | None:
        return await self._first(
            select(AnnualEnrollment).where(
                AnnualEnrollment.tenant_id == tenant_id,
                AnnualEnrollment.id == enrollment_id,
            )
        )

    async def find_latest_prior_enrollment(
        self, tenant_id: str, student_id: str, before_year: int
    ) -> AnnualEnrollment | None:
        return await self._first(
            select(AnnualEnrollment)
            .join(AcademicYear, AcademicYear.id == AnnualEnrollment.academic_year_id)
            .where(
                AnnualEnrollment.tenant_id == tenant_id,
                AnnualEnrollment.student_id == student_id,
                AcademicYear.year < before_year,
            )
            .order_by(AcademicYear.year.desc())
            .limit(1)
        )

    async def find_enrollment(
        self, tenant_id: str, student_id: str, year_id: str
    ) -> AnnualEnrollment | None:
        return await self._first(
            select(AnnualEnrollment).where(
                AnnualEnrollment.tenant_id == tenant_id,
                AnnualEnrollment.student_id == student_id,
                AnnualEnrollment.academic_year_id == year_id,
            )
        )

    async def list_enrollments(self, tenant_id: str, year_id: str) -> Sequence[AnnualEnrollment]:
        return await self._all(
            select(AnnualEnrollment).where(
                AnnualEnrollment.tenant_id == tenant_id,
                AnnualEnrollment.academic_year_id == year_id,
            )
        )

    # ------------------------------------------------------------------
    # Academic-year resolution
    # ------------------------------------------------------------------

    async def _scalar(self, query) -> str | None:
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def year_id_for_teaching_unit(self, tenant_id: str, unit_id: str) -> str | None:
        return await self._scalar(
            select(TeachingUnit.academic_year_id).where(
                TeachingUnit.tenant_id == tenant_id,
                TeachingUnit.id == unit_id,
            )
        )

    async def year_id_for_class_group(self, tenant_id: str, group_id: str) -> str | None:
        return await self._scalar(
            select(ClassGroup.academic_year_id).where(
                ClassGroup.tenant_id == tenant_id,
                ClassGroup.id == group_id,
            )
        )

    async def year_id_for_lesson(self, tenant_id: str, lesson_id: str) -> str | None:
        return await self._scalar(
            select(TeachingUnit.academic_year_id)
            .join(Lesson, Lesson.teaching_unit_id == TeachingUnit.id)
            .where(
                Lesson.tenant_id == tenant_id,
                TeachingUnit.tenant_id == tenant_id,
                Lesson.id == lesson_id,
            )
        )

    async def year_id_for_evaluation(self, tenant_id: str, evaluation_id: str) -> str | None:
        return await self._scalar(
            select(TeachingUnit.academic_year_id)
            .join(Evaluation, Evaluation.teaching_unit_id == TeachingUnit.id)
            .where(
                Evaluation.tenant_id == tenant_id,
                TeachingUnit.tenant_id == tenant_id,
                Evaluation.id == evaluation_id,
            )
        )

    async def year_id_for_enrollment(self, tenant_id: str, enrollment_id: str) -> str | None:
        return await self._scalar(
            select(AnnualEnrollment.academic_year_id).where(
                AnnualEnrollment.tenant_id == tenant_id,
                AnnualEnrollment.id == enrollment_id,
            )
        )

    async def year_id_for_grade_entry(self, tenant_id: str, grade_entry_id: str) -> str | None:
        return await self._scalar(
            select(TeachingUnit.academic_year_id)
            .join(Evaluation, Evaluation.teaching_unit_id == TeachingUnit.id)
            .join(GradeEntry, GradeEntry.evaluation_id == Evaluation.id)
            .where(
                GradeEntry.tenant_id == tenant_id,
                TeachingUnit.tenant_id == tenant_id,
                GradeEntry.id == grade_entry_id,
            )
        )
