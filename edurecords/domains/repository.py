# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Persistence port used by the academic domain services.

Every lookup takes the tenant id and returns None (or an empty result)
for entities owned by another tenant, so services never see foreign
rows. The SQLAlchemy implementation lives in
edurecords.infrastructure.database.repository.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, AsyncContextManager, Protocol, Sequence

from edurecords.infrastructure.database.models import (
    AcademicYear,
    AnnualEnrollment,
    AttendanceMark,
    ClassGroup,
    ClassLevel,
    Evaluation,
    GradeEntry,
    HistoricalRecord,
    Lesson,
    ReopeningWindow,
    Subject,
    TeachingUnit,
    TenantAcademicSettings,
)


class AcademicRepository(Protocol):
    # Unit of work

    def add(self, entity: Any) -> None: ...

    async def flush(self) -> None: ...

    def savepoint(self) -> AsyncContextManager[Any]: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    # Academic years and tenant policy

    async def get_year(self, tenant_id: str, year_id: str) -> AcademicYear | None: ...

    async def get_year_by_number(self, tenant_id: str, year: int) -> AcademicYear | None: ...

    async def list_years(self, tenant_id: str) -> Sequence[AcademicYear]: ...

    async def get_tenant_settings(self, tenant_id: str) -> TenantAcademicSettings | None: ...

    # Structure

    async def get_teaching_unit(self, tenant_id: str, unit_id: str) -> TeachingUnit | None: ...

    async def list_teaching_units(self, tenant_id: str, year_id: str) -> Sequence[TeachingUnit]: ...

    async def get_subject(self, tenant_id: str, subject_id: str) -> Subject | None: ...

    async def get_class_group(self, tenant_id: str, group_id: str) -> ClassGroup | None: ...

    async def get_class_level(self, tenant_id: str, level_id: str) -> ClassLevel | None: ...

    async def get_class_level_by_ordinal(self, tenant_id: str, ordinal: int) -> ClassLevel | None: ...

    # Rosters

    async def list_group_students(self, tenant_id: str, group_id: str) -> list[str]: ...

    async def list_subject_students(
        self, tenant_id: str, year_id: str, subject_id: str
    ) -> list[str]: ...

    # Raw facts

    async def get_lesson(self, tenant_id: str, lesson_id: str) -> Lesson | None: ...

    async def list_lessons(self, tenant_id: str, unit_id: str) -> Sequence[Lesson]: ...

    async def list_attendance_marks(
        self, tenant_id: str, unit_id: str, student_id: str
    ) -> Sequence[AttendanceMark]: ...

    async def find_attendance_mark(
        self, tenant_id: str, lesson_id: str, student_id: str
    ) -> AttendanceMark | None: ...

    async def get_evaluation(self, tenant_id: str, evaluation_id: str) -> Evaluation | None: ...

    async def list_evaluations(
        self, tenant_id: str, unit_id: str, teacher_id: str | None = None
    ) -> Sequence[Evaluation]: ...

    async def get_grade_entry(self, tenant_id: str, grade_entry_id: str) -> GradeEntry | None: ...

    async def find_grade_entry(
        self, tenant_id: str, evaluation_id: str, student_id: str
    ) -> GradeEntry | None: ...

    async def list_grade_entries(
        self, tenant_id: str, evaluation_ids: Sequence[str], student_id: str
    ) -> Sequence[GradeEntry]: ...

    # Historical records

    async def has_historical_records(self, tenant_id: str, year_id: str) -> bool: ...

    async def historical_record_exists(
        self, tenant_id: str, student_id: str, year_id: str, unit_id: str
    ) -> bool: ...

    async def list_historical_records(
        self, tenant_id: str, student_id: str, year_id: str | None = None
    ) -> Sequence[HistoricalRecord]: ...

    # Reopening windows

    async def get_window(self, tenant_id: str, window_id: str) -> ReopeningWindow | None: ...

    async def find_active_window(
        self, tenant_id: str, year_id: str, now: datetime
    ) -> ReopeningWindow | None: ...

    async def list_windows(
        self,
        tenant_id: str,
        year_id: str | None = None,
        active: bool | None = None,
        now: datetime | None = None,
    ) -> Sequence[ReopeningWindow]: ...

    async def list_expired_windows(
        self, now: datetime, tenant_id: str | None = None, year_id: str | None = None
    ) -> Sequence[ReopeningWindow]: ...

    # Enrollments

    async def get_enrollment(self, tenant_id: str, enrollment_id: str) -> AnnualEnrollment | None: ...

    async def find_latest_prior_enrollment(
        self, tenant_id: str, student_id: str, before_year: int
    ) -> AnnualEnrollment | None: ...

    async def find_enrollment(
        self, tenant_id: str, student_id: str, year_id: str
    ) -> AnnualEnrollment | None: ...

    async def list_enrollments(self, tenant_id: str, year_id: str) -> Sequence[AnnualEnrollment]: ...

    # Academic-year resolution for the mutation gate

    async def year_id_for_teaching_unit(self, tenant_id: str, unit_id: str) -> str | None: ...

    async def year_id_for_class_group(self, tenant_id: str, group_id: str) -> str | None: ...

    async def year_id_for_lesson(self, tenant_id: str, lesson_id: str) -> str | None: ...

    async def year_id_for_evaluation(self, tenant_id: str, evaluation_id: str) -> str | None: ...

    async def year_id_for_enrollment(self, tenant_id: str, enrollment_id: str) -> str | None: ...

    async def year_id_for_grade_entry(self, tenant_id: str, grade_entry_id: str) -> str | None: ...
