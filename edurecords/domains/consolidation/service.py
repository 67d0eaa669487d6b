# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Consolidation of a closed academic year into historical records.

For every teaching unit of the year and every student on its roster the
service freezes attendance and grade outcomes into one HistoricalRecord
keyed by (tenant, student, year, teaching unit).

Rules:
- The year must be CLOSED.
- Strict mode (default) is single-shot: if any record exists for the
  year, nothing is computed and the report says "already generated".
- Resume mode skips that guard and relies on the per-key existence
  check, so a crashed or timed-out run can be completed without touching
  rows already written.
- Existing records are never updated or deleted.
- A failure on one row is collected in the report; the batch goes on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from edurecords.domains.attendance import FrequencyCalculator, FrequencyResult
from edurecords.domains.exceptions import NotFoundOrForeignTenantError, StateConflictError
from edurecords.domains.grading import GradeCalculator, GradePolicy, GradeResult, to_decimal
from edurecords.domains.repository import AcademicRepository
from edurecords.infrastructure.database.models import HistoricalRecord, TeachingUnit
from edurecords.models.enums import AcademicSituation, GradeStatus, YearStatus
from edurecords.utils.datetime import utc_now

logger = logging.getLogger(__name__)

ALREADY_GENERATED = "Historical records were already generated for this academic year"


@dataclass
class ConsolidationReport:
    """Result of a consolidation run.

    Attributes:
        total_created: Records written by this run.
        errors: Per-unit and per-row error messages.
        already_generated: The strict guard found existing records.
        skipped_existing: Rows skipped because their record already existed.
        finalized_enrollments: Enrollments whose final status was computed
            after the run.
    """

    total_created: int = 0
    errors: list[str] = field(default_factory=list)
    already_generated: bool = False
    skipped_existing: int = 0
    finalized_enrollments: int = 0


def derive_situation(frequency: FrequencyResult, grade: GradeResult) -> AcademicSituation:
    """Irregular attendance overrides the grade outcome."""
    if not frequency.is_regular:
        return AcademicSituation.FAILED_ATTENDANCE
    if grade.status == GradeStatus.APPROVED:
        return AcademicSituation.APPROVED
    return AcademicSituation.FAILED


class ConsolidationService:
    """Freeze a closed year's outcomes into historical records.

    Attributes:
        repo: Academic repository.
        frequency: Attendance calculator.
        grades: Grade calculator.
    """

    def __init__(
        self,
        repo: AcademicRepository,
        frequency: FrequencyCalculator | None = None,
        grades: GradeCalculator | None = None,
    ) -> None:
        self.repo = repo
        self.frequency = frequency or FrequencyCalculator(repo)
        self.grades = grades or GradeCalculator(repo)

    async def consolidate(
        self,
        tenant_id: str,
        year_id: str,
        generated_by: str | None = None,
        resume: bool = False,
    ) -> ConsolidationReport:
        """Generate historical records for a closed academic year.

        Args:
            tenant_id: Tenant of the caller.
            year_id: Academic year identifier.
            generated_by: User who triggered the run, None for jobs.
            resume: Skip the year-level guard and fill in missing rows.

        Returns:
            ConsolidationReport with the number of records created and
            the collected errors.

        Raises:
            NotFoundOrForeignTenantError: If the year is not in the tenant.
            StateConflictError: If the year is not CLOSED.
        """
        year = await self.repo.get_year(tenant_id, year_id)
        if year is None:
            raise NotFoundOrForeignTenantError("Academic year", year_id)
        if year.status != YearStatus.CLOSED:
            raise StateConflictError(
                f"Academic year {year.year} is not closed",
                hint="Close the academic year before consolidating it",
            )

        report = ConsolidationReport()

        if not resume and await self.repo.has_historical_records(tenant_id, year_id):
            logger.info("Consolidation skipped for year %s: records already exist", year_id)
            report.already_generated = True
            report.errors.append(ALREADY_GENERATED)
            return report

        units = await self.repo.list_teaching_units(tenant_id, year_id)
        if not units:
            report.errors.append("No teaching units found for this academic year")
            return report

        policy = await self.grades.load_policy(tenant_id)

        for unit in units:
            await self._consolidate_unit(tenant_id, year_id, unit, policy, generated_by, report)
            # Commit per unit; a resumed run continues after the last one
            await self.repo.commit()

        logger.info(
            "Consolidated year %s (tenant %s): %d created, %d skipped, %d errors",
            year_id,
            tenant_id,
            report.total_created,
            report.skipped_existing,
            len(report.errors),
        )
        return report

    async def resolve_roster(self, tenant_id: str, year_id: str, unit: TeachingUnit) -> list[str]:
        """Group members when the unit has a class group, else students
        whose annual enrollment for the year lists the unit's subject."""
        if unit.class_group_id:
            return await self.repo.list_group_students(tenant_id, unit.class_group_id)
        return await self.repo.list_subject_students(tenant_id, year_id, unit.subject_id)

    async def _consolidate_unit(
        self,
        tenant_id: str,
        year_id: str,
        unit: TeachingUnit,
        policy: GradePolicy,
        generated_by: str | None,
        report: ConsolidationReport,
    ) -> None:
        label = unit.name or unit.id
        try:
            students = await self.resolve_roster(tenant_id, year_id, unit)
        except Exception as e:
            logger.error("Roster resolution failed for unit %s: %s", unit.id, str(e), exc_info=True)
            report.errors.append(f'Teaching unit "{label}": roster could not be resolved: {e}')
            return

        if not students:
            report.errors.append(f'Teaching unit "{label}" has no enrolled students')
            return

        for student_id in students:
            try:
                if await self.repo.historical_record_exists(tenant_id, student_id, year_id, unit.id):
                    report.skipped_existing += 1
                    continue

                frequency = await self.frequency.calculate(tenant_id, unit.id, student_id)
                grade = await self.grades.calculate_safe(tenant_id, unit.id, student_id, policy)

                record = self._build_record(
                    tenant_id, year_id, unit, student_id, frequency, grade, generated_by
                )
                async with self.repo.savepoint():
                    self.repo.add(record)
                report.total_created += 1
            except Exception as e:
                logger.warning(
                    "Failed to consolidate student %s in unit %s: %s",
                    student_id,
                    unit.id,
                    str(e),
                )
                report.errors.append(
                    f'Student {student_id} in teaching unit "{label}": {str(e) or e.__class__.__name__}'
                )

    @staticmethod
    def _build_record(
        tenant_id: str,
        year_id: str,
        unit: TeachingUnit,
        student_id: str,
        frequency: FrequencyResult,
        grade: GradeResult,
        generated_by: str | None,
    ) -> HistoricalRecord:
        return HistoricalRecord(
            tenant_id=tenant_id,
            student_id=student_id,
            academic_year_id=year_id,
            teaching_unit_id=unit.id,
            subject_id=unit.subject_id,
            class_group_id=unit.class_group_id,
            class_level_id=unit.class_level_id,
            planned_hours=unit.planned_hours,
            given_hours=frequency.given_hours,
            total_lessons=frequency.total_lessons,
            present=frequency.present,
            justified=frequency.justified,
            unjustified=frequency.unjustified,
            attendance_percentage=to_decimal(frequency.percentage),
            final_average=to_decimal(grade.final_average),
            partial_average=to_decimal(grade.partial_average),
            academic_situation=derive_situation(frequency, grade).value,
            generated_by=generated_by,
            generated_at=utc_now(),
        )

    async def student_history(
        self,
        tenant_id: str,
        student_id: str,
        year_id: str | None = None,
    ) -> Sequence[HistoricalRecord]:
        """Return a student's frozen records, most recent year first.

        Args:
            tenant_id: Tenant of the caller.
            student_id: Student identifier.
            year_id: Restrict to one academic year.

        Raises:
            NotFoundOrForeignTenantError: If year_id is given and not in the tenant.
        """
        if year_id is not None and await self.repo.get_year(tenant_id, year_id) is None:
            raise NotFoundOrForeignTenantError("Academic year", year_id)
        return await self.repo.list_historical_records(tenant_id, student_id, year_id)
