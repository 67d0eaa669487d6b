# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Academic records tables.

Raw facts (lessons, attendance marks, evaluations, grade entries) are
written during the year. Historical records are the frozen per-student,
per-teaching-unit snapshots produced when the year closes. Reopening
windows grant time-boxed, scoped exceptions to the closed-year freeze.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from edurecords.infrastructure.database.models.base import (
    Base,
    IdMixin,
    TenantMixin,
    TimestampMixin,
)


class AcademicYear(IdMixin, TenantMixin, TimestampMixin, Base):
    """Academic year of a tenant. Status moves ACTIVE -> CLOSED only."""

    __tablename__ = "academic_years"

    year: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="ACTIVE")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_by: Mapped[str | None] = mapped_column(String(36), nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "year", name="uq_academic_years_tenant_year"),
        CheckConstraint("status IN ('ACTIVE','CLOSED')", name="status"),
    )


class ClassLevel(IdMixin, TenantMixin, Base):
    """Ordered class level (10th grade, 2nd year, ...)."""

    __tablename__ = "class_levels"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    ordinal: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "ordinal", name="uq_class_levels_tenant_ordinal"),
    )


class ClassGroup(IdMixin, TenantMixin, Base):
    __tablename__ = "class_groups"

    academic_year_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("academic_years.id"), nullable=False, index=True
    )
    class_level_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False), ForeignKey("class_levels.id"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)


class ClassGroupMember(TenantMixin, Base):
    __tablename__ = "class_group_members"

    class_group_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("class_groups.id", ondelete="CASCADE"),
        primary_key=True,
    )
    student_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Subject(IdMixin, TenantMixin, Base):
    __tablename__ = "subjects"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    workload_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class TeachingUnit(IdMixin, TenantMixin, TimestampMixin, Base):
    """A subject taught by one teacher in one academic year."""

    __tablename__ = "teaching_units"

    academic_year_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("academic_years.id"), nullable=False, index=True
    )
    subject_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("subjects.id"), nullable=False
    )
    teacher_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    class_group_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False), ForeignKey("class_groups.id"), nullable=True
    )
    class_level_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False), ForeignKey("class_levels.id"), nullable=True
    )
    planned_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")


class Lesson(IdMixin, TenantMixin, TimestampMixin, Base):
    __tablename__ = "lessons"

    teaching_unit_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("teaching_units.id"), nullable=False, index=True
    )
    held_on: Mapped[date] = mapped_column(Date, nullable=False)
    hours: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class AttendanceMark(IdMixin, TenantMixin, Base):
    __tablename__ = "attendance_marks"

    lesson_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False
    )
    student_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)

    __table_args__ = (
        UniqueConstraint("lesson_id", "student_id", name="uq_attendance_marks_lesson_student"),
    )


class Evaluation(IdMixin, TenantMixin, TimestampMixin, Base):
    __tablename__ = "evaluations"

    teaching_unit_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("teaching_units.id"), nullable=False, index=True
    )
    teacher_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    period: Mapped[int | None] = mapped_column(Integer, nullable=True)
    held_on: Mapped[date] = mapped_column(Date, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    weight: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("1"))


class GradeEntry(IdMixin, TenantMixin, TimestampMixin, Base):
    __tablename__ = "grade_entries"

    evaluation_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("evaluations.id", ondelete="CASCADE"), nullable=False
    )
    student_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    value: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)

    __table_args__ = (
        UniqueConstraint("evaluation_id", "student_id", name="uq_grade_entries_evaluation_student"),
        CheckConstraint("value >= 0 AND value <= 20", name="value_range"),
    )


class AnnualEnrollment(IdMixin, TenantMixin, TimestampMixin, Base):
    """Enrollment of a student at a class level for one academic year."""

    __tablename__ = "annual_enrollments"

    student_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    academic_year_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("academic_years.id"), nullable=False, index=True
    )
    class_level_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("class_levels.id"), nullable=False
    )
    class_group_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False), ForeignKey("class_groups.id"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    final_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    suggested_class_level_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False), ForeignKey("class_levels.id"), nullable=True
    )

    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "student_id",
            "academic_year_id",
            name="uq_annual_enrollments_student_year",
        ),
    )


class EnrollmentSubject(TenantMixin, Base):
    __tablename__ = "enrollment_subjects"

    enrollment_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("annual_enrollments.id", ondelete="CASCADE"),
        primary_key=True,
    )
    subject_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("subjects.id"), primary_key=True
    )


class HistoricalRecord(IdMixin, TenantMixin, Base):
    """Immutable snapshot of one student's outcome in one teaching unit.

    Rows are inserted once during consolidation and never updated or
    deleted by application code.
    """

    __tablename__ = "historical_records"

    student_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    academic_year_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("academic_years.id"), nullable=False, index=True
    )
    teaching_unit_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("teaching_units.id"), nullable=False
    )
    subject_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    class_group_id: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True)
    class_level_id: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True)
    planned_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    given_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_lessons: Mapped[int] = mapped_column(Integer, nullable=False)
    present: Mapped[int] = mapped_column(Integer, nullable=False)
    justified: Mapped[int] = mapped_column(Integer, nullable=False)
    unjustified: Mapped[int] = mapped_column(Integer, nullable=False)
    attendance_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    final_average: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    partial_average: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    academic_situation: Mapped[str] = mapped_column(String(24), nullable=False)
    generated_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "student_id",
            "academic_year_id",
            "teaching_unit_id",
            name="uq_historical_records_key",
        ),
    )


class ReopeningWindow(IdMixin, TenantMixin, TimestampMixin, Base):
    """Time-boxed, scoped exception to the closed-year freeze.

    Only the termination fields change after creation.
    """

    __tablename__ = "reopening_windows"

    academic_year_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("academic_years.id"), nullable=False, index=True
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    scopes: Mapped[list[str]] = mapped_column(JSONB, nullable=False)
    valid_from: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    valid_until: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    authorized_by: Mapped[str] = mapped_column(String(36), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    terminated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    terminated_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    termination_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index(
            "uq_reopening_windows_one_open_per_year",
            "academic_year_id",
            unique=True,
            postgresql_where=text("terminated_at IS NULL"),
        ),
        CheckConstraint("valid_until > valid_from", name="validity_range"),
    )


class TenantAcademicSettings(IdMixin, TenantMixin, Base):
    """Per-tenant grading and progression policy."""

    __tablename__ = "tenant_academic_settings"

    institution_type: Mapped[str] = mapped_column(String(16), nullable=False, default="SECONDARY")
    passing_grade: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("10"))
    allow_recovery_exam: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tolerated_failed_subjects: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    allow_failed_progression_override: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    __table_args__ = (UniqueConstraint("tenant_id", name="uq_tenant_academic_settings_tenant"),)


class AuditLog(IdMixin, TenantMixin, TimestampMixin, Base):
    """Append-only audit trail."""

    __tablename__ = "audit_logs"

    module: Mapped[str] = mapped_column(String(50), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    entity: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    actor_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    before: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    after: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (Index("ix_audit_logs_tenant_entity", "tenant_id", "entity", "entity_id"),)
