# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial records database schema.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2025-02-03
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=False),
        server_default=sa.text("gen_random_uuid()"),
        primary_key=True,
    )


def _tenant() -> sa.Column:
    return sa.Column("tenant_id", sa.String(36), nullable=False, index=True)


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("now()"),
    )


def _fk(column: str, target: str, nullable: bool = False, ondelete: str | None = None) -> sa.Column:
    return sa.Column(
        column,
        postgresql.UUID(as_uuid=False),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


def upgrade() -> None:
    """Create records database tables."""

    # =========================================================================
    # ACADEMIC STRUCTURE
    # =========================================================================

    op.create_table(
        "academic_years",
        _id(),
        _tenant(),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="ACTIVE"),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_by", sa.String(36), nullable=True),
        _created_at(),
        sa.UniqueConstraint("tenant_id", "year", name="uq_academic_years_tenant_year"),
        sa.CheckConstraint("status IN ('ACTIVE','CLOSED')", name="ck_academic_years_status"),
    )

    op.create_table(
        "class_levels",
        _id(),
        _tenant(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("ordinal", sa.Integer, nullable=False),
        sa.UniqueConstraint("tenant_id", "ordinal", name="uq_class_levels_tenant_ordinal"),
    )

    op.create_table(
        "class_groups",
        _id(),
        _tenant(),
        _fk("academic_year_id", "academic_years.id"),
        _fk("class_level_id", "class_levels.id", nullable=True),
        sa.Column("name", sa.String(100), nullable=False),
    )
    op.create_index("ix_class_groups_academic_year_id", "class_groups", ["academic_year_id"])

    op.create_table(
        "class_group_members",
        sa.Column(
            "class_group_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("class_groups.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("student_id", sa.String(36), primary_key=True),
        _tenant(),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
    )

    op.create_table(
        "subjects",
        _id(),
        _tenant(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("workload_hours", sa.Integer, nullable=False, server_default="0"),
    )

    op.create_table(
        "teaching_units",
        _id(),
        _tenant(),
        _fk("academic_year_id", "academic_years.id"),
        _fk("subject_id", "subjects.id"),
        sa.Column("teacher_id", sa.String(36), nullable=True),
        _fk("class_group_id", "class_groups.id", nullable=True),
        _fk("class_level_id", "class_levels.id", nullable=True),
        sa.Column("planned_hours", sa.Integer, nullable=False, server_default="0"),
        sa.Column("name", sa.String(200), nullable=False, server_default=""),
        _created_at(),
    )
    op.create_index("ix_teaching_units_academic_year_id", "teaching_units", ["academic_year_id"])

    # =========================================================================
    # RAW FACTS
    # =========================================================================

    op.create_table(
        "lessons",
        _id(),
        _tenant(),
        _fk("teaching_unit_id", "teaching_units.id"),
        sa.Column("held_on", sa.Date, nullable=False),
        sa.Column("hours", sa.Integer, nullable=False, server_default="1"),
        _created_at(),
    )
    op.create_index("ix_lessons_teaching_unit_id", "lessons", ["teaching_unit_id"])

    op.create_table(
        "attendance_marks",
        _id(),
        _tenant(),
        _fk("lesson_id", "lessons.id", ondelete="CASCADE"),
        sa.Column("student_id", sa.String(36), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.UniqueConstraint("lesson_id", "student_id", name="uq_attendance_marks_lesson_student"),
    )
    op.create_index("ix_attendance_marks_student_id", "attendance_marks", ["student_id"])

    op.create_table(
        "evaluations",
        _id(),
        _tenant(),
        _fk("teaching_unit_id", "teaching_units.id"),
        sa.Column("teacher_id", sa.String(36), nullable=True),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("period", sa.Integer, nullable=True),
        sa.Column("held_on", sa.Date, nullable=False),
        sa.Column("name", sa.String(200), nullable=False, server_default=""),
        sa.Column("weight", sa.Numeric(5, 2), nullable=False, server_default="1"),
        _created_at(),
    )
    op.create_index("ix_evaluations_teaching_unit_id", "evaluations", ["teaching_unit_id"])

    op.create_table(
        "grade_entries",
        _id(),
        _tenant(),
        _fk("evaluation_id", "evaluations.id", ondelete="CASCADE"),
        sa.Column("student_id", sa.String(36), nullable=False),
        sa.Column("value", sa.Numeric(5, 2), nullable=False),
        _created_at(),
        sa.UniqueConstraint(
            "evaluation_id", "student_id", name="uq_grade_entries_evaluation_student"
        ),
        sa.CheckConstraint("value >= 0 AND value <= 20", name="ck_grade_entries_value_range"),
    )
    op.create_index("ix_grade_entries_student_id", "grade_entries", ["student_id"])

    # =========================================================================
    # ENROLLMENTS
    # =========================================================================

    op.create_table(
        "annual_enrollments",
        _id(),
        _tenant(),
        sa.Column("student_id", sa.String(36), nullable=False),
        _fk("academic_year_id", "academic_years.id"),
        _fk("class_level_id", "class_levels.id"),
        _fk("class_group_id", "class_groups.id", nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("final_status", sa.String(16), nullable=True),
        _fk("suggested_class_level_id", "class_levels.id", nullable=True),
        _created_at(),
        sa.UniqueConstraint(
            "tenant_id",
            "student_id",
            "academic_year_id",
            name="uq_annual_enrollments_student_year",
        ),
    )
    op.create_index("ix_annual_enrollments_student_id", "annual_enrollments", ["student_id"])
    op.create_index(
        "ix_annual_enrollments_academic_year_id", "annual_enrollments", ["academic_year_id"]
    )

    op.create_table(
        "enrollment_subjects",
        sa.Column(
            "enrollment_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("annual_enrollments.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "subject_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("subjects.id"),
            primary_key=True,
        ),
        _tenant(),
    )

    # =========================================================================
    # CONSOLIDATION AND REOPENING
    # =========================================================================

    op.create_table(
        "historical_records",
        _id(),
        _tenant(),
        sa.Column("student_id", sa.String(36), nullable=False),
        _fk("academic_year_id", "academic_years.id"),
        _fk("teaching_unit_id", "teaching_units.id"),
        sa.Column("subject_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("class_group_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("class_level_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("planned_hours", sa.Integer, nullable=False, server_default="0"),
        sa.Column("given_hours", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_lessons", sa.Integer, nullable=False),
        sa.Column("present", sa.Integer, nullable=False),
        sa.Column("justified", sa.Integer, nullable=False),
        sa.Column("unjustified", sa.Integer, nullable=False),
        sa.Column("attendance_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("final_average", sa.Numeric(5, 2), nullable=False),
        sa.Column("partial_average", sa.Numeric(5, 2), nullable=True),
        sa.Column("academic_situation", sa.String(24), nullable=False),
        sa.Column("generated_by", sa.String(36), nullable=True),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "tenant_id",
            "student_id",
            "academic_year_id",
            "teaching_unit_id",
            name="uq_historical_records_key",
        ),
    )
    op.create_index("ix_historical_records_student_id", "historical_records", ["student_id"])
    op.create_index(
        "ix_historical_records_academic_year_id", "historical_records", ["academic_year_id"]
    )

    op.create_table(
        "reopening_windows",
        _id(),
        _tenant(),
        _fk("academic_year_id", "academic_years.id"),
        sa.Column("reason", sa.Text, nullable=False),
        sa.Column("scopes", postgresql.JSONB, nullable=False),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("authorized_by", sa.String(36), nullable=False),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("terminated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("terminated_by", sa.String(36), nullable=True),
        sa.Column("termination_notes", sa.Text, nullable=True),
        _created_at(),
        sa.CheckConstraint("valid_until > valid_from", name="ck_reopening_windows_validity_range"),
    )
    op.create_index(
        "ix_reopening_windows_academic_year_id", "reopening_windows", ["academic_year_id"]
    )
    # At most one non-terminated window per academic year
    op.create_index(
        "uq_reopening_windows_one_open_per_year",
        "reopening_windows",
        ["academic_year_id"],
        unique=True,
        postgresql_where=sa.text("terminated_at IS NULL"),
    )

    # =========================================================================
    # TENANT POLICY AND AUDIT
    # =========================================================================

    op.create_table(
        "tenant_academic_settings",
        _id(),
        _tenant(),
        sa.Column("institution_type", sa.String(16), nullable=False, server_default="SECONDARY"),
        sa.Column("passing_grade", sa.Numeric(5, 2), nullable=False, server_default="10"),
        sa.Column("allow_recovery_exam", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("tolerated_failed_subjects", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "allow_failed_progression_override",
            sa.Boolean,
            nullable=False,
            server_default="false",
        ),
        sa.UniqueConstraint("tenant_id", name="uq_tenant_academic_settings_tenant"),
    )

    op.create_table(
        "audit_logs",
        _id(),
        _tenant(),
        sa.Column("module", sa.String(50), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(36), nullable=True),
        sa.Column("actor_id", sa.String(36), nullable=True),
        sa.Column("before", postgresql.JSONB, nullable=True),
        sa.Column("after", postgresql.JSONB, nullable=True),
        sa.Column("note", sa.Text, nullable=True),
        _created_at(),
    )
    op.create_index("ix_audit_logs_tenant_entity", "audit_logs", ["tenant_id", "entity", "entity_id"])


def downgrade() -> None:
    """Drop records database tables."""
    op.drop_table("audit_logs")
    op.drop_table("tenant_academic_settings")
    op.drop_index("uq_reopening_windows_one_open_per_year", table_name="reopening_windows")
    op.drop_table("reopening_windows")
    op.drop_table("historical_records")
    op.drop_table("enrollment_subjects")
    op.drop_table("annual_enrollments")
    op.drop_table("grade_entries")
    op.drop_table("evaluations")
    op.drop_table("attendance_marks")
    op.drop_table("lessons")
    op.drop_table("teaching_units")
    op.drop_table("subjects")
    op.drop_table("class_group_members")
    op.drop_table("class_groups")
    op.drop_table("class_levels")
    op.drop_table("academic_years")
