# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request and response models for academic fact writes.

Every write request accepts an ``override`` flag. It only has an effect
for callers allowed to bypass the closed-year freeze. Enrollments carry a
separate ``override_progression`` flag for the failed-progression block.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from edurecords.models.enums import AttendanceStatus, EvaluationKind, FinalStatus


class LessonCreateRequest(BaseModel):
    teaching_unit_id: str
    held_on: date
    hours: int = Field(default=1, ge=1, le=12)
    override: bool = False


class LessonResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    teaching_unit_id: str
    held_on: date
    hours: int


class AttendanceMarkRequest(BaseModel):
    lesson_id: str
    student_id: str
    status: AttendanceStatus
    override: bool = False


class AttendanceMarkResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    lesson_id: str
    student_id: str
    status: AttendanceStatus


class EvaluationCreateRequest(BaseModel):
    teaching_unit_id: str
    kind: EvaluationKind
    held_on: date
    name: str = Field(default="", max_length=200)
    period: int | None = Field(default=None, ge=1, le=3, description="Trimester, if any")
    weight: Decimal = Field(default=Decimal("1"), gt=0)
    override: bool = False


class EvaluationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    teaching_unit_id: str
    teacher_id: str | None = None
    kind: EvaluationKind
    period: int | None = None
    held_on: date
    name: str
    weight: Decimal


class GradeCreateRequest(BaseModel):
    evaluation_id: str
    student_id: str
    value: Decimal = Field(description="Grade on the 0..20 scale")
    override: bool = False


class GradeUpdateRequest(BaseModel):
    value: Decimal = Field(description="Grade on the 0..20 scale")
    override: bool = False


class GradeEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    evaluation_id: str
    student_id: str
    value: Decimal


class EnrollmentCreateRequest(BaseModel):
    """Annual enrollment of a student at a class level."""

    student_id: str
    academic_year_id: str
    class_level_id: str
    class_group_id: str | None = None
    subject_ids: list[str] = Field(default_factory=list)
    override: bool = Field(default=False, description="Bypass the closed-year freeze")
    override_progression: bool = Field(
        default=False,
        description="Enroll above the level a failed previous year allows",
    )


class EnrollmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    academic_year_id: str
    class_level_id: str
    class_group_id: str | None = None
    final_status: FinalStatus | None = None
    suggested_class_level_id: str | None = None
    progression_override: bool = False


class TeachingUnitUpdateRequest(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    teacher_id: str | None = None
    planned_hours: int | None = Field(default=None, ge=0)
    class_group_id: str | None = None
    override: bool = False


class TeachingUnitResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    academic_year_id: str
    subject_id: str
    teacher_id: str | None = None
    class_group_id: str | None = None
    planned_hours: int
    name: str
    created_at: datetime | None = None
