# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Student history response models."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from edurecords.models.enums import AcademicSituation


class HistoricalRecordResponse(BaseModel):
    """One frozen outcome of a student in a teaching unit."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    academic_year_id: str
    teaching_unit_id: str
    subject_id: str
    class_group_id: str | None = None
    class_level_id: str | None = None
    planned_hours: int
    given_hours: int
    total_lessons: int
    present: int
    justified: int
    unjustified: int
    attendance_percentage: Decimal
    final_average: Decimal
    partial_average: Decimal | None = None
    academic_situation: AcademicSituation
    generated_by: str | None = None
    generated_at: datetime


class StudentHistoryResponse(BaseModel):
    student_id: str
    items: list[HistoricalRecordResponse]
    total: int
