# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Academic year request and response models."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from edurecords.models.enums import YearStatus


class AcademicYearCreateRequest(BaseModel):
    """Request to create an academic year."""

    year: int = Field(ge=1900, le=3000, description="Calendar year number, e.g. 2025")
    start_date: date = Field(description="First day of the academic year")
    end_date: date = Field(description="Last day of the academic year")

    @model_validator(mode="after")
    def check_dates(self) -> "AcademicYearCreateRequest":
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class AcademicYearCloseRequest(BaseModel):
    justification: str | None = Field(
        default=None,
        max_length=2000,
        description="Optional note stored on the audit entry",
    )


class AcademicYearResponse(BaseModel):
    """Academic year details."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    year: int
    status: YearStatus
    start_date: date
    end_date: date
    closed_at: datetime | None = None
    closed_by: str | None = None
    created_at: datetime | None = None


class AcademicYearListResponse(BaseModel):
    items: list[AcademicYearResponse]
    total: int


class ConsolidationReportResponse(BaseModel):
    """Outcome of a consolidation run."""

    model_config = ConfigDict(from_attributes=True)

    total_created: int = Field(description="Historical records written by this run")
    errors: list[str] = Field(default_factory=list, description="Per-unit and per-row errors")
    already_generated: bool = Field(
        default=False,
        description="Records already existed and nothing was computed",
    )
    skipped_existing: int = Field(default=0, description="Rows whose record already existed")
    finalized_enrollments: int = Field(
        default=0, description="Enrollments whose final status was computed after the run"
    )


class AcademicYearCloseResponse(BaseModel):
    year: AcademicYearResponse
    consolidation: ConsolidationReportResponse


class ConsolidationJobResponse(BaseModel):
    """A consolidation queued for the background workers."""

    academic_year_id: str
    message_id: str = Field(description="Dramatiq message id of the queued job")
    queue: str
    resume: bool = Field(description="The job only fills in missing records")
