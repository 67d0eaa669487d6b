# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Reopening window request and response models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from edurecords.models.enums import ReopeningScope


class ReopeningWindowCreateRequest(BaseModel):
    """Request to open a reopening window on a closed academic year."""

    academic_year_id: str = Field(description="Closed academic year to reopen")
    reason: str = Field(max_length=2000, description="Why the closed year must be corrected")
    scopes: list[str] = Field(
        description="Categories of writes to authorize, e.g. GRADES or GENERAL"
    )
    valid_from: datetime = Field(description="Start of validity")
    valid_until: datetime = Field(description="End of validity")
    notes: str | None = Field(default=None, max_length=2000)


class ReopeningWindowTerminateRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=2000, description="Why the window ends early")


class ReopeningWindowResponse(BaseModel):
    """Reopening window details."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    academic_year_id: str
    reason: str
    scopes: list[ReopeningScope]
    valid_from: datetime
    valid_until: datetime
    authorized_by: str
    notes: str | None = None
    created_at: datetime | None = None
    terminated_at: datetime | None = None
    terminated_by: str | None = None
    termination_notes: str | None = None
    is_active: bool = False


class ExpireWindowsResponse(BaseModel):
    terminated: int = Field(description="Number of windows terminated")
