# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 router aggregation."""

from fastapi import APIRouter

from edurecords.api.v1.academic_years import router as academic_years_router
from edurecords.api.v1.records import router as records_router
from edurecords.api.v1.reopening_windows import router as reopening_windows_router
from edurecords.api.v1.students import router as students_router

router = APIRouter(prefix="/api/v1")

router.include_router(academic_years_router, prefix="/academic-years", tags=["Academic Years"])
router.include_router(
    reopening_windows_router, prefix="/reopening-windows", tags=["Reopening Windows"]
)
router.include_router(students_router, prefix="/students", tags=["Students"])
router.include_router(records_router, tags=["Academic Records"])

__all__ = ["router"]
