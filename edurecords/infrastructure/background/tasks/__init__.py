# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Dramatiq actors for EduRecords.

Running Workers:
    dramatiq edurecords.infrastructure.background.tasks --processes 2 --threads 4
"""

from edurecords.infrastructure.background.tasks.academic_jobs import (
    consolidate_academic_year,
    expire_reopening_windows_job,
)
from edurecords.infrastructure.background.tasks.base import run_async

__all__ = [
    "consolidate_academic_year",
    "expire_reopening_windows_job",
    "run_async",
]
