# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Academic year lifecycle domain package."""

from edurecords.domains.academic_year.service import AcademicYearService, require_capability

__all__ = ["AcademicYearService", "require_capability"]
