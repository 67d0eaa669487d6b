# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Academic fact writes."""

from edurecords.domains.records.service import AcademicRecordsService

__all__ = ["AcademicRecordsService"]
