# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Attendance frequency domain package."""

from edurecords.domains.attendance.service import (
    REGULARITY_THRESHOLD,
    FrequencyCalculator,
    FrequencyResult,
    compute_frequency,
)

__all__ = [
    "REGULARITY_THRESHOLD",
    "FrequencyCalculator",
    "FrequencyResult",
    "compute_frequency",
]
