# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grade calculation domain package."""

from edurecords.domains.grading.service import (
    DisplayedEvaluation,
    GradeCalculator,
    GradePolicy,
    GradeResult,
    ScoredEvaluation,
    calculate_higher,
    calculate_secondary,
    display_order,
    ordinal_label,
    to_decimal,
    validate_grade_value,
)

__all__ = [
    "DisplayedEvaluation",
    "GradeCalculator",
    "GradePolicy",
    "GradeResult",
    "ScoredEvaluation",
    "calculate_higher",
    "calculate_secondary",
    "display_order",
    "ordinal_label",
    "to_decimal",
    "validate_grade_value",
]
