# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class-level progression domain package."""

from edurecords.domains.progression.service import (
    FinalStatusSummary,
    ProgressionDecision,
    ProgressionValidator,
)

__all__ = ["FinalStatusSummary", "ProgressionDecision", "ProgressionValidator"]
