# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Year consolidation domain package."""

from edurecords.domains.consolidation.service import (
    ALREADY_GENERATED,
    ConsolidationReport,
    ConsolidationService,
    derive_situation,
)

__all__ = [
    "ALREADY_GENERATED",
    "ConsolidationReport",
    "ConsolidationService",
    "derive_situation",
]
