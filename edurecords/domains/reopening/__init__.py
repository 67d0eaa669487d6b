# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Reopening window domain package."""

from edurecords.domains.reopening.scopes import permission_check, scope_for_route
from edurecords.domains.reopening.service import (
    ReopeningService,
    is_active,
    normalize_scopes,
)

__all__ = [
    "ReopeningService",
    "is_active",
    "normalize_scopes",
    "permission_check",
    "scope_for_route",
]
