# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API middleware."""

from edurecords.api.middleware.auth import AuthMiddleware, CurrentUser, get_current_user
from edurecords.api.middleware.tenant import TenantMiddleware, get_tenant_id

__all__ = [
    "AuthMiddleware",
    "CurrentUser",
    "TenantMiddleware",
    "get_current_user",
    "get_tenant_id",
]
