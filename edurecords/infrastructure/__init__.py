# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Infrastructure layer.

This package contains:
- Database connections, models and the SQL repository (PostgreSQL)
- Audit sinks
- In-process event bus and notification dispatch
- Background task processing (Dramatiq, APScheduler)
"""
