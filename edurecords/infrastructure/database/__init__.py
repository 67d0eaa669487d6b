# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure for the records PostgreSQL database.

Example:
    from edurecords.infrastructure.database import get_session, SqlAlchemyAcademicRepository

    async with get_session() as session:
        repo = SqlAlchemyAcademicRepository(session)
        year = await repo.get_year(tenant_id, year_id)
"""

from edurecords.infrastructure.database.connection import (
    DatabaseError,
    check_database_connection,
    clear_worker_connections,
    close_database,
    get_session,
    get_sessionmaker,
    get_worker_session,
    init_database,
)
from edurecords.infrastructure.database.repository import SqlAlchemyAcademicRepository

__all__ = [
    "DatabaseError",
    "check_database_connection",
    "clear_worker_connections",
    "close_database",
    "get_session",
    "get_sessionmaker",
    "get_worker_session",
    "init_database",
    "SqlAlchemyAcademicRepository",
]
