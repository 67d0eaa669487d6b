# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Alembic environment for the records schema.

The URL is always the application's (DB_DSN or the DB_* components), so
migrations and the API can never point at different databases.

Usage:
    alembic upgrade head
    alembic upgrade head --sql > records.sql
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from edurecords.core.config import get_settings
from edurecords.infrastructure.database.models import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

COMPARE_OPTIONS = {"compare_type": True, "compare_server_default": True}


def _migrate(**configure_kwargs) -> None:
    context.configure(target_metadata=Base.metadata, **COMPARE_OPTIONS, **configure_kwargs)
    with context.begin_transaction():
        context.run_migrations()


def _migrate_connection(connection: Connection) -> None:
    _migrate(connection=connection)


async def _migrate_online(url: str) -> None:
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = url
    engine = async_engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_migrate_connection)
    finally:
        await engine.dispose()


database_url = get_settings().db.url

if context.is_offline_mode():
    # Emits SQL instead of executing it
    _migrate(url=database_url, literal_binds=True, dialect_opts={"paramstyle": "named"})
else:
    asyncio.run(_migrate_online(database_url))
