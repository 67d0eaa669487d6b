# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for SqlAlchemyAcademicRepository.

The session is mocked; tests inspect the statements handed to execute().
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from edurecords.infrastructure.database.repository import SqlAlchemyAcademicRepository
from edurecords.utils.datetime import utc_now


@pytest.fixture
def mock_db() -> AsyncMock:
    """Create mock database session."""
    db = AsyncMock()
    db.add = MagicMock()
    db.begin_nested = MagicMock()
    return db


@pytest.fixture
def repository(mock_db: AsyncMock) -> SqlAlchemyAcademicRepository:
    return SqlAlchemyAcademicRepository(mock_db)


def result_with(value=None, values=()):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    result.scalar.return_value = value
    result.scalars.return_value.all.return_value = list(values)
    return result


def executed_sql(mock_db: AsyncMock) -> str:
    statement = mock_db.execute.call_args.args[0]
    return str(statement.compile(dialect=postgresql.dialect()))


class TestUnitOfWork:
    def test_add_delegates_to_session(self, repository, mock_db):
        entity = object()

        repository.add(entity)

        mock_db.add.assert_called_once_with(entity)

    def test_savepoint_is_nested_transaction(self, repository, mock_db):
        assert repository.savepoint() is mock_db.begin_nested.return_value

    @pytest.mark.asyncio
    async def test_commit_and_rollback(self, repository, mock_db):
        await repository.commit()
        await repository.rollback()

        mock_db.commit.assert_awaited_once()
        mock_db.rollback.assert_awaited_once()


class TestQueries:
    """Every statement filters on tenant_id."""

    @pytest.mark.asyncio
    async def test_get_year_filters_tenant(self, repository, mock_db):
        year = MagicMock()
        mock_db.execute.return_value = result_with(year)

        found = await repository.get_year("tenant-a", "year-1")

        assert found is year
        sql = executed_sql(mock_db)
        assert "academic_years.tenant_id" in sql
        assert "academic_years.id" in sql

    @pytest.mark.asyncio
    async def test_list_years_newest_first(self, repository, mock_db):
        mock_db.execute.return_value = result_with(values=["a", "b"])

        years = await repository.list_years("tenant-a")

        assert years == ["a", "b"]
        assert "ORDER BY academic_years.year DESC" in executed_sql(mock_db)

    @pytest.mark.asyncio
    async def test_has_historical_records(self, repository, mock_db):
        mock_db.execute.return_value = result_with(True)

        assert await repository.has_historical_records("tenant-a", "year-1") is True
        assert "EXISTS" in executed_sql(mock_db)

    @pytest.mark.asyncio
    async def test_year_id_for_grade_entry_joins_through_unit(self, repository, mock_db):
        mock_db.execute.return_value = result_with("year-1")

        year_id = await repository.year_id_for_grade_entry("tenant-a", "entry-1")

        assert year_id == "year-1"
        sql = executed_sql(mock_db)
        assert "JOIN evaluations" in sql
        assert "JOIN grade_entries" in sql
        assert "teaching_units.tenant_id" in sql

    @pytest.mark.asyncio
    async def test_find_active_window_excludes_terminated(self, repository, mock_db):
        mock_db.execute.return_value = result_with(None)

        window = await repository.find_active_window("tenant-a", "year-1", utc_now())

        assert window is None
        sql = executed_sql(mock_db)
        assert "reopening_windows.terminated_at IS NULL" in sql
        assert "reopening_windows.valid_until >=" in sql

    @pytest.mark.asyncio
    async def test_list_expired_windows_across_tenants(self, repository, mock_db):
        mock_db.execute.return_value = result_with(values=[])

        await repository.list_expired_windows(utc_now())

        sql = executed_sql(mock_db)
        assert "reopening_windows.valid_until <" in sql
        assert "reopening_windows.tenant_id" not in sql.split("WHERE", 1)[1]
