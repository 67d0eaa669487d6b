# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests (in-memory repository, recording audit sink)
- Integration tests (FastAPI app with dependency overrides)
"""

import os
from collections.abc import Generator

import pytest

os.environ.setdefault("DRAMATIQ_TEST_MODE", "true")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-testing-only")

from edurecords.domains.auth.capabilities import Capability  # noqa: E402
from edurecords.infrastructure.events import reset_event_bus  # noqa: E402
from fakes import (  # noqa: E402
    OTHER_TENANT,
    TENANT,
    InMemoryAcademicRepository,
    RecordingAuditSink,
    RecordingNotifications,
)


@pytest.fixture(autouse=True)
def clean_event_bus() -> Generator[None, None, None]:
    """Give every test a fresh global event bus."""
    reset_event_bus()
    yield
    reset_event_bus()


# =============================================================================
# Domain Fixtures
# =============================================================================


@pytest.fixture
def tenant_id() -> str:
    return TENANT


@pytest.fixture
def other_tenant_id() -> str:
    return OTHER_TENANT


@pytest.fixture
def repo() -> InMemoryAcademicRepository:
    """Empty in-memory academic repository."""
    return InMemoryAcademicRepository()


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def notifications() -> RecordingNotifications:
    return RecordingNotifications()


@pytest.fixture
def director_caps() -> frozenset[Capability]:
    """Capabilities of an institution director."""
    return frozenset(
        {
            Capability.RECORD_FACTS,
            Capability.MANAGE_ACADEMIC_YEAR,
            Capability.MANAGE_REOPENING,
            Capability.OVERRIDE_PROGRESSION,
        }
    )


@pytest.fixture
def teacher_caps() -> frozenset[Capability]:
    return frozenset({Capability.RECORD_FACTS})


@pytest.fixture
def operator_caps() -> frozenset[Capability]:
    """Capabilities of a platform operator."""
    return frozenset(Capability)


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (in-process app)"
    )
