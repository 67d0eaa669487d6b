# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Fixtures for API integration tests.

The application is built with create_app() and its repository, audit and
notification dependencies are overridden with in-memory fakes. The
lifespan is not entered, so no database or scheduler is started.
"""

from collections.abc import Callable

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from edurecords.api.app import create_app
from edurecords.api.dependencies import (
    get_audit_service,
    get_notification_service,
    get_repository,
)
from edurecords.core.config import get_settings
from edurecords.domains.auth import JWTManager
from edurecords.infrastructure.audit import AuditService
from fakes import TENANT, InMemoryAcademicRepository, RecordingAuditSink, RecordingNotifications


@pytest.fixture
def app(
    repo: InMemoryAcademicRepository,
    audit_sink: RecordingAuditSink,
    notifications: RecordingNotifications,
) -> FastAPI:
    """Create the API app wired to in-memory fakes."""
    app = create_app()
    app.dependency_overrides[get_repository] = lambda: repo
    app.dependency_overrides[get_audit_service] = lambda: AuditService(audit_sink)
    app.dependency_overrides[get_notification_service] = lambda: notifications
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def make_headers() -> Callable[..., dict[str, str]]:
    """Build Authorization headers carrying a real signed token."""
    jwt_manager = JWTManager(get_settings().jwt)

    def _make(
        roles: list[str] | None = None,
        permissions: list[str] | None = None,
        tenant_id: str | None = TENANT,
        user_id: str = "user-1",
    ) -> dict[str, str]:
        token = jwt_manager.create_access_token(
            user_id,
            tenant_id=tenant_id,
            roles=roles,
            permissions=permissions,
        )
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def director_headers(make_headers: Callable[..., dict[str, str]]) -> dict[str, str]:
    return make_headers(roles=["direction"], user_id="director-1")


@pytest.fixture
def teacher_headers(make_headers: Callable[..., dict[str, str]]) -> dict[str, str]:
    return make_headers(roles=["teacher"], user_id="teacher-1")


@pytest.fixture
def operator_headers(make_headers: Callable[..., dict[str, str]]) -> dict[str, str]:
    return make_headers(roles=["super_admin"], user_id="operator-1")
