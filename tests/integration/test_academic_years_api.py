# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for academic year, reopening window and history endpoints."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import dramatiq
import pytest

from edurecords.infrastructure.background.broker import Queues
from edurecords.infrastructure.background.tasks import consolidate_academic_year
from edurecords.infrastructure.database.models import HistoricalRecord, ReopeningWindow
from edurecords.infrastructure.events import EventTypes
from edurecords.utils.datetime import utc_now
from fakes import (
    OTHER_TENANT,
    TENANT,
    add_group,
    add_record,
    add_unit,
    add_window,
    add_year,
)

pytestmark = pytest.mark.integration


class TestHealth:
    def test_health_is_public(self, client):
        with patch(
            "edurecords.api.routes.health.check_database_connection",
            AsyncMock(return_value=True),
        ):
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["window_expiry_scheduled"] is False

    def test_health_degraded_without_database(self, client):
        with patch(
            "edurecords.api.routes.health.check_database_connection",
            AsyncMock(return_value=False),
        ):
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["database"] is False
        assert response.json()["status"] == "degraded"


class TestAcademicYearsAPI:
    def test_routes_registered(self, app):
        routes = {route.path for route in app.routes if hasattr(route, "path")}

        assert "/api/v1/academic-years" in routes
        assert "/api/v1/academic-years/{year_id}/close" in routes
        assert "/api/v1/academic-years/{year_id}/consolidate" in routes
        assert "/api/v1/academic-years/{year_id}/consolidation-jobs" in routes
        assert "/api/v1/reopening-windows/{window_id}/terminate" in routes
        assert "/api/v1/students/{student_id}/history" in routes

    def test_create_and_list(self, client, director_headers):
        created = client.post(
            "/api/v1/academic-years",
            json={"year": 2025, "start_date": "2025-02-01", "end_date": "2025-12-15"},
            headers=director_headers,
        )
        assert created.status_code == 201
        assert created.json()["status"] == "ACTIVE"

        listed = client.get("/api/v1/academic-years", headers=director_headers)
        assert listed.status_code == 200
        assert listed.json()["total"] == 1
        assert listed.json()["items"][0]["year"] == 2025

    def test_duplicate_year_conflicts(self, client, repo, director_headers):
        add_year(repo, year=2025)

        response = client.post(
            "/api/v1/academic-years",
            json={"year": 2025, "start_date": "2025-02-01", "end_date": "2025-12-15"},
            headers=director_headers,
        )

        assert response.status_code == 409

    def test_teacher_cannot_create_year(self, client, teacher_headers):
        response = client.post(
            "/api/v1/academic-years",
            json={"year": 2025, "start_date": "2025-02-01", "end_date": "2025-12-15"},
            headers=teacher_headers,
        )

        assert response.status_code == 403

    def test_year_of_other_tenant_not_found(self, client, repo, director_headers):
        year = add_year(repo, tenant_id=OTHER_TENANT)

        response = client.get(f"/api/v1/academic-years/{year.id}", headers=director_headers)

        assert response.status_code == 404
        assert response.json()["detail"] == f"Academic year {year.id} not found"

    def test_close_year_consolidates(self, client, repo, notifications, director_headers):
        year = add_year(repo)
        add_unit(repo, year, group=add_group(repo, year, students=["s1", "s2"]))

        response = client.post(
            f"/api/v1/academic-years/{year.id}/close",
            json={"justification": "End of year"},
            headers=director_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["year"]["status"] == "CLOSED"
        assert body["year"]["closed_by"] == "director-1"
        assert body["consolidation"]["total_created"] == 2
        assert len(repo.rows[HistoricalRecord]) == 2
        assert EventTypes.AcademicYear.CLOSED in notifications.types()

    def test_close_without_body(self, client, repo, director_headers):
        year = add_year(repo)

        response = client.post(
            f"/api/v1/academic-years/{year.id}/close", headers=director_headers
        )

        assert response.status_code == 200
        assert response.json()["consolidation"]["errors"] == [
            "No teaching units found for this academic year"
        ]

    def test_closing_closed_year_conflicts(self, client, repo, director_headers):
        year = add_year(repo, status="CLOSED")

        response = client.post(
            f"/api/v1/academic-years/{year.id}/close", headers=director_headers
        )

        assert response.status_code == 409

    def test_consolidate_active_year_conflicts(self, client, repo, director_headers):
        year = add_year(repo)

        response = client.post(
            f"/api/v1/academic-years/{year.id}/consolidate", headers=director_headers
        )

        assert response.status_code == 409

    def test_consolidate_resume(self, client, repo, director_headers):
        year = add_year(repo, status="CLOSED")
        unit = add_unit(repo, year, group=add_group(repo, year, students=["s1", "s2"]))
        add_record(repo, year, "s1", "APPROVED", unit=unit)

        response = client.post(
            f"/api/v1/academic-years/{year.id}/consolidate?resume=true",
            headers=director_headers,
        )

        assert response.status_code == 200
        assert response.json()["total_created"] == 1
        assert response.json()["skipped_existing"] == 1

    def test_queue_consolidation_job(self, client, repo, director_headers):
        year = add_year(repo, status="CLOSED")
        broker = consolidate_academic_year.broker
        broker.flush(Queues.CONSOLIDATION)

        response = client.post(
            f"/api/v1/academic-years/{year.id}/consolidation-jobs",
            headers=director_headers,
        )

        assert response.status_code == 202
        assert response.json()["queue"] == Queues.CONSOLIDATION
        assert response.json()["resume"] is True

        queue = broker.queues[Queues.CONSOLIDATION]
        assert queue.qsize() == 1
        message = dramatiq.Message.decode(queue.get_nowait())
        assert message.message_id == response.json()["message_id"]
        assert list(message.args) == [TENANT, year.id]
        assert message.kwargs["resume"] is True

    def test_queue_consolidation_of_active_year_conflicts(self, client, repo, director_headers):
        year = add_year(repo, status="ACTIVE")
        broker = consolidate_academic_year.broker
        broker.flush(Queues.CONSOLIDATION)

        response = client.post(
            f"/api/v1/academic-years/{year.id}/consolidation-jobs",
            headers=director_headers,
        )

        assert response.status_code == 409
        assert broker.queues[Queues.CONSOLIDATION].qsize() == 0

    def test_teacher_cannot_queue_consolidation(self, client, repo, teacher_headers):
        year = add_year(repo, status="CLOSED")

        response = client.post(
            f"/api/v1/academic-years/{year.id}/consolidation-jobs",
            headers=teacher_headers,
        )

        assert response.status_code == 403


class TestReopeningWindowsAPI:
    def _payload(self, year_id: str, **overrides) -> dict:
        now = utc_now()
        payload = {
            "academic_year_id": year_id,
            "reason": "Grade correction after appeal",
            "scopes": ["GRADES"],
            "valid_from": now.isoformat(),
            "valid_until": (now + timedelta(days=7)).isoformat(),
        }
        payload.update(overrides)
        return payload

    def test_create_window(self, client, repo, director_headers):
        year = add_year(repo, status="CLOSED")

        response = client.post(
            "/api/v1/reopening-windows", json=self._payload(year.id), headers=director_headers
        )

        assert response.status_code == 201
        body = response.json()
        assert body["scopes"] == ["GRADES"]
        assert body["authorized_by"] == "director-1"
        assert body["is_active"] is True
        assert len(repo.rows[ReopeningWindow]) == 1

    def test_unknown_scope_rejected(self, client, repo, director_headers):
        year = add_year(repo, status="CLOSED")

        response = client.post(
            "/api/v1/reopening-windows",
            json=self._payload(year.id, scopes=["EVERYTHING"]),
            headers=director_headers,
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Unknown reopening scope: EVERYTHING"
        assert "GENERAL" in response.json()["hint"]
        assert repo.rows[ReopeningWindow] == []

    def test_malformed_date_rejected(self, client, repo, director_headers):
        year = add_year(repo, status="CLOSED")

        response = client.post(
            "/api/v1/reopening-windows",
            json=self._payload(year.id, valid_until="next friday"),
            headers=director_headers,
        )

        assert response.status_code == 400
        body = response.json()
        assert body["detail"].startswith("Invalid valid_until")
        assert body["hint"]
        assert body["details"]["errors"][0]["loc"] == ["body", "valid_until"]

    def test_blank_reason_rejected(self, client, repo, director_headers):
        year = add_year(repo, status="CLOSED")

        response = client.post(
            "/api/v1/reopening-windows",
            json=self._payload(year.id, reason="   "),
            headers=director_headers,
        )

        assert response.status_code == 400

    def test_active_year_cannot_be_reopened(self, client, repo, director_headers):
        year = add_year(repo)

        response = client.post(
            "/api/v1/reopening-windows", json=self._payload(year.id), headers=director_headers
        )

        assert response.status_code == 409

    def test_second_active_window_conflicts(self, client, repo, director_headers):
        year = add_year(repo, status="CLOSED")
        window = add_window(repo, year)

        response = client.post(
            "/api/v1/reopening-windows", json=self._payload(year.id), headers=director_headers
        )

        assert response.status_code == 409
        assert response.json()["details"] == {"window_id": window.id}

    def test_teacher_cannot_reopen(self, client, repo, teacher_headers):
        year = add_year(repo, status="CLOSED")

        response = client.post(
            "/api/v1/reopening-windows", json=self._payload(year.id), headers=teacher_headers
        )

        assert response.status_code == 403

    def test_terminate_window(self, client, repo, notifications, director_headers):
        year = add_year(repo, status="CLOSED")
        window = add_window(repo, year)

        response = client.post(
            f"/api/v1/reopening-windows/{window.id}/terminate",
            json={"notes": "Corrections done"},
            headers=director_headers,
        )

        assert response.status_code == 200
        assert response.json()["is_active"] is False
        assert response.json()["terminated_by"] == "director-1"
        assert EventTypes.Reopening.TERMINATED in notifications.types()

    def test_list_active_windows(self, client, repo, director_headers):
        year = add_year(repo, status="CLOSED")
        add_window(repo, year, terminated_at=utc_now())
        active = add_window(repo, year)

        response = client.get(
            "/api/v1/reopening-windows",
            params={"academic_year_id": year.id, "active": "true"},
            headers=director_headers,
        )

        assert response.status_code == 200
        assert [w["id"] for w in response.json()] == [active.id]

    def test_expire_due_windows(self, client, repo, director_headers):
        year = add_year(repo, status="CLOSED")
        window = add_window(repo, year, valid_until=utc_now() - timedelta(hours=1))

        response = client.post("/api/v1/reopening-windows/expire", headers=director_headers)

        assert response.status_code == 200
        assert response.json()["terminated"] == 1
        assert window.terminated_at is not None


class TestStudentHistoryAPI:
    def test_history_most_recent_year_first(self, client, repo, teacher_headers):
        add_record(repo, add_year(repo, year=2023, status="CLOSED"), "s1", "APPROVED")
        add_record(repo, add_year(repo, year=2024, status="CLOSED"), "s1", "FAILED")

        response = client.get("/api/v1/students/s1/history", headers=teacher_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert [item["academic_situation"] for item in body["items"]] == ["FAILED", "APPROVED"]

    def test_history_of_other_tenant_is_empty(self, client, repo, make_headers):
        add_record(repo, add_year(repo, status="CLOSED"), "s1", "APPROVED")

        response = client.get(
            "/api/v1/students/s1/history",
            headers=make_headers(roles=["teacher"], tenant_id=OTHER_TENANT),
        )

        assert response.status_code == 200
        assert response.json()["total"] == 0
