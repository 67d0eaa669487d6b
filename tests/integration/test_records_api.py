# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the academic record write endpoints.

Every write passes the closed-year gate before reaching the records
service, so these tests cover authentication, tenant binding and gate
decisions as seen over HTTP.
"""

from datetime import date
from decimal import Decimal

import pytest

from edurecords.infrastructure.audit import AuditActions, AuditModules
from edurecords.infrastructure.database.models import Lesson
from edurecords.infrastructure.events import EventTypes
from fakes import (
    OTHER_TENANT,
    add_enrollment,
    add_evaluation,
    add_level,
    add_lessons,
    add_settings,
    add_unit,
    add_window,
    add_year,
    grade,
)

pytestmark = pytest.mark.integration


class TestAuthentication:
    """Requests without a usable identity never reach the gate."""

    def test_write_without_token_is_unauthorized(self, client, repo):
        year = add_year(repo)
        unit = add_unit(repo, year)

        response = client.post(
            "/api/v1/lessons",
            json={"teaching_unit_id": unit.id, "held_on": "2024-03-04"},
        )

        assert response.status_code == 401

    def test_garbage_token_is_unauthorized(self, client, repo):
        year = add_year(repo)
        unit = add_unit(repo, year)

        response = client.post(
            "/api/v1/lessons",
            json={"teaching_unit_id": unit.id, "held_on": "2024-03-04"},
            headers={"Authorization": "Bearer not-a-token"},
        )

        assert response.status_code == 401

    def test_missing_capability_is_forbidden(self, client, repo, make_headers):
        year = add_year(repo)
        unit = add_unit(repo, year)

        response = client.post(
            "/api/v1/lessons",
            json={"teaching_unit_id": unit.id, "held_on": "2024-03-04"},
            headers=make_headers(roles=["student"]),
        )

        assert response.status_code == 403
        assert "record_facts" in response.json()["detail"]

    def test_tenant_header_mismatch_is_forbidden(self, client, repo, teacher_headers):
        year = add_year(repo)
        unit = add_unit(repo, year)

        response = client.post(
            "/api/v1/lessons",
            json={"teaching_unit_id": unit.id, "held_on": "2024-03-04"},
            headers={**teacher_headers, "X-Tenant-ID": OTHER_TENANT},
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Tenant mismatch"
        assert repo.rows[Lesson] == []


class TestWritesOnActiveYear:
    def test_record_lesson(self, client, repo, teacher_headers):
        year = add_year(repo)
        unit = add_unit(repo, year)

        response = client.post(
            "/api/v1/lessons",
            json={"teaching_unit_id": unit.id, "held_on": "2024-03-04", "hours": 2},
            headers=teacher_headers,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["teaching_unit_id"] == unit.id
        assert body["hours"] == 2

    def test_record_attendance_replaces_previous_mark(self, client, repo, teacher_headers):
        year = add_year(repo)
        unit = add_unit(repo, year)
        lesson = add_lessons(repo, unit, 1)[0]
        payload = {"lesson_id": lesson.id, "student_id": "student-1", "status": "ABSENT"}

        first = client.post("/api/v1/attendance", json=payload, headers=teacher_headers)
        second = client.post(
            "/api/v1/attendance",
            json={**payload, "status": "JUSTIFIED"},
            headers=teacher_headers,
        )

        assert first.status_code == 201
        assert second.status_code == 201
        assert second.json()["id"] == first.json()["id"]
        assert second.json()["status"] == "JUSTIFIED"

    def test_record_evaluation_and_grade(self, client, repo, teacher_headers):
        year = add_year(repo)
        unit = add_unit(repo, year)

        evaluation = client.post(
            "/api/v1/evaluations",
            json={
                "teaching_unit_id": unit.id,
                "kind": "TEST",
                "held_on": "2024-04-10",
                "period": 1,
            },
            headers=teacher_headers,
        )
        assert evaluation.status_code == 201
        assert evaluation.json()["teacher_id"] == unit.teacher_id

        entry = client.post(
            "/api/v1/grades",
            json={
                "evaluation_id": evaluation.json()["id"],
                "student_id": "student-1",
                "value": "14.5",
            },
            headers=teacher_headers,
        )
        assert entry.status_code == 201
        assert Decimal(str(entry.json()["value"])) == Decimal("14.5")

    def test_grade_out_of_range_is_rejected(self, client, repo, teacher_headers):
        year = add_year(repo)
        evaluation = add_evaluation(repo, add_unit(repo, year), "TEST", date(2024, 4, 10))

        response = client.post(
            "/api/v1/grades",
            json={"evaluation_id": evaluation.id, "student_id": "student-1", "value": "21"},
            headers=teacher_headers,
        )

        assert response.status_code == 400
        assert response.json()["hint"]

    def test_duplicate_grade_conflicts(self, client, repo, teacher_headers):
        year = add_year(repo)
        evaluation = add_evaluation(repo, add_unit(repo, year), "TEST", date(2024, 4, 10))
        grade(repo, evaluation, "student-1", "12")

        response = client.post(
            "/api/v1/grades",
            json={"evaluation_id": evaluation.id, "student_id": "student-1", "value": "13"},
            headers=teacher_headers,
        )

        assert response.status_code == 409

    def test_foreign_tenant_unit_is_not_found(self, client, repo, teacher_headers):
        year = add_year(repo, tenant_id=OTHER_TENANT)
        unit = add_unit(repo, year)

        response = client.post(
            "/api/v1/lessons",
            json={"teaching_unit_id": unit.id, "held_on": "2024-03-04"},
            headers=teacher_headers,
        )

        assert response.status_code == 404
        assert response.json()["detail"] == f"Teaching unit {unit.id} not found"

    def test_first_enrollment(self, client, repo, teacher_headers):
        year = add_year(repo)
        level = add_level(repo, 1)

        response = client.post(
            "/api/v1/enrollments",
            json={
                "student_id": "student-1",
                "academic_year_id": year.id,
                "class_level_id": level.id,
            },
            headers=teacher_headers,
        )

        assert response.status_code == 201
        assert response.json()["progression_override"] is False

    def _failed_student(self, repo, status="ACTIVE"):
        add_settings(repo, allow_failed_progression_override=True)
        previous = add_year(repo, year=2023, status="CLOSED")
        current = add_year(repo, year=2024, status=status)
        level_1, level_2 = add_level(repo, 1), add_level(repo, 2)
        add_enrollment(repo, previous, "student-1", level_1, final_status="FAILED")
        return current, level_2

    def test_progression_override_is_explicit(self, client, repo, director_headers):
        current, level_2 = self._failed_student(repo)

        response = client.post(
            "/api/v1/enrollments",
            json={
                "student_id": "student-1",
                "academic_year_id": current.id,
                "class_level_id": level_2.id,
                "override_progression": True,
            },
            headers=director_headers,
        )

        assert response.status_code == 201
        assert response.json()["progression_override"] is True

    def test_closed_year_override_keeps_progression_block(
        self, client, repo, operator_headers
    ):
        current, level_2 = self._failed_student(repo, status="CLOSED")

        response = client.post(
            "/api/v1/enrollments",
            json={
                "student_id": "student-1",
                "academic_year_id": current.id,
                "class_level_id": level_2.id,
                "override": True,
            },
            headers=operator_headers,
        )

        assert response.status_code == 400
        assert response.json()["details"]["previous_status"] == "FAILED"


class TestWritesOnClosedYear:
    def test_write_without_window_is_blocked(self, client, repo, teacher_headers):
        year = add_year(repo, status="CLOSED")
        unit = add_unit(repo, year)

        response = client.post(
            "/api/v1/lessons",
            json={"teaching_unit_id": unit.id, "held_on": "2024-03-04"},
            headers=teacher_headers,
        )

        assert response.status_code == 403
        body = response.json()
        assert body["detail"] == "Academic year 2024 is closed"
        assert "reopening window" in body["hint"]
        assert body["details"]["academic_year_id"] == year.id
        assert body["details"]["window_id"] is None

    def test_out_of_scope_write_names_required_scope(self, client, repo, teacher_headers):
        year = add_year(repo, status="CLOSED")
        unit = add_unit(repo, year)
        lesson = add_lessons(repo, unit, 1)[0]
        window = add_window(repo, year, scopes=("GRADES",))

        response = client.post(
            "/api/v1/attendance",
            json={"lesson_id": lesson.id, "student_id": "student-1", "status": "PRESENT"},
            headers=teacher_headers,
        )

        assert response.status_code == 403
        details = response.json()["details"]
        assert details["required_scope"] == "ATTENDANCE"
        assert details["window_id"] == window.id

    def test_in_scope_write_is_allowed_and_audited(
        self, client, repo, audit_sink, teacher_headers
    ):
        year = add_year(repo, status="CLOSED")
        evaluation = add_evaluation(repo, add_unit(repo, year), "TEST", date(2024, 4, 10))
        entry = grade(repo, evaluation, "student-1", "8")
        add_window(repo, year, scopes=("GRADES",))

        response = client.put(
            f"/api/v1/grades/{entry.id}",
            json={"value": "11"},
            headers=teacher_headers,
        )

        assert response.status_code == 200
        assert Decimal(str(response.json()["value"])) == Decimal("11")
        assert audit_sink.actions(AuditModules.MUTATION_GATE) == [AuditActions.SCOPED_WRITE]

    def test_teaching_unit_edit_needs_general_scope(self, client, repo, teacher_headers):
        year = add_year(repo, status="CLOSED")
        unit = add_unit(repo, year)
        add_window(repo, year, scopes=("GRADES", "ATTENDANCE"))

        response = client.patch(
            f"/api/v1/teaching-units/{unit.id}",
            json={"planned_hours": 60},
            headers=teacher_headers,
        )

        assert response.status_code == 403
        assert response.json()["details"]["required_scope"] == "GENERAL"

    def test_override_requires_capability(self, client, repo, director_headers):
        year = add_year(repo, status="CLOSED")
        unit = add_unit(repo, year)

        response = client.post(
            "/api/v1/lessons",
            json={"teaching_unit_id": unit.id, "held_on": "2024-03-04", "override": True},
            headers=director_headers,
        )

        assert response.status_code == 403

    def test_operator_override_bypasses_gate(
        self, client, repo, audit_sink, notifications, operator_headers
    ):
        year = add_year(repo, status="CLOSED")
        unit = add_unit(repo, year)

        response = client.post(
            "/api/v1/lessons",
            json={"teaching_unit_id": unit.id, "held_on": "2024-03-04", "override": True},
            headers=operator_headers,
        )

        assert response.status_code == 201
        assert audit_sink.actions(AuditModules.MUTATION_GATE) == [AuditActions.OVERRIDE]
        assert EventTypes.Gate.OVERRIDE_USED in notifications.types()
