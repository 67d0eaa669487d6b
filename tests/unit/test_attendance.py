# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for attendance frequency calculation."""

import pytest

from edurecords.domains.attendance import FrequencyCalculator, compute_frequency
from edurecords.domains.exceptions import NotFoundOrForeignTenantError
from edurecords.models.enums import AttendanceSituation
from fakes import OTHER_TENANT, TENANT, add_lessons, add_unit, add_year, mark


class TestComputeFrequency:
    """Tests for the pure frequency function."""

    def test_no_lessons_is_irregular(self):
        result = compute_frequency([], {})

        assert result.total_lessons == 0
        assert result.percentage == 0.0
        assert result.situation == AttendanceSituation.IRREGULAR

    def test_unmarked_lessons_count_as_unjustified(self):
        result = compute_frequency(["l1", "l2", "l3", "l4"], {"l1": "PRESENT"})

        assert result.present == 1
        assert result.unjustified == 3
        assert result.percentage == 25.0
        assert result.situation == AttendanceSituation.IRREGULAR

    def test_justified_absences_count_towards_frequency(self):
        marks = {"l1": "PRESENT", "l2": "PRESENT", "l3": "JUSTIFIED", "l4": "ABSENT"}

        result = compute_frequency(["l1", "l2", "l3", "l4"], marks)

        assert result.present == 2
        assert result.justified == 1
        assert result.unjustified == 1
        assert result.percentage == 75.0
        assert result.situation == AttendanceSituation.REGULAR

    def test_percentage_rounded_to_two_decimals(self):
        result = compute_frequency(["l1", "l2", "l3"], {"l1": "PRESENT", "l2": "PRESENT"})

        assert result.percentage == 66.67
        assert result.is_regular is False

    def test_counts_add_up_to_total(self):
        lessons = [f"l{i}" for i in range(10)]
        marks = {"l0": "PRESENT", "l1": "JUSTIFIED", "l2": "ABSENT", "l3": "PRESENT"}

        result = compute_frequency(lessons, marks)

        assert result.present + result.justified + result.unjustified == result.total_lessons

    def test_custom_threshold(self):
        result = compute_frequency(["l1", "l2"], {"l1": "PRESENT"}, threshold=50.0)

        assert result.situation == AttendanceSituation.REGULAR
        assert result.threshold == 50.0


class TestFrequencyCalculator:
    """Tests for FrequencyCalculator over the repository."""

    @pytest.mark.asyncio
    async def test_scenario_twenty_lessons_regular(self, repo):
        year = add_year(repo)
        unit = add_unit(repo, year)
        lessons = add_lessons(repo, unit, 20, hours=2)
        for lesson in lessons[:15]:
            mark(repo, lesson, "s1", "PRESENT")
        for lesson in lessons[15:17]:
            mark(repo, lesson, "s1", "JUSTIFIED")
        for lesson in lessons[17:]:
            mark(repo, lesson, "s1", "ABSENT")

        result = await FrequencyCalculator(repo).calculate(TENANT, unit.id, "s1")

        assert result.total_lessons == 20
        assert result.percentage == 85.0
        assert result.situation == AttendanceSituation.REGULAR
        assert result.given_hours == 40

    @pytest.mark.asyncio
    async def test_other_students_marks_are_ignored(self, repo):
        year = add_year(repo)
        unit = add_unit(repo, year)
        lessons = add_lessons(repo, unit, 2)
        mark(repo, lessons[0], "s2", "PRESENT")
        mark(repo, lessons[1], "s2", "PRESENT")

        result = await FrequencyCalculator(repo).calculate(TENANT, unit.id, "s1")

        assert result.present == 0
        assert result.unjustified == 2

    @pytest.mark.asyncio
    async def test_unit_of_other_tenant_not_found(self, repo):
        year = add_year(repo, tenant_id=OTHER_TENANT)
        unit = add_unit(repo, year)

        with pytest.raises(NotFoundOrForeignTenantError):
            await FrequencyCalculator(repo).calculate(TENANT, unit.id, "s1")


class TestScenarios:
    def test_present_and_justified_is_full_attendance(self):
        result = compute_frequency(["l1", "l2"], {"l1": "PRESENT", "l2": "JUSTIFIED"})

        assert result.percentage == 100.0
        assert result.situation == AttendanceSituation.REGULAR

    @pytest.mark.parametrize("absent_index", range(5))
    def test_justifying_an_absence_never_lowers_frequency(self, absent_index):
        lessons = [f"l{i}" for i in range(5)]
        marks = {lesson: "ABSENT" for lesson in lessons}
        marks["l0"] = "PRESENT"
        before = compute_frequency(lessons, marks)

        marks[f"l{absent_index}"] = "JUSTIFIED" if absent_index else "PRESENT"
        after = compute_frequency(lessons, marks)

        assert after.percentage >= before.percentage
