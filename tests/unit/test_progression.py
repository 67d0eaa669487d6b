# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for class-level progression."""

import pytest

from edurecords.domains.auth.capabilities import Capability
from edurecords.domains.exceptions import NotFoundOrForeignTenantError
from edurecords.domains.progression import ProgressionValidator
from edurecords.infrastructure.audit import AuditActions, AuditService
from edurecords.models.enums import FinalStatus
from fakes import (
    TENANT,
    FailingAuditSink,
    add_enrollment,
    add_level,
    add_record,
    add_settings,
    add_year,
)

NO_CAPS = frozenset()
OVERRIDE_CAPS = frozenset({Capability.OVERRIDE_PROGRESSION})


@pytest.fixture
def validator(repo, audit_sink):
    return ProgressionValidator(repo, AuditService(audit_sink))


@pytest.fixture
def levels(repo):
    return {ordinal: add_level(repo, ordinal) for ordinal in (10, 11, 12)}


@pytest.fixture
def years(repo):
    return add_year(repo, year=2023, status="CLOSED"), add_year(repo, year=2024)


class TestValidate:
    """Tests for ProgressionValidator.validate."""

    @pytest.mark.asyncio
    async def test_first_enrollment_allowed(self, validator, levels, years):
        _, current = years

        decision = await validator.validate(TENANT, "s1", levels[12].id, current.id, NO_CAPS)

        assert decision.allowed is True
        assert decision.reason == "First enrollment"

    @pytest.mark.asyncio
    async def test_pending_previous_status_allowed(self, repo, validator, levels, years):
        previous, current = years
        add_enrollment(repo, previous, "s1", levels[10])

        decision = await validator.validate(TENANT, "s1", levels[12].id, current.id, NO_CAPS)

        assert decision.allowed is True

    @pytest.mark.asyncio
    async def test_approved_moves_up_one_level(self, repo, validator, levels, years):
        previous, current = years
        add_enrollment(repo, previous, "s1", levels[10], final_status="APPROVED")

        up = await validator.validate(TENANT, "s1", levels[11].id, current.id, NO_CAPS)
        same = await validator.validate(TENANT, "s1", levels[10].id, current.id, NO_CAPS)
        skip = await validator.validate(TENANT, "s1", levels[12].id, current.id, NO_CAPS)

        assert up.allowed is True
        assert same.allowed is False
        assert skip.allowed is False
        assert "11" in same.reason

    @pytest.mark.asyncio
    async def test_failed_student_scenario(self, repo, audit_sink, validator, levels, years):
        add_settings(repo, allow_failed_progression_override=True)
        previous, current = years
        add_enrollment(repo, previous, "s1", levels[10], final_status="FAILED")
        add_record(repo, previous, "s1", "FAILED")

        blocked = await validator.validate(TENANT, "s1", levels[11].id, current.id, NO_CAPS)
        repeat = await validator.validate(TENANT, "s1", levels[10].id, current.id, NO_CAPS)
        overridden = await validator.validate(
            TENANT, "s1", levels[11].id, current.id, OVERRIDE_CAPS, override=True, actor_id="d1"
        )

        assert blocked.allowed is False
        assert blocked.previous_status == FinalStatus.FAILED
        assert repeat.allowed is True
        assert overridden.allowed is True
        assert overridden.override_applied is True
        assert audit_sink.actions() == [AuditActions.PROGRESSION_OVERRIDE]
        assert audit_sink.events[0].actor_id == "d1"
        assert audit_sink.events[0].after["ordinal"] == 11

    @pytest.mark.asyncio
    async def test_override_needs_capability(self, repo, audit_sink, validator, levels, years):
        add_settings(repo, allow_failed_progression_override=True)
        previous, current = years
        add_enrollment(repo, previous, "s1", levels[10], final_status="FAILED")

        decision = await validator.validate(
            TENANT, "s1", levels[11].id, current.id, NO_CAPS, override=True
        )

        assert decision.allowed is False
        assert audit_sink.events == []

    @pytest.mark.asyncio
    async def test_override_needs_tenant_setting(self, repo, validator, levels, years):
        add_settings(repo, allow_failed_progression_override=False)
        previous, current = years
        add_enrollment(repo, previous, "s1", levels[10], final_status="FAILED")

        decision = await validator.validate(
            TENANT, "s1", levels[11].id, current.id, OVERRIDE_CAPS, override=True
        )

        assert decision.allowed is False

    @pytest.mark.asyncio
    async def test_failed_within_tolerance_treated_as_approved(
        self, repo, validator, levels, years
    ):
        add_settings(repo, tolerated_failed_subjects=1)
        previous, current = years
        add_enrollment(repo, previous, "s1", levels[10], final_status="FAILED")
        add_record(repo, previous, "s1", "APPROVED")
        add_record(repo, previous, "s1", "FAILED_ATTENDANCE")

        decision = await validator.validate(TENANT, "s1", levels[11].id, current.id, NO_CAPS)

        assert decision.allowed is True

    @pytest.mark.asyncio
    async def test_override_audit_failure_does_not_block(self, repo, levels, years):
        add_settings(repo, allow_failed_progression_override=True)
        previous, current = years
        add_enrollment(repo, previous, "s1", levels[10], final_status="FAILED")
        validator = ProgressionValidator(repo, AuditService(FailingAuditSink()))

        decision = await validator.validate(
            TENANT, "s1", levels[11].id, current.id, OVERRIDE_CAPS, override=True
        )

        assert decision.allowed is True

    @pytest.mark.asyncio
    async def test_unknown_level_not_found(self, validator, years):
        _, current = years

        with pytest.raises(NotFoundOrForeignTenantError):
            await validator.validate(TENANT, "s1", "missing", current.id, NO_CAPS)


class TestFinalStatus:
    @pytest.mark.asyncio
    async def test_no_records_is_failed(self, validator, years):
        previous, _ = years

        summary = await validator.final_status_for(TENANT, "s1", previous.id)

        assert summary.status == FinalStatus.FAILED
        assert summary.total_subjects == 0

    @pytest.mark.asyncio
    async def test_failed_subjects_over_tolerance(self, repo, validator, years):
        previous, _ = years
        add_record(repo, previous, "s1", "APPROVED")
        add_record(repo, previous, "s1", "FAILED")

        summary = await validator.final_status_for(TENANT, "s1", previous.id)

        assert summary.status == FinalStatus.FAILED
        assert summary.failed_subjects == 1

    @pytest.mark.asyncio
    async def test_finalize_year_sets_status_and_suggestion(self, repo, validator, levels, years):
        previous, _ = years
        passed = add_enrollment(repo, previous, "s1", levels[10])
        failed = add_enrollment(repo, previous, "s2", levels[10])
        top = add_enrollment(repo, previous, "s3", levels[12])
        add_record(repo, previous, "s1", "APPROVED")
        add_record(repo, previous, "s2", "FAILED")
        add_record(repo, previous, "s3", "APPROVED")

        updated = await validator.finalize_year(TENANT, previous.id)

        assert updated == 3
        assert passed.final_status == "APPROVED"
        assert passed.suggested_class_level_id == levels[11].id
        assert failed.final_status == "FAILED"
        assert failed.suggested_class_level_id == levels[10].id
        assert top.suggested_class_level_id == levels[12].id
        assert repo.commits == 1
