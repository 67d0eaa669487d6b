# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for capability resolution."""

from edurecords.domains.auth.capabilities import (
    PERMISSION_CAPABILITIES,
    Capability,
    Roles,
    resolve_capabilities,
)


class TestResolveCapabilities:
    """Tests for resolve_capabilities."""

    def test_super_admin_has_everything(self) -> None:
        assert resolve_capabilities([Roles.SUPER_ADMIN]) == frozenset(Capability)

    def test_direction_cannot_bypass_closed_year(self) -> None:
        caps = resolve_capabilities([Roles.DIRECTION])

        assert Capability.MANAGE_REOPENING in caps
        assert Capability.OVERRIDE_PROGRESSION in caps
        assert Capability.OVERRIDE_CLOSED_YEAR not in caps

    def test_teacher_only_records_facts(self) -> None:
        assert resolve_capabilities([Roles.TEACHER]) == frozenset({Capability.RECORD_FACTS})

    def test_roles_case_insensitive(self) -> None:
        assert resolve_capabilities(["ADMIN"]) == resolve_capabilities(["admin"])

    def test_unknown_role_grants_nothing(self) -> None:
        assert resolve_capabilities(["student", "guest"]) == frozenset()

    def test_permissions_add_capabilities(self) -> None:
        caps = resolve_capabilities([Roles.TEACHER], ["closed_year:override", "unknown:perm"])

        assert caps == frozenset({Capability.RECORD_FACTS, Capability.OVERRIDE_CLOSED_YEAR})

    def test_every_capability_has_a_permission_code(self) -> None:
        assert set(PERMISSION_CAPABILITIES.values()) == set(Capability)

    def test_result_is_frozen(self) -> None:
        assert isinstance(resolve_capabilities([Roles.ADMIN]), frozenset)
