# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Capability resolution.

Token roles and permission codes are mapped once per request into a
frozen set of capabilities. Domain services only ever check
capabilities, never role names.
"""

from enum import StrEnum
from typing import Iterable


class Capability(StrEnum):
    """What a caller may do in the academic lifecycle."""

    RECORD_FACTS = "record_facts"
    MANAGE_ACADEMIC_YEAR = "manage_academic_year"
    MANAGE_REOPENING = "manage_reopening"
    OVERRIDE_PROGRESSION = "override_progression"
    OVERRIDE_CLOSED_YEAR = "override_closed_year"


class Roles:
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    DIRECTION = "direction"
    SECRETARY = "secretary"
    TEACHER = "teacher"


ROLE_CAPABILITIES: dict[str, frozenset[Capability]] = {
    Roles.SUPER_ADMIN: frozenset(Capability),
    Roles.ADMIN: frozenset(
        {
            Capability.RECORD_FACTS,
            Capability.MANAGE_ACADEMIC_YEAR,
            Capability.MANAGE_REOPENING,
            Capability.OVERRIDE_PROGRESSION,
        }
    ),
    Roles.DIRECTION: frozenset(
        {
            Capability.RECORD_FACTS,
            Capability.MANAGE_ACADEMIC_YEAR,
            Capability.MANAGE_REOPENING,
            Capability.OVERRIDE_PROGRESSION,
        }
    ),
    Roles.SECRETARY: frozenset({Capability.RECORD_FACTS}),
    Roles.TEACHER: frozenset({Capability.RECORD_FACTS}),
}

# Permission codes granting a single capability regardless of role
PERMISSION_CAPABILITIES: dict[str, Capability] = {
    "academic_facts:write": Capability.RECORD_FACTS,
    "academic_year:manage": Capability.MANAGE_ACADEMIC_YEAR,
    "reopening:manage": Capability.MANAGE_REOPENING,
    "progression:override": Capability.OVERRIDE_PROGRESSION,
    "closed_year:override": Capability.OVERRIDE_CLOSED_YEAR,
}


def resolve_capabilities(
    roles: Iterable[str],
    permissions: Iterable[str] = (),
) -> frozenset[Capability]:
    """Resolve token roles and permissions into capabilities.

    Args:
        roles: Role codes from the token. Matching is case-insensitive.
        permissions: Permission codes from the token.

    Returns:
        Frozen set of granted capabilities.
    """
    granted: set[Capability] = set()
    for role in roles:
        granted |= ROLE_CAPABILITIES.get(role.lower(), frozenset())
    for permission in permissions:
        capability = PERMISSION_CAPABILITIES.get(permission)
        if capability is not None:
            granted.add(capability)
    return frozenset(granted)
