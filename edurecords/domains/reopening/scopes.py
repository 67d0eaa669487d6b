# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Mapping of write routes to reopening scopes.

A reopening window lists the scope categories it authorizes. Each write
route belongs to exactly one category, found by route prefix. Enrollment
routes differ by institution type: secondary schools enroll into class
groups, higher education into subjects.
"""

from typing import Iterable

from edurecords.models.enums import InstitutionType, ReopeningScope

READ_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

SCOPE_ROUTES: dict[ReopeningScope, tuple[str, ...]] = {
    ReopeningScope.GRADES: ("/grades",),
    ReopeningScope.ATTENDANCE: ("/attendance", "/lessons"),
    ReopeningScope.EVALUATIONS: ("/evaluations",),
}

ENROLLMENT_ROUTES: dict[InstitutionType, tuple[str, ...]] = {
    InstitutionType.SECONDARY: ("/enrollments", "/class-enrollments"),
    InstitutionType.HIGHER: ("/enrollments", "/subject-enrollments"),
}


def _normalize(route: str) -> str:
    path = route.split("?", 1)[0].rstrip("/") or "/"
    if not path.startswith("/"):
        path = "/" + path
    if path.startswith("/api/v1/"):
        path = path[len("/api/v1"):]
    return path


def _matches(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def scope_for_route(
    route: str,
    institution_type: InstitutionType = InstitutionType.SECONDARY,
) -> ReopeningScope:
    """Return the scope category a write route belongs to.

    Unknown routes (teaching-unit edits included) map to GENERAL.
    """
    path = _normalize(route)
    for prefix in ENROLLMENT_ROUTES.get(institution_type, ()):
        if _matches(path, prefix):
            return ReopeningScope.ENROLLMENTS
    for scope, prefixes in SCOPE_ROUTES.items():
        if any(_matches(path, prefix) for prefix in prefixes):
            return scope
    return ReopeningScope.GENERAL


def permission_check(
    route: str,
    method: str,
    scopes: Iterable[str],
    institution_type: InstitutionType = InstitutionType.SECONDARY,
) -> bool:
    """Whether a window with the given scopes authorizes a request.

    Args:
        route: Request path.
        method: HTTP method.
        scopes: Scopes granted by the window.
        institution_type: Tenant grading regime.

    Returns:
        True if the request is authorized.
    """
    if method.upper() in READ_METHODS:
        return True
    granted = {ReopeningScope(s) for s in scopes}
    if ReopeningScope.GENERAL in granted:
        return True
    return scope_for_route(route, institution_type) in granted
