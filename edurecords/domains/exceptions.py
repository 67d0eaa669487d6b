# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exception hierarchy shared by the academic domain services.

- AcademicRecordsError: Base exception, carries a remediation hint
- ValidationError: Malformed or inconsistent input
- NotFoundOrForeignTenantError: Entity absent or owned by another tenant
- StateConflictError: Operation not allowed in the entity's current state
- PermissionDeniedError: Caller lacks the required capability
- BlockedByClosedYearError: Write rejected because its academic year is closed

The API layer maps each class to one HTTP status code.
"""


class AcademicRecordsError(Exception):
    """Base exception for all academic records errors.

    Attributes:
        message: Human-readable error description.
        hint: What the caller can do to resolve the error.
        details: Optional dictionary with additional error context.
    """

    def __init__(
        self,
        message: str,
        hint: str | None = None,
        details: dict | None = None,
    ) -> None:
        self.message = message
        self.hint = hint
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} ({self.hint})"
        return self.message


class ValidationError(AcademicRecordsError):
    """Raised when input is malformed or violates a business rule."""

    pass


class NotFoundOrForeignTenantError(AcademicRecordsError):
    """Raised when an entity does not exist in the caller's tenant.

    The message is the same whether the entity is absent or belongs to
    another tenant.
    """

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(
            f"{entity} {entity_id} not found",
            details={"entity": entity, "entity_id": entity_id},
        )


class StateConflictError(AcademicRecordsError):
    """Raised when an operation conflicts with the current state."""

    pass


class PermissionDeniedError(AcademicRecordsError):
    """Raised when the caller lacks a required capability."""

    pass


class BlockedByClosedYearError(AcademicRecordsError):
    """Raised when a write targets a closed academic year.

    Attributes:
        academic_year_id: The closed year the write resolved to.
        required_scope: Scope a reopening window must grant, if known.
        window_id: Active window that did not cover the write, if any.
    """

    def __init__(
        self,
        message: str,
        hint: str,
        academic_year_id: str,
        required_scope: str | None = None,
        window_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            hint=hint,
            details={
                "academic_year_id": academic_year_id,
                "required_scope": required_scope,
                "window_id": window_id,
            },
        )
        self.academic_year_id = academic_year_id
        self.required_scope = required_scope
        self.window_id = window_id
