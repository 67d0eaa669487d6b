# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grade calculation per institution type.

Only evaluations authored by the teaching unit's own teacher are used,
so grades entered by another teacher never leak into a unit's average.
Grades are on a 0..20 scale.

SECONDARY (trimester-weighted):
    period average = (continuous assessment + period exam) / 2
    annual average = mean of the period averages

HIGHER (exam-slot):
    MP = mean(exams)                                 without assignment
    MP = mean(exams) * 0.8 + assignment * 0.2        with assignment
    MF = (MP + recovery) / 2   when 7 <= MP < passing and recovery is enabled

calculate_safe() never raises: a failure for one student yields a FAILED
result with zero average and the failure reason attached, so batch
callers keep going.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Sequence

from edurecords.domains.exceptions import NotFoundOrForeignTenantError, ValidationError
from edurecords.domains.repository import AcademicRepository
from edurecords.models.enums import EvaluationKind, GradeStatus, InstitutionType

logger = logging.getLogger(__name__)

MIN_GRADE = 0.0
MAX_GRADE = 20.0
DEFAULT_PASSING_GRADE = 10.0
RECOVERY_FLOOR = 7.0
EXAM_WEIGHT = 0.8
ASSIGNMENT_WEIGHT = 0.2

CONTINUOUS_KINDS = (EvaluationKind.TEST, EvaluationKind.ASSIGNMENT)
RECOVERY_KINDS = (EvaluationKind.RECOVERY, EvaluationKind.FINAL_EXAM)

# Non-exam kinds shown after the numbered exams, in this order
HIGHER_TRAILING_ORDER = {
    EvaluationKind.ASSIGNMENT: 0,
    EvaluationKind.RECOVERY: 1,
    EvaluationKind.FINAL_EXAM: 2,
}


@dataclass(frozen=True)
class GradePolicy:
    """Tenant grading policy.

    Attributes:
        institution_type: Formula family to apply.
        passing_grade: Minimum final average for APPROVED.
        allow_recovery: Whether HIGHER recovery exams count.
    """

    institution_type: InstitutionType = InstitutionType.SECONDARY
    passing_grade: float = DEFAULT_PASSING_GRADE
    allow_recovery: bool = False


@dataclass(frozen=True)
class ScoredEvaluation:
    """One grade joined with its evaluation."""

    evaluation_id: str
    kind: EvaluationKind
    held_on: date
    value: float
    period: int | None = None
    name: str = ""


@dataclass(frozen=True)
class DisplayedEvaluation:
    """An evaluation in display order with its label."""

    evaluation_id: str
    label: str
    kind: EvaluationKind
    held_on: date
    value: float | None
    period: int | None = None


@dataclass
class GradeResult:
    """Outcome of the grade calculation.

    Attributes:
        final_average: Final average, 2 decimals.
        status: APPROVED or FAILED.
        partial_average: HIGHER partial average (MP), None for SECONDARY.
        period_averages: SECONDARY average per period.
        recovery_eligible: MP fell in the recovery band.
        notes: Human-readable remarks on the calculation.
        failure_reason: Set when the calculation itself failed.
    """

    final_average: float
    status: GradeStatus
    partial_average: float | None = None
    period_averages: dict[int, float] = field(default_factory=dict)
    recovery_eligible: bool = False
    notes: list[str] = field(default_factory=list)
    failure_reason: str | None = None

    @classmethod
    def failed(cls, reason: str) -> "GradeResult":
        return cls(final_average=0.0, status=GradeStatus.FAILED, failure_reason=reason)


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def _status(average: float, passing: float) -> GradeStatus:
    return GradeStatus.APPROVED if average >= passing else GradeStatus.FAILED


def validate_grade_value(value: float) -> None:
    """Reject grades outside the 0..20 scale.

    Raises:
        ValidationError: If the value is out of range.
    """
    if value < MIN_GRADE or value > MAX_GRADE:
        raise ValidationError(
            f"Invalid grade {value}",
            hint=f"Grades must be between {MIN_GRADE:g} and {MAX_GRADE:g}",
        )


def calculate_secondary(scores: Sequence[ScoredEvaluation], policy: GradePolicy) -> GradeResult:
    """Trimester-weighted average."""
    if not scores:
        return GradeResult(0.0, GradeStatus.FAILED, notes=["No grades recorded"])

    by_period: dict[int, list[ScoredEvaluation]] = {}
    for score in scores:
        if score.period is not None:
            by_period.setdefault(score.period, []).append(score)

    if not by_period:
        average = round(_mean([s.value for s in scores]), 2)
        return GradeResult(
            average,
            _status(average, policy.passing_grade),
            notes=["No evaluation has a period; plain mean of all grades used"],
        )

    notes: list[str] = []
    period_averages: dict[int, float] = {}
    for period in sorted(by_period):
        period_scores = sorted(by_period[period], key=lambda s: s.held_on)
        continuous = next((s for s in period_scores if s.kind in CONTINUOUS_KINDS), None)
        exam = next((s for s in period_scores if s.kind == EvaluationKind.EXAM), None)
        if continuous and exam:
            period_average = (continuous.value + exam.value) / 2
        elif continuous:
            period_average = continuous.value
            notes.append(f"Period {period}: no period exam recorded")
        elif exam:
            period_average = exam.value
            notes.append(f"Period {period}: no continuous assessment recorded")
        else:
            period_average = _mean([s.value for s in period_scores])
        period_averages[period] = round(period_average, 2)

    average = round(_mean(list(period_averages.values())), 2)
    return GradeResult(
        average,
        _status(average, policy.passing_grade),
        period_averages=period_averages,
        notes=notes,
    )


def calculate_higher(scores: Sequence[ScoredEvaluation], policy: GradePolicy) -> GradeResult:
    """Exam-slot average with optional assignment and recovery exam."""
    if not scores:
        return GradeResult(0.0, GradeStatus.FAILED, notes=["No grades recorded"])

    ordered = sorted(scores, key=lambda s: s.held_on)
    exams = [s for s in ordered if s.kind == EvaluationKind.EXAM]
    assignments = [s for s in ordered if s.kind == EvaluationKind.ASSIGNMENT]
    recoveries = [s for s in ordered if s.kind in RECOVERY_KINDS]

    if not exams:
        return GradeResult(
            0.0,
            GradeStatus.FAILED,
            partial_average=0.0,
            notes=["Awaiting exams: at least one exam is required"],
        )

    notes: list[str] = []
    exams_average = _mean([s.value for s in exams])
    if assignments:
        partial = exams_average * EXAM_WEIGHT + assignments[0].value * ASSIGNMENT_WEIGHT
        if len(assignments) > 1:
            notes.append("Several assignments recorded; only the first was used")
    else:
        partial = exams_average

    passing = policy.passing_grade
    if partial >= passing:
        return GradeResult(
            round(partial, 2),
            GradeStatus.APPROVED,
            partial_average=round(partial, 2),
            notes=notes,
        )

    recovery_eligible = policy.allow_recovery and RECOVERY_FLOOR <= partial < passing
    final = partial
    status = GradeStatus.FAILED
    if recovery_eligible and recoveries:
        final = (partial + recoveries[0].value) / 2
        status = _status(final, passing)
    elif recovery_eligible:
        notes.append("Eligible for recovery exam; none recorded")
    if recoveries and not policy.allow_recovery:
        notes.append("Recovery grades ignored: recovery exams are disabled for this institution")

    return GradeResult(
        round(final, 2),
        status,
        partial_average=round(partial, 2),
        recovery_eligible=recovery_eligible,
        notes=notes,
    )


def display_order(
    scores: Sequence[ScoredEvaluation],
    institution_type: InstitutionType,
) -> list[DisplayedEvaluation]:
    """Order evaluations for display.

    SECONDARY: by (period, date). HIGHER: exams by date labelled
    "1st exam", "2nd exam", ... followed by assignment, recovery and
    final exam, each tie-broken by date. Any other kind comes last.
    """
    if institution_type == InstitutionType.SECONDARY:
        ordered = sorted(
            scores,
            key=lambda s: (s.period if s.period is not None else 0, s.held_on),
        )
        return [
            DisplayedEvaluation(s.evaluation_id, s.name or s.kind.value, s.kind, s.held_on, s.value, s.period)
            for s in ordered
        ]

    exams = sorted((s for s in scores if s.kind == EvaluationKind.EXAM), key=lambda s: s.held_on)
    trailing = sorted(
        (s for s in scores if s.kind != EvaluationKind.EXAM),
        key=lambda s: (HIGHER_TRAILING_ORDER.get(s.kind, len(HIGHER_TRAILING_ORDER)), s.held_on),
    )
    displayed = [
        DisplayedEvaluation(s.evaluation_id, f"{ordinal_label(i + 1)} exam", s.kind, s.held_on, s.value, s.period)
        for i, s in enumerate(exams)
    ]
    displayed.extend(
        DisplayedEvaluation(s.evaluation_id, s.kind.value.replace("_", " ").title(), s.kind, s.held_on, s.value, s.period)
        for s in trailing
    )
    return displayed


def ordinal_label(n: int) -> str:
    """Return 1st, 2nd, 3rd, 4th, ... 11th, 12th, 13th, 21st."""
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


class GradeCalculator:
    """Load a student's grades in a teaching unit and compute the result.

    Attributes:
        repo: Academic repository.
    """

    def __init__(self, repo: AcademicRepository) -> None:
        self.repo = repo

    async def load_policy(self, tenant_id: str) -> GradePolicy:
        """Read the tenant grading policy, falling back to defaults."""
        settings = await self.repo.get_tenant_settings(tenant_id)
        if settings is None:
            return GradePolicy()
        return GradePolicy(
            institution_type=InstitutionType(settings.institution_type),
            passing_grade=float(settings.passing_grade),
            allow_recovery=bool(settings.allow_recovery_exam),
        )

    async def load_scores(self, tenant_id: str, unit_id: str, student_id: str) -> list[ScoredEvaluation]:
        """Collect the student's grades on evaluations by the unit's teacher.

        Raises:
            NotFoundOrForeignTenantError: If the unit is not in the tenant.
            ValidationError: If a stored grade is outside 0..20.
        """
        unit = await self.repo.get_teaching_unit(tenant_id, unit_id)
        if unit is None:
            raise NotFoundOrForeignTenantError("Teaching unit", unit_id)

        evaluations = await self.repo.list_evaluations(tenant_id, unit_id, teacher_id=unit.teacher_id)
        if not evaluations:
            return []

        by_id = {evaluation.id: evaluation for evaluation in evaluations}
        entries = await self.repo.list_grade_entries(tenant_id, list(by_id), student_id)

        scores = []
        for entry in entries:
            value = float(entry.value)
            validate_grade_value(value)
            evaluation = by_id[entry.evaluation_id]
            scores.append(
                ScoredEvaluation(
                    evaluation_id=evaluation.id,
                    kind=EvaluationKind(evaluation.kind),
                    held_on=evaluation.held_on,
                    value=value,
                    period=evaluation.period,
                    name=evaluation.name,
                )
            )
        return scores

    async def calculate(
        self,
        tenant_id: str,
        unit_id: str,
        student_id: str,
        policy: GradePolicy | None = None,
    ) -> GradeResult:
        """Compute the final average and status.

        Args:
            tenant_id: Tenant of the caller.
            unit_id: Teaching unit identifier.
            student_id: Student identifier.
            policy: Grading policy; loaded from tenant settings if omitted.

        Returns:
            GradeResult for the student.

        Raises:
            NotFoundOrForeignTenantError: If the unit is not in the tenant.
            ValidationError: If a stored grade is outside 0..20.
        """
        if policy is None:
            policy = await self.load_policy(tenant_id)
        scores = await self.load_scores(tenant_id, unit_id, student_id)
        if policy.institution_type == InstitutionType.HIGHER:
            return calculate_higher(scores, policy)
        return calculate_secondary(scores, policy)

    async def calculate_safe(
        self,
        tenant_id: str,
        unit_id: str,
        student_id: str,
        policy: GradePolicy | None = None,
    ) -> GradeResult:
        """Like calculate(), but returns a FAILED result instead of raising."""
        try:
            return await self.calculate(tenant_id, unit_id, student_id, policy)
        except Exception as e:
            logger.warning(
                "Grade calculation failed for student %s in unit %s: %s",
                student_id,
                unit_id,
                str(e),
            )
            return GradeResult.failed(str(e) or e.__class__.__name__)

    async def ordered_evaluations(
        self,
        tenant_id: str,
        unit_id: str,
        student_id: str,
        institution_type: InstitutionType | None = None,
    ) -> list[DisplayedEvaluation]:
        """Return the student's graded evaluations in display order."""
        if institution_type is None:
            institution_type = (await self.load_policy(tenant_id)).institution_type
        scores = await self.load_scores(tenant_id, unit_id, student_id)
        return display_order(scores, institution_type)


def to_decimal(value: float | None) -> Decimal | None:
    """Convert a 2-decimal float to Decimal for Numeric columns."""
    if value is None:
        return None
    return Decimal(str(round(value, 2)))
