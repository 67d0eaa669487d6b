# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Academic fact write endpoints.

Every handler runs the mutation gate before touching data. A write that
targets a closed academic year without a covering reopening window is
answered with 403 and a remediation hint.

- POST /lessons
- POST /attendance
- POST /evaluations
- POST /grades
- PUT /grades/{grade_entry_id}
- POST /enrollments
- PATCH /teaching-units/{teaching_unit_id}
"""

import logging

from fastapi import APIRouter, Depends, Request, status

from edurecords.api.dependencies import (
    RequireCapability,
    check_gate,
    get_mutation_gate,
    get_records_service,
    require_tenant,
)
from edurecords.api.middleware.auth import CurrentUser
from edurecords.domains.auth import Capability
from edurecords.domains.mutation_gate import MutationGate
from edurecords.domains.records import AcademicRecordsService
from edurecords.models.records import (
    AttendanceMarkRequest,
    AttendanceMarkResponse,
    EnrollmentCreateRequest,
    EnrollmentResponse,
    EvaluationCreateRequest,
    EvaluationResponse,
    GradeCreateRequest,
    GradeEntryResponse,
    GradeUpdateRequest,
    LessonCreateRequest,
    LessonResponse,
    TeachingUnitResponse,
    TeachingUnitUpdateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()

require_recorder = RequireCapability(Capability.RECORD_FACTS)


@router.post("/lessons", response_model=LessonResponse, status_code=status.HTTP_201_CREATED)
async def record_lesson(
    data: LessonCreateRequest,
    request: Request,
    current_user: CurrentUser = Depends(require_recorder),
    tenant_id: str = Depends(require_tenant),
    gate: MutationGate = Depends(get_mutation_gate),
    service: AcademicRecordsService = Depends(get_records_service),
) -> LessonResponse:
    await check_gate(
        gate, request, current_user, tenant_id, data.override,
        teaching_unit_id=data.teaching_unit_id,
    )
    lesson = await service.record_lesson(tenant_id, data.teaching_unit_id, data.held_on, data.hours)
    return LessonResponse.model_validate(lesson)


@router.post(
    "/attendance", response_model=AttendanceMarkResponse, status_code=status.HTTP_201_CREATED
)
async def record_attendance(
    data: AttendanceMarkRequest,
    request: Request,
    current_user: CurrentUser = Depends(require_recorder),
    tenant_id: str = Depends(require_tenant),
    gate: MutationGate = Depends(get_mutation_gate),
    service: AcademicRecordsService = Depends(get_records_service),
) -> AttendanceMarkResponse:
    await check_gate(gate, request, current_user, tenant_id, data.override, lesson_id=data.lesson_id)
    mark = await service.record_attendance(tenant_id, data.lesson_id, data.student_id, data.status)
    return AttendanceMarkResponse.model_validate(mark)


@router.post(
    "/evaluations", response_model=EvaluationResponse, status_code=status.HTTP_201_CREATED
)
async def record_evaluation(
    data: EvaluationCreateRequest,
    request: Request,
    current_user: CurrentUser = Depends(require_recorder),
    tenant_id: str = Depends(require_tenant),
    gate: MutationGate = Depends(get_mutation_gate),
    service: AcademicRecordsService = Depends(get_records_service),
) -> EvaluationResponse:
    await check_gate(
        gate, request, current_user, tenant_id, data.override,
        teaching_unit_id=data.teaching_unit_id,
    )
    evaluation = await service.record_evaluation(
        tenant_id,
        data.teaching_unit_id,
        data.kind,
        data.held_on,
        name=data.name,
        period=data.period,
        weight=data.weight,
    )
    return EvaluationResponse.model_validate(evaluation)


@router.post("/grades", response_model=GradeEntryResponse, status_code=status.HTTP_201_CREATED)
async def record_grade(
    data: GradeCreateRequest,
    request: Request,
    current_user: CurrentUser = Depends(require_recorder),
    tenant_id: str = Depends(require_tenant),
    gate: MutationGate = Depends(get_mutation_gate),
    service: AcademicRecordsService = Depends(get_records_service),
) -> GradeEntryResponse:
    await check_gate(
        gate, request, current_user, tenant_id, data.override, evaluation_id=data.evaluation_id
    )
    entry = await service.record_grade(tenant_id, data.evaluation_id, data.student_id, data.value)
    return GradeEntryResponse.model_validate(entry)


@router.put("/grades/{grade_entry_id}", response_model=GradeEntryResponse)
async def update_grade(
    grade_entry_id: str,
    data: GradeUpdateRequest,
    request: Request,
    current_user: CurrentUser = Depends(require_recorder),
    tenant_id: str = Depends(require_tenant),
    gate: MutationGate = Depends(get_mutation_gate),
    service: AcademicRecordsService = Depends(get_records_service),
) -> GradeEntryResponse:
    await check_gate(
        gate, request, current_user, tenant_id, data.override, grade_entry_id=grade_entry_id
    )
    entry = await service.update_grade(tenant_id, grade_entry_id, data.value)
    return GradeEntryResponse.model_validate(entry)


@router.post(
    "/enrollments", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED
)
async def enroll_student(
    data: EnrollmentCreateRequest,
    request: Request,
    current_user: CurrentUser = Depends(require_recorder),
    tenant_id: str = Depends(require_tenant),
    gate: MutationGate = Depends(get_mutation_gate),
    service: AcademicRecordsService = Depends(get_records_service),
) -> EnrollmentResponse:
    decision = await check_gate(
        gate, request, current_user, tenant_id, data.override,
        academic_year_id=data.academic_year_id,
        class_group_id=data.class_group_id,
    )
    enrollment, progression = await service.enroll_student(
        tenant_id,
        data.student_id,
        decision.academic_year_id or data.academic_year_id,
        data.class_level_id,
        capabilities=current_user.capabilities,
        class_group_id=data.class_group_id,
        subject_ids=data.subject_ids,
        override=data.override_progression,
        actor_id=current_user.id,
    )
    response = EnrollmentResponse.model_validate(enrollment)
    response.progression_override = progression.override_applied
    return response


@router.patch("/teaching-units/{teaching_unit_id}", response_model=TeachingUnitResponse)
async def update_teaching_unit(
    teaching_unit_id: str,
    data: TeachingUnitUpdateRequest,
    request: Request,
    current_user: CurrentUser = Depends(require_recorder),
    tenant_id: str = Depends(require_tenant),
    gate: MutationGate = Depends(get_mutation_gate),
    service: AcademicRecordsService = Depends(get_records_service),
) -> TeachingUnitResponse:
    await check_gate(
        gate, request, current_user, tenant_id, data.override, teaching_unit_id=teaching_unit_id
    )
    unit = await service.update_teaching_unit(
        tenant_id,
        teaching_unit_id,
        name=data.name,
        teacher_id=data.teacher_id,
        planned_hours=data.planned_hours,
        class_group_id=data.class_group_id,
    )
    return TeachingUnitResponse.model_validate(unit)
