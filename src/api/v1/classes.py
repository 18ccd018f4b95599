# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class management API endpoints.

This module provides endpoints for classes and their sections:
- POST / - Create a new class
- POST /{class_id}/sections - Create a section
- GET /{class_id}/capacity - Per-section capacity summary

Student enrollment endpoints:
- POST /{class_id}/students - Enroll a student
- POST /{class_id}/students/bulk - Bulk enroll students

Organization scoping is enforced by the services: only super admins
may act on classes of another organization.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from src.api.dependencies import (
    RequireCapability,
    get_class_service,
    get_enrollment_service,
)
from src.api.errors import to_http_exception
from src.api.v1.views import bulk_to_response, enrollment_to_response
from src.domains.auth.roles import Actor, Capability
from src.domains.class_.service import ClassService
from src.domains.enrollment.errors import EnrollmentServiceError
from src.domains.enrollment.placement import PlacementPolicy
from src.domains.enrollment.service import EnrollmentService, StudentDraft
from src.models.class_ import (
    CapacitySummaryResponse,
    ClassCreateRequest,
    ClassResponse,
    SectionCreateRequest,
    SectionResponse,
)
from src.models.enrollment import (
    BulkEnrollRequest,
    BulkEnrollResponse,
    EnrollmentResponse,
    EnrollStudentRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _draft(request: EnrollStudentRequest) -> StudentDraft:
    return StudentDraft(
        name=request.name,
        email=str(request.email),
        roll_number=request.roll_number,
        preferred_section_name=request.preferred_section_name,
    )


def _policy(value: str | None) -> PlacementPolicy | None:
    return PlacementPolicy(value) if value else None


@router.post(
    "",
    response_model=ClassResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a class",
)
async def create_class(
    request: ClassCreateRequest,
    actor: Annotated[Actor, Depends(RequireCapability(Capability.MANAGE_CLASSES))],
    service: Annotated[ClassService, Depends(get_class_service)],
) -> ClassResponse:
    """Create a class in the caller's organization.

    Super admins may target another organization via organization_id.
    """
    try:
        return await service.create_class(
            grade=request.grade,
            name=request.name,
            actor=actor,
            organization_id=request.organization_id,
        )
    except EnrollmentServiceError as e:
        raise to_http_exception(e)


@router.post(
    "/{class_id}/sections",
    response_model=SectionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a section",
)
async def create_section(
    class_id: str,
    request: SectionCreateRequest,
    actor: Annotated[Actor, Depends(RequireCapability(Capability.MANAGE_SECTIONS))],
    service: Annotated[ClassService, Depends(get_class_service)],
) -> SectionResponse:
    try:
        return await service.create_section(
            class_id=class_id,
            name=request.name,
            actor=actor,
            max_students=request.max_students,
            teacher_id=request.teacher_id,
        )
    except EnrollmentServiceError as e:
        raise to_http_exception(e)


@router.get(
    "/{class_id}/capacity",
    response_model=CapacitySummaryResponse,
    summary="Get class capacity summary",
)
async def get_capacity_summary(
    class_id: str,
    actor: Annotated[Actor, Depends(RequireCapability(Capability.VIEW_CAPACITY))],
    service: Annotated[ClassService, Depends(get_class_service)],
    verify: bool = Query(default=False, description="Fail with 409 if cached counters drifted"),
) -> CapacitySummaryResponse:
    """Report per-section occupancy computed from live membership."""
    try:
        return await service.capacity_summary(class_id, actor, verify=verify)
    except EnrollmentServiceError as e:
        raise to_http_exception(e)


@router.post(
    "/{class_id}/students",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll a student",
)
async def enroll_student(
    class_id: str,
    request: EnrollStudentRequest,
    actor: Annotated[Actor, Depends(RequireCapability(Capability.ENROLL_STUDENT))],
    service: Annotated[EnrollmentService, Depends(get_enrollment_service)],
) -> EnrollmentResponse:
    """Create a student and place them in a section with a free seat.

    Returns 409 when every section is full and 503 with Retry-After when
    concurrent enrollments kept taking the chosen seat.
    """
    try:
        result = await service.enroll(
            _draft(request),
            class_id,
            actor,
            policy=_policy(request.policy),
        )
    except EnrollmentServiceError as e:
        raise to_http_exception(e)

    logger.info(
        "Student enrolled via API: class=%s, student=%s, section=%s",
        class_id,
        result.student.id,
        result.section.name,
    )
    return enrollment_to_response(result)


@router.post(
    "/{class_id}/students/bulk",
    response_model=BulkEnrollResponse,
    summary="Bulk enroll students",
)
async def bulk_enroll_students(
    class_id: str,
    request: BulkEnrollRequest,
    actor: Annotated[Actor, Depends(RequireCapability(Capability.ENROLL_STUDENT))],
    service: Annotated[EnrollmentService, Depends(get_enrollment_service)],
) -> BulkEnrollResponse:
    """Enroll several students; failures are reported per student."""
    try:
        result = await service.bulk_enroll(
            [_draft(s) for s in request.students],
            class_id,
            actor,
            policy=_policy(request.policy),
        )
    except EnrollmentServiceError as e:
        raise to_http_exception(e)
    return bulk_to_response(result)
