# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Section management API endpoints.

- PATCH /{section_id}/capacity - Change capacity
- PUT /{section_id}/teacher - Assign a teacher
- DELETE /{section_id}/teacher - Remove the teacher
- DELETE /{section_id} - Delete an empty section
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from src.api.dependencies import RequireCapability, get_class_service
from src.api.errors import to_http_exception
from src.domains.auth.roles import Actor, Capability
from src.domains.class_.service import ClassService
from src.domains.enrollment.errors import EnrollmentServiceError
from src.models.class_ import SectionCapacityUpdate, SectionResponse, SectionTeacherAssign

router = APIRouter()

ManageSections = Annotated[Actor, Depends(RequireCapability(Capability.MANAGE_SECTIONS))]
Service = Annotated[ClassService, Depends(get_class_service)]


@router.patch("/{section_id}/capacity", response_model=SectionResponse)
async def update_section_capacity(
    section_id: str,
    request: SectionCapacityUpdate,
    actor: ManageSections,
    service: Service,
) -> SectionResponse:
    """Change capacity; rejected with 409 if below current membership."""
    try:
        return await service.update_section_capacity(section_id, request.max_students, actor)
    except EnrollmentServiceError as e:
        raise to_http_exception(e)


@router.put("/{section_id}/teacher", response_model=SectionResponse)
async def assign_section_teacher(
    section_id: str,
    request: SectionTeacherAssign,
    actor: ManageSections,
    service: Service,
) -> SectionResponse:
    try:
        return await service.assign_section_teacher(section_id, request.teacher_id, actor)
    except EnrollmentServiceError as e:
        raise to_http_exception(e)


@router.delete("/{section_id}/teacher", response_model=SectionResponse)
async def remove_section_teacher(
    section_id: str,
    actor: ManageSections,
    service: Service,
) -> SectionResponse:
    try:
        return await service.remove_section_teacher(section_id, actor)
    except EnrollmentServiceError as e:
        raise to_http_exception(e)


@router.delete("/{section_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_section(
    section_id: str,
    actor: ManageSections,
    service: Service,
) -> Response:
    """Soft-delete a section; rejected with 409 while it has students."""
    try:
        await service.delete_section(section_id, actor)
    except EnrollmentServiceError as e:
        raise to_http_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
