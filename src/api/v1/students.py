# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Student placement API endpoints.

- POST /{student_id}/transfer - Move a student to another section
- DELETE /{student_id} - Withdraw a student
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from src.api.dependencies import (
    RequireCapability,
    get_enrollment_service,
    get_transfer_service,
)
from src.api.errors import to_http_exception
from src.api.v1.views import student_to_response, transfer_to_response
from src.domains.auth.roles import Actor, Capability
from src.domains.enrollment.errors import EnrollmentServiceError
from src.domains.enrollment.service import EnrollmentService
from src.domains.enrollment.transfer import TransferService
from src.models.enrollment import StudentResponse, TransferResponse, TransferStudentRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/{student_id}/transfer", response_model=TransferResponse)
async def transfer_student(
    student_id: str,
    request: TransferStudentRequest,
    actor: Annotated[Actor, Depends(RequireCapability(Capability.TRANSFER_STUDENT))],
    service: Annotated[TransferService, Depends(get_transfer_service)],
) -> TransferResponse:
    """Move a student to another section of the same organization.

    The student keeps their current section if the target has no seat.
    """
    try:
        result = await service.transfer(student_id, request.target_section_id, actor)
    except EnrollmentServiceError as e:
        raise to_http_exception(e)
    return transfer_to_response(result)


@router.delete("/{student_id}", response_model=StudentResponse)
async def withdraw_student(
    student_id: str,
    actor: Annotated[Actor, Depends(RequireCapability(Capability.WITHDRAW_STUDENT))],
    service: Annotated[EnrollmentService, Depends(get_enrollment_service)],
) -> StudentResponse:
    """Remove a student from their section and deactivate the account."""
    try:
        student = await service.withdraw(student_id, actor)
    except EnrollmentServiceError as e:
        raise to_http_exception(e)

    logger.info("Student withdrawn via API: student=%s, by=%s", student_id, actor.user_id)
    return student_to_response(student)
