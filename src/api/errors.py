# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Translation of domain errors into HTTP responses.

The detail body is the error's to_dict(): a machine code, a message
and, for capacity errors, the occupancy numbers the caller saw.
"""

import logging

from fastapi import HTTPException, status

from src.domains.enrollment.errors import (
    AlreadyInSectionError,
    CapacityBelowOccupancyError,
    CapacityRaceError,
    CrossOrganizationViolationError,
    DuplicateClassError,
    DuplicateSectionError,
    DuplicateStudentError,
    EnrollmentServiceError,
    InvalidInputError,
    InvalidRoleAssignmentError,
    InvalidStudentTypeError,
    NoCapacityError,
    NotFoundError,
    SectionNotEmptyError,
    SectionTeacherAssignedError,
    StatsDriftDetectedError,
    StoreError,
)

logger = logging.getLogger(__name__)

# Seconds a client should wait before retrying after a lost capacity race.
CAPACITY_RACE_RETRY_AFTER = 1

_STATUS_BY_ERROR: tuple[tuple[type[EnrollmentServiceError], int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (NoCapacityError, status.HTTP_409_CONFLICT),
    (AlreadyInSectionError, status.HTTP_409_CONFLICT),
    (SectionNotEmptyError, status.HTTP_409_CONFLICT),
    (CapacityBelowOccupancyError, status.HTTP_409_CONFLICT),
    (SectionTeacherAssignedError, status.HTTP_409_CONFLICT),
    (DuplicateStudentError, status.HTTP_409_CONFLICT),
    (DuplicateClassError, status.HTTP_409_CONFLICT),
    (DuplicateSectionError, status.HTTP_409_CONFLICT),
    (StatsDriftDetectedError, status.HTTP_409_CONFLICT),
    (CapacityRaceError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (CrossOrganizationViolationError, status.HTTP_403_FORBIDDEN),
    (InvalidRoleAssignmentError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidStudentTypeError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidInputError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (StoreError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for(error: EnrollmentServiceError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def to_http_exception(error: EnrollmentServiceError) -> HTTPException:
    """Build the HTTPException for a domain error."""
    status_code = status_for(error)
    headers = None
    if isinstance(error, CapacityRaceError):
        headers = {"Retry-After": str(CAPACITY_RACE_RETRY_AFTER)}
    if isinstance(error, StoreError):
        logger.error("Store failure: %s", error.message)

    return HTTPException(status_code=status_code, detail=error.to_dict(), headers=headers)
