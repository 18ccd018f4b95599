# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exceptions raised by the enrollment and class administration services.

Every error carries a machine-readable ``code``. Capacity-related errors
also carry the occupancy of the sections involved so callers can choose a
different target.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Sequence

if TYPE_CHECKING:
    from src.domains.enrollment.capacity import SectionOccupancy
    from src.domains.enrollment.reconciler import DriftEntry


class EnrollmentServiceError(Exception):
    """Base exception for enrollment service errors."""

    code = "enrollment_error"

    def __init__(
        self,
        message: str,
        occupancy: Sequence[SectionOccupancy] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.occupancy: list[SectionOccupancy] = list(occupancy or [])

    def to_dict(self) -> dict[str, Any]:
        """Serialize for an API error body."""
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.occupancy:
            body["occupancy"] = [o.to_dict() for o in self.occupancy]
        return body


class StoreError(EnrollmentServiceError):
    """Raised when the underlying store fails."""

    code = "store_error"


class InvalidInputError(EnrollmentServiceError):
    """Raised when a value is outside its allowed range or format."""

    code = "invalid_input"


class BulkLimitExceededError(InvalidInputError):
    """Raised when a bulk request carries too many drafts."""

    code = "bulk_limit_exceeded"


# Not found


class NotFoundError(EnrollmentServiceError):
    """Raised when a referenced entity is absent or deleted."""

    code = "not_found"


class OrganizationNotFoundError(NotFoundError):
    code = "organization_not_found"


class ClassNotFoundError(NotFoundError):
    """Raised when class is not found."""

    code = "class_not_found"


class SectionNotFoundError(NotFoundError):
    """Raised when section is not found."""

    code = "section_not_found"


class StudentNotFoundError(NotFoundError):
    """Raised when student is not found."""

    code = "student_not_found"


class UserNotFoundError(NotFoundError):
    code = "user_not_found"


# Capacity


class NoCapacityError(EnrollmentServiceError):
    """Raised when no candidate section has room.

    This is a business outcome, not a fault.
    """

    code = "no_capacity"


class CapacityRaceError(EnrollmentServiceError):
    """Raised when every placement attempt lost its seat to a concurrent write.

    Safe to retry from the caller's side.
    """

    code = "capacity_race"

    def __init__(
        self,
        message: str,
        attempts: int,
        occupancy: Sequence[SectionOccupancy] | None = None,
    ) -> None:
        super().__init__(message, occupancy)
        self.attempts = attempts


class AlreadyInSectionError(EnrollmentServiceError):
    """Raised when a transfer targets the student's current section."""

    code = "already_in_section"


class CapacityBelowOccupancyError(EnrollmentServiceError):
    """Raised when a capacity change would drop below current occupancy."""

    code = "capacity_below_occupancy"


class SectionNotEmptyError(EnrollmentServiceError):
    """Raised when deleting a section that still has members."""

    code = "section_not_empty"


# Ownership and roles


class CrossOrganizationViolationError(EnrollmentServiceError):
    """Raised when referenced entities span organizations."""

    code = "cross_organization"


class InvalidRoleAssignmentError(EnrollmentServiceError):
    """Raised when a user's role does not fit the assignment."""

    code = "invalid_role_assignment"


class InvalidStudentTypeError(EnrollmentServiceError):
    """Raised when user is not a student type."""

    code = "invalid_student_type"


class SectionTeacherAssignedError(EnrollmentServiceError):
    """Raised when a section already has a teacher."""

    code = "section_teacher_assigned"


# Uniqueness


class DuplicateStudentError(EnrollmentServiceError):
    """Raised when a user with the same email already exists."""

    code = "duplicate_student"


class DuplicateClassError(EnrollmentServiceError):
    """Raised when (organization, grade, name) is already taken."""

    code = "duplicate_class"


class DuplicateSectionError(EnrollmentServiceError):
    """Raised when the class already has a live section with that name."""

    code = "duplicate_section"


# Statistics


class StatsDriftDetectedError(EnrollmentServiceError):
    """Raised by an audit when cached counters disagree with membership."""

    code = "stats_drift_detected"

    def __init__(self, message: str, drift: Sequence[DriftEntry]) -> None:
        super().__init__(message)
        self.drift = list(drift)

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["drift"] = [d.to_dict() for d in self.drift]
        return body
