# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment domain package.

Capacity-safe placement of students into sections:
- capacity: pure capacity checks over a section snapshot
- placement: first-fit and load-balanced section selection
- service: enrollment, bulk enrollment and withdrawal
- transfer: moving a student between sections
- reconciler: section, class and organization counter maintenance
- store: store interface with PostgreSQL and in-process implementations
"""

from src.domains.enrollment.errors import (
    AlreadyInSectionError,
    BulkLimitExceededError,
    CapacityBelowOccupancyError,
    CapacityRaceError,
    ClassNotFoundError,
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
    OrganizationNotFoundError,
    SectionNotEmptyError,
    SectionNotFoundError,
    SectionTeacherAssignedError,
    StatsDriftDetectedError,
    StoreError,
    StudentNotFoundError,
    UserNotFoundError,
)
from src.domains.enrollment.memory_store import InMemoryEnrollmentStore
from src.domains.enrollment.placement import PlacementPolicy, select_section
from src.domains.enrollment.reconciler import (
    DriftEntry,
    ReconciliationReport,
    StatsReconciler,
)
from src.domains.enrollment.service import (
    BulkEnrollmentResult,
    EnrollmentResult,
    EnrollmentService,
    StudentDraft,
)
from src.domains.enrollment.store import (
    ClassRecord,
    EnrollmentStore,
    OrganizationRecord,
    SectionRecord,
    UserRecord,
)
from src.domains.enrollment.transfer import TransferResult, TransferService

__all__ = [
    # Services
    "EnrollmentService",
    "TransferService",
    "StatsReconciler",
    "select_section",
    "PlacementPolicy",
    # Results
    "StudentDraft",
    "EnrollmentResult",
    "BulkEnrollmentResult",
    "TransferResult",
    "ReconciliationReport",
    "DriftEntry",
    # Store
    "EnrollmentStore",
    "InMemoryEnrollmentStore",
    "OrganizationRecord",
    "ClassRecord",
    "SectionRecord",
    "UserRecord",
    # Errors
    "EnrollmentServiceError",
    "StoreError",
    "InvalidInputError",
    "BulkLimitExceededError",
    "NotFoundError",
    "OrganizationNotFoundError",
    "ClassNotFoundError",
    "SectionNotFoundError",
    "StudentNotFoundError",
    "UserNotFoundError",
    "NoCapacityError",
    "CapacityRaceError",
    "AlreadyInSectionError",
    "CapacityBelowOccupancyError",
    "SectionNotEmptyError",
    "CrossOrganizationViolationError",
    "InvalidRoleAssignmentError",
    "InvalidStudentTypeError",
    "SectionTeacherAssignedError",
    "DuplicateStudentError",
    "DuplicateClassError",
    "DuplicateSectionError",
    "StatsDriftDetectedError",
]
