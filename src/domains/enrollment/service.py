# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment service for placing students into sections.

This module provides the EnrollmentService class for:
- Student enrollment into a capacity-bounded section of a class
- Bulk enrollment
- Enrollment withdrawal

An enrollment creates the student record pointing at the chosen section,
then appends the student to that section with a conditional write. If the
write is rejected because the seat was taken in the meantime, the student
record is deleted and placement is retried against fresh state. The
student record is also deleted when the write itself fails, so a failed
enrollment never leaves a student without a section.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from dataclasses import dataclass, field

from src.domains.auth.password import PasswordHasher, generate_password
from src.domains.auth.roles import Actor, Role
from src.domains.enrollment.capacity import occupancy_of
from src.domains.enrollment.errors import (
    BulkLimitExceededError,
    ClassNotFoundError,
    CrossOrganizationViolationError,
    CapacityRaceError,
    DuplicateStudentError,
    EnrollmentServiceError,
    InvalidInputError,
    InvalidStudentTypeError,
    NoCapacityError,
    StudentNotFoundError,
)
from src.domains.enrollment.placement import PlacementPolicy, select_section
from src.domains.enrollment.reconciler import StatsReconciler
from src.domains.enrollment.store import (
    ClassRecord,
    EnrollmentStore,
    NewStudent,
    SectionRecord,
    UserRecord,
)
from src.infrastructure.events.bus import EventBus
from src.infrastructure.events.types import EventTypes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StudentDraft:
    """Data supplied by an administrator for a new student."""

    name: str
    email: str
    roll_number: str | None = None
    preferred_section_name: str | None = None


@dataclass(frozen=True)
class EnrollmentResult:
    student: UserRecord
    section: SectionRecord
    attempts: int


@dataclass(frozen=True)
class BulkEnrollmentFailure:
    email: str
    code: str
    reason: str


@dataclass
class BulkEnrollmentResult:
    enrolled: list[EnrollmentResult] = field(default_factory=list)
    failed: list[BulkEnrollmentFailure] = field(default_factory=list)


class EnrollmentService:
    """Service for enrolling and withdrawing students.

    Attributes:
        _store: Enrollment store.
        _reconciler: Stats reconciler run after every membership change.
        _event_bus: Bus on which credentials are published.
        _hasher: Hasher for generated initial passwords.
    """

    def __init__(
        self,
        store: EnrollmentStore,
        reconciler: StatsReconciler,
        event_bus: EventBus,
        hasher: PasswordHasher,
        max_attempts: int = 3,
        default_policy: PlacementPolicy = PlacementPolicy.FIRST_FIT,
        max_bulk_size: int = 40,
    ) -> None:
        """Initialize enrollment service.

        Args:
            store: Enrollment store.
            reconciler: Stats reconciler.
            event_bus: Event bus for credentials and lifecycle events.
            hasher: Password hasher.
            max_attempts: Placement attempts before CapacityRaceError.
            default_policy: Policy used when a request names none.
            max_bulk_size: Maximum drafts per bulk enrollment.
        """
        self._store = store
        self._reconciler = reconciler
        self._event_bus = event_bus
        self._hasher = hasher
        self._max_attempts = max_attempts
        self._default_policy = default_policy
        self._max_bulk_size = max_bulk_size

    async def enroll(
        self,
        draft: StudentDraft,
        class_id: str,
        actor: Actor,
        policy: PlacementPolicy | None = None,
    ) -> EnrollmentResult:
        """Enroll a new student into a section of a class.

        Args:
            draft: Student data.
            class_id: Class identifier.
            actor: Caller performing the enrollment.
            policy: Placement policy, defaults to the configured one.

        Returns:
            The created student and the section it joined.

        Raises:
            ClassNotFoundError: If class not found.
            CrossOrganizationViolationError: If the class is outside the
                actor's organization.
            DuplicateStudentError: If the email is already registered.
            NoCapacityError: If no section has a free seat.
            CapacityRaceError: If every attempt lost its seat to a
                concurrent enrollment.
        """
        policy = policy or self._default_policy
        name, email = self._validate_draft(draft)

        class_, sections = await self._load_class(class_id)
        if not actor.can_act_for(class_.organization_id):
            raise CrossOrganizationViolationError(
                f"Class {class_id} belongs to another organization"
            )

        if await self._store.find_user_by_email(email) is not None:
            raise DuplicateStudentError(f"A user with email {email} already exists")

        password = generate_password()
        password_hash: str | None = None

        for attempt in range(1, self._max_attempts + 1):
            section = select_section(sections, 1, policy, draft.preferred_section_name)
            if section is None:
                raise NoCapacityError(
                    f"No section of class {class_.grade}-{class_.name} has a free seat",
                    occupancy=[occupancy_of(s) for s in sections if s.is_open],
                )

            # Hashed only once a seat is in sight.
            if password_hash is None:
                password_hash = await asyncio.to_thread(self._hasher.hash, password)

            student = await self._store.create_student(
                NewStudent(
                    organization_id=class_.organization_id,
                    section_id=section.id,
                    name=name,
                    email=email,
                    roll_number=draft.roll_number or self._roll_number(class_, section),
                    password_hash=password_hash,
                )
            )

            attached = False
            try:
                attached = await self._store.conditional_append_member(section.id, student.id)
            finally:
                if not attached:
                    await self._discard_student(student.id)

            if attached:
                logger.info(
                    "Enrolled student: student=%s, class=%s, section=%s, attempt=%d, by=%s",
                    student.id,
                    class_id,
                    section.name,
                    attempt,
                    actor.user_id,
                )
                await self._reconcile_quietly(section.id)
                fresh = await self._store.get_section(section.id) or section
                await self._publish_enrollment(student, password, class_, fresh)
                return EnrollmentResult(student=student, section=fresh, attempts=attempt)

            logger.info(
                "Seat taken before write: class=%s, section=%s, attempt=%d",
                class_id,
                section.name,
                attempt,
            )
            class_, sections = await self._load_class(class_id)

        raise CapacityRaceError(
            f"Could not secure a seat in class {class_.grade}-{class_.name} "
            f"after {self._max_attempts} attempts",
            attempts=self._max_attempts,
            occupancy=[occupancy_of(s) for s in sections if s.is_open],
        )

    async def bulk_enroll(
        self,
        drafts: list[StudentDraft],
        class_id: str,
        actor: Actor,
        policy: PlacementPolicy | None = None,
    ) -> BulkEnrollmentResult:
        """Enroll several students into one class.

        Each draft is enrolled independently; a failure is recorded and the
        remaining drafts are still processed.

        Raises:
            BulkLimitExceededError: If more drafts than allowed are given.
            ClassNotFoundError: If class not found.
            CrossOrganizationViolationError: If the class is outside the
                actor's organization.
        """
        if len(drafts) > self._max_bulk_size:
            raise BulkLimitExceededError(
                f"At most {self._max_bulk_size} students can be enrolled at once"
            )

        class_, _ = await self._load_class(class_id)
        if not actor.can_act_for(class_.organization_id):
            raise CrossOrganizationViolationError(
                f"Class {class_id} belongs to another organization"
            )

        result = BulkEnrollmentResult()
        for draft in drafts:
            try:
                result.enrolled.append(await self.enroll(draft, class_id, actor, policy))
            except EnrollmentServiceError as e:
                result.failed.append(
                    BulkEnrollmentFailure(email=draft.email, code=e.code, reason=e.message)
                )

        logger.info(
            "Bulk enrollment: class=%s, enrolled=%d, failed=%d, by=%s",
            class_id,
            len(result.enrolled),
            len(result.failed),
            actor.user_id,
        )
        return result

    async def withdraw(self, student_id: str, actor: Actor) -> UserRecord:
        """Terminate a student's enrollment.

        The student leaves its section's membership and is soft-deleted.
        Removing an id that is no longer a member is a no-op, so a retried
        withdrawal completes.

        Returns:
            The student as it was before withdrawal.

        Raises:
            StudentNotFoundError: If student not found.
            InvalidStudentTypeError: If the user is not a student.
            CrossOrganizationViolationError: If the student is outside the
                actor's organization.
        """
        student = await self._get_student(student_id)
        if student.organization_id is None or not actor.can_act_for(student.organization_id):
            raise CrossOrganizationViolationError(
                f"Student {student_id} belongs to another organization"
            )

        if student.section_id is not None:
            await self._store.remove_member(student.section_id, student.id)
        await self._store.soft_delete_student(student.id)

        logger.info(
            "Withdrew student: student=%s, section=%s, by=%s",
            student.id,
            student.section_id,
            actor.user_id,
        )

        if student.section_id is not None:
            await self._reconcile_quietly(student.section_id)
        await self._event_bus.publish(
            EventTypes.Enrollment.STUDENT_WITHDRAWN,
            {"student_id": student.id, "section_id": student.section_id},
            organization_id=student.organization_id,
        )
        return student

    async def _load_class(self, class_id: str) -> tuple[ClassRecord, list[SectionRecord]]:
        loaded = await self._store.get_class_with_sections(class_id)
        if loaded is None:
            raise ClassNotFoundError(f"Class {class_id} not found")
        return loaded

    async def _get_student(self, student_id: str) -> UserRecord:
        user = await self._store.get_user(student_id)
        if user is None:
            raise StudentNotFoundError(f"Student {student_id} not found")
        if user.role != Role.STUDENT:
            raise InvalidStudentTypeError(f"User {student_id} is not a student")
        return user

    async def _discard_student(self, student_id: str) -> None:
        """Delete a tentatively created student.

        Runs while another exception may be propagating, so its own
        failure is logged rather than raised.
        """
        try:
            await self._store.delete_student(student_id)
        except EnrollmentServiceError:
            logger.exception("Failed to discard tentative student %s", student_id)

    async def _reconcile_quietly(self, section_id: str) -> None:
        try:
            await self._reconciler.reconcile(section_id)
        except EnrollmentServiceError as e:
            logger.warning(
                "Stats reconciliation after write failed for section %s: %s",
                section_id,
                str(e),
            )

    async def _publish_enrollment(
        self,
        student: UserRecord,
        password: str,
        class_: ClassRecord,
        section: SectionRecord,
    ) -> None:
        await self._event_bus.publish(
            EventTypes.Enrollment.STUDENT_ENROLLED,
            {
                "student_id": student.id,
                "class_id": class_.id,
                "section_id": section.id,
            },
            organization_id=class_.organization_id,
        )
        await self._event_bus.publish(
            EventTypes.Enrollment.CREDENTIALS_ISSUED,
            {
                "student_id": student.id,
                "name": student.name,
                "email": student.email,
                "roll_number": student.roll_number,
                "password": password,
                "class_name": f"{class_.grade}-{class_.name}",
                "section_name": section.name,
            },
            organization_id=class_.organization_id,
        )

    @staticmethod
    def _validate_draft(draft: StudentDraft) -> tuple[str, str]:
        name = draft.name.strip()
        email = draft.email.strip().lower()
        if not name:
            raise InvalidInputError("Student name is required")
        if "@" not in email:
            raise InvalidInputError(f"Invalid email address: {draft.email}")
        return name, email

    @staticmethod
    def _roll_number(class_: ClassRecord, section: SectionRecord) -> str:
        return f"{class_.grade}{section.name}{secrets.randbelow(10000):04d}"
