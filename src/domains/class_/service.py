# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class service for managing class/section operations.

This module provides the ClassService class for:
- Class and section creation
- Section capacity changes
- Section teacher assignment
- Section deletion (only when empty)
- Capacity summary reports

Capacity changes and deletions are conditional writes evaluated against
the section's membership at write time, so they cannot race with
concurrent enrollments into violating the capacity bound.
"""

from __future__ import annotations

import logging

from src.domains.auth.roles import Actor, Role
from src.domains.enrollment.capacity import (
    available_seats,
    is_full,
    is_valid_capacity,
    occupancy,
    occupancy_of,
)
from src.domains.enrollment.errors import (
    CapacityBelowOccupancyError,
    ClassNotFoundError,
    CrossOrganizationViolationError,
    EnrollmentServiceError,
    InvalidInputError,
    InvalidRoleAssignmentError,
    OrganizationNotFoundError,
    SectionNotEmptyError,
    SectionNotFoundError,
    SectionTeacherAssignedError,
    UserNotFoundError,
)
from src.domains.enrollment.reconciler import StatsReconciler
from src.domains.enrollment.store import (
    ClassRecord,
    EnrollmentStore,
    SectionRecord,
    UserRecord,
)
from src.models.class_ import (
    CapacitySummaryResponse,
    ClassResponse,
    SectionCapacity,
    SectionResponse,
)

logger = logging.getLogger(__name__)


def section_to_response(section: SectionRecord) -> SectionResponse:
    """Build the API view of a section from its live membership."""
    return SectionResponse(
        id=section.id,
        class_id=section.class_id,
        organization_id=section.organization_id,
        name=section.name,
        max_students=section.max_students,
        current_students=occupancy(section),
        available_seats=available_seats(section),
        is_full=is_full(section),
        teacher_id=section.teacher_id,
        stats_updated_at=section.stats_updated_at,
    )


def normalize_section_name(name: str) -> str:
    """Upper-case a section name and check it is a single letter A-Z.

    Raises:
        InvalidInputError: If the name is not a single letter.
    """
    normalized = name.strip().upper()
    if len(normalized) != 1 or not ("A" <= normalized <= "Z"):
        raise InvalidInputError(f"Section name must be a single letter A-Z, got {name!r}")
    return normalized


class ClassService:
    """Service for managing classes and their sections.

    Attributes:
        _store: Enrollment store.
        _reconciler: Stats reconciler.
        _default_capacity: Section capacity used when neither the request
            nor the organization provides one.
    """

    def __init__(
        self,
        store: EnrollmentStore,
        reconciler: StatsReconciler,
        default_capacity: int = 30,
    ) -> None:
        self._store = store
        self._reconciler = reconciler
        self._default_capacity = default_capacity

    async def create_class(
        self,
        grade: int,
        name: str,
        actor: Actor,
        organization_id: str | None = None,
    ) -> ClassResponse:
        """Create a new class.

        Args:
            grade: Grade 1-12.
            name: Class name, unique per organization and grade.
            actor: Caller creating the class.
            organization_id: Target organization. Only super admins may
                name one; everyone else creates in their own.

        Returns:
            Created class response.

        Raises:
            InvalidInputError: If grade or name is invalid.
            OrganizationNotFoundError: If the organization does not exist.
            CrossOrganizationViolationError: If the actor may not act for
                the organization.
            DuplicateClassError: If the class already exists.
        """
        if not 1 <= grade <= 12:
            raise InvalidInputError(f"Grade must be between 1 and 12, got {grade}")
        name = name.strip()
        if not name:
            raise InvalidInputError("Class name is required")

        target_org = organization_id or actor.organization_id
        if target_org is None:
            raise InvalidInputError("organization_id is required")
        if not actor.can_act_for(target_org):
            raise CrossOrganizationViolationError(
                f"Cannot create classes in organization {target_org}"
            )
        if await self._store.get_organization(target_org) is None:
            raise OrganizationNotFoundError(f"Organization {target_org} not found")

        class_ = await self._store.create_class(target_org, grade, name)

        logger.info(
            "Created class: id=%s, grade=%d, name=%s, by=%s",
            class_.id,
            grade,
            name,
            actor.user_id,
        )

        await self._reconcile_class_quietly(class_.id)
        return self._to_class_response(class_)

    async def create_section(
        self,
        class_id: str,
        name: str,
        actor: Actor,
        max_students: int | None = None,
        teacher_id: str | None = None,
    ) -> SectionResponse:
        """Create an empty section under a class.

        Args:
            class_id: Class identifier.
            name: Single letter, upper-cased.
            actor: Caller creating the section.
            max_students: Capacity 1-50. Defaults to the organization's
                default section capacity.
            teacher_id: Optional teacher to assign.

        Returns:
            Created section response.

        Raises:
            ClassNotFoundError: If class not found.
            CrossOrganizationViolationError: If the class or teacher is
                outside the allowed organization.
            InvalidInputError: If name or capacity is invalid.
            InvalidRoleAssignmentError: If teacher_id is not a teacher.
            DuplicateSectionError: If the name is taken in the class.
        """
        class_ = await self._get_class(class_id, actor)
        name = normalize_section_name(name)

        if max_students is None:
            organization = await self._store.get_organization(class_.organization_id)
            max_students = (
                organization.default_section_capacity if organization else self._default_capacity
            )
        if not is_valid_capacity(max_students):
            raise InvalidInputError(
                f"Section capacity must be between 1 and 50, got {max_students}"
            )

        if teacher_id is not None:
            await self._get_teacher(teacher_id, class_.organization_id)

        section = await self._store.create_section(
            class_id=class_.id,
            organization_id=class_.organization_id,
            name=name,
            max_students=max_students,
            teacher_id=teacher_id,
        )

        logger.info(
            "Created section: class=%s, section=%s, max=%d, by=%s",
            class_id,
            name,
            max_students,
            actor.user_id,
        )

        await self._reconcile_class_quietly(class_.id)
        return section_to_response(section)

    async def update_section_capacity(
        self,
        section_id: str,
        max_students: int,
        actor: Actor,
    ) -> SectionResponse:
        """Change a section's capacity.

        Raises:
            InvalidInputError: If max_students is outside 1-50.
            SectionNotFoundError: If section not found.
            CrossOrganizationViolationError: If the section is outside the
                actor's organization.
            CapacityBelowOccupancyError: If the new capacity is below the
                number of members at write time.
        """
        if not is_valid_capacity(max_students):
            raise InvalidInputError(
                f"Section capacity must be between 1 and 50, got {max_students}"
            )
        section = await self._get_section(section_id, actor)

        if not await self._store.conditional_set_capacity(section.id, max_students):
            fresh = await self._store.get_section(section.id)
            if fresh is None:
                raise SectionNotFoundError(f"Section {section_id} not found")
            raise CapacityBelowOccupancyError(
                f"Section {fresh.name} has {occupancy(fresh)} students, "
                f"capacity cannot be set to {max_students}",
                occupancy=[occupancy_of(fresh)],
            )

        logger.info(
            "Updated section capacity: section=%s, max=%d, by=%s",
            section_id,
            max_students,
            actor.user_id,
        )

        await self._reconcile_class_quietly(section.class_id)
        return section_to_response(await self._refetch(section))

    async def assign_section_teacher(
        self,
        section_id: str,
        teacher_id: str,
        actor: Actor,
    ) -> SectionResponse:
        """Assign a teacher to a section that has none.

        Raises:
            SectionNotFoundError: If section not found.
            UserNotFoundError: If the teacher does not exist.
            InvalidRoleAssignmentError: If the user is not a teacher.
            CrossOrganizationViolationError: If section or teacher is
                outside the allowed organization.
            SectionTeacherAssignedError: If the section already has one.
        """
        section = await self._get_section(section_id, actor)
        await self._get_teacher(teacher_id, section.organization_id)

        if not await self._store.set_section_teacher(section.id, teacher_id):
            raise SectionTeacherAssignedError(
                f"Section {section.name} already has a teacher assigned"
            )

        logger.info(
            "Assigned section teacher: section=%s, teacher=%s, by=%s",
            section_id,
            teacher_id,
            actor.user_id,
        )
        return section_to_response(await self._refetch(section))

    async def remove_section_teacher(self, section_id: str, actor: Actor) -> SectionResponse:
        """Clear a section's teacher."""
        section = await self._get_section(section_id, actor)
        if not await self._store.set_section_teacher(section.id, None):
            raise SectionNotFoundError(f"Section {section_id} not found")
        return section_to_response(await self._refetch(section))

    async def delete_section(self, section_id: str, actor: Actor) -> None:
        """Soft-delete a section with no members.

        Raises:
            SectionNotFoundError: If section not found.
            CrossOrganizationViolationError: If the section is outside the
                actor's organization.
            SectionNotEmptyError: If the section has members at write time.
        """
        section = await self._get_section(section_id, actor)

        if not await self._store.conditional_soft_delete_section(section.id):
            fresh = await self._store.get_section(section.id)
            if fresh is None:
                raise SectionNotFoundError(f"Section {section_id} not found")
            raise SectionNotEmptyError(
                f"Section {fresh.name} still has {occupancy(fresh)} students",
                occupancy=[occupancy_of(fresh)],
            )

        logger.info("Deleted section: section=%s, by=%s", section_id, actor.user_id)
        await self._reconcile_class_quietly(section.class_id)

    async def capacity_summary(
        self,
        class_id: str,
        actor: Actor,
        verify: bool = False,
    ) -> CapacitySummaryResponse:
        """Report per-section occupancy of a class.

        Args:
            class_id: Class identifier.
            actor: Caller requesting the report.
            verify: Audit the cached counters first.

        Raises:
            ClassNotFoundError: If class not found.
            CrossOrganizationViolationError: If the class is outside the
                actor's organization.
            StatsDriftDetectedError: If verify is set and a cached counter
                disagrees with membership.
        """
        class_ = await self._get_class(class_id, actor)
        if verify:
            await self._reconciler.verify_class(class_.id)

        sections = [s for s in await self._store.list_class_sections(class_.id) if s.is_open]
        rows = [
            SectionCapacity(
                section_id=s.id,
                name=s.name,
                max_students=s.max_students,
                current_students=occupancy(s),
                available_seats=available_seats(s),
                is_full=is_full(s),
                teacher_id=s.teacher_id,
            )
            for s in sections
        ]
        total_capacity = sum(s.max_students for s in sections)
        total_students = sum(r.current_students for r in rows)
        seats = sum(r.available_seats for r in rows)

        return CapacitySummaryResponse(
            class_id=class_.id,
            grade=class_.grade,
            name=class_.name,
            sections=rows,
            total_capacity=total_capacity,
            total_students=total_students,
            available_seats=seats,
            has_available_seats=seats > 0,
        )

    async def _get_class(self, class_id: str, actor: Actor) -> ClassRecord:
        loaded = await self._store.get_class_with_sections(class_id)
        if loaded is None:
            raise ClassNotFoundError(f"Class {class_id} not found")
        class_, _ = loaded
        if not actor.can_act_for(class_.organization_id):
            raise CrossOrganizationViolationError(
                f"Class {class_id} belongs to another organization"
            )
        return class_

    async def _get_section(self, section_id: str, actor: Actor) -> SectionRecord:
        section = await self._store.get_section(section_id)
        if section is None:
            raise SectionNotFoundError(f"Section {section_id} not found")
        if not actor.can_act_for(section.organization_id):
            raise CrossOrganizationViolationError(
                f"Section {section_id} belongs to another organization"
            )
        return section

    async def _get_teacher(self, teacher_id: str, organization_id: str) -> UserRecord:
        user = await self._store.get_user(teacher_id)
        if user is None:
            raise UserNotFoundError(f"User {teacher_id} not found")
        if user.role != Role.TEACHER:
            raise InvalidRoleAssignmentError(
                f"User {teacher_id} has role {user.role.value}, not teacher"
            )
        if user.organization_id != organization_id:
            raise CrossOrganizationViolationError(
                f"Teacher {teacher_id} belongs to another organization"
            )
        return user

    async def _refetch(self, section: SectionRecord) -> SectionRecord:
        return await self._store.get_section(section.id) or section

    async def _reconcile_class_quietly(self, class_id: str) -> None:
        try:
            await self._reconciler.reconcile_class(class_id)
        except EnrollmentServiceError as e:
            logger.warning("Stats reconciliation failed for class %s: %s", class_id, str(e))

    @staticmethod
    def _to_class_response(class_: ClassRecord) -> ClassResponse:
        return ClassResponse(
            id=class_.id,
            organization_id=class_.organization_id,
            grade=class_.grade,
            name=class_.name,
            total_students=class_.total_students,
        )
