# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Store interface and record types for the enrollment engine.

Records are immutable snapshots. A service never mutates a record; it
asks the store to perform a write and re-reads when it needs fresh state.

Two implementations exist:
    SqlEnrollmentStore: PostgreSQL through SQLAlchemy async.
    InMemoryEnrollmentStore: in-process, used for development and tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from src.domains.auth.roles import Role


@dataclass(frozen=True)
class OrganizationRecord:
    id: str
    name: str
    default_section_capacity: int = 30
    total_students: int = 0
    total_teachers: int = 0
    total_classes: int = 0
    is_active: bool = True


@dataclass(frozen=True)
class ClassRecord:
    id: str
    organization_id: str
    grade: int
    name: str
    total_students: int = 0
    deleted_at: datetime | None = None


@dataclass(frozen=True)
class SectionRecord:
    """Snapshot of a section.

    ``student_ids`` is the authoritative membership. ``current_student_count``
    and ``available_seats`` are caches maintained by the stats reconciler.
    """

    id: str
    class_id: str
    organization_id: str
    name: str
    max_students: int
    student_ids: tuple[str, ...] = ()
    teacher_id: str | None = None
    current_student_count: int = 0
    available_seats: int = 0
    stats_updated_at: datetime | None = None
    is_active: bool = True
    deleted_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        """Whether the section accepts placements."""
        return self.is_active and self.deleted_at is None


@dataclass(frozen=True)
class UserRecord:
    id: str
    organization_id: str | None
    role: Role
    name: str
    email: str
    section_id: str | None = None
    roll_number: str | None = None
    password_hash: str | None = None
    is_active: bool = True
    deleted_at: datetime | None = None


@dataclass(frozen=True)
class NewStudent:
    """Fields for a student record created during enrollment."""

    organization_id: str
    section_id: str
    name: str
    email: str
    roll_number: str
    password_hash: str


class EnrollmentStore(Protocol):
    """Persistent store consumed by the enrollment engine.

    Lookups return None for absent or soft-deleted entities. Every method
    is a suspension point.
    """

    # Reads

    async def get_organization(self, organization_id: str) -> OrganizationRecord | None: ...

    async def get_class_with_sections(
        self, class_id: str
    ) -> tuple[ClassRecord, list[SectionRecord]] | None:
        """Class and its live sections ordered by name."""
        ...

    async def get_section(self, section_id: str) -> SectionRecord | None: ...

    async def get_user(self, user_id: str) -> UserRecord | None: ...

    async def find_user_by_email(self, email: str) -> UserRecord | None: ...

    async def list_class_sections(self, class_id: str) -> list[SectionRecord]: ...

    async def list_organization_classes(self, organization_id: str) -> list[ClassRecord]: ...

    async def count_teachers(self, organization_id: str) -> int: ...

    async def list_organization_ids(self) -> list[str]: ...

    # Membership

    async def conditional_append_member(self, section_id: str, student_id: str) -> bool:
        """Append a member only if the section is open, has a free seat
        under its current max_students, and does not already contain the
        student. Returns False when rejected."""
        ...

    async def remove_member(self, section_id: str, student_id: str) -> bool:
        """Remove a member. Returns False if it was not a member."""
        ...

    async def remove_stale_member(self, section_id: str, student_id: str) -> bool:
        """Remove a member whose student record, at the time of the write,
        is absent, deleted or names another section. Returns False when the
        membership is current or already gone."""
        ...

    # Students

    async def create_student(self, fields: NewStudent) -> UserRecord:
        """Raises DuplicateStudentError if the email is taken."""
        ...

    async def delete_student(self, student_id: str) -> None:
        """Hard delete, used to compensate a failed enrollment."""
        ...

    async def set_student_section(self, student_id: str, section_id: str) -> None:
        """Raises StudentNotFoundError if the student is absent."""
        ...

    async def soft_delete_student(self, student_id: str) -> None: ...

    # Counters

    async def set_section_counters(
        self, section_id: str, count: int, available: int
    ) -> None: ...

    async def set_class_counter(self, class_id: str, count: int) -> None: ...

    async def set_organization_counters(
        self, organization_id: str, students: int, teachers: int, classes: int
    ) -> None: ...

    # Administration

    async def create_class(self, organization_id: str, grade: int, name: str) -> ClassRecord:
        """Raises DuplicateClassError for a taken (organization, grade, name)."""
        ...

    async def create_section(
        self,
        class_id: str,
        organization_id: str,
        name: str,
        max_students: int,
        teacher_id: str | None = None,
    ) -> SectionRecord:
        """Raises DuplicateSectionError for a taken live name in the class."""
        ...

    async def conditional_set_capacity(self, section_id: str, max_students: int) -> bool:
        """Set max_students only if it is not below current membership."""
        ...

    async def set_section_teacher(self, section_id: str, teacher_id: str | None) -> bool:
        """Assign a teacher only if none is assigned, or clear the teacher.

        Returns False when an assignment is rejected or the section is gone.
        """
        ...

    async def conditional_soft_delete_section(self, section_id: str) -> bool:
        """Soft-delete only if the membership is empty."""
        ...
