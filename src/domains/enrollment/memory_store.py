# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-process enrollment store.

Holds immutable records in dictionaries guarded by one asyncio.Lock. Each
call yields to the event loop before taking the lock, so concurrent tasks
interleave between a read and a later write exactly as they would against
a remote database. Conditional writes check and mutate under the lock.

Used for development (ENROLLMENT_STORAGE_BACKEND=memory) and the
concurrency tests. The add_* helpers seed data that would otherwise come
from other services.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from uuid import uuid4

from src.domains.auth.roles import Role
from src.domains.enrollment.errors import (
    DuplicateClassError,
    DuplicateSectionError,
    DuplicateStudentError,
    StudentNotFoundError,
)
from src.domains.enrollment.store import (
    ClassRecord,
    NewStudent,
    OrganizationRecord,
    SectionRecord,
    UserRecord,
)
from src.utils.datetime import utc_now


def _new_id() -> str:
    return str(uuid4())


class InMemoryEnrollmentStore:
    """EnrollmentStore kept in process memory."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._organizations: dict[str, OrganizationRecord] = {}
        self._classes: dict[str, ClassRecord] = {}
        self._sections: dict[str, SectionRecord] = {}
        self._users: dict[str, UserRecord] = {}

    # ------------------------------------------------------------------
    # Seeding helpers
    # ------------------------------------------------------------------

    def add_organization(
        self,
        name: str,
        default_section_capacity: int = 30,
        organization_id: str | None = None,
    ) -> OrganizationRecord:
        """Register an organization."""
        record = OrganizationRecord(
            id=organization_id or _new_id(),
            name=name,
            default_section_capacity=default_section_capacity,
        )
        self._organizations[record.id] = record
        return record

    def add_user(
        self,
        organization_id: str | None,
        role: Role,
        name: str,
        email: str | None = None,
        user_id: str | None = None,
    ) -> UserRecord:
        """Register a non-student user such as an admin or teacher."""
        record = UserRecord(
            id=user_id or _new_id(),
            organization_id=organization_id,
            role=role,
            name=name,
            email=(email or f"{_new_id()}@example.org").lower(),
        )
        self._users[record.id] = record
        return record

    def add_student(self, section_id: str, name: str | None = None) -> UserRecord:
        """Create a student already placed in a section.

        Raises:
            ValueError: If the section is full.
        """
        section = self._sections[section_id]
        if len(section.student_ids) >= section.max_students:
            raise ValueError(f"Section {section.name} is full")

        student_id = _new_id()
        record = UserRecord(
            id=student_id,
            organization_id=section.organization_id,
            role=Role.STUDENT,
            name=name or f"Student {student_id[:8]}",
            email=f"{student_id}@students.example.org",
            section_id=section_id,
        )
        self._users[record.id] = record
        self._sections[section_id] = replace(
            section, student_ids=section.student_ids + (student_id,)
        )
        return record

    def students_in_section(self, section_id: str) -> list[UserRecord]:
        """Active students whose section reference names the section."""
        return [
            u
            for u in self._users.values()
            if u.role == Role.STUDENT and u.deleted_at is None and u.section_id == section_id
        ]

    def active_students(self) -> list[UserRecord]:
        return [
            u for u in self._users.values() if u.role == Role.STUDENT and u.deleted_at is None
        ]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_organization(self, organization_id: str) -> OrganizationRecord | None:
        await asyncio.sleep(0)
        async with self._lock:
            return self._organizations.get(organization_id)

    async def get_class_with_sections(
        self, class_id: str
    ) -> tuple[ClassRecord, list[SectionRecord]] | None:
        await asyncio.sleep(0)
        async with self._lock:
            class_ = self._classes.get(class_id)
            if class_ is None or class_.deleted_at is not None:
                return None
            return class_, self._live_sections(class_id)

    async def get_section(self, section_id: str) -> SectionRecord | None:
        await asyncio.sleep(0)
        async with self._lock:
            section = self._sections.get(section_id)
            if section is None or section.deleted_at is not None:
                return None
            return section

    async def get_user(self, user_id: str) -> UserRecord | None:
        await asyncio.sleep(0)
        async with self._lock:
            user = self._users.get(user_id)
            if user is None or user.deleted_at is not None:
                return None
            return user

    async def find_user_by_email(self, email: str) -> UserRecord | None:
        await asyncio.sleep(0)
        async with self._lock:
            return self._find_email(email)

    async def list_class_sections(self, class_id: str) -> list[SectionRecord]:
        await asyncio.sleep(0)
        async with self._lock:
            return self._live_sections(class_id)

    async def list_organization_classes(self, organization_id: str) -> list[ClassRecord]:
        await asyncio.sleep(0)
        async with self._lock:
            return sorted(
                (
                    c
                    for c in self._classes.values()
                    if c.organization_id == organization_id and c.deleted_at is None
                ),
                key=lambda c: (c.grade, c.name),
            )

    async def count_teachers(self, organization_id: str) -> int:
        await asyncio.sleep(0)
        async with self._lock:
            return sum(
                1
                for u in self._users.values()
                if u.organization_id == organization_id
                and u.role == Role.TEACHER
                and u.deleted_at is None
            )

    async def list_organization_ids(self) -> list[str]:
        await asyncio.sleep(0)
        async with self._lock:
            return [o.id for o in self._organizations.values() if o.is_active]

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    async def conditional_append_member(self, section_id: str, student_id: str) -> bool:
        await asyncio.sleep(0)
        async with self._lock:
            section = self._sections.get(section_id)
            if section is None or not section.is_open:
                return False
            if student_id in section.student_ids:
                return False
            if len(section.student_ids) >= section.max_students:
                return False
            self._sections[section_id] = replace(
                section, student_ids=section.student_ids + (student_id,)
            )
            return True

    async def remove_member(self, section_id: str, student_id: str) -> bool:
        await asyncio.sleep(0)
        async with self._lock:
            section = self._sections.get(section_id)
            if section is None or student_id not in section.student_ids:
                return False
            self._sections[section_id] = replace(
                section,
                student_ids=tuple(s for s in section.student_ids if s != student_id),
            )
            return True

    async def remove_stale_member(self, section_id: str, student_id: str) -> bool:
        await asyncio.sleep(0)
        async with self._lock:
            section = self._sections.get(section_id)
            if section is None or student_id not in section.student_ids:
                return False
            user = self._users.get(student_id)
            if user is not None and user.deleted_at is None and user.section_id == section_id:
                return False
            self._sections[section_id] = replace(
                section,
                student_ids=tuple(s for s in section.student_ids if s != student_id),
            )
            return True

    # ------------------------------------------------------------------
    # Students
    # ------------------------------------------------------------------

    async def create_student(self, fields: NewStudent) -> UserRecord:
        await asyncio.sleep(0)
        async with self._lock:
            email = fields.email.lower()
            if self._find_email(email) is not None:
                raise DuplicateStudentError(f"A user with email {email} already exists")
            record = UserRecord(
                id=_new_id(),
                organization_id=fields.organization_id,
                role=Role.STUDENT,
                name=fields.name,
                email=email,
                section_id=fields.section_id,
                roll_number=fields.roll_number,
                password_hash=fields.password_hash,
            )
            self._users[record.id] = record
            return record

    async def delete_student(self, student_id: str) -> None:
        await asyncio.sleep(0)
        async with self._lock:
            self._users.pop(student_id, None)

    async def set_student_section(self, student_id: str, section_id: str) -> None:
        await asyncio.sleep(0)
        async with self._lock:
            user = self._users.get(student_id)
            if user is None or user.deleted_at is not None:
                raise StudentNotFoundError(f"Student {student_id} not found")
            self._users[student_id] = replace(user, section_id=section_id)

    async def soft_delete_student(self, student_id: str) -> None:
        await asyncio.sleep(0)
        async with self._lock:
            user = self._users.get(student_id)
            if user is None:
                raise StudentNotFoundError(f"Student {student_id} not found")
            if user.deleted_at is None:
                self._users[student_id] = replace(
                    user, deleted_at=utc_now(), is_active=False
                )

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------

    async def set_section_counters(self, section_id: str, count: int, available: int) -> None:
        await asyncio.sleep(0)
        async with self._lock:
            section = self._sections.get(section_id)
            if section is not None:
                self._sections[section_id] = replace(
                    section,
                    current_student_count=count,
                    available_seats=available,
                    stats_updated_at=utc_now(),
                )

    async def set_class_counter(self, class_id: str, count: int) -> None:
        await asyncio.sleep(0)
        async with self._lock:
            class_ = self._classes.get(class_id)
            if class_ is not None:
                self._classes[class_id] = replace(class_, total_students=count)

    async def set_organization_counters(
        self, organization_id: str, students: int, teachers: int, classes: int
    ) -> None:
        await asyncio.sleep(0)
        async with self._lock:
            organization = self._organizations.get(organization_id)
            if organization is not None:
                self._organizations[organization_id] = replace(
                    organization,
                    total_students=students,
                    total_teachers=teachers,
                    total_classes=classes,
                )

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def create_class(self, organization_id: str, grade: int, name: str) -> ClassRecord:
        await asyncio.sleep(0)
        async with self._lock:
            for existing in self._classes.values():
                if (
                    existing.deleted_at is None
                    and existing.organization_id == organization_id
                    and existing.grade == grade
                    and existing.name == name
                ):
                    raise DuplicateClassError(
                        f"Class {grade}-{name} already exists in this organization"
                    )
            record = ClassRecord(
                id=_new_id(),
                organization_id=organization_id,
                grade=grade,
                name=name,
            )
            self._classes[record.id] = record
            return record

    async def create_section(
        self,
        class_id: str,
        organization_id: str,
        name: str,
        max_students: int,
        teacher_id: str | None = None,
    ) -> SectionRecord:
        await asyncio.sleep(0)
        async with self._lock:
            if any(s.name == name for s in self._live_sections(class_id)):
                raise DuplicateSectionError(f"Section {name} already exists in this class")
            record = SectionRecord(
                id=_new_id(),
                class_id=class_id,
                organization_id=organization_id,
                name=name,
                max_students=max_students,
                teacher_id=teacher_id,
                available_seats=max_students,
            )
            self._sections[record.id] = record
            return record

    async def conditional_set_capacity(self, section_id: str, max_students: int) -> bool:
        await asyncio.sleep(0)
        async with self._lock:
            section = self._sections.get(section_id)
            if section is None or section.deleted_at is not None:
                return False
            if max_students < len(section.student_ids):
                return False
            self._sections[section_id] = replace(section, max_students=max_students)
            return True

    async def set_section_teacher(self, section_id: str, teacher_id: str | None) -> bool:
        await asyncio.sleep(0)
        async with self._lock:
            section = self._sections.get(section_id)
            if section is None or section.deleted_at is not None:
                return False
            if teacher_id is not None and section.teacher_id is not None:
                return False
            self._sections[section_id] = replace(section, teacher_id=teacher_id)
            return True

    async def conditional_soft_delete_section(self, section_id: str) -> bool:
        await asyncio.sleep(0)
        async with self._lock:
            section = self._sections.get(section_id)
            if section is None or section.deleted_at is not None:
                return False
            if section.student_ids:
                return False
            self._sections[section_id] = replace(
                section, deleted_at=utc_now(), is_active=False
            )
            return True

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _live_sections(self, class_id: str) -> list[SectionRecord]:
        return sorted(
            (
                s
                for s in self._sections.values()
                if s.class_id == class_id and s.deleted_at is None
            ),
            key=lambda s: s.name,
        )

    def _find_email(self, email: str) -> UserRecord | None:
        email = email.lower()
        for user in self._users.values():
            if user.email == email:
                return user
        return None
