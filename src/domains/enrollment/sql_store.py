# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""PostgreSQL enrollment store using SQLAlchemy async.

Each call runs in its own short session and commits before returning.
Growing a section is one conditional UPDATE:

    UPDATE sections
       SET student_ids = array_append(student_ids, :student_id)
     WHERE id = :section_id
       AND deleted_at IS NULL AND is_active
       AND cardinality(student_ids) < max_students
       AND NOT (:student_id = ANY(student_ids))

so the capacity check uses the max_students stored in the row at the
moment of the write. A rowcount of zero means the write was rejected.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import String, any_, cast, exists, func, not_, select, update
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.domains.auth.roles import Role
from src.domains.enrollment.errors import (
    DuplicateClassError,
    DuplicateSectionError,
    DuplicateStudentError,
    StoreError,
    StudentNotFoundError,
)
from src.domains.enrollment.store import (
    ClassRecord,
    NewStudent,
    OrganizationRecord,
    SectionRecord,
    UserRecord,
)
from src.infrastructure.database.connection import DatabaseError, RosterDatabase
from src.infrastructure.database.models import Organization, SchoolClass, Section, User
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)

_MEMBER_ARRAY = ARRAY(String(36))


def _to_organization(row: Organization) -> OrganizationRecord:
    return OrganizationRecord(
        id=row.id,
        name=row.name,
        default_section_capacity=row.default_section_capacity,
        total_students=row.total_students,
        total_teachers=row.total_teachers,
        total_classes=row.total_classes,
        is_active=row.is_active,
    )


def _to_class(row: SchoolClass) -> ClassRecord:
    return ClassRecord(
        id=row.id,
        organization_id=row.organization_id,
        grade=row.grade,
        name=row.name,
        total_students=row.total_students,
        deleted_at=row.deleted_at,
    )


def _to_section(row: Section) -> SectionRecord:
    return SectionRecord(
        id=row.id,
        class_id=row.class_id,
        organization_id=row.organization_id,
        name=row.name,
        max_students=row.max_students,
        student_ids=tuple(row.student_ids or ()),
        teacher_id=row.teacher_id,
        current_student_count=row.current_student_count,
        available_seats=row.available_seats,
        stats_updated_at=row.stats_updated_at,
        is_active=row.is_active,
        deleted_at=row.deleted_at,
    )


def _to_user(row: User) -> UserRecord:
    return UserRecord(
        id=row.id,
        organization_id=row.organization_id,
        role=Role(row.role),
        name=row.name,
        email=row.email,
        section_id=row.section_id,
        roll_number=row.roll_number,
        password_hash=row.password_hash,
        is_active=row.is_active,
        deleted_at=row.deleted_at,
    )


class SqlEnrollmentStore:
    """EnrollmentStore backed by the roster PostgreSQL database.

    Attributes:
        _database: Connected roster database.
    """

    def __init__(self, database: RosterDatabase) -> None:
        self._database = database

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._database.session() as session:
                yield session
        except DatabaseError as e:
            logger.error("Roster store operation failed: %s", str(e))
            raise StoreError(str(e)) from e

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_organization(self, organization_id: str) -> OrganizationRecord | None:
        async with self._session() as session:
            result = await session.execute(
                select(Organization).where(
                    Organization.id == organization_id,
                    Organization.deleted_at.is_(None),
                )
            )
            row = result.scalar_one_or_none()
            return _to_organization(row) if row else None

    async def get_class_with_sections(
        self, class_id: str
    ) -> tuple[ClassRecord, list[SectionRecord]] | None:
        async with self._session() as session:
            result = await session.execute(
                select(SchoolClass).where(
                    SchoolClass.id == class_id,
                    SchoolClass.deleted_at.is_(None),
                )
            )
            class_row = result.scalar_one_or_none()
            if class_row is None:
                return None

            sections = await self._live_sections(session, class_id)
            return _to_class(class_row), sections

    async def get_section(self, section_id: str) -> SectionRecord | None:
        async with self._session() as session:
            result = await session.execute(
                select(Section).where(
                    Section.id == section_id,
                    Section.deleted_at.is_(None),
                )
            )
            row = result.scalar_one_or_none()
            return _to_section(row) if row else None

    async def get_user(self, user_id: str) -> UserRecord | None:
        async with self._session() as session:
            result = await session.execute(
                select(User).where(User.id == user_id, User.deleted_at.is_(None))
            )
            row = result.scalar_one_or_none()
            return _to_user(row) if row else None

    async def find_user_by_email(self, email: str) -> UserRecord | None:
        async with self._session() as session:
            result = await session.execute(
                select(User).where(func.lower(User.email) == email.lower())
            )
            row = result.scalar_one_or_none()
            return _to_user(row) if row else None

    async def list_class_sections(self, class_id: str) -> list[SectionRecord]:
        async with self._session() as session:
            return await self._live_sections(session, class_id)

    async def list_organization_classes(self, organization_id: str) -> list[ClassRecord]:
        async with self._session() as session:
            result = await session.execute(
                select(SchoolClass)
                .where(
                    SchoolClass.organization_id == organization_id,
                    SchoolClass.deleted_at.is_(None),
                )
                .order_by(SchoolClass.grade, SchoolClass.name)
            )
            return [_to_class(row) for row in result.scalars().all()]

    async def count_teachers(self, organization_id: str) -> int:
        async with self._session() as session:
            result = await session.execute(
                select(func.count())
                .select_from(User)
                .where(
                    User.organization_id == organization_id,
                    User.role == Role.TEACHER.value,
                    User.deleted_at.is_(None),
                )
            )
            return int(result.scalar_one())

    async def list_organization_ids(self) -> list[str]:
        async with self._session() as session:
            result = await session.execute(
                select(Organization.id).where(
                    Organization.is_active.is_(True),
                    Organization.deleted_at.is_(None),
                )
            )
            return [str(org_id) for org_id in result.scalars().all()]

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    async def conditional_append_member(self, section_id: str, student_id: str) -> bool:
        member = cast(student_id, String)
        stmt = (
            update(Section)
            .where(
                Section.id == section_id,
                Section.deleted_at.is_(None),
                Section.is_active.is_(True),
                func.cardinality(Section.student_ids) < Section.max_students,
                not_(member == any_(Section.student_ids)),
            )
            .values(
                student_ids=func.array_append(Section.student_ids, member, type_=_MEMBER_ARRAY)
            )
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return result.rowcount == 1

    async def remove_member(self, section_id: str, student_id: str) -> bool:
        member = cast(student_id, String)
        stmt = (
            update(Section)
            .where(
                Section.id == section_id,
                member == any_(Section.student_ids),
            )
            .values(
                student_ids=func.array_remove(Section.student_ids, member, type_=_MEMBER_ARRAY)
            )
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return result.rowcount == 1

    async def remove_stale_member(self, section_id: str, student_id: str) -> bool:
        member = cast(student_id, String)
        current = exists().where(
            User.id == student_id,
            User.deleted_at.is_(None),
            User.section_id == section_id,
        )
        stmt = (
            update(Section)
            .where(
                Section.id == section_id,
                member == any_(Section.student_ids),
                not_(current),
            )
            .values(
                student_ids=func.array_remove(Section.student_ids, member, type_=_MEMBER_ARRAY)
            )
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return result.rowcount == 1

    # ------------------------------------------------------------------
    # Students
    # ------------------------------------------------------------------

    async def create_student(self, fields: NewStudent) -> UserRecord:
        async with self._session() as session:
            row = User(
                organization_id=fields.organization_id,
                role=Role.STUDENT.value,
                name=fields.name,
                email=fields.email.lower(),
                roll_number=fields.roll_number,
                password_hash=fields.password_hash,
                section_id=fields.section_id,
            )
            session.add(row)
            try:
                await session.flush()
            except IntegrityError as e:
                raise DuplicateStudentError(
                    f"A user with email {fields.email} already exists"
                ) from e
            return _to_user(row)

    async def delete_student(self, student_id: str) -> None:
        async with self._session() as session:
            row = await session.get(User, student_id)
            if row is not None:
                await session.delete(row)

    async def set_student_section(self, student_id: str, section_id: str) -> None:
        async with self._session() as session:
            result = await session.execute(
                update(User)
                .where(User.id == student_id, User.deleted_at.is_(None))
                .values(section_id=section_id)
            )
            if result.rowcount == 0:
                raise StudentNotFoundError(f"Student {student_id} not found")

    async def soft_delete_student(self, student_id: str) -> None:
        async with self._session() as session:
            result = await session.execute(
                update(User)
                .where(User.id == student_id, User.deleted_at.is_(None))
                .values(deleted_at=utc_now(), is_active=False)
            )
            if result.rowcount == 0 and await session.get(User, student_id) is None:
                raise StudentNotFoundError(f"Student {student_id} not found")

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------

    async def set_section_counters(self, section_id: str, count: int, available: int) -> None:
        async with self._session() as session:
            await session.execute(
                update(Section)
                .where(Section.id == section_id)
                .values(
                    current_student_count=count,
                    available_seats=available,
                    stats_updated_at=utc_now(),
                )
            )

    async def set_class_counter(self, class_id: str, count: int) -> None:
        async with self._session() as session:
            await session.execute(
                update(SchoolClass)
                .where(SchoolClass.id == class_id)
                .values(total_students=count)
            )

    async def set_organization_counters(
        self, organization_id: str, students: int, teachers: int, classes: int
    ) -> None:
        async with self._session() as session:
            await session.execute(
                update(Organization)
                .where(Organization.id == organization_id)
                .values(
                    total_students=students,
                    total_teachers=teachers,
                    total_classes=classes,
                )
            )

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def create_class(self, organization_id: str, grade: int, name: str) -> ClassRecord:
        async with self._session() as session:
            row = SchoolClass(organization_id=organization_id, grade=grade, name=name)
            session.add(row)
            try:
                await session.flush()
            except IntegrityError as e:
                raise DuplicateClassError(
                    f"Class {grade}-{name} already exists in this organization"
                ) from e
            return _to_class(row)

    async def create_section(
        self,
        class_id: str,
        organization_id: str,
        name: str,
        max_students: int,
        teacher_id: str | None = None,
    ) -> SectionRecord:
        async with self._session() as session:
            row = Section(
                class_id=class_id,
                organization_id=organization_id,
                name=name,
                max_students=max_students,
                student_ids=[],
                teacher_id=teacher_id,
                current_student_count=0,
                available_seats=max_students,
            )
            session.add(row)
            try:
                await session.flush()
            except IntegrityError as e:
                raise DuplicateSectionError(
                    f"Section {name} already exists in this class"
                ) from e
            return _to_section(row)

    async def conditional_set_capacity(self, section_id: str, max_students: int) -> bool:
        async with self._session() as session:
            result = await session.execute(
                update(Section)
                .where(
                    Section.id == section_id,
                    Section.deleted_at.is_(None),
                    func.cardinality(Section.student_ids) <= max_students,
                )
                .values(max_students=max_students)
            )
            return result.rowcount == 1

    async def set_section_teacher(self, section_id: str, teacher_id: str | None) -> bool:
        stmt = update(Section).where(
            Section.id == section_id,
            Section.deleted_at.is_(None),
        )
        if teacher_id is not None:
            stmt = stmt.where(Section.teacher_id.is_(None))

        async with self._session() as session:
            result = await session.execute(stmt.values(teacher_id=teacher_id))
            return result.rowcount == 1

    async def conditional_soft_delete_section(self, section_id: str) -> bool:
        async with self._session() as session:
            result = await session.execute(
                update(Section)
                .where(
                    Section.id == section_id,
                    Section.deleted_at.is_(None),
                    func.cardinality(Section.student_ids) == 0,
                )
                .values(deleted_at=utc_now(), is_active=False)
            )
            return result.rowcount == 1

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _live_sections(self, session: AsyncSession, class_id: str) -> list[SectionRecord]:
        result = await session.execute(
            select(Section)
            .where(Section.class_id == class_id, Section.deleted_at.is_(None))
            .order_by(Section.name)
        )
        return [_to_section(row) for row in result.scalars().all()]
