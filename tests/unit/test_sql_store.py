# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the PostgreSQL enrollment store.

The session is mocked; these tests check the statements issued and how
row counts and driver errors are mapped.
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError

from src.domains.auth.roles import Role
from src.domains.enrollment.errors import (
    DuplicateStudentError,
    StoreError,
    StudentNotFoundError,
)
from src.domains.enrollment.sql_store import SqlEnrollmentStore
from src.domains.enrollment.store import NewStudent
from src.infrastructure.database import DatabaseError
from src.infrastructure.database.models import Section


class FakeDatabase:
    """Hands out one mocked session."""

    def __init__(self, session: MagicMock, error: Exception | None = None) -> None:
        self._session = session
        self._error = error

    @asynccontextmanager
    async def session(self):
        if self._error is not None:
            raise self._error
        yield self._session


def make_session(rowcount: int = 1) -> MagicMock:
    session = MagicMock()
    session.execute = AsyncMock(return_value=MagicMock(rowcount=rowcount))
    session.flush = AsyncMock()
    session.get = AsyncMock(return_value=None)
    session.delete = AsyncMock()
    return session


def compiled(session: MagicMock) -> str:
    stmt = session.execute.await_args.args[0]
    return str(stmt.compile(dialect=postgresql.dialect()))


class TestConditionalWrites:
    """Tests for the capacity-guarded UPDATE statements."""

    @pytest.mark.asyncio
    async def test_append_checks_capacity_in_the_row(self):
        session = make_session(rowcount=1)
        store = SqlEnrollmentStore(FakeDatabase(session))

        assert await store.conditional_append_member("sec-1", "stu-1") is True

        sql = compiled(session)
        assert "array_append" in sql
        assert "cardinality(sections.student_ids) < sections.max_students" in sql
        assert "sections.deleted_at IS NULL" in sql

    @pytest.mark.asyncio
    async def test_append_rejected(self):
        store = SqlEnrollmentStore(FakeDatabase(make_session(rowcount=0)))

        assert await store.conditional_append_member("sec-1", "stu-1") is False

    @pytest.mark.asyncio
    async def test_remove_member(self):
        session = make_session(rowcount=1)
        store = SqlEnrollmentStore(FakeDatabase(session))

        assert await store.remove_member("sec-1", "stu-1") is True
        assert "array_remove" in compiled(session)

    @pytest.mark.asyncio
    async def test_stale_member_removal_checks_student_record(self):
        session = make_session(rowcount=1)
        store = SqlEnrollmentStore(FakeDatabase(session))

        assert await store.remove_stale_member("sec-1", "stu-1") is True

        sql = compiled(session)
        assert "array_remove" in sql
        assert "NOT" in sql
        assert "EXISTS (SELECT" in sql
        assert "users.section_id =" in sql
        assert "users.deleted_at IS NULL" in sql

    @pytest.mark.asyncio
    async def test_current_member_is_kept(self):
        store = SqlEnrollmentStore(FakeDatabase(make_session(rowcount=0)))

        assert await store.remove_stale_member("sec-1", "stu-1") is False

    @pytest.mark.asyncio
    async def test_capacity_change_compares_membership(self):
        session = make_session(rowcount=0)
        store = SqlEnrollmentStore(FakeDatabase(session))

        assert await store.conditional_set_capacity("sec-1", 1) is False
        assert "cardinality(sections.student_ids) <=" in compiled(session)

    @pytest.mark.asyncio
    async def test_delete_requires_empty_section(self):
        session = make_session(rowcount=1)
        store = SqlEnrollmentStore(FakeDatabase(session))

        assert await store.conditional_soft_delete_section("sec-1") is True
        assert "cardinality(sections.student_ids) =" in compiled(session)

    @pytest.mark.asyncio
    async def test_teacher_assignment_requires_empty_slot(self):
        session = make_session(rowcount=1)
        store = SqlEnrollmentStore(FakeDatabase(session))

        assert await store.set_section_teacher("sec-1", "t1") is True
        assert "sections.teacher_id IS NULL" in compiled(session)

        assert await store.set_section_teacher("sec-1", None) is True
        assert "sections.teacher_id IS NULL" not in compiled(session)


class TestStudents:
    """Tests for student writes."""

    @pytest.mark.asyncio
    async def test_create_student(self):
        session = make_session()
        store = SqlEnrollmentStore(FakeDatabase(session))

        record = await store.create_student(
            NewStudent(
                organization_id="org-1",
                section_id="sec-1",
                name="Pupil",
                email="Pupil@Example.org",
            )
        )

        assert record.email == "pupil@example.org"
        assert record.role == Role.STUDENT
        session.add.assert_called_once()
        session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_duplicate_email(self):
        session = make_session()
        session.flush.side_effect = IntegrityError("INSERT", {}, Exception("unique"))
        store = SqlEnrollmentStore(FakeDatabase(session))

        with pytest.raises(DuplicateStudentError):
            await store.create_student(
                NewStudent(
                    organization_id="org-1",
                    section_id="sec-1",
                    name="Pupil",
                    email="pupil@example.org",
                )
            )

    @pytest.mark.asyncio
    async def test_repoint_missing_student(self):
        store = SqlEnrollmentStore(FakeDatabase(make_session(rowcount=0)))

        with pytest.raises(StudentNotFoundError):
            await store.set_student_section("missing", "sec-1")

    @pytest.mark.asyncio
    async def test_soft_delete_missing_student(self):
        store = SqlEnrollmentStore(FakeDatabase(make_session(rowcount=0)))

        with pytest.raises(StudentNotFoundError):
            await store.soft_delete_student("missing")


class TestReads:
    @pytest.mark.asyncio
    async def test_get_section_maps_row(self):
        session = make_session()
        row = Section(
            id="sec-1",
            class_id="cls-1",
            organization_id="org-1",
            name="A",
            max_students=2,
            student_ids=["s1"],
            current_student_count=1,
            available_seats=1,
            is_active=True,
        )
        session.execute.return_value = MagicMock(
            scalar_one_or_none=MagicMock(return_value=row)
        )
        store = SqlEnrollmentStore(FakeDatabase(session))

        section = await store.get_section("sec-1")

        assert section.student_ids == ("s1",)
        assert section.is_open is True

    @pytest.mark.asyncio
    async def test_missing_section(self):
        session = make_session()
        session.execute.return_value = MagicMock(
            scalar_one_or_none=MagicMock(return_value=None)
        )
        store = SqlEnrollmentStore(FakeDatabase(session))

        assert await store.get_section("missing") is None


class TestErrors:
    @pytest.mark.asyncio
    async def test_database_error_becomes_store_error(self):
        database = FakeDatabase(make_session(), error=DatabaseError("connection refused"))
        store = SqlEnrollmentStore(database)

        with pytest.raises(StoreError, match="connection refused"):
            await store.get_user("u1")
