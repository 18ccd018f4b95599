# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the in-memory enrollment store."""

import asyncio
from dataclasses import replace

import pytest

from src.domains.auth.roles import Role
from src.domains.enrollment.errors import (
    DuplicateClassError,
    DuplicateSectionError,
    DuplicateStudentError,
    StudentNotFoundError,
)
from src.domains.enrollment.store import NewStudent
from src.utils.datetime import utc_now


def new_student(school, email: str = "pupil@example.org") -> NewStudent:
    return NewStudent(
        organization_id=school.organization.id,
        section_id=school.section_a.id,
        name="Pupil",
        email=email,
    )


class TestConditionalAppend:
    """Tests for the capacity-guarded membership write."""

    @pytest.mark.asyncio
    async def test_append_until_full(self, school):
        store = school.store

        assert await store.conditional_append_member(school.section_a.id, "s1") is True
        assert await store.conditional_append_member(school.section_a.id, "s2") is True
        assert await store.conditional_append_member(school.section_a.id, "s3") is False

        section = await store.get_section(school.section_a.id)
        assert section.student_ids == ("s1", "s2")

    @pytest.mark.asyncio
    async def test_append_rejects_existing_member(self, school):
        store = school.store
        await store.conditional_append_member(school.section_a.id, "s1")

        assert await store.conditional_append_member(school.section_a.id, "s1") is False

    @pytest.mark.asyncio
    async def test_append_rejects_deleted_section(self, school):
        store = school.store
        assert await store.conditional_soft_delete_section(school.section_a.id) is True

        assert await store.conditional_append_member(school.section_a.id, "s1") is False
        assert await store.get_section(school.section_a.id) is None

    @pytest.mark.asyncio
    async def test_concurrent_appends_respect_capacity(self, school):
        store = school.store

        results = await asyncio.gather(
            *(store.conditional_append_member(school.section_a.id, f"s{i}") for i in range(10))
        )

        assert results.count(True) == 2
        section = await store.get_section(school.section_a.id)
        assert len(section.student_ids) == 2

    @pytest.mark.asyncio
    async def test_remove_member_is_idempotent(self, school):
        store = school.store
        await store.conditional_append_member(school.section_a.id, "s1")

        assert await store.remove_member(school.section_a.id, "s1") is True
        assert await store.remove_member(school.section_a.id, "s1") is False


class TestStudents:
    """Tests for student records."""

    @pytest.mark.asyncio
    async def test_create_student_lowercases_email(self, school):
        student = await school.store.create_student(new_student(school, "Pupil@Example.ORG"))

        assert student.email == "pupil@example.org"
        assert student.role == Role.STUDENT
        assert (await school.store.find_user_by_email("PUPIL@example.org")).id == student.id

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, school):
        await school.store.create_student(new_student(school))

        with pytest.raises(DuplicateStudentError):
            await school.store.create_student(new_student(school))

    @pytest.mark.asyncio
    async def test_soft_deleted_student_is_hidden(self, school):
        student = await school.store.create_student(new_student(school))

        await school.store.soft_delete_student(student.id)
        await school.store.soft_delete_student(student.id)

        assert await school.store.get_user(student.id) is None
        assert school.store.active_students() == []

    @pytest.mark.asyncio
    async def test_set_section_of_missing_student(self, school):
        with pytest.raises(StudentNotFoundError):
            await school.store.set_student_section("missing", school.section_b.id)

    @pytest.mark.asyncio
    async def test_delete_student_removes_record(self, school):
        student = await school.store.create_student(new_student(school))

        await school.store.delete_student(student.id)

        assert await school.store.get_user(student.id) is None
        assert await school.store.find_user_by_email(student.email) is None


class TestAdministration:
    """Tests for class and section administration writes."""

    @pytest.mark.asyncio
    async def test_duplicate_class_rejected(self, school):
        with pytest.raises(DuplicateClassError):
            await school.store.create_class(school.organization.id, 5, "Blue")

    @pytest.mark.asyncio
    async def test_duplicate_live_section_rejected(self, school):
        with pytest.raises(DuplicateSectionError):
            await school.store.create_section(
                school.class_.id, school.organization.id, "A", 10
            )

    @pytest.mark.asyncio
    async def test_deleted_section_name_can_be_reused(self, school):
        await school.store.conditional_soft_delete_section(school.section_a.id)

        section = await school.store.create_section(
            school.class_.id, school.organization.id, "A", 10
        )

        assert section.name == "A"

    @pytest.mark.asyncio
    async def test_capacity_cannot_drop_below_membership(self, school):
        store = school.store
        store.add_student(school.section_a.id)
        store.add_student(school.section_a.id)

        assert await store.conditional_set_capacity(school.section_a.id, 1) is False
        assert await store.conditional_set_capacity(school.section_a.id, 2) is True

    @pytest.mark.asyncio
    async def test_non_empty_section_cannot_be_deleted(self, school):
        school.store.add_student(school.section_a.id)

        assert await school.store.conditional_soft_delete_section(school.section_a.id) is False

    @pytest.mark.asyncio
    async def test_teacher_assignment_requires_empty_slot(self, school):
        store = school.store

        assert await store.set_section_teacher(school.section_a.id, "t1") is True
        assert await store.set_section_teacher(school.section_a.id, "t2") is False
        assert await store.set_section_teacher(school.section_a.id, None) is True
        assert (await store.get_section(school.section_a.id)).teacher_id is None

    @pytest.mark.asyncio
    async def test_seeding_a_full_section_fails(self, school):
        school.store.add_student(school.section_a.id)
        school.store.add_student(school.section_a.id)

        with pytest.raises(ValueError):
            school.store.add_student(school.section_a.id)

    @pytest.mark.asyncio
    async def test_deleted_class_name_can_be_reused(self, school):
        store = school.store
        store._classes[school.class_.id] = replace(school.class_, deleted_at=utc_now())

        class_ = await store.create_class(school.organization.id, 5, "Blue")

        assert class_.id != school.class_.id
        assert await store.get_class_with_sections(school.class_.id) is None


class TestStaleMembers:
    """Tests for pruning memberships the student record no longer names."""

    @pytest.mark.asyncio
    async def test_current_member_is_kept(self, school):
        student = school.store.add_student(school.section_a.id)

        assert await school.store.remove_stale_member(school.section_a.id, student.id) is False
        assert student.id in (await school.store.get_section(school.section_a.id)).student_ids

    @pytest.mark.asyncio
    async def test_member_naming_another_section_is_removed(self, school):
        store = school.store
        student = store.add_student(school.section_a.id)
        await store.set_student_section(student.id, school.section_b.id)

        assert await store.remove_stale_member(school.section_a.id, student.id) is True
        assert await store.remove_stale_member(school.section_a.id, student.id) is False
        assert (await store.get_section(school.section_a.id)).student_ids == ()

    @pytest.mark.asyncio
    async def test_unknown_member_is_removed(self, school):
        await school.store.conditional_append_member(school.section_a.id, "ghost")

        assert await school.store.remove_stale_member(school.section_a.id, "ghost") is True
