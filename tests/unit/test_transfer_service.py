# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for Transfer service."""

from unittest.mock import AsyncMock, patch

import pytest

from src.domains.auth.roles import Actor, Role
from src.domains.enrollment.errors import (
    AlreadyInSectionError,
    CrossOrganizationViolationError,
    InvalidStudentTypeError,
    NoCapacityError,
    SectionNotFoundError,
    StoreError,
    StudentNotFoundError,
)
from src.domains.enrollment.transfer import SOURCE_REMOVAL_ATTEMPTS
from src.infrastructure.events import EventTypes


class TestTransfer:
    """Tests for moving students between sections."""

    @pytest.mark.asyncio
    async def test_transfer_moves_student(self, transfer_service, event_bus, school, admin):
        student = school.store.add_student(school.section_a.id)

        result = await transfer_service.transfer(student.id, school.section_b.id, admin)

        assert result.student.section_id == school.section_b.id
        assert student.id not in result.source_section.student_ids
        assert student.id in result.target_section.student_ids
        assert result.source_section.current_student_count == 0
        assert result.target_section.current_student_count == 1

        [event] = event_bus.of_type(EventTypes.Enrollment.STUDENT_TRANSFERRED)
        assert event.payload["source_section_id"] == school.section_a.id
        assert event.payload["target_section_id"] == school.section_b.id

    @pytest.mark.asyncio
    async def test_transfer_to_full_section_keeps_student(self, transfer_service, school, admin):
        student = school.store.add_student(school.section_a.id)
        school.store.add_student(school.section_b.id)
        school.store.add_student(school.section_b.id)

        with pytest.raises(NoCapacityError) as exc_info:
            await transfer_service.transfer(student.id, school.section_b.id, admin)

        assert exc_info.value.occupancy[0].name == "B"
        source = await school.store.get_section(school.section_a.id)
        target = await school.store.get_section(school.section_b.id)
        assert student.id in source.student_ids
        assert student.id not in target.student_ids
        assert (await school.store.get_user(student.id)).section_id == school.section_a.id

    @pytest.mark.asyncio
    async def test_transfer_into_current_section(self, transfer_service, school, admin):
        student = school.store.add_student(school.section_a.id)

        with pytest.raises(AlreadyInSectionError):
            await transfer_service.transfer(student.id, school.section_a.id, admin)

    @pytest.mark.asyncio
    async def test_unknown_target(self, transfer_service, school, admin):
        student = school.store.add_student(school.section_a.id)

        with pytest.raises(SectionNotFoundError):
            await transfer_service.transfer(student.id, "missing", admin)

    @pytest.mark.asyncio
    async def test_unknown_student(self, transfer_service, school, admin):
        with pytest.raises(StudentNotFoundError):
            await transfer_service.transfer("missing", school.section_b.id, admin)

    @pytest.mark.asyncio
    async def test_non_student_cannot_be_transferred(self, transfer_service, school, admin):
        teacher = school.store.add_user(school.organization.id, Role.TEACHER, "Teacher")

        with pytest.raises(InvalidStudentTypeError):
            await transfer_service.transfer(teacher.id, school.section_b.id, admin)

    @pytest.mark.asyncio
    async def test_target_in_other_organization(
        self, transfer_service, school, make_school, super_admin
    ):
        other = await make_school()
        student = school.store.add_student(school.section_a.id)

        with pytest.raises(CrossOrganizationViolationError):
            await transfer_service.transfer(student.id, other.section_a.id, super_admin)

    @pytest.mark.asyncio
    async def test_actor_of_other_organization(self, transfer_service, school):
        student = school.store.add_student(school.section_a.id)
        outsider = Actor(user_id="u1", organization_id="other-org", role=Role.ADMIN)

        with pytest.raises(CrossOrganizationViolationError):
            await transfer_service.transfer(student.id, school.section_b.id, outsider)

    @pytest.mark.asyncio
    async def test_failed_repoint_undoes_target_membership(
        self, transfer_service, school, admin
    ):
        store = school.store
        student = store.add_student(school.section_a.id)

        with patch.object(
            store, "set_student_section", AsyncMock(side_effect=StoreError("down"))
        ):
            with pytest.raises(StoreError):
                await transfer_service.transfer(student.id, school.section_b.id, admin)

        target = await store.get_section(school.section_b.id)
        source = await store.get_section(school.section_a.id)
        assert target.student_ids == ()
        assert student.id in source.student_ids

    @pytest.mark.asyncio
    async def test_failed_source_removal_is_pruned_by_sweep(
        self, transfer_service, reconciler, school, admin
    ):
        store = school.store
        student = store.add_student(school.section_a.id)

        with patch.object(
            store, "remove_member", AsyncMock(side_effect=StoreError("down"))
        ) as remove_member:
            result = await transfer_service.transfer(student.id, school.section_b.id, admin)

        assert remove_member.await_count == SOURCE_REMOVAL_ATTEMPTS
        assert result.student.section_id == school.section_b.id
        assert student.id in result.target_section.student_ids
        assert student.id in (await store.get_section(school.section_a.id)).student_ids

        report = await reconciler.reconcile_all()

        source = await store.get_section(school.section_a.id)
        target = await store.get_section(school.section_b.id)
        assert report.stale_members == 1
        assert student.id not in source.student_ids
        assert source.current_student_count == 0
        assert source.available_seats == source.max_students
        assert student.id in target.student_ids
        assert target.current_student_count == 1

    @pytest.mark.asyncio
    async def test_transient_source_removal_failure_is_retried(
        self, transfer_service, school, admin
    ):
        store = school.store
        student = store.add_student(school.section_a.id)
        real_remove = store.remove_member
        calls = 0

        async def fail_once(section_id, student_id):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise StoreError("blip")
            return await real_remove(section_id, student_id)

        with patch.object(store, "remove_member", side_effect=fail_once):
            result = await transfer_service.transfer(student.id, school.section_b.id, admin)

        assert calls == 2
        assert student.id not in result.source_section.student_ids

    @pytest.mark.asyncio
    async def test_target_membership_restored_after_concurrent_prune(
        self, transfer_service, reconciler, school, admin
    ):
        store = school.store
        student = store.add_student(school.section_a.id)
        real_repoint = store.set_student_section

        async def sweep_then_repoint(student_id, section_id):
            # The student is in both sections and still names the source.
            await reconciler.reconcile_organization(school.organization.id)
            await real_repoint(student_id, section_id)

        with patch.object(store, "set_student_section", side_effect=sweep_then_repoint):
            result = await transfer_service.transfer(student.id, school.section_b.id, admin)

        assert student.id in result.target_section.student_ids
        assert student.id not in result.source_section.student_ids
        assert store.students_in_section(school.section_b.id)[0].id == student.id
