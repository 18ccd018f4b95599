# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Transfer service for moving a student between sections.

The move is add-first: the student is appended to the target with a
capacity-checked conditional write, then pointed at the target, and only
then removed from the source. A student is therefore never outside every
section. Between the first and last step the student may be counted in
both sections; the reconciliation that follows corrects the counters.

Removal from the source is retried a few times. If it still fails the
transfer stands, and the organization-wide reconciliation prunes the
stale source membership.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from src.domains.auth.roles import Actor, Role
from src.domains.enrollment.capacity import can_accommodate, occupancy_of
from src.domains.enrollment.errors import (
    AlreadyInSectionError,
    CrossOrganizationViolationError,
    EnrollmentServiceError,
    InvalidStudentTypeError,
    NoCapacityError,
    SectionNotFoundError,
    StoreError,
    StudentNotFoundError,
)
from src.domains.enrollment.reconciler import StatsReconciler
from src.domains.enrollment.store import EnrollmentStore, SectionRecord, UserRecord
from src.infrastructure.events.bus import EventBus
from src.infrastructure.events.types import EventTypes

logger = logging.getLogger(__name__)

SOURCE_REMOVAL_ATTEMPTS = 3


@dataclass(frozen=True)
class TransferResult:
    student: UserRecord
    source_section: SectionRecord | None
    target_section: SectionRecord


class TransferService:
    """Moves students between sections of the same organization.

    Attributes:
        _store: Enrollment store.
        _reconciler: Stats reconciler.
        _event_bus: Bus for lifecycle events.
    """

    def __init__(
        self,
        store: EnrollmentStore,
        reconciler: StatsReconciler,
        event_bus: EventBus,
    ) -> None:
        self._store = store
        self._reconciler = reconciler
        self._event_bus = event_bus

    async def transfer(
        self,
        student_id: str,
        target_section_id: str,
        actor: Actor,
    ) -> TransferResult:
        """Move a student to another section.

        Args:
            student_id: Student identifier.
            target_section_id: Section the student should join.
            actor: Caller performing the transfer.

        Returns:
            The updated student and both sections after reconciliation.

        Raises:
            StudentNotFoundError: If student not found.
            InvalidStudentTypeError: If the user is not a student.
            SectionNotFoundError: If the target section is absent or deleted.
            AlreadyInSectionError: If the student is already in the target.
            CrossOrganizationViolationError: If the target or the student is
                outside the allowed organization.
            NoCapacityError: If the target has no free seat. Nothing is
                written in that case.
        """
        student = await self._get_student(student_id)
        if student.organization_id is None or not actor.can_act_for(student.organization_id):
            raise CrossOrganizationViolationError(
                f"Student {student_id} belongs to another organization"
            )

        target = await self._store.get_section(target_section_id)
        if target is None:
            raise SectionNotFoundError(f"Section {target_section_id} not found")

        if student.section_id == target.id:
            raise AlreadyInSectionError(
                f"Student is already in section {target.name}",
                occupancy=[occupancy_of(target)],
            )

        if target.organization_id != student.organization_id:
            raise CrossOrganizationViolationError(
                f"Section {target_section_id} belongs to another organization"
            )

        if not target.is_open or not can_accommodate(target, 1):
            raise NoCapacityError(
                f"Section {target.name} has no free seat",
                occupancy=[occupancy_of(target)],
            )

        if not await self._store.conditional_append_member(target.id, student.id):
            fresh = await self._store.get_section(target.id) or target
            raise NoCapacityError(
                f"Section {target.name} has no free seat",
                occupancy=[occupancy_of(fresh)],
            )

        repointed = False
        try:
            await self._store.set_student_section(student.id, target.id)
            repointed = True
        finally:
            if not repointed:
                await self._undo_target_append(target.id, student.id)

        await self._ensure_target_membership(target, student.id)

        source_id = student.section_id
        if source_id is not None:
            await self._leave_source(source_id, student.id)

        logger.info(
            "Transferred student: student=%s, from=%s, to=%s, by=%s",
            student.id,
            source_id,
            target.id,
            actor.user_id,
        )

        for section_id in self._reconcile_targets(source_id, target.id):
            await self._reconcile_quietly(section_id)

        await self._event_bus.publish(
            EventTypes.Enrollment.STUDENT_TRANSFERRED,
            {
                "student_id": student.id,
                "source_section_id": source_id,
                "target_section_id": target.id,
            },
            organization_id=student.organization_id,
        )

        source = await self._store.get_section(source_id) if source_id else None
        return TransferResult(
            student=await self._store.get_user(student.id) or student,
            source_section=source,
            target_section=await self._store.get_section(target.id) or target,
        )

    async def _get_student(self, student_id: str) -> UserRecord:
        user = await self._store.get_user(student_id)
        if user is None:
            raise StudentNotFoundError(f"Student {student_id} not found")
        if user.role != Role.STUDENT:
            raise InvalidStudentTypeError(f"User {student_id} is not a student")
        return user

    async def _undo_target_append(self, section_id: str, student_id: str) -> None:
        try:
            await self._store.remove_member(section_id, student_id)
        except EnrollmentServiceError:
            logger.exception(
                "Failed to undo membership of student %s in section %s",
                student_id,
                section_id,
            )

    async def _ensure_target_membership(self, target: SectionRecord, student_id: str) -> None:
        # A sweep running between the append and the re-point sees a member
        # whose record still names the source, and prunes it.
        fresh = await self._store.get_section(target.id)
        if fresh is not None and student_id in fresh.student_ids:
            return
        if not await self._store.conditional_append_member(target.id, student_id):
            logger.error(
                "Student %s lost its membership in target section %s",
                student_id,
                target.id,
            )

    async def _leave_source(self, source_id: str, student_id: str) -> None:
        for attempt in range(1, SOURCE_REMOVAL_ATTEMPTS + 1):
            try:
                await self._store.remove_member(source_id, student_id)
                return
            except StoreError as e:
                logger.warning(
                    "Removing student %s from source section %s failed (attempt %d/%d): %s",
                    student_id,
                    source_id,
                    attempt,
                    SOURCE_REMOVAL_ATTEMPTS,
                    str(e),
                )

        logger.error(
            "Transfer left student %s in source section %s membership; "
            "the next reconciliation sweep prunes it",
            student_id,
            source_id,
        )

    @staticmethod
    def _reconcile_targets(source_id: str | None, target_id: str) -> list[str]:
        return [target_id] if source_id is None else [source_id, target_id]

    async def _reconcile_quietly(self, section_id: str) -> None:
        try:
            await self._reconciler.reconcile(section_id)
        except EnrollmentServiceError as e:
            logger.warning(
                "Stats reconciliation after transfer failed for section %s: %s",
                section_id,
                str(e),
            )
