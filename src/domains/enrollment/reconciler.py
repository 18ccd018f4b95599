# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Stats reconciler.

The only writer of the cached occupancy counters. Section counters are
recomputed from membership, class totals from the fresh section counts,
and organization totals from the class totals. A counter that already
holds the computed value is not rewritten, so a second pass with no
intervening writes changes nothing.

Organization-wide passes also prune stale memberships: member ids whose
student record is gone or names another section, as left behind when a
transfer could not leave its source. They then report differences between
a cached value and the recomputed one as drift and heal them in the same
pass. verify_class
only reports. reconcile() runs right after a membership write, whose own
change is expected, and does not report drift.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from src.domains.enrollment.capacity import available_seats, occupancy
from src.domains.enrollment.errors import (
    ClassNotFoundError,
    EnrollmentServiceError,
    OrganizationNotFoundError,
    SectionNotFoundError,
    StatsDriftDetectedError,
)
from src.domains.enrollment.store import ClassRecord, EnrollmentStore, SectionRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DriftEntry:
    """A cached counter that disagreed with its recomputed value."""

    scope: str
    entity_id: str
    counter: str
    cached: int
    actual: int

    @property
    def delta(self) -> int:
        return self.actual - self.cached

    def to_dict(self) -> dict[str, Any]:
        return {
            "scope": self.scope,
            "entity_id": self.entity_id,
            "counter": self.counter,
            "cached": self.cached,
            "actual": self.actual,
        }


@dataclass
class ReconciliationReport:
    """What a reconciliation pass looked at and what it found."""

    sections: int = 0
    classes: int = 0
    organizations: int = 0
    stale_members: int = 0
    drift: list[DriftEntry] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)

    @property
    def has_drift(self) -> bool:
        return bool(self.drift)

    def merge(self, other: ReconciliationReport) -> None:
        self.sections += other.sections
        self.classes += other.classes
        self.organizations += other.organizations
        self.stale_members += other.stale_members
        self.drift.extend(other.drift)
        self.failures.extend(other.failures)


class StatsReconciler:
    """Recomputes section, class and organization counters.

    Attributes:
        _store: Enrollment store.
        _drift_threshold: Minimum absolute difference reported as drift.
    """

    def __init__(self, store: EnrollmentStore, drift_threshold: int = 1) -> None:
        self._store = store
        self._drift_threshold = drift_threshold

    async def reconcile(self, section_id: str) -> ReconciliationReport:
        """Reconcile the section, its class and its organization.

        Every section of the owning class is recomputed so that the class
        total is summed over fresh section counts.

        Raises:
            SectionNotFoundError: If the section is absent or deleted.
        """
        section = await self._store.get_section(section_id)
        if section is None:
            raise SectionNotFoundError(f"Section {section_id} not found")
        return await self.reconcile_class(section.class_id)

    async def reconcile_class(self, class_id: str) -> ReconciliationReport:
        """Reconcile a class's sections, the class and its organization.

        Raises:
            ClassNotFoundError: If the class is absent or deleted.
        """
        loaded = await self._store.get_class_with_sections(class_id)
        if loaded is None:
            raise ClassNotFoundError(f"Class {class_id} not found")
        class_, sections = loaded

        report = await self._reconcile_class_counters(class_, sections, detect_drift=False)
        report.merge(
            await self._reconcile_organization_counters(
                class_.organization_id, detect_drift=False
            )
        )
        return report

    async def reconcile_organization(self, organization_id: str) -> ReconciliationReport:
        """Reconcile every class of an organization, then the organization.

        Raises:
            OrganizationNotFoundError: If the organization does not exist.
        """
        if await self._store.get_organization(organization_id) is None:
            raise OrganizationNotFoundError(f"Organization {organization_id} not found")

        report = ReconciliationReport()
        for class_ in await self._store.list_organization_classes(organization_id):
            sections = await self._store.list_class_sections(class_.id)
            pruned = await self._prune_stale_members(sections)
            if pruned:
                sections = await self._store.list_class_sections(class_.id)
            class_report = await self._reconcile_class_counters(
                class_, sections, detect_drift=True
            )
            class_report.stale_members = pruned
            report.merge(class_report)

        report.merge(
            await self._reconcile_organization_counters(organization_id, detect_drift=True)
        )
        return report

    async def reconcile_all(self) -> ReconciliationReport:
        """Reconcile every organization.

        A failure in one organization is recorded and logged; the sweep
        continues with the next one.
        """
        report = ReconciliationReport()
        for organization_id in await self._store.list_organization_ids():
            try:
                report.merge(await self.reconcile_organization(organization_id))
            except EnrollmentServiceError as e:
                logger.error(
                    "Reconciliation failed for organization %s: %s",
                    organization_id,
                    str(e),
                )
                report.failures.append(organization_id)

        logger.info(
            "Reconciliation sweep: organizations=%d, classes=%d, sections=%d, "
            "stale_members=%d, drift=%d",
            report.organizations,
            report.classes,
            report.sections,
            report.stale_members,
            len(report.drift),
        )
        return report

    async def verify_class(self, class_id: str) -> ReconciliationReport:
        """Audit a class's counters without writing.

        Returns:
            Report with no drift.

        Raises:
            ClassNotFoundError: If the class is absent or deleted.
            StatsDriftDetectedError: If any cached counter is off.
        """
        loaded = await self._store.get_class_with_sections(class_id)
        if loaded is None:
            raise ClassNotFoundError(f"Class {class_id} not found")
        class_, sections = loaded

        report = ReconciliationReport(sections=len(sections), classes=1)
        for section in sections:
            report.drift.extend(self._section_drift(section))

        actual_total = sum(occupancy(s) for s in sections)
        report.drift.extend(
            self._drift("class", class_.id, "total_students", class_.total_students, actual_total)
        )

        if report.has_drift:
            raise StatsDriftDetectedError(
                f"Cached counters of class {class_.grade}-{class_.name} are out of date",
                report.drift,
            )
        return report

    async def _reconcile_class_counters(
        self,
        class_: ClassRecord,
        sections: list[SectionRecord],
        detect_drift: bool,
    ) -> ReconciliationReport:
        report = ReconciliationReport(sections=len(sections), classes=1)

        for section in sections:
            if detect_drift:
                report.drift.extend(self._section_drift(section))
            count = occupancy(section)
            seats = available_seats(section)
            if count != section.current_student_count or seats != section.available_seats:
                await self._store.set_section_counters(section.id, count, seats)

        total = sum(occupancy(s) for s in sections)
        if detect_drift:
            report.drift.extend(
                self._drift("class", class_.id, "total_students", class_.total_students, total)
            )
        if total != class_.total_students:
            await self._store.set_class_counter(class_.id, total)

        return report

    async def _reconcile_organization_counters(
        self,
        organization_id: str,
        detect_drift: bool,
    ) -> ReconciliationReport:
        organization = await self._store.get_organization(organization_id)
        if organization is None:
            raise OrganizationNotFoundError(f"Organization {organization_id} not found")

        classes = await self._store.list_organization_classes(organization_id)
        students = sum(c.total_students for c in classes)
        teachers = await self._store.count_teachers(organization_id)
        computed = (students, teachers, len(classes))
        cached = (
            organization.total_students,
            organization.total_teachers,
            organization.total_classes,
        )

        report = ReconciliationReport(organizations=1)
        if detect_drift:
            for counter, cached_value, actual in zip(
                ("total_students", "total_teachers", "total_classes"), cached, computed
            ):
                report.drift.extend(
                    self._drift("organization", organization_id, counter, cached_value, actual)
                )

        if computed != cached:
            await self._store.set_organization_counters(organization_id, *computed)
        return report

    async def _prune_stale_members(self, sections: list[SectionRecord]) -> int:
        pruned = 0
        for section in sections:
            for student_id in section.student_ids:
                student = await self._store.get_user(student_id)
                if student is not None and student.section_id == section.id:
                    continue
                # The store re-checks the student record at write time.
                if await self._store.remove_stale_member(section.id, student_id):
                    pruned += 1
                    logger.warning(
                        "Pruned stale membership: student=%s, section=%s",
                        student_id,
                        section.id,
                    )
        return pruned

    def _section_drift(self, section: SectionRecord) -> list[DriftEntry]:
        return [
            *self._drift(
                "section",
                section.id,
                "current_student_count",
                section.current_student_count,
                occupancy(section),
            ),
            *self._drift(
                "section",
                section.id,
                "available_seats",
                section.available_seats,
                available_seats(section),
            ),
        ]

    def _drift(
        self, scope: str, entity_id: str, counter: str, cached: int, actual: int
    ) -> list[DriftEntry]:
        if abs(actual - cached) < self._drift_threshold:
            return []

        logger.warning(
            "stats_drift_detected: %s %s %s cached=%d actual=%d",
            scope,
            entity_id,
            counter,
            cached,
            actual,
        )
        return [DriftEntry(scope, entity_id, counter, cached, actual)]
