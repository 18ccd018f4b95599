# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Capacity model.

Pure functions over an already-fetched section snapshot. Occupancy is the
size of the membership set, never the cached counter.
"""

from dataclasses import dataclass
from typing import Any

from src.domains.enrollment.store import SectionRecord

MIN_SECTION_CAPACITY = 1
MAX_SECTION_CAPACITY = 50


def occupancy(section: SectionRecord) -> int:
    return len(section.student_ids)


def can_accommodate(section: SectionRecord, requested_count: int = 1) -> bool:
    """Check whether ``requested_count`` more members fit in the section.

    Raises:
        ValueError: If requested_count is negative.
    """
    if requested_count < 0:
        raise ValueError("requested_count must not be negative")
    return occupancy(section) + requested_count <= section.max_students


def available_seats(section: SectionRecord) -> int:
    return max(0, section.max_students - occupancy(section))


def is_full(section: SectionRecord) -> bool:
    return available_seats(section) == 0


def is_valid_capacity(max_students: int) -> bool:
    return MIN_SECTION_CAPACITY <= max_students <= MAX_SECTION_CAPACITY


@dataclass(frozen=True)
class SectionOccupancy:
    """Occupancy numbers reported with capacity errors."""

    section_id: str
    name: str
    current_students: int
    max_students: int

    @property
    def available_seats(self) -> int:
        return max(0, self.max_students - self.current_students)

    def to_dict(self) -> dict[str, Any]:
        return {
            "section_id": self.section_id,
            "name": self.name,
            "current_students": self.current_students,
            "max_students": self.max_students,
            "available_seats": self.available_seats,
        }


def occupancy_of(section: SectionRecord) -> SectionOccupancy:
    return SectionOccupancy(
        section_id=section.id,
        name=section.name,
        current_students=occupancy(section),
        max_students=section.max_students,
    )
