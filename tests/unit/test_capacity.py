# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for capacity checks and section selection."""

import pytest

from src.domains.enrollment.capacity import (
    available_seats,
    can_accommodate,
    is_full,
    is_valid_capacity,
    occupancy,
    occupancy_of,
)
from src.domains.enrollment.placement import PlacementPolicy, select_section
from src.domains.enrollment.store import SectionRecord
from src.utils.datetime import utc_now


def make_section(name: str, members: int, max_students: int, **kwargs) -> SectionRecord:
    return SectionRecord(
        id=f"section-{name}",
        class_id="class-1",
        organization_id="org-1",
        name=name,
        max_students=max_students,
        student_ids=tuple(f"{name}-student-{i}" for i in range(members)),
        **kwargs,
    )


class TestCapacity:
    """Tests for capacity helpers."""

    def test_occupancy_counts_members(self):
        assert occupancy(make_section("A", 3, 5)) == 3

    def test_can_accommodate_up_to_capacity(self):
        section = make_section("A", 1, 2)

        assert can_accommodate(section) is True
        assert can_accommodate(section, 2) is False
        assert can_accommodate(section, 0) is True

    def test_can_accommodate_rejects_negative_request(self):
        with pytest.raises(ValueError):
            can_accommodate(make_section("A", 0, 2), -1)

    def test_full_section(self):
        section = make_section("A", 2, 2)

        assert is_full(section) is True
        assert available_seats(section) == 0

    def test_available_seats_never_negative(self):
        assert available_seats(make_section("A", 4, 3)) == 0

    @pytest.mark.parametrize("value,valid", [(0, False), (1, True), (50, True), (51, False)])
    def test_capacity_bounds(self, value, valid):
        assert is_valid_capacity(value) is valid

    def test_occupancy_of_reports_numbers(self):
        result = occupancy_of(make_section("B", 1, 3))

        assert result.to_dict() == {
            "section_id": "section-B",
            "name": "B",
            "current_students": 1,
            "max_students": 3,
            "available_seats": 2,
        }


class TestSelectSection:
    """Tests for placement policies."""

    def test_first_fit_skips_full_section(self):
        sections = [make_section("A", 2, 2), make_section("B", 0, 2)]

        assert select_section(sections).name == "B"

    def test_load_balanced_prefers_most_seats(self):
        sections = [make_section("A", 1, 2), make_section("B", 0, 2)]

        assert select_section(sections, policy=PlacementPolicy.LOAD_BALANCED).name == "B"

    def test_load_balanced_tie_goes_to_earlier_name(self):
        sections = [make_section("B", 0, 2), make_section("A", 0, 2)]

        assert select_section(sections, policy=PlacementPolicy.LOAD_BALANCED).name == "A"

    def test_first_fit_orders_by_name(self):
        sections = [make_section("C", 0, 2), make_section("A", 1, 2)]

        assert select_section(sections).name == "A"

    def test_no_section_with_room(self):
        sections = [make_section("A", 2, 2), make_section("B", 2, 2)]

        assert select_section(sections) is None
        assert select_section([]) is None

    def test_preferred_section_wins_when_it_has_room(self):
        sections = [make_section("A", 0, 2), make_section("B", 1, 2)]

        assert select_section(sections, preferred_section_name="b").name == "B"

    def test_full_preferred_section_falls_back(self):
        sections = [make_section("A", 0, 2), make_section("B", 2, 2)]

        assert select_section(sections, preferred_section_name="B").name == "A"

    def test_closed_sections_are_ignored(self):
        sections = [
            make_section("A", 0, 2, is_active=False),
            make_section("B", 0, 2, deleted_at=utc_now()),
            make_section("C", 1, 2),
        ]

        assert select_section(sections).name == "C"

    def test_required_count_beyond_any_section(self):
        sections = [make_section("A", 0, 2), make_section("B", 1, 3)]

        assert select_section(sections, required_count=3) is None
        assert select_section(sections, required_count=2).name == "A"
