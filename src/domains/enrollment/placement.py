# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Placement selector.

Chooses a section of one class for new members. Works on sections the
caller already fetched and never performs I/O.
"""

from enum import StrEnum
from typing import Iterable

from src.domains.enrollment.capacity import available_seats, can_accommodate
from src.domains.enrollment.store import SectionRecord


class PlacementPolicy(StrEnum):
    """Rule used to pick a section when the caller names none."""

    FIRST_FIT = "first_fit"
    LOAD_BALANCED = "load_balanced"


def select_section(
    sections: Iterable[SectionRecord],
    required_count: int = 1,
    policy: PlacementPolicy = PlacementPolicy.FIRST_FIT,
    preferred_section_name: str | None = None,
) -> SectionRecord | None:
    """Select a section with room for ``required_count`` members.

    Only active, non-deleted sections are considered, in name order. A
    preferred section that has room wins outright. Otherwise FIRST_FIT
    returns the first section with room and LOAD_BALANCED the one with
    the most available seats, ties going to the earlier name.

    Args:
        sections: Sections of a single class.
        required_count: Number of members to place.
        policy: Placement policy.
        preferred_section_name: Section letter requested by the caller.

    Returns:
        The chosen section, or None when no section has room.
    """
    candidates = sorted(
        (s for s in sections if s.is_open and can_accommodate(s, required_count)),
        key=lambda s: s.name,
    )
    if not candidates:
        return None

    if preferred_section_name:
        preferred = preferred_section_name.strip().upper()
        for section in candidates:
            if section.name == preferred:
                return section

    if policy == PlacementPolicy.LOAD_BALANCED:
        # max() keeps the first of equal maxima, which is the earliest name
        return max(candidates, key=available_seats)

    return candidates[0]
