# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for roles and the capability table."""

import pytest

from src.domains.auth.roles import (
    ROLE_CAPABILITIES,
    Actor,
    Capability,
    Role,
    has_capability,
    parse_role,
)


class TestCapabilityTable:
    """Tests for has_capability."""

    def test_every_role_has_an_entry(self) -> None:
        assert set(ROLE_CAPABILITIES) == set(Role)

    def test_super_admin_has_everything(self) -> None:
        assert all(has_capability(Role.SUPER_ADMIN, c) for c in Capability)

    def test_admin_is_scoped_to_organization(self) -> None:
        assert has_capability(Role.ADMIN, Capability.ENROLL_STUDENT)
        assert has_capability(Role.ADMIN, Capability.RECONCILE_STATS)
        assert not has_capability(Role.ADMIN, Capability.CROSS_ORGANIZATION)

    @pytest.mark.parametrize(
        "capability",
        [
            Capability.ENROLL_STUDENT,
            Capability.TRANSFER_STUDENT,
            Capability.WITHDRAW_STUDENT,
            Capability.MANAGE_SECTIONS,
        ],
    )
    def test_teacher_cannot_change_rosters(self, capability: Capability) -> None:
        assert not has_capability(Role.TEACHER, capability)

    def test_teacher_can_view_capacity(self) -> None:
        assert has_capability(Role.TEACHER, Capability.VIEW_CAPACITY)

    def test_student_has_nothing(self) -> None:
        assert not any(has_capability(Role.STUDENT, c) for c in Capability)

    def test_unknown_role_has_nothing(self) -> None:
        assert not has_capability(None, Capability.VIEW_CAPACITY)


class TestParseRole:
    def test_known_role(self) -> None:
        assert parse_role("teacher") is Role.TEACHER

    @pytest.mark.parametrize("value", [None, "", "principal", "ADMIN"])
    def test_unknown_values(self, value) -> None:
        assert parse_role(value) is None


class TestActor:
    """Tests for organization scoping."""

    def test_same_organization(self) -> None:
        actor = Actor(user_id="u1", organization_id="org-1", role=Role.ADMIN)

        assert actor.can_act_for("org-1")
        assert not actor.can_act_for("org-2")

    def test_super_admin_crosses_organizations(self) -> None:
        actor = Actor(user_id="root", organization_id=None, role=Role.SUPER_ADMIN)

        assert actor.can_act_for("org-2")

    def test_admin_without_organization(self) -> None:
        actor = Actor(user_id="u1", organization_id=None, role=Role.ADMIN)

        assert not actor.can_act_for("org-1")
