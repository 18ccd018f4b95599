# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Roles and the capability table.

Every user carries exactly one Role. What a role may do is decided in one
place, ROLE_CAPABILITIES, which the API consults once per request before
any domain service is invoked.

Example:
    >>> has_capability(Role.ADMIN, Capability.ENROLL_STUDENT)
    True
    >>> has_capability(Role.TEACHER, Capability.ENROLL_STUDENT)
    False
"""

from dataclasses import dataclass
from enum import StrEnum


class Role(StrEnum):
    """Closed set of user roles."""

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class Capability(StrEnum):
    """Operations gated at the API boundary."""

    MANAGE_CLASSES = "classes.manage"
    MANAGE_SECTIONS = "sections.manage"
    VIEW_CAPACITY = "capacity.view"
    ENROLL_STUDENT = "students.enroll"
    TRANSFER_STUDENT = "students.transfer"
    WITHDRAW_STUDENT = "students.withdraw"
    RECONCILE_STATS = "stats.reconcile"
    CROSS_ORGANIZATION = "organizations.any"


_ADMIN_CAPABILITIES = frozenset(
    {
        Capability.MANAGE_CLASSES,
        Capability.MANAGE_SECTIONS,
        Capability.VIEW_CAPACITY,
        Capability.ENROLL_STUDENT,
        Capability.TRANSFER_STUDENT,
        Capability.WITHDRAW_STUDENT,
        Capability.RECONCILE_STATS,
    }
)

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.SUPER_ADMIN: frozenset(Capability),
    Role.ADMIN: _ADMIN_CAPABILITIES,
    Role.TEACHER: frozenset({Capability.VIEW_CAPACITY}),
    Role.STUDENT: frozenset(),
}


def parse_role(value: str | None) -> Role | None:
    """Parse a role claim, returning None for unknown values."""
    if value is None:
        return None
    try:
        return Role(value)
    except ValueError:
        return None


def has_capability(role: Role | None, capability: Capability) -> bool:
    """Check whether a role grants a capability.

    Args:
        role: Caller role, or None for an unrecognized caller.
        capability: Capability required by the operation.

    Returns:
        True if the role's entry in ROLE_CAPABILITIES contains the capability.
    """
    if role is None:
        return False
    return capability in ROLE_CAPABILITIES[role]


@dataclass(frozen=True)
class Actor:
    """The caller on whose behalf a domain operation runs."""

    user_id: str
    organization_id: str | None
    role: Role

    def can_act_for(self, organization_id: str) -> bool:
        """Whether the actor may touch data of the given organization."""
        if has_capability(self.role, Capability.CROSS_ORGANIZATION):
            return True
        return self.organization_id is not None and self.organization_id == organization_id
