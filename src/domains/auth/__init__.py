# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Authentication and authorization domain.

Identity is owned by an external provider. This package decodes the
caller's token, defines the closed set of roles with their capabilities,
and hashes the initial passwords generated for new students.

Exports:
    Role: Closed enumeration of user roles.
    Capability: Operations gated at the API boundary.
    ROLE_CAPABILITIES: The single role to capability table.
    JWTManager: Caller token validation.
    PasswordHasher: bcrypt password hashing.
"""

from src.domains.auth.jwt import JWTManager
from src.domains.auth.password import PasswordHasher, generate_password
from src.domains.auth.roles import (
    ROLE_CAPABILITIES,
    Actor,
    Capability,
    Role,
    has_capability,
    parse_role,
)

__all__ = [
    "Actor",
    "Role",
    "Capability",
    "ROLE_CAPABILITIES",
    "has_capability",
    "parse_role",
    "JWTManager",
    "PasswordHasher",
    "generate_password",
]
