# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy models for the roster database."""

from src.infrastructure.database.models.base import Base, SoftDeleteMixin, TimestampMixin
from src.infrastructure.database.models.organization import Organization
from src.infrastructure.database.models.school import SchoolClass, Section
from src.infrastructure.database.models.user import User

__all__ = [
    "Base",
    "TimestampMixin",
    "SoftDeleteMixin",
    "Organization",
    "SchoolClass",
    "Section",
    "User",
]
