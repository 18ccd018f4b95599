# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Organization model: the tenant boundary."""

from sqlalchemy import Boolean, CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import (
    Base,
    SoftDeleteMixin,
    TimestampMixin,
    uuid_pk,
)


class Organization(Base, TimestampMixin, SoftDeleteMixin):
    """Root tenant owning classes, sections and users.

    The total_* counters are written only by the stats reconciler.
    """

    __tablename__ = "organizations"
    __table_args__ = (
        CheckConstraint(
            "default_section_capacity BETWEEN 1 AND 50",
            name="ck_organizations_default_section_capacity",
        ),
    )

    id: Mapped[str] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    default_section_capacity: Mapped[int] = mapped_column(
        Integer, nullable=False, default=30, server_default="30"
    )
    total_students: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    total_teachers: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    total_classes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default="true"
    )
