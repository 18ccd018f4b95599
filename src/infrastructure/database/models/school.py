# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class and section models.

A section's membership lives in its student_ids array. The array is only
grown by a single conditional UPDATE that checks cardinality against
max_students in the same statement, and the table carries a CHECK
constraint for the same bound.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import (
    Base,
    SoftDeleteMixin,
    TimestampMixin,
    uuid_pk,
)


class SchoolClass(Base, TimestampMixin, SoftDeleteMixin):
    """Grade-level grouping of sections within an organization."""

    __tablename__ = "classes"
    __table_args__ = (
        Index(
            "uq_classes_organization_grade_name_live",
            "organization_id",
            "grade",
            "name",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
        ),
        CheckConstraint("grade BETWEEN 1 AND 12", name="ck_classes_grade"),
    )

    id: Mapped[str] = uuid_pk()
    organization_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    grade: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    total_students: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )


class Section(Base, TimestampMixin, SoftDeleteMixin):
    """Capacity-bounded enrollment unit of a class."""

    __tablename__ = "sections"
    __table_args__ = (
        CheckConstraint("max_students BETWEEN 1 AND 50", name="ck_sections_max_students"),
        CheckConstraint(
            "cardinality(student_ids) <= max_students",
            name="ck_sections_membership_within_capacity",
        ),
        CheckConstraint("name ~ '^[A-Z]$'", name="ck_sections_name_letter"),
        Index(
            "uq_sections_class_name_live",
            "class_id",
            "name",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
        ),
    )

    id: Mapped[str] = uuid_pk()
    class_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("classes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    organization_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(1), nullable=False)
    max_students: Mapped[int] = mapped_column(
        Integer, nullable=False, default=30, server_default="30"
    )
    student_ids: Mapped[list[str]] = mapped_column(
        ARRAY(String(36)),
        nullable=False,
        default=list,
        server_default="{}",
    )
    teacher_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="SET NULL", use_alter=True),
        nullable=True,
    )
    current_student_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    available_seats: Mapped[int] = mapped_column(
        Integer, nullable=False, default=30, server_default="30"
    )
    stats_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default="true"
    )
