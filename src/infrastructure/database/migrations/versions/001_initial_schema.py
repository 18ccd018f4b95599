# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial roster schema.

Revision ID: 001_roster_initial
Revises: None
Create Date: 2025-01-15

Creates organizations, classes, sections and users. Sections carry their
membership as a varchar array bounded by max_students.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_roster_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Create roster tables."""
    # ==========================================================================
    # 1. organizations
    # ==========================================================================
    op.create_table(
        "organizations",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "default_section_capacity", sa.Integer, nullable=False, server_default="30"
        ),
        sa.Column("total_students", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_teachers", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_classes", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        *_timestamps(),
        sa.CheckConstraint(
            "default_section_capacity BETWEEN 1 AND 50",
            name="ck_organizations_default_section_capacity",
        ),
    )

    # ==========================================================================
    # 2. classes
    # ==========================================================================
    op.create_table(
        "classes",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column(
            "organization_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("grade", sa.Integer, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("total_students", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("grade BETWEEN 1 AND 12", name="ck_classes_grade"),
    )
    op.create_index("ix_classes_organization_id", "classes", ["organization_id"])
    op.create_index(
        "uq_classes_organization_grade_name_live",
        "classes",
        ["organization_id", "grade", "name"],
        unique=True,
        postgresql_where=sa.text("deleted_at IS NULL"),
    )

    # ==========================================================================
    # 3. users (section_id foreign key is added after sections exists)
    # ==========================================================================
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column(
            "organization_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("roll_number", sa.String(20), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("section_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        *_timestamps(),
        sa.CheckConstraint(
            "role IN ('super_admin', 'admin', 'teacher', 'student')",
            name="ck_users_role",
        ),
    )
    op.create_index("ix_users_organization_id", "users", ["organization_id"])
    op.create_index("ix_users_section_id", "users", ["section_id"])

    # ==========================================================================
    # 4. sections
    # ==========================================================================
    op.create_table(
        "sections",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column(
            "class_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("classes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "organization_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(1), nullable=False),
        sa.Column("max_students", sa.Integer, nullable=False, server_default="30"),
        sa.Column(
            "student_ids",
            postgresql.ARRAY(sa.String(36)),
            nullable=False,
            server_default="{}",
        ),
        sa.Column(
            "teacher_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("current_student_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("available_seats", sa.Integer, nullable=False, server_default="30"),
        sa.Column("stats_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        *_timestamps(),
        sa.CheckConstraint("max_students BETWEEN 1 AND 50", name="ck_sections_max_students"),
        sa.CheckConstraint(
            "cardinality(student_ids) <= max_students",
            name="ck_sections_membership_within_capacity",
        ),
        sa.CheckConstraint("name ~ '^[A-Z]$'", name="ck_sections_name_letter"),
    )
    op.create_index("ix_sections_class_id", "sections", ["class_id"])
    op.create_index("ix_sections_organization_id", "sections", ["organization_id"])
    op.create_index(
        "uq_sections_class_name_live",
        "sections",
        ["class_id", "name"],
        unique=True,
        postgresql_where=sa.text("deleted_at IS NULL"),
    )

    op.create_foreign_key(
        "fk_users_section_id",
        "users",
        "sections",
        ["section_id"],
        ["id"],
        ondelete="SET NULL",
    )


def downgrade() -> None:
    """Drop roster tables."""
    op.drop_constraint("fk_users_section_id", "users", type_="foreignkey")
    op.drop_table("sections")
    op.drop_table("users")
    op.drop_table("classes")
    op.drop_table("organizations")
