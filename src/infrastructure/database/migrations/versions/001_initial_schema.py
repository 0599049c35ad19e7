# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial schema: school directory and upload sessions.

Revision ID: 001_initial_schema
Revises:
Create Date: 2025-01-03
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create directory and upload session tables."""

    op.create_table(
        "year_groups",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("name", name="uq_year_groups_name"),
    )

    op.create_table(
        "classes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column(
            "year_group_id",
            sa.String(36),
            sa.ForeignKey("year_groups.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        *_timestamps(),
        sa.UniqueConstraint("name", name="uq_classes_name"),
    )

    op.create_table(
        "students",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("auth_user_id", sa.String(64), nullable=True),
        sa.Column("admission_no", sa.String(50), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("gender", sa.String(1), nullable=True),
        sa.Column("dob", sa.Date, nullable=True),
        sa.Column("username", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column(
            "current_year_group_id",
            sa.String(36),
            sa.ForeignKey("year_groups.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "enrolled_year_group_id",
            sa.String(36),
            sa.ForeignKey("year_groups.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "class_id",
            sa.String(36),
            sa.ForeignKey("classes.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("status", sa.String(20), server_default="active", nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("admission_no", name="uq_students_admission_no"),
    )

    op.create_table(
        "parents",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("auth_user_id", sa.String(64), nullable=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), server_default="active", nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("email", name="uq_parents_email"),
    )

    op.create_table(
        "parent_student_relationships",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "parent_id",
            sa.String(36),
            sa.ForeignKey("parents.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "student_id",
            sa.String(36),
            sa.ForeignKey("students.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *_timestamps(),
        sa.UniqueConstraint("parent_id", "student_id", name="uq_parent_student"),
    )
    op.create_index(
        "ix_parent_student_relationships_parent_id",
        "parent_student_relationships",
        ["parent_id"],
    )
    op.create_index(
        "ix_parent_student_relationships_student_id",
        "parent_student_relationships",
        ["student_id"],
    )

    op.create_table(
        "upload_sessions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("upload_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("status", sa.String(20), server_default="processing", nullable=False),
        sa.Column("total_students", sa.Integer, server_default="0", nullable=False),
        sa.Column("processed_students", sa.Integer, server_default="0", nullable=False),
        sa.Column("success_count", sa.Integer, server_default="0", nullable=False),
        sa.Column("error_count", sa.Integer, server_default="0", nullable=False),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column(
            "started_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.UniqueConstraint("upload_id", name="uq_upload_sessions_upload_id"),
    )
    op.create_index("ix_upload_sessions_user_id", "upload_sessions", ["user_id"])
    op.create_index("ix_upload_sessions_status", "upload_sessions", ["status"])
    op.create_index("ix_upload_sessions_created_at", "upload_sessions", ["created_at"])

    op.create_table(
        "session_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "session_id",
            sa.String(36),
            sa.ForeignKey("upload_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("upload_id", sa.String(36), nullable=False),
        sa.Column("student_row_number", sa.Integer, nullable=False),
        sa.Column("student_name", sa.String(255), nullable=False),
        sa.Column("student_mis_id", sa.String(50), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("success_message", sa.Text, nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("student_id", sa.String(36), nullable=True),
        sa.Column("parent_id", sa.String(36), nullable=True),
        sa.Column("processing_time_ms", sa.Integer, server_default="0", nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.UniqueConstraint(
            "upload_id", "student_row_number", name="uq_session_logs_upload_row"
        ),
    )
    op.create_index("ix_session_logs_session_id", "session_logs", ["session_id"])
    op.create_index("ix_session_logs_upload_id", "session_logs", ["upload_id"])


def downgrade() -> None:
    """Drop all tables created by this revision."""
    op.drop_table("session_logs")
    op.drop_table("upload_sessions")
    op.drop_table("parent_student_relationships")
    op.drop_table("parents")
    op.drop_table("students")
    op.drop_table("classes")
    op.drop_table("year_groups")
