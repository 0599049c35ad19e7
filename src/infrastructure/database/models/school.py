# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""School directory models.

Year groups and classes are reference entities found or created by name.
Students are keyed by admission number, parents by contact email, and
each parent/student pair is linked at most once.
"""

from datetime import date
from typing import Optional

from sqlalchemy import Date, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.infrastructure.database.models.base import Base, TimestampMixin, UUIDMixin


class YearGroup(Base, UUIDMixin, TimestampMixin):
    """A year group such as "Year 7"."""

    __tablename__ = "year_groups"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class SchoolClass(Base, UUIDMixin, TimestampMixin):
    """A registration class (form group) within a year group."""

    __tablename__ = "classes"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    year_group_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("year_groups.id", ondelete="RESTRICT"), nullable=False
    )

    year_group: Mapped[YearGroup] = relationship(lazy="raise")


class Student(Base, UUIDMixin, TimestampMixin):
    """A student record linked to a login identity.

    Attributes:
        admission_no: External MIS reference, the deduplication key.
        auth_user_id: Identifier of the login identity in the auth service.
        username: Deterministic login name derived from the student's name.
    """

    __tablename__ = "students"

    auth_user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    admission_no: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    gender: Mapped[Optional[str]] = mapped_column(String(1), nullable=True)
    dob: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    username: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    current_year_group_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("year_groups.id", ondelete="RESTRICT"), nullable=False
    )
    enrolled_year_group_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("year_groups.id", ondelete="RESTRICT"), nullable=False
    )
    class_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("classes.id", ondelete="RESTRICT"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)


class Parent(Base, UUIDMixin, TimestampMixin):
    """A parent or guardian keyed by contact email."""

    __tablename__ = "parents"

    auth_user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)


class ParentStudentRelationship(Base, UUIDMixin, TimestampMixin):
    """Link between a parent and a student."""

    __tablename__ = "parent_student_relationships"
    __table_args__ = (
        UniqueConstraint("parent_id", "student_id", name="uq_parent_student"),
    )

    parent_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("parents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
