# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""ORM models for the school portal database."""

from src.infrastructure.database.models.base import Base, TimestampMixin, UUIDMixin, new_uuid
from src.infrastructure.database.models.school import (
    Parent,
    ParentStudentRelationship,
    SchoolClass,
    Student,
    YearGroup,
)
from src.infrastructure.database.models.upload import (
    RowStatus,
    SessionLog,
    UploadSession,
    UploadStatus,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "new_uuid",
    "Parent",
    "ParentStudentRelationship",
    "SchoolClass",
    "Student",
    "YearGroup",
    "RowStatus",
    "SessionLog",
    "UploadSession",
    "UploadStatus",
]
