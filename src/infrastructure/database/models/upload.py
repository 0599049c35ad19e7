# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Upload session models.

An UploadSession tracks the aggregate progress of one bulk CSV import;
SessionLog holds one append-only entry per processed row.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base, UUIDMixin
from src.utils.datetime import utc_now


class UploadStatus(str, Enum):
    """Upload session lifecycle states."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not UploadStatus.PROCESSING


class RowStatus(str, Enum):
    """Outcome recorded for a single row."""

    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


class UploadSession(Base, UUIDMixin):
    """Aggregate state of one bulk upload.

    Attributes:
        upload_id: Opaque public identifier used in URLs.
        user_id: Identifier of the user who started the upload.
        status: processing, completed or error.
        total_students: Number of parsed rows, fixed at creation.
        processed_students: Rows attempted so far.
        success_count: Rows that succeeded.
        error_count: Rows that failed.
        error_message: Reason the runner aborted, when status is error.
    """

    __tablename__ = "upload_sessions"

    upload_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20), default=UploadStatus.PROCESSING.value, nullable=False, index=True
    )
    total_students: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    processed_students: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    success_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False, index=True
    )

    @property
    def percentage(self) -> int:
        """Completion percentage, 0 when there is nothing to process."""
        if self.total_students <= 0:
            return 0
        # half rounds up
        return (200 * self.processed_students + self.total_students) // (2 * self.total_students)


class SessionLog(Base, UUIDMixin):
    """Immutable outcome of one processed row."""

    __tablename__ = "session_logs"
    __table_args__ = (
        UniqueConstraint("upload_id", "student_row_number", name="uq_session_logs_upload_row"),
    )

    session_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("upload_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    upload_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    student_row_number: Mapped[int] = mapped_column(Integer, nullable=False)
    student_name: Mapped[str] = mapped_column(String(255), nullable=False)
    student_mis_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    success_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    student_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    parent_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    processing_time_ms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    @property
    def message(self) -> str:
        """Display message for progress frames."""
        if self.status == RowStatus.SUCCESS.value:
            return self.success_message or "Success"
        return self.error_message or "Error"
