# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Bulk student upload API models.

Progress frames, the upload start response and pagination metadata are
serialised with camelCase keys; session and log records keep the
snake_case column names.
"""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.infrastructure.database.models import SessionLog, UploadSession, UploadStatus

EventType = Literal["started", "progress", "completed", "error"]
SessionStatusFilter = Literal["all", "processing", "completed", "error"]


class CamelModel(BaseModel):
    """Base model serialised with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Progress stream
# ============================================================================


class RecentStudent(CamelModel):
    """One recent row outcome shown in a progress frame."""

    row_number: int
    student_name: str
    status: str
    message: str
    processing_time: int

    @classmethod
    def from_log(cls, log: SessionLog) -> "RecentStudent":
        return cls(
            row_number=log.student_row_number,
            student_name=log.student_name,
            status=log.status,
            message=log.message,
            processing_time=log.processing_time_ms,
        )


class ProgressData(CamelModel):
    """Aggregate counters carried by every progress frame."""

    upload_id: str
    status: str
    total_students: int = 0
    processed_students: int = 0
    success_count: int = 0
    error_count: int = 0
    percentage: int = 0
    recent_students: list[RecentStudent] | None = None


class ProgressEvent(BaseModel):
    """A frame of the progress stream."""

    type: EventType
    data: ProgressData

    @classmethod
    def started(cls, upload_id: str) -> "ProgressEvent":
        return cls(type="started", data=ProgressData(upload_id=upload_id, status="connecting"))

    @classmethod
    def failure(cls, upload_id: str, status: str) -> "ProgressEvent":
        """Terminal error frame that is not about a session's own state."""
        return cls(type="error", data=ProgressData(upload_id=upload_id, status=status))

    @classmethod
    def from_session(
        cls,
        session: UploadSession,
        recent_logs: list[SessionLog],
    ) -> "ProgressEvent":
        """Build the frame for a sampled session.

        A processing session yields a progress frame; a terminal one yields
        the final completed or error frame, with percentage forced to 100
        on completion.
        """
        percentage = session.percentage
        event_type: EventType = "progress"
        if session.status == UploadStatus.COMPLETED.value:
            event_type = "completed"
            percentage = 100
        elif session.status == UploadStatus.ERROR.value:
            event_type = "error"

        return cls(
            type=event_type,
            data=ProgressData(
                upload_id=session.upload_id,
                status=session.status,
                total_students=session.total_students,
                processed_students=session.processed_students,
                success_count=session.success_count,
                error_count=session.error_count,
                percentage=percentage,
                recent_students=[RecentStudent.from_log(log) for log in recent_logs],
            ),
        )

    @property
    def is_terminal(self) -> bool:
        return self.type in ("completed", "error")

    def to_sse(self) -> str:
        """Encode as a Server-Sent Events data frame."""
        return f"data: {self.model_dump_json(by_alias=True, exclude_none=True)}\n\n"


# ============================================================================
# Upload start
# ============================================================================


class UploadStartResponse(CamelModel):
    """Response returned as soon as an upload has been accepted."""

    success: bool = True
    message: str = "Upload started successfully. Connect to the stream endpoint for progress updates."
    upload_id: str
    total_rows: int
    session_id: str
    stream_endpoint: str
    status_endpoint: str


# ============================================================================
# Session status and listing
# ============================================================================


class SessionSummary(BaseModel):
    """Aggregate state of one upload session."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    upload_id: str
    status: str
    total_students: int
    processed_students: int
    success_count: int
    error_count: int
    error_message: str | None = None
    started_at: datetime
    completed_at: datetime | None = None
    created_at: datetime


class SessionLogResponse(BaseModel):
    """One row's recorded outcome."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_row_number: int
    student_name: str
    student_mis_id: str | None = None
    status: str
    message: str | None = None
    student_id: str | None = None
    parent_id: str | None = None
    processing_time_ms: int
    created_at: datetime

    @classmethod
    def from_log(cls, log: SessionLog) -> "SessionLogResponse":
        return cls(
            id=log.id,
            student_row_number=log.student_row_number,
            student_name=log.student_name,
            student_mis_id=log.student_mis_id,
            status=log.status,
            message=log.success_message or log.error_message,
            student_id=log.student_id,
            parent_id=log.parent_id,
            processing_time_ms=log.processing_time_ms,
            created_at=log.created_at,
        )


class SessionDetailData(BaseModel):
    session: SessionSummary
    logs: list[SessionLogResponse]


class SessionDetailResponse(BaseModel):
    """Session status with its complete row-ordered log."""

    success: bool = True
    data: SessionDetailData


class PaginationMeta(CamelModel):
    """Pagination metadata for session listings."""

    current_page: int
    total_pages: int
    total_sessions: int
    has_next_page: bool
    has_prev_page: bool
    limit: int = Field(ge=1)

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationMeta":
        total_pages = (total + limit - 1) // limit
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_sessions=total,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
            limit=limit,
        )


class SessionListData(BaseModel):
    sessions: list[SessionSummary]
    pagination: PaginationMeta


class SessionListResponse(BaseModel):
    """A page of the caller's upload sessions."""

    success: bool = True
    data: SessionListData


# ============================================================================
# Single student import and lookup
# ============================================================================


class CreateStudentRequest(CamelModel):
    """One student row submitted as JSON.

    Fields mirror the CSV columns. Missing values are reported by row
    validation, the same way a bad CSV row is.
    """

    mis_id: str = ""
    forename: str = ""
    legal_surname: str = ""
    reg: str = ""
    year: str = ""
    primary_email: str = ""
    gender: str = ""
    dob: str = ""


class CreateStudentResponse(CamelModel):
    """Entities a single imported row resolved to."""

    success: bool = True
    message: str
    student_id: str
    parent_id: str
    student_action: Literal["created", "updated"]
    parent_action: Literal["created", "updated"]
    relationship_id: str | None = None


class StudentRecord(BaseModel):
    """A student with the names of its year group and class."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    admission_no: str
    first_name: str
    last_name: str
    gender: str | None = None
    dob: date | None = None
    username: str
    email: str
    status: str
    current_year_group_id: str
    enrolled_year_group_id: str
    class_id: str
    year_group_name: str | None = None
    class_name: str | None = None
    created_at: datetime
    updated_at: datetime


class StudentLookupResponse(BaseModel):
    success: bool = True
    data: StudentRecord
