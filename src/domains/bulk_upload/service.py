# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Bulk upload service.

Accepts a CSV upload, records its session and hands the rows to a
background launcher. Also answers session status and listing queries.

The caller gets its response as soon as the session exists; row
processing happens afterwards and is observed through the progress
stream or the status endpoint.
"""

import logging
from uuid import uuid4

from src.domains.bulk_upload.csv_parser import parse_student_csv
from src.domains.bulk_upload.exceptions import (
    EmptyUploadError,
    InvalidUploadError,
    UploadSessionNotFoundError,
    UploadTooLargeError,
)
from src.domains.bulk_upload.launcher import BackgroundLauncher
from src.domains.bulk_upload.session_store import UploadSessionStore
from src.models.bulk_upload import (
    PaginationMeta,
    SessionDetailData,
    SessionDetailResponse,
    SessionListData,
    SessionListResponse,
    SessionLogResponse,
    SessionSummary,
    UploadStartResponse,
)

logger = logging.getLogger(__name__)

CSV_CONTENT_TYPE = "text/csv"


def is_csv_upload(filename: str | None, content_type: str | None) -> bool:
    """A file is accepted when its MIME type is text/csv or its name ends in .csv."""
    if content_type and content_type.split(";")[0].strip().lower() == CSV_CONTENT_TYPE:
        return True
    return bool(filename) and filename.lower().endswith(".csv")


class BulkUploadService:
    """Ingress and query operations for bulk student uploads.

    Attributes:
        store: Session store.
        launcher: Starts background processing.
        max_file_bytes: Largest accepted upload.
        api_prefix: Path prefix used to build stream and status links.
    """

    def __init__(
        self,
        store: UploadSessionStore,
        launcher: BackgroundLauncher,
        max_file_bytes: int = 5 * 1024 * 1024,
        api_prefix: str = "/api/v1/student-bulk",
    ) -> None:
        self.store = store
        self.launcher = launcher
        self.max_file_bytes = max_file_bytes
        self.api_prefix = api_prefix.rstrip("/")

    async def start_upload(
        self,
        user_id: str,
        filename: str | None,
        content_type: str | None,
        content: bytes | None,
    ) -> UploadStartResponse:
        """Validate and parse a CSV file, create its session and start processing.

        Args:
            user_id: Uploading user.
            filename: Client-supplied file name.
            content_type: Client-supplied MIME type.
            content: Raw file bytes, or None when no file was sent.

        Returns:
            Upload id, row count and the endpoints to follow progress.

        Raises:
            InvalidUploadError: If no file was sent, the type is wrong, the
                file is too large, unreadable, or has no data rows.
            UploadSessionStoreError: If the session could not be created.
        """
        if content is None:
            raise InvalidUploadError("No CSV file uploaded. Please upload a CSV file.")

        if not is_csv_upload(filename, content_type):
            raise InvalidUploadError("Invalid file type. Please upload a CSV file.")

        if len(content) > self.max_file_bytes:
            raise UploadTooLargeError(len(content), self.max_file_bytes)

        rows = parse_student_csv(content)
        if not rows:
            raise EmptyUploadError()

        upload_id = str(uuid4())
        session = await self.store.create_session(upload_id, user_id, len(rows))

        self.launcher.run_in_background(upload_id, rows)
        logger.info(
            "Upload accepted: upload_id=%s, user=%s, rows=%d, file=%s",
            upload_id,
            user_id,
            len(rows),
            filename,
        )

        return UploadStartResponse(
            upload_id=upload_id,
            total_rows=len(rows),
            session_id=session.id,
            stream_endpoint=f"{self.api_prefix}/stream/{upload_id}",
            status_endpoint=f"{self.api_prefix}/session/{upload_id}",
        )

    async def get_session_details(self, upload_id: str) -> SessionDetailResponse:
        """Session aggregate and every row log, in row order.

        Raises:
            UploadSessionNotFoundError: If the upload id is unknown.
        """
        session = await self.store.get_session(upload_id)
        if session is None:
            raise UploadSessionNotFoundError(upload_id)

        logs = await self.store.get_all_logs(upload_id)
        return SessionDetailResponse(
            data=SessionDetailData(
                session=SessionSummary.model_validate(session),
                logs=[SessionLogResponse.from_log(log) for log in logs],
            )
        )

    async def list_sessions(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 10,
        status: str = "all",
    ) -> SessionListResponse:
        """A page of the user's sessions, newest first.

        Args:
            user_id: Owner of the sessions.
            page: 1-based page number.
            limit: Page size.
            status: Status filter; ``all`` disables filtering.
        """
        sessions, total = await self.store.list_sessions(
            user_id,
            page=page,
            limit=limit,
            status=None if status == "all" else status,
        )
        return SessionListResponse(
            data=SessionListData(
                sessions=[SessionSummary.model_validate(s) for s in sessions],
                pagination=PaginationMeta.build(page, limit, total),
            )
        )
