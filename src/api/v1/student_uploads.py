# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Bulk student upload API endpoints.

This module provides endpoints for importing students from a CSV file:
- POST /upload - Accept a CSV file and start background processing
- GET /stream/{upload_id} - Server-Sent Events progress stream
- GET /session/{upload_id} - Session status with every row outcome
- GET /sessions - The caller's upload sessions, newest first
- POST /create-student - Import one student row and wait for the outcome
- GET /admission/{admission_no} - Look up a student by admission number

Uploading and single-student import require the students.manage
permission; lookup accepts students.read as well. The progress stream
is public: browsers cannot attach an Authorization header to an
EventSource, and the upload id is only known to the uploader.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, Response, UploadFile, status
from fastapi.responses import StreamingResponse

from src.api.dependencies import (
    get_bulk_upload_service,
    get_progress_publisher,
    get_student_import_service,
    require_auth,
    require_manage_students,
    require_read_students,
)
from src.api.middleware.auth import CurrentUser
from src.api.middleware.rate_limit import limiter, upload_rate_limit
from src.domains.bulk_upload import (
    BulkUploadService,
    InvalidUploadError,
    StudentImportRejectedError,
    StudentImportService,
    StudentNotFoundError,
    UploadProgressPublisher,
    UploadSessionNotFoundError,
    UploadSessionStoreError,
    UploadTooLargeError,
)
from src.models.bulk_upload import (
    CreateStudentRequest,
    CreateStudentResponse,
    SessionDetailResponse,
    SessionListResponse,
    SessionStatusFilter,
    StudentLookupResponse,
    UploadStartResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.post(
    "/upload",
    response_model=UploadStartResponse,
    summary="Upload students CSV",
    description=(
        "Accept a CSV of students and start importing it in the background. "
        "Follow progress on the returned stream endpoint."
    ),
)
@limiter.limit(upload_rate_limit)
async def upload_students(
    request: Request,
    csv_file: Annotated[UploadFile | None, File(alias="csvFile")] = None,
    current_user: CurrentUser = Depends(require_manage_students),
    service: BulkUploadService = Depends(get_bulk_upload_service),
) -> UploadStartResponse:
    """Start a bulk student upload.

    Args:
        request: HTTP request (used by the rate limiter).
        csv_file: Uploaded CSV file in the ``csvFile`` form field.
        current_user: Authenticated user with students.manage.
        service: Bulk upload service.

    Returns:
        Upload id, row count and progress endpoints.

    Raises:
        HTTPException: 400 for a missing, mistyped or empty file, 413 for
            an oversized file, 500 if the session could not be created.
    """
    content = await csv_file.read() if csv_file is not None else None

    try:
        return await service.start_upload(
            user_id=current_user.id,
            filename=csv_file.filename if csv_file is not None else None,
            content_type=csv_file.content_type if csv_file is not None else None,
            content=content,
        )
    except UploadTooLargeError as e:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=e.message,
        )
    except InvalidUploadError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )
    except UploadSessionStoreError:
        logger.exception("Failed to start upload for user %s", current_user.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process CSV upload",
        )
    finally:
        if csv_file is not None:
            await csv_file.close()


@router.get(
    "/stream/{upload_id}",
    summary="Stream upload progress",
    description="Server-Sent Events stream of progress frames for one upload.",
    response_class=StreamingResponse,
)
async def stream_upload_progress(
    upload_id: str,
    request: Request,
    publisher: UploadProgressPublisher = Depends(get_progress_publisher),
) -> StreamingResponse:
    """Stream progress frames until the upload is terminal or the client leaves.

    Returns:
        StreamingResponse with SSE frames.
    """

    async def event_generator():
        async for event in publisher.stream(upload_id, is_disconnected=request.is_disconnected):
            yield event.to_sse()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get(
    "/session/{upload_id}",
    response_model=SessionDetailResponse,
    summary="Get upload session",
    description="Session counters and status with every row outcome in row order.",
)
async def get_upload_session(
    upload_id: str,
    current_user: CurrentUser = Depends(require_auth),
    service: BulkUploadService = Depends(get_bulk_upload_service),
) -> SessionDetailResponse:
    """Get one upload session with its logs.

    Raises:
        HTTPException: 404 if the session does not exist.
    """
    try:
        return await service.get_session_details(upload_id)
    except UploadSessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )
    except UploadSessionStoreError:
        logger.exception("Failed to get upload session %s", upload_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get session details",
        )


@router.get(
    "/sessions",
    response_model=SessionListResponse,
    summary="List upload sessions",
    description="The caller's upload sessions, newest first.",
)
async def list_upload_sessions(
    page: Annotated[int, Query(ge=1, description="Page number")] = 1,
    limit: Annotated[int, Query(ge=1, le=100, description="Page size")] = 10,
    status_filter: Annotated[
        SessionStatusFilter, Query(alias="status", description="Filter by status")
    ] = "all",
    current_user: CurrentUser = Depends(require_auth),
    service: BulkUploadService = Depends(get_bulk_upload_service),
) -> SessionListResponse:
    """List the caller's upload sessions with pagination."""
    try:
        return await service.list_sessions(
            user_id=current_user.id,
            page=page,
            limit=limit,
            status=status_filter,
        )
    except UploadSessionStoreError:
        logger.exception("Failed to list upload sessions for user %s", current_user.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get upload sessions",
        )


@router.post(
    "/create-student",
    response_model=CreateStudentResponse,
    summary="Import one student",
    description=(
        "Import a single student row synchronously. Returns 201 when the "
        "student was created and 200 when an existing student was updated."
    ),
)
async def create_student(
    body: CreateStudentRequest,
    response: Response,
    current_user: CurrentUser = Depends(require_manage_students),
    service: StudentImportService = Depends(get_student_import_service),
) -> CreateStudentResponse:
    """Import one student row and wait for the outcome.

    Raises:
        HTTPException: 400 if the row is rejected.
    """
    try:
        result = await service.import_student(body)
    except StudentImportRejectedError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )

    if result.student_action == "created":
        response.status_code = status.HTTP_201_CREATED
    return result


@router.get(
    "/admission/{admission_no}",
    response_model=StudentLookupResponse,
    summary="Get student by admission number",
)
async def get_student_by_admission_no(
    admission_no: str,
    current_user: CurrentUser = Depends(require_read_students),
    service: StudentImportService = Depends(get_student_import_service),
) -> StudentLookupResponse:
    """Look up a student with their year group and class names.

    Raises:
        HTTPException: 404 if no student has this admission number.
    """
    try:
        return await service.get_student(admission_no)
    except StudentNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Student not found",
        )
