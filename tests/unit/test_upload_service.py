# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the bulk upload ingress service."""

from unittest.mock import MagicMock

import pytest

from src.domains.bulk_upload.exceptions import (
    EmptyUploadError,
    InvalidUploadError,
    UploadSessionNotFoundError,
    UploadTooLargeError,
)
from src.domains.bulk_upload.service import BulkUploadService, is_csv_upload
from src.infrastructure.database.models import RowStatus


@pytest.fixture
def launcher() -> MagicMock:
    return MagicMock()


@pytest.fixture
def service(store, launcher) -> BulkUploadService:
    return BulkUploadService(store=store, launcher=launcher, max_file_bytes=1024)


class TestIsCsvUpload:
    """Tests for file type detection."""

    @pytest.mark.parametrize(
        "filename,content_type",
        [
            ("students.csv", "application/octet-stream"),
            ("STUDENTS.CSV", None),
            ("export", "text/csv"),
            ("export", "text/csv; charset=utf-8"),
        ],
    )
    def test_accepted(self, filename, content_type) -> None:
        assert is_csv_upload(filename, content_type) is True

    @pytest.mark.parametrize(
        "filename,content_type",
        [("students.xlsx", "application/vnd.ms-excel"), (None, None), ("notes.txt", "text/plain")],
    )
    def test_rejected(self, filename, content_type) -> None:
        assert is_csv_upload(filename, content_type) is False


class TestStartUpload:
    """Tests for BulkUploadService.start_upload."""

    @pytest.mark.asyncio
    async def test_creates_session_and_launches(self, service, store, launcher, csv_factory, sample_user_id) -> None:
        content = csv_factory(
            "1001,Ada,Lovelace,7A,Year 7,mum@example.com",
            "1002,Alan,Turing,8B,Year 8,dad@example.com",
        )

        response = await service.start_upload(sample_user_id, "students.csv", "text/csv", content)

        assert response.success is True
        assert response.total_rows == 2
        assert response.stream_endpoint == f"/api/v1/student-bulk/stream/{response.upload_id}"
        assert response.status_endpoint == f"/api/v1/student-bulk/session/{response.upload_id}"

        session = await store.get_session(response.upload_id)
        assert session.id == response.session_id
        assert session.user_id == sample_user_id
        assert session.total_students == 2
        assert session.status == "processing"

        launcher.run_in_background.assert_called_once()
        upload_id, rows = launcher.run_in_background.call_args.args
        assert upload_id == response.upload_id
        assert [row.mis_id for row in rows] == ["1001", "1002"]

    @pytest.mark.asyncio
    async def test_response_serialises_in_camel_case(self, service, csv_factory, sample_user_id) -> None:
        response = await service.start_upload(
            sample_user_id, "students.csv", "text/csv", csv_factory("1001,Ada,Lovelace,7A,Year 7,mum@example.com")
        )

        payload = response.model_dump(by_alias=True)

        assert set(payload) == {
            "success",
            "message",
            "uploadId",
            "totalRows",
            "sessionId",
            "streamEndpoint",
            "statusEndpoint",
        }

    @pytest.mark.asyncio
    async def test_missing_file(self, service, launcher, sample_user_id) -> None:
        with pytest.raises(InvalidUploadError, match="No CSV file uploaded"):
            await service.start_upload(sample_user_id, None, None, None)

        launcher.run_in_background.assert_not_called()

    @pytest.mark.asyncio
    async def test_wrong_type(self, service, sample_user_id) -> None:
        with pytest.raises(InvalidUploadError, match="Invalid file type"):
            await service.start_upload(sample_user_id, "students.xlsx", "application/vnd.ms-excel", b"x")

    @pytest.mark.asyncio
    async def test_too_large(self, service, sample_user_id) -> None:
        with pytest.raises(UploadTooLargeError):
            await service.start_upload(sample_user_id, "students.csv", "text/csv", b"x" * 2048)

    @pytest.mark.asyncio
    async def test_header_only_file_is_empty(self, service, store, csv_factory, sample_user_id) -> None:
        with pytest.raises(EmptyUploadError) as exc_info:
            await service.start_upload(sample_user_id, "students.csv", "text/csv", csv_factory())

        assert exc_info.value.message == "No data found in CSV file or file is empty."
        _, total = await store.list_sessions(sample_user_id)
        assert total == 0


class TestSessionQueries:
    """Tests for session detail and listing."""

    @pytest.mark.asyncio
    async def test_session_details_include_logs_in_row_order(self, service, store, sample_user_id) -> None:
        session = await store.create_session("upload-1", sample_user_id, 2)
        for row_number, ok in ((1, True), (2, False)):
            await store.record_row_outcome(
                session_id=session.id,
                upload_id="upload-1",
                row_number=row_number,
                student_name=f"Student {row_number}",
                student_mis_id=str(row_number),
                status=RowStatus.SUCCESS if ok else RowStatus.ERROR,
                processing_time_ms=3,
                success_message="Student created and parent created successfully" if ok else None,
                error_message=None if ok else "Missing required fields: Year",
            )

        details = await service.get_session_details("upload-1")

        assert details.success is True
        assert details.data.session.upload_id == "upload-1"
        assert details.data.session.processed_students == 2
        assert [log.student_row_number for log in details.data.logs] == [1, 2]
        assert details.data.logs[1].message == "Missing required fields: Year"

    @pytest.mark.asyncio
    async def test_session_details_not_found(self, service) -> None:
        with pytest.raises(UploadSessionNotFoundError):
            await service.get_session_details("missing")

    @pytest.mark.asyncio
    async def test_list_sessions_pagination(self, service, store, sample_user_id) -> None:
        for n in range(3):
            await store.create_session(f"upload-{n}", sample_user_id, 1)

        response = await service.list_sessions(sample_user_id, page=1, limit=2, status="all")

        assert len(response.data.sessions) == 2
        pagination = response.data.pagination
        assert pagination.total_sessions == 3
        assert pagination.total_pages == 2
        assert pagination.has_next_page is True
        assert pagination.has_prev_page is False
        assert pagination.model_dump(by_alias=True) == {
            "currentPage": 1,
            "totalPages": 2,
            "totalSessions": 3,
            "hasNextPage": True,
            "hasPrevPage": False,
            "limit": 2,
        }

    @pytest.mark.asyncio
    async def test_list_sessions_status_filter(self, service, store, sample_user_id) -> None:
        await store.create_session("upload-a", sample_user_id, 1)
        await store.create_session("upload-b", sample_user_id, 1)
        await store.complete_session("upload-b")

        response = await service.list_sessions(sample_user_id, status="completed")

        assert [s.upload_id for s in response.data.sessions] == ["upload-b"]
        assert response.data.pagination.total_pages == 1

    @pytest.mark.asyncio
    async def test_list_sessions_empty(self, service, sample_user_id) -> None:
        response = await service.list_sessions(sample_user_id)

        assert response.data.sessions == []
        assert response.data.pagination.total_pages == 0
        assert response.data.pagination.has_next_page is False
