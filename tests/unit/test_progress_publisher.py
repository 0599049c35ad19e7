# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the upload progress publisher."""

import json
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from src.domains.bulk_upload.exceptions import UploadSessionStoreError
from src.domains.bulk_upload.progress import UploadProgressPublisher
from src.infrastructure.database.models import RowStatus
from src.models.bulk_upload import ProgressEvent


async def collect(publisher: UploadProgressPublisher, upload_id: str, **kwargs) -> list[ProgressEvent]:
    return [event async for event in publisher.stream(upload_id, **kwargs)]


async def record(store, session, row_number: int, ok: bool = True) -> None:
    await store.record_row_outcome(
        session_id=session.id,
        upload_id=session.upload_id,
        row_number=row_number,
        student_name=f"Student {row_number}",
        student_mis_id=None,
        status=RowStatus.SUCCESS if ok else RowStatus.ERROR,
        processing_time_ms=12,
        success_message="Student created and parent created successfully" if ok else None,
        error_message=None if ok else "Invalid email format: x",
    )


@pytest.fixture
def publisher(store) -> UploadProgressPublisher:
    return UploadProgressPublisher(store=store, poll_interval=0, recent_log_window=5)


class TestUploadProgressPublisher:
    """Tests for UploadProgressPublisher.stream."""

    @pytest.mark.asyncio
    async def test_unknown_upload_sends_not_found(self, publisher) -> None:
        events = await collect(publisher, "missing")

        assert [e.type for e in events] == ["started", "error"]
        assert events[0].data.status == "connecting"
        assert events[1].data.status == "not_found"
        assert events[1].data.processed_students == 0
        assert events[1].data.total_students == 0

    @pytest.mark.asyncio
    async def test_already_completed_session(self, publisher, store, sample_user_id) -> None:
        session = await store.create_session(str(uuid4()), sample_user_id, 2)
        await record(store, session, 1)
        await record(store, session, 2, ok=False)
        await store.complete_session(session.upload_id)

        events = await collect(publisher, session.upload_id)

        assert [e.type for e in events] == ["started", "completed"]
        final = events[-1].data
        assert final.status == "completed"
        assert final.percentage == 100
        assert final.success_count == 1
        assert final.error_count == 1
        assert [s.row_number for s in final.recent_students] == [2, 1]
        assert final.recent_students[0].message == "Invalid email format: x"
        assert final.recent_students[1].message == "Student created and parent created successfully"

    @pytest.mark.asyncio
    async def test_completed_frame_forces_full_percentage(self, publisher, store, sample_user_id) -> None:
        session = await store.create_session(str(uuid4()), sample_user_id, 4)
        await record(store, session, 1)
        await store.complete_session(session.upload_id)

        events = await collect(publisher, session.upload_id)

        assert events[-1].data.percentage == 100
        assert events[-1].data.processed_students == 1

    @pytest.mark.asyncio
    async def test_progress_frames_until_terminal(self, publisher, store, sample_user_id) -> None:
        session = await store.create_session(str(uuid4()), sample_user_id, 2)
        stream = publisher.stream(session.upload_id)

        started = await anext(stream)
        await record(store, session, 1)
        progress = await anext(stream)
        await record(store, session, 2)
        await store.complete_session(session.upload_id)
        final = await anext(stream)

        assert started.type == "started"
        assert progress.type == "progress"
        assert progress.data.processed_students == 1
        assert progress.data.percentage == 50
        assert final.type == "completed"
        with pytest.raises(StopAsyncIteration):
            await anext(stream)

    @pytest.mark.asyncio
    async def test_error_session_ends_with_error_frame(self, publisher, store, sample_user_id) -> None:
        session = await store.create_session(str(uuid4()), sample_user_id, 3)
        await record(store, session, 1)
        await store.mark_session_error(session.upload_id, "storage failure")

        events = await collect(publisher, session.upload_id)

        assert events[-1].type == "error"
        assert events[-1].data.status == "error"
        assert events[-1].data.processed_students == 1
        assert events[-1].data.percentage == 33

    @pytest.mark.asyncio
    async def test_polling_failure_sends_polling_error(self) -> None:
        store = AsyncMock()
        store.get_session.side_effect = UploadSessionStoreError("Failed to get upload session")
        publisher = UploadProgressPublisher(store=store, poll_interval=0)

        events = await collect(publisher, "any")

        assert [e.type for e in events] == ["started", "error"]
        assert events[1].data.status == "polling_error"
        assert events[1].data.processed_students == 0

    @pytest.mark.asyncio
    async def test_connection_failure_sends_polling_error(self) -> None:
        store = AsyncMock()
        store.get_session.side_effect = ConnectionRefusedError("db down")
        publisher = UploadProgressPublisher(store=store, poll_interval=0)

        events = await collect(publisher, "any")

        assert [e.type for e in events] == ["started", "error"]
        assert events[1].data.status == "polling_error"

    @pytest.mark.asyncio
    async def test_recent_log_failure_sends_polling_error(self, store, sample_user_id) -> None:
        session = await store.create_session(str(uuid4()), sample_user_id, 1)
        spy = AsyncMock(wraps=store)
        spy.get_recent_logs.side_effect = OSError("socket closed")
        publisher = UploadProgressPublisher(store=spy, poll_interval=0)

        events = await collect(publisher, session.upload_id)

        assert [e.type for e in events] == ["started", "error"]
        assert events[1].data.status == "polling_error"
        assert events[1].data.upload_id == session.upload_id

    @pytest.mark.asyncio
    async def test_disconnect_stops_polling(self, store, sample_user_id) -> None:
        session = await store.create_session(str(uuid4()), sample_user_id, 1)
        spy = AsyncMock(wraps=store)
        publisher = UploadProgressPublisher(store=spy, poll_interval=0)

        events = await collect(publisher, session.upload_id, is_disconnected=AsyncMock(return_value=True))

        assert [e.type for e in events] == ["started"]
        spy.get_session.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_publishers_are_independent(self, store, sample_user_id) -> None:
        session = await store.create_session(str(uuid4()), sample_user_id, 1)
        await record(store, session, 1)
        await store.complete_session(session.upload_id)

        first = await collect(UploadProgressPublisher(store, poll_interval=0), session.upload_id)
        second = await collect(UploadProgressPublisher(store, poll_interval=0), session.upload_id)

        assert first == second


class TestProgressEventWireFormat:
    """Tests for SSE frame encoding."""

    def test_started_frame(self) -> None:
        frame = ProgressEvent.started("abc").to_sse()

        assert frame.startswith("data: ")
        assert frame.endswith("\n\n")
        payload = json.loads(frame[len("data: "):])
        assert payload == {
            "type": "started",
            "data": {
                "uploadId": "abc",
                "status": "connecting",
                "totalStudents": 0,
                "processedStudents": 0,
                "successCount": 0,
                "errorCount": 0,
                "percentage": 0,
            },
        }

    @pytest.mark.asyncio
    async def test_recent_students_use_camel_case(self, publisher, store, sample_user_id) -> None:
        session = await store.create_session(str(uuid4()), sample_user_id, 1)
        await record(store, session, 1)
        await store.complete_session(session.upload_id)

        events = await collect(publisher, session.upload_id)
        payload = json.loads(events[-1].to_sse()[len("data: "):])

        assert payload["data"]["recentStudents"] == [
            {
                "rowNumber": 1,
                "studentName": "Student 1",
                "status": "success",
                "message": "Student created and parent created successfully",
                "processingTime": 12,
            }
        ]
