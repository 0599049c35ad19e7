# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the upload session store."""

from datetime import timedelta
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from sqlalchemy import select, update
from sqlalchemy.exc import OperationalError

from src.domains.bulk_upload.exceptions import UploadSessionStoreError
from src.domains.bulk_upload.session_store import UploadSessionStore
from src.infrastructure.database.models import RowStatus, SessionLog, UploadSession, UploadStatus
from src.utils.datetime import utc_now


async def record(store: UploadSessionStore, session: UploadSession, row_number: int, ok: bool = True):
    return await store.record_row_outcome(
        session_id=session.id,
        upload_id=session.upload_id,
        row_number=row_number,
        student_name=f"Student {row_number}",
        student_mis_id=str(1000 + row_number),
        status=RowStatus.SUCCESS if ok else RowStatus.ERROR,
        processing_time_ms=5,
        success_message="Student created and parent created successfully" if ok else None,
        error_message=None if ok else "Invalid email format: x",
    )


class TestCreateAndGet:
    """Tests for session creation and lookup."""

    @pytest.mark.asyncio
    async def test_create_session(self, store, sample_user_id) -> None:
        upload_id = str(uuid4())

        created = await store.create_session(upload_id, sample_user_id, 3)
        fetched = await store.get_session(upload_id)

        assert fetched.id == created.id
        assert fetched.status == UploadStatus.PROCESSING.value
        assert fetched.total_students == 3
        assert fetched.processed_students == 0
        assert fetched.success_count == 0
        assert fetched.error_count == 0
        assert fetched.completed_at is None

    @pytest.mark.asyncio
    async def test_unknown_upload_is_none(self, store) -> None:
        assert await store.get_session("missing") is None


class TestRecordRowOutcome:
    """Tests for appending row outcomes."""

    @pytest.mark.asyncio
    async def test_counters_track_outcomes(self, store, sample_user_id) -> None:
        session = await store.create_session(str(uuid4()), sample_user_id, 3)

        await record(store, session, 1)
        await record(store, session, 2, ok=False)
        await record(store, session, 3)

        fetched = await store.get_session(session.upload_id)
        assert fetched.processed_students == 3
        assert fetched.success_count == 2
        assert fetched.error_count == 1
        assert fetched.success_count + fetched.error_count == fetched.processed_students

        logs = await store.get_all_logs(session.upload_id)
        assert [log.student_row_number for log in logs] == [1, 2, 3]
        assert logs[1].error_message == "Invalid email format: x"

    @pytest.mark.asyncio
    async def test_duplicate_row_is_rejected_and_counters_unchanged(self, store, sample_user_id) -> None:
        session = await store.create_session(str(uuid4()), sample_user_id, 2)
        await record(store, session, 1)

        with pytest.raises(UploadSessionStoreError):
            await record(store, session, 1)

        fetched = await store.get_session(session.upload_id)
        assert fetched.processed_students == 1
        assert len(await store.get_all_logs(session.upload_id)) == 1

    @pytest.mark.asyncio
    async def test_terminal_session_rejects_rows(self, store, sample_user_id) -> None:
        session = await store.create_session(str(uuid4()), sample_user_id, 2)
        await store.complete_session(session.upload_id)

        with pytest.raises(UploadSessionStoreError, match="not processing"):
            await record(store, session, 1)

        assert await store.get_all_logs(session.upload_id) == []

    @pytest.mark.asyncio
    async def test_recent_logs_newest_first(self, store, sample_user_id) -> None:
        session = await store.create_session(str(uuid4()), sample_user_id, 7)
        for row_number in range(1, 8):
            await record(store, session, row_number)

        recent = await store.get_recent_logs(session.upload_id, 5)

        assert [log.student_row_number for log in recent] == [7, 6, 5, 4, 3]


class TestFinishSession:
    """Tests for terminal transitions."""

    @pytest.mark.asyncio
    async def test_complete_stamps_completed_at(self, store, sample_user_id) -> None:
        session = await store.create_session(str(uuid4()), sample_user_id, 0)

        assert await store.complete_session(session.upload_id) is True

        fetched = await store.get_session(session.upload_id)
        assert fetched.status == UploadStatus.COMPLETED.value
        assert fetched.completed_at is not None

    @pytest.mark.asyncio
    async def test_mark_error_records_message(self, store, sample_user_id) -> None:
        session = await store.create_session(str(uuid4()), sample_user_id, 1)

        assert await store.mark_session_error(session.upload_id, "database went away") is True

        fetched = await store.get_session(session.upload_id)
        assert fetched.status == UploadStatus.ERROR.value
        assert fetched.error_message == "database went away"

    @pytest.mark.asyncio
    async def test_terminal_state_is_final(self, store, sample_user_id) -> None:
        session = await store.create_session(str(uuid4()), sample_user_id, 1)
        await store.complete_session(session.upload_id)

        assert await store.mark_session_error(session.upload_id, "late failure") is False
        assert await store.complete_session(session.upload_id) is False

        fetched = await store.get_session(session.upload_id)
        assert fetched.status == UploadStatus.COMPLETED.value
        assert fetched.error_message is None


class TestListSessions:
    """Tests for paginated session listing."""

    @pytest.mark.asyncio
    async def test_newest_first_with_pagination(self, store, sessionmaker, sample_user_id) -> None:
        upload_ids = [str(uuid4()) for _ in range(3)]
        base = utc_now()
        for offset, upload_id in enumerate(upload_ids):
            await store.create_session(upload_id, sample_user_id, 1)
            async with sessionmaker() as db:
                async with db.begin():
                    await db.execute(
                        update(UploadSession)
                        .where(UploadSession.upload_id == upload_id)
                        .values(created_at=base + timedelta(minutes=offset))
                    )

        page_one, total = await store.list_sessions(sample_user_id, page=1, limit=2)
        page_two, _ = await store.list_sessions(sample_user_id, page=2, limit=2)

        assert total == 3
        assert [s.upload_id for s in page_one] == [upload_ids[2], upload_ids[1]]
        assert [s.upload_id for s in page_two] == [upload_ids[0]]

    @pytest.mark.asyncio
    async def test_scoped_to_owner_and_status(self, store, sample_user_id) -> None:
        done = await store.create_session(str(uuid4()), sample_user_id, 1)
        await store.complete_session(done.upload_id)
        await store.create_session(str(uuid4()), sample_user_id, 1)
        await store.create_session(str(uuid4()), "someone-else", 1)

        everything, total = await store.list_sessions(sample_user_id)
        completed, completed_total = await store.list_sessions(sample_user_id, status="completed")

        assert total == 2
        assert len(everything) == 2
        assert completed_total == 1
        assert completed[0].upload_id == done.upload_id


class TestCleanupOldSessions:
    """Tests for the retention purge."""

    @pytest.mark.asyncio
    async def test_removes_only_expired_sessions_and_their_logs(
        self, store, sessionmaker, sample_user_id
    ) -> None:
        old = await store.create_session(str(uuid4()), sample_user_id, 1)
        await record(store, old, 1)
        fresh = await store.create_session(str(uuid4()), sample_user_id, 1)
        await record(store, fresh, 1)

        async with sessionmaker() as db:
            async with db.begin():
                await db.execute(
                    update(UploadSession)
                    .where(UploadSession.id == old.id)
                    .values(created_at=utc_now() - timedelta(hours=25))
                )

        deleted = await store.cleanup_old_sessions(older_than_hours=24)

        assert deleted == 1
        assert await store.get_session(old.upload_id) is None
        assert await store.get_session(fresh.upload_id) is not None
        async with sessionmaker() as db:
            remaining = (await db.execute(select(SessionLog.upload_id))).scalars().all()
        assert remaining == [fresh.upload_id]


class TestStoreFailures:
    """Tests for storage failure translation."""

    @pytest.mark.asyncio
    async def test_database_errors_become_store_errors(self) -> None:
        def broken_sessionmaker():
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        store = UploadSessionStore(MagicMock(side_effect=broken_sessionmaker))

        with pytest.raises(UploadSessionStoreError) as exc_info:
            await store.get_session("any")

        assert exc_info.value.original_error is not None
        assert "Failed to get upload session" in str(exc_info.value)
