# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Persistent store for upload sessions and their row logs.

The store is the only shared state between a running upload, the progress
streams watching it and the status endpoints. Every method opens its own
short transaction from the injected sessionmaker.

A row outcome is written as one transaction that appends the log entry and
bumps the counters with SQL-side increments, so readers see both or neither.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.domains.bulk_upload.exceptions import UploadSessionStoreError
from src.infrastructure.database.models import (
    RowStatus,
    SessionLog,
    UploadSession,
    UploadStatus,
)
from src.utils.datetime import hours_ago, utc_now

logger = logging.getLogger(__name__)


class UploadSessionStore:
    """Reads and writes UploadSession and SessionLog rows.

    Attributes:
        sessionmaker: Factory for database sessions.
    """

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self.sessionmaker = sessionmaker

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self.sessionmaker() as db:
                async with db.begin():
                    yield db
        except SQLAlchemyError as e:
            raise UploadSessionStoreError(f"Failed to {operation}", e) from e

    async def create_session(self, upload_id: str, user_id: str, total: int) -> UploadSession:
        """Create a session in the processing state.

        Args:
            upload_id: Public upload identifier.
            user_id: Owner of the upload.
            total: Number of rows to process.

        Returns:
            The created session.
        """
        session = UploadSession(
            upload_id=upload_id,
            user_id=user_id,
            status=UploadStatus.PROCESSING.value,
            total_students=total,
        )
        async with self._transaction("create upload session") as db:
            db.add(session)

        logger.info(
            "Created upload session: upload_id=%s, user=%s, total=%d",
            upload_id,
            user_id,
            total,
        )
        return session

    async def get_session(self, upload_id: str) -> UploadSession | None:
        """Get a session by upload id, or None."""
        async with self._transaction("get upload session") as db:
            result = await db.execute(
                select(UploadSession).where(UploadSession.upload_id == upload_id)
            )
            return result.scalar_one_or_none()

    async def record_row_outcome(
        self,
        *,
        session_id: str,
        upload_id: str,
        row_number: int,
        student_name: str,
        student_mis_id: str | None,
        status: RowStatus,
        processing_time_ms: int,
        success_message: str | None = None,
        error_message: str | None = None,
        student_id: str | None = None,
        parent_id: str | None = None,
    ) -> SessionLog:
        """Append a row's log entry and advance the session counters.

        Raises:
            UploadSessionStoreError: If the write fails or the session is
                no longer processing.
        """
        entry = SessionLog(
            session_id=session_id,
            upload_id=upload_id,
            student_row_number=row_number,
            student_name=student_name,
            student_mis_id=student_mis_id,
            status=status.value,
            success_message=success_message,
            error_message=error_message,
            student_id=student_id,
            parent_id=parent_id,
            processing_time_ms=processing_time_ms,
        )

        succeeded = 1 if status is RowStatus.SUCCESS else 0
        failed = 1 if status is RowStatus.ERROR else 0

        async with self._transaction("record row outcome") as db:
            db.add(entry)
            await db.flush()
            result = await db.execute(
                update(UploadSession)
                .where(
                    UploadSession.upload_id == upload_id,
                    UploadSession.status == UploadStatus.PROCESSING.value,
                )
                .values(
                    processed_students=UploadSession.processed_students + 1,
                    success_count=UploadSession.success_count + succeeded,
                    error_count=UploadSession.error_count + failed,
                )
            )
            if result.rowcount != 1:
                raise UploadSessionStoreError(
                    f"Upload session {upload_id} is not processing; row {row_number} rejected"
                )

        return entry

    async def complete_session(self, upload_id: str) -> bool:
        """Move a processing session to completed.

        Returns:
            True if the session transitioned, False if it was already terminal.
        """
        return await self._finish(upload_id, UploadStatus.COMPLETED, None)

    async def mark_session_error(self, upload_id: str, message: str) -> bool:
        """Move a processing session to error.

        Returns:
            True if the session transitioned, False if it was already terminal.
        """
        return await self._finish(upload_id, UploadStatus.ERROR, message)

    async def _finish(self, upload_id: str, status: UploadStatus, message: str | None) -> bool:
        async with self._transaction(f"mark upload session {status.value}") as db:
            result = await db.execute(
                update(UploadSession)
                .where(
                    UploadSession.upload_id == upload_id,
                    UploadSession.status == UploadStatus.PROCESSING.value,
                )
                .values(status=status.value, completed_at=utc_now(), error_message=message)
            )
            changed = result.rowcount == 1

        if changed:
            logger.info("Upload session %s: upload_id=%s", status.value, upload_id)
        else:
            logger.warning(
                "Upload session not in processing state, %s ignored: upload_id=%s",
                status.value,
                upload_id,
            )
        return changed

    async def get_recent_logs(self, upload_id: str, limit: int) -> list[SessionLog]:
        """Most recent log entries, highest row number first."""
        async with self._transaction("get recent logs") as db:
            result = await db.execute(
                select(SessionLog)
                .where(SessionLog.upload_id == upload_id)
                .order_by(SessionLog.student_row_number.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def get_all_logs(self, upload_id: str) -> list[SessionLog]:
        """All log entries in row order."""
        async with self._transaction("get session logs") as db:
            result = await db.execute(
                select(SessionLog)
                .where(SessionLog.upload_id == upload_id)
                .order_by(SessionLog.student_row_number.asc())
            )
            return list(result.scalars().all())

    async def list_sessions(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 10,
        status: str | None = None,
    ) -> tuple[list[UploadSession], int]:
        """List a user's sessions, newest first.

        Args:
            user_id: Owner to filter by.
            page: 1-based page number.
            limit: Page size.
            status: Optional status filter.

        Returns:
            Tuple of (sessions on the page, total matching sessions).
        """
        query = select(UploadSession).where(UploadSession.user_id == user_id)
        if status:
            query = query.where(UploadSession.status == status)

        async with self._transaction("list upload sessions") as db:
            count_query = select(func.count()).select_from(query.subquery())
            total = (await db.execute(count_query)).scalar() or 0

            query = (
                query.order_by(UploadSession.created_at.desc())
                .limit(limit)
                .offset((page - 1) * limit)
            )
            result = await db.execute(query)
            sessions = list(result.scalars().all())

        return sessions, total

    async def cleanup_old_sessions(self, older_than_hours: int = 24) -> int:
        """Delete sessions (and their logs) created before the cutoff.

        Returns:
            Number of sessions deleted.
        """
        cutoff = hours_ago(older_than_hours)
        expired = select(UploadSession.id).where(UploadSession.created_at < cutoff)

        async with self._transaction("clean up upload sessions") as db:
            await db.execute(
                delete(SessionLog).where(SessionLog.session_id.in_(expired))
            )
            result = await db.execute(
                delete(UploadSession).where(UploadSession.created_at < cutoff)
            )
            deleted = result.rowcount or 0

        if deleted:
            logger.info("Cleaned up %d upload sessions older than %dh", deleted, older_than_hours)
        return deleted
