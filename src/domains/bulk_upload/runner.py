# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background runner for bulk student uploads.

Drives the row processor over every row of one upload, strictly in input
order, recording each outcome in the session store.

State machine:
    processing -> completed   all rows attempted
    processing -> error       a fault escaped the per-row boundary

A row that fails (validation, directory conflict, identity provider error,
or an unexpected exception from the processor) is logged and counted, and
the batch continues. A fault outside that boundary, typically the session
store failing to record an outcome, stops the batch: remaining rows are
neither attempted nor logged and the session is marked error.

There is no cancel primitive. If the process dies mid-upload the session
stays in processing until the retention sweep removes it.
"""

import asyncio
import logging
from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.config.settings import Settings
from src.domains.bulk_upload.csv_parser import StudentRow
from src.domains.bulk_upload.exceptions import (
    UploadSessionNotFoundError,
    UploadSessionStoreError,
)
from src.domains.bulk_upload.row_processor import RowFailure, RowOutcome, RowProcessor
from src.domains.bulk_upload.session_store import UploadSessionStore
from src.infrastructure.database.models import RowStatus, UploadSession
from src.services.identity import IdentityProvider
from src.utils.datetime import elapsed_ms, monotonic_ms
from src.utils.logging import bind_context, clear_context

logger = logging.getLogger(__name__)


class UploadRunner:
    """Processes the rows of one upload and finalises its session.

    Attributes:
        store: Session store shared with progress streams.
        processor: Row processor.
        row_delay_seconds: Pause after each row.
    """

    def __init__(
        self,
        store: UploadSessionStore,
        processor: RowProcessor,
        row_delay_seconds: float = 0.1,
    ) -> None:
        self.store = store
        self.processor = processor
        self.row_delay_seconds = row_delay_seconds

    async def run(self, upload_id: str, rows: Sequence[StudentRow]) -> UploadSession | None:
        """Process every row and move the session to a terminal state.

        Args:
            upload_id: Public identifier of a session in the processing state.
            rows: Parsed rows in file order.

        Returns:
            The session as stored after finalisation, or None if it could
            not be read back.
        """
        bind_context(upload_id=upload_id)
        logger.info("Starting background processing: upload_id=%s, rows=%d", upload_id, len(rows))

        try:
            session = await self.store.get_session(upload_id)
            if session is None:
                raise UploadSessionNotFoundError(upload_id)

            for row_number, row in enumerate(rows, start=1):
                await self._process_row(session, row_number, row, len(rows))
                if self.row_delay_seconds > 0:
                    await asyncio.sleep(self.row_delay_seconds)

            await self.store.complete_session(upload_id)
            logger.info("Background processing completed: upload_id=%s", upload_id)

        except Exception as e:
            logger.exception("Background processing aborted: upload_id=%s", upload_id)
            await self._mark_error(upload_id, e)

        finally:
            clear_context()

        try:
            return await self.store.get_session(upload_id)
        except UploadSessionStoreError:
            logger.warning("Could not read back upload session: upload_id=%s", upload_id)
            return None

    async def _process_row(
        self,
        session: UploadSession,
        row_number: int,
        row: StudentRow,
        total: int,
    ) -> None:
        started = monotonic_ms()
        logger.debug("Processing student %d/%d: %s", row_number, total, row.display_name)

        try:
            outcome: RowOutcome = await self.processor.process(row)
        except Exception as e:
            logger.exception("Unexpected error processing row %d", row_number)
            outcome = RowFailure(reason=str(e) or type(e).__name__)

        duration = elapsed_ms(started)

        if isinstance(outcome, RowFailure):
            logger.info("Row %d failed: %s", row_number, outcome.reason)
            await self.store.record_row_outcome(
                session_id=session.id,
                upload_id=session.upload_id,
                row_number=row_number,
                student_name=row.display_name,
                student_mis_id=row.mis_id or None,
                status=RowStatus.ERROR,
                error_message=outcome.reason,
                processing_time_ms=duration,
            )
            return

        await self.store.record_row_outcome(
            session_id=session.id,
            upload_id=session.upload_id,
            row_number=row_number,
            student_name=row.display_name,
            student_mis_id=row.mis_id or None,
            status=RowStatus.SUCCESS,
            success_message=outcome.message,
            student_id=outcome.student_id,
            parent_id=outcome.parent_id,
            processing_time_ms=duration,
        )

    async def _mark_error(self, upload_id: str, error: Exception) -> None:
        message = getattr(error, "message", None) or str(error) or type(error).__name__
        try:
            await self.store.mark_session_error(upload_id, message)
        except UploadSessionStoreError:
            logger.exception("Could not mark upload session as error: upload_id=%s", upload_id)


def build_upload_runner(
    sessionmaker: async_sessionmaker[AsyncSession],
    identity: IdentityProvider,
    settings: Settings,
) -> UploadRunner:
    """Wire a runner from a sessionmaker, an identity provider and settings."""
    processor = RowProcessor(
        sessionmaker=sessionmaker,
        identity=identity,
        default_password=settings.identity.default_password.get_secret_value(),
        student_email_domain=settings.identity.student_email_domain,
    )
    return UploadRunner(
        store=UploadSessionStore(sessionmaker),
        processor=processor,
        row_delay_seconds=settings.upload.row_delay_seconds,
    )
