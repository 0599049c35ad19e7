# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Progress publisher for upload sessions.

Polls the session store for one upload and turns each sample into a
ProgressEvent:

- ``started`` immediately, with zero counters.
- ``progress`` for every sample while the session is processing.
- ``completed`` or ``error`` once the session is terminal, then the
  stream ends.

An unknown upload id or any sampling failure ends the stream with a single
``error`` frame whose status is ``not_found`` or ``polling_error``.

The publisher never writes to the store. Any number of streams may watch
the same upload.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable

from src.domains.bulk_upload.session_store import UploadSessionStore
from src.models.bulk_upload import ProgressEvent

logger = logging.getLogger(__name__)

DisconnectCheck = Callable[[], Awaitable[bool]]


class UploadProgressPublisher:
    """Streams progress frames for an upload.

    Attributes:
        store: Session store to poll.
        poll_interval: Seconds between samples.
        recent_log_window: Number of recent row outcomes per frame.
    """

    def __init__(
        self,
        store: UploadSessionStore,
        poll_interval: float = 1.0,
        recent_log_window: int = 5,
    ) -> None:
        self.store = store
        self.poll_interval = poll_interval
        self.recent_log_window = recent_log_window

    async def stream(
        self,
        upload_id: str,
        is_disconnected: DisconnectCheck | None = None,
    ) -> AsyncIterator[ProgressEvent]:
        """Yield frames until the session is terminal or the client leaves.

        Args:
            upload_id: Upload to watch.
            is_disconnected: Optional check for a departed subscriber.
                Polling stops as soon as it returns True.

        Yields:
            ProgressEvent frames in the order described above.
        """
        logger.info("Progress stream opened: upload_id=%s", upload_id)
        yield ProgressEvent.started(upload_id)

        first = True
        try:
            while True:
                if not first:
                    await asyncio.sleep(self.poll_interval)
                first = False

                if is_disconnected is not None and await is_disconnected():
                    logger.info("Progress subscriber disconnected: upload_id=%s", upload_id)
                    return

                try:
                    event = await self._sample(upload_id)
                except Exception:
                    logger.exception("Progress polling failed: upload_id=%s", upload_id)
                    yield ProgressEvent.failure(upload_id, "polling_error")
                    return

                yield event
                if event.is_terminal:
                    return
        finally:
            logger.info("Progress stream closed: upload_id=%s", upload_id)

    async def _sample(self, upload_id: str) -> ProgressEvent:
        session = await self.store.get_session(upload_id)
        if session is None:
            logger.warning("Progress requested for unknown upload: upload_id=%s", upload_id)
            return ProgressEvent.failure(upload_id, "not_found")

        recent = await self.store.get_recent_logs(upload_id, self.recent_log_window)
        return ProgressEvent.from_session(session, recent)
