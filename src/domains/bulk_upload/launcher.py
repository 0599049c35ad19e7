# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Fire-and-forget launchers for upload runners.

The upload endpoint hands rows to a launcher and returns without waiting.
Two launchers exist:
- AsyncioLauncher runs the runner as a task on the API's event loop.
- DramatiqLauncher sends the rows to the uploads queue for a worker.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Protocol

from src.domains.bulk_upload.csv_parser import StudentRow
from src.domains.bulk_upload.runner import UploadRunner

logger = logging.getLogger(__name__)


class BackgroundLauncher(Protocol):
    """Starts processing an upload without waiting for it."""

    def run_in_background(self, upload_id: str, rows: Sequence[StudentRow]) -> None: ...


class AsyncioLauncher:
    """Runs uploads as asyncio tasks in the current process.

    The caller never sees the task handle. The launcher keeps a reference
    to each task until it finishes so the event loop does not drop it.
    """

    def __init__(self, runner_factory: Callable[[], UploadRunner]) -> None:
        self._runner_factory = runner_factory
        self._tasks: set[asyncio.Task] = set()

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    def run_in_background(self, upload_id: str, rows: Sequence[StudentRow]) -> None:
        runner = self._runner_factory()
        task = asyncio.get_running_loop().create_task(
            runner.run(upload_id, list(rows)),
            name=f"upload-{upload_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug("Scheduled upload task: upload_id=%s", upload_id)

    async def wait_idle(self) -> None:
        """Wait until every launched upload has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class DramatiqLauncher:
    """Sends uploads to the Dramatiq uploads queue."""

    def run_in_background(self, upload_id: str, rows: Sequence[StudentRow]) -> None:
        from src.infrastructure.background.tasks.uploads import process_upload_session

        message = process_upload_session.send(upload_id, [row.to_dict() for row in rows])
        logger.info(
            "Queued upload for worker: upload_id=%s, message_id=%s",
            upload_id,
            message.message_id,
        )
