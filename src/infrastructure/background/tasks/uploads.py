# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Bulk upload background tasks.

Runs an upload's rows in a Dramatiq worker when UPLOAD_RUNNER=dramatiq.
The session has already been created by the API; the worker only drives
the runner to a terminal state.
"""

import logging
from typing import Any

import dramatiq

from src.infrastructure.background.broker import Priority, Queues, setup_dramatiq
from src.infrastructure.background.tasks.base import run_async

setup_dramatiq()

logger = logging.getLogger(__name__)


@dramatiq.actor(
    queue_name=Queues.UPLOADS,
    max_retries=0,  # a retry would re-log rows already recorded
    time_limit=7_200_000,  # 2 hours
    priority=Priority.NORMAL,
)
def process_upload_session(upload_id: str, rows: list[dict[str, Any]]) -> dict[str, Any]:
    """Process every row of an upload session.

    Args:
        upload_id: Public identifier of a session in the processing state.
        rows: Parsed rows as dictionaries, in file order.

    Returns:
        Final session counters.
    """

    async def _process() -> dict[str, Any]:
        from src.core.config import get_settings
        from src.domains.bulk_upload.csv_parser import StudentRow
        from src.domains.bulk_upload.runner import build_upload_runner
        from src.infrastructure.database.connection import get_worker_sessionmaker
        from src.services.identity import HostedIdentityClient

        settings = get_settings()
        identity = HostedIdentityClient(
            api_url=settings.identity.api_url,
            service_key=settings.identity.service_key.get_secret_value(),
            timeout=settings.identity.timeout,
        )
        runner = build_upload_runner(get_worker_sessionmaker(), identity, settings)

        session = await runner.run(upload_id, [StudentRow.from_dict(row) for row in rows])
        if session is None:
            return {"upload_id": upload_id, "status": "unknown"}

        return {
            "upload_id": upload_id,
            "status": session.status,
            "processed": session.processed_students,
            "success_count": session.success_count,
            "error_count": session.error_count,
        }

    return run_async(_process())
