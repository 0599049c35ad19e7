# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for background launchers."""

import asyncio
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest

from src.domains.bulk_upload.launcher import AsyncioLauncher, DramatiqLauncher
from src.domains.bulk_upload.runner import UploadRunner
from src.infrastructure.database.models import UploadStatus


class TestAsyncioLauncher:
    """Tests for the in-process launcher."""

    @pytest.mark.asyncio
    async def test_returns_before_processing_finishes(self, store, processor, row_factory) -> None:
        gate = asyncio.Event()

        class GatedRunner(UploadRunner):
            async def run(self, upload_id, rows):
                await gate.wait()
                return await super().run(upload_id, rows)

        launcher = AsyncioLauncher(lambda: GatedRunner(store, processor, row_delay_seconds=0))
        upload_id = str(uuid4())
        await store.create_session(upload_id, "user-1", 1)

        launcher.run_in_background(upload_id, [row_factory()])

        assert launcher.active_count == 1
        assert (await store.get_session(upload_id)).status == UploadStatus.PROCESSING.value

        gate.set()
        await launcher.wait_idle()

        assert launcher.active_count == 0
        assert (await store.get_session(upload_id)).status == UploadStatus.COMPLETED.value

    @pytest.mark.asyncio
    async def test_uploads_run_independently(self, store, processor, row_factory) -> None:
        launcher = AsyncioLauncher(lambda: UploadRunner(store, processor, row_delay_seconds=0))
        first, second = str(uuid4()), str(uuid4())
        await store.create_session(first, "user-1", 1)
        await store.create_session(second, "user-2", 1)

        launcher.run_in_background(first, [row_factory(mis_id="1001", forename="Ada")])
        launcher.run_in_background(second, [row_factory(mis_id="2001", forename="Alan", primary_email="x@example.com")])
        await launcher.wait_idle()

        for upload_id in (first, second):
            session = await store.get_session(upload_id)
            assert session.status == UploadStatus.COMPLETED.value
            assert session.success_count == 1


class TestDramatiqLauncher:
    """Tests for the worker queue launcher."""

    def test_sends_rows_as_dicts(self, row_factory) -> None:
        message = MagicMock(message_id="msg-1")
        with patch(
            "src.infrastructure.background.tasks.uploads.process_upload_session"
        ) as actor:
            actor.send.return_value = message

            DramatiqLauncher().run_in_background("upload-1", [row_factory()])

        actor.send.assert_called_once_with("upload-1", [row_factory().to_dict()])
