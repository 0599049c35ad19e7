# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the school directory service."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from src.domains.directory import (
    CompensationLog,
    DirectoryService,
    RecordPersistenceError,
    StudentDetails,
)
from src.services.identity import IdentityAPIError


@pytest.fixture
def details() -> StudentDetails:
    return StudentDetails(
        admission_no="1001",
        first_name="Ada",
        last_name="Lovelace",
        username="ada.lovelace",
        email="ada.lovelace@school.com",
    )


class TestCompensationLog:
    """Tests for CompensationLog."""

    @pytest.mark.asyncio
    async def test_rollback_deletes_newest_first(self) -> None:
        identity = AsyncMock()
        log = CompensationLog()
        log.record("first")
        log.record("second")

        failed = await log.rollback(identity)

        assert failed == []
        assert [call.args[0] for call in identity.delete_user.await_args_list] == ["second", "first"]
        assert log.identity_ids == []

    @pytest.mark.asyncio
    async def test_rollback_continues_past_failures(self) -> None:
        identity = AsyncMock()
        identity.delete_user.side_effect = [IdentityAPIError("boom", status_code=500), None]
        log = CompensationLog()
        log.record("first")
        log.record("second")

        failed = await log.rollback(identity)

        assert failed == ["second"]
        assert identity.delete_user.await_count == 2


class TestDirectoryService:
    """Tests for DirectoryService find-or-create operations."""

    @pytest.mark.asyncio
    async def test_year_group_and_class_are_reused(self, sessionmaker, identity) -> None:
        async with sessionmaker() as db:
            async with db.begin():
                directory = DirectoryService(db, identity, "test1234")
                first = await directory.find_or_create_year_group("Year 7")
                second = await directory.find_or_create_year_group("Year 7")
                school_class = await directory.find_or_create_class("7A", first.id)
                again = await directory.find_or_create_class("7A", first.id)

        assert first.id == second.id
        assert first.description == "Year group for Year 7"
        assert school_class.id == again.id
        assert school_class.year_group_id == first.id

    @pytest.mark.asyncio
    async def test_new_student_records_identity_for_compensation(
        self, sessionmaker, identity, details
    ) -> None:
        compensation = CompensationLog()
        async with sessionmaker() as db:
            async with db.begin():
                directory = DirectoryService(db, identity, "test1234")
                year_group = await directory.find_or_create_year_group("Year 7")
                school_class = await directory.find_or_create_class("7A", year_group.id)
                student, action = await directory.upsert_student(
                    details, year_group, school_class, compensation
                )

        assert action == "created"
        assert compensation.identity_ids == [student.auth_user_id]
        assert identity.users[student.auth_user_id].metadata["role"] == "student"
        assert student.enrolled_year_group_id == year_group.id

    @pytest.mark.asyncio
    async def test_ensure_link_is_idempotent(self, sessionmaker, identity, details) -> None:
        compensation = CompensationLog()
        async with sessionmaker() as db:
            async with db.begin():
                directory = DirectoryService(db, identity, "test1234")
                year_group = await directory.find_or_create_year_group("Year 7")
                school_class = await directory.find_or_create_class("7A", year_group.id)
                student, _ = await directory.upsert_student(details, year_group, school_class, compensation)
                parent, _ = await directory.upsert_parent("Mum@Example.com", "Lovelace", compensation)

                link, created = await directory.ensure_link(parent.id, student.id)
                again, created_again = await directory.ensure_link(parent.id, student.id)

        assert parent.email == "mum@example.com"
        assert created is True
        assert created_again is False
        assert link.id == again.id

    @pytest.mark.asyncio
    async def test_flush_failure_becomes_persistence_error(self, identity) -> None:
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        db = AsyncMock()
        db.add = MagicMock()
        db.execute.return_value = result
        db.flush.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))
        directory = DirectoryService(db, identity, "test1234")

        with pytest.raises(RecordPersistenceError, match="Failed to save year group record: duplicate key"):
            await directory.find_or_create_year_group("Year 7")
