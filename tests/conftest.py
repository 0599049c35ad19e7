# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- A file-backed SQLite database with the full schema
- An in-memory identity provider with failure injection
- Row and CSV builders for bulk upload scenarios
"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-testing-only")
os.environ.setdefault("DRAMATIQ_TEST_MODE", "true")

from src.domains.bulk_upload.csv_parser import StudentRow  # noqa: E402
from src.domains.bulk_upload.row_processor import RowProcessor  # noqa: E402
from src.domains.bulk_upload.session_store import UploadSessionStore  # noqa: E402
from src.infrastructure.database.models import Base  # noqa: E402
from src.services.identity import (  # noqa: E402
    IdentityAPIError,
    IdentityConflictError,
    IdentityUser,
)

CSV_HEADER = "MIS ID,Forename,Legal Surname,Reg,Year,Primary Email"


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )


# =============================================================================
# Identity Provider
# =============================================================================


class FakeIdentityProvider:
    """In-memory identity provider.

    Attributes:
        users: Live identities by id.
        deleted: Ids passed to delete_user, in call order.
        fail_create_for: Emails whose creation fails with a 503.
        fail_delete: When True every deletion fails.
    """

    def __init__(self) -> None:
        self.users: dict[str, IdentityUser] = {}
        self.deleted: list[str] = []
        self.fail_create_for: set[str] = set()
        self.fail_delete = False

    async def create_user(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any] | None = None,
    ) -> IdentityUser:
        if email in self.fail_create_for:
            raise IdentityAPIError("Identity service unavailable", status_code=503)
        if any(user.email == email for user in self.users.values()):
            raise IdentityConflictError(email)

        user = IdentityUser(id=str(uuid4()), email=email, metadata=metadata or {})
        self.users[user.id] = user
        return user

    async def delete_user(self, user_id: str) -> None:
        self.deleted.append(user_id)
        if self.fail_delete:
            raise IdentityAPIError("Identity service unavailable", status_code=503)
        self.users.pop(user_id, None)

    def emails(self) -> set[str]:
        return {user.email for user in self.users.values()}


@pytest.fixture
def identity() -> FakeIdentityProvider:
    """Provide an empty in-memory identity provider."""
    return FakeIdentityProvider()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a SQLite database with the full schema."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'uploads.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def sessionmaker(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessionmaker configured like the application's."""
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
def store(sessionmaker: async_sessionmaker[AsyncSession]) -> UploadSessionStore:
    return UploadSessionStore(sessionmaker)


@pytest.fixture
def processor(
    sessionmaker: async_sessionmaker[AsyncSession],
    identity: FakeIdentityProvider,
) -> RowProcessor:
    return RowProcessor(
        sessionmaker=sessionmaker,
        identity=identity,
        default_password="test1234",
        student_email_domain="school.com",
    )


# =============================================================================
# Helper Fixtures
# =============================================================================


def make_row(**overrides: str) -> StudentRow:
    """Build a valid student row, overriding selected fields."""
    values = {
        "mis_id": "1001",
        "forename": "Ada",
        "legal_surname": "Lovelace",
        "reg": "7A",
        "year": "Year 7",
        "primary_email": "parent.lovelace@example.com",
    }
    values.update(overrides)
    return StudentRow(**values)


def make_csv(*lines: str, header: str = CSV_HEADER) -> bytes:
    """Build CSV file content from data lines."""
    return ("\n".join([header, *lines]) + "\n").encode("utf-8")


@pytest.fixture
def sample_user_id() -> str:
    """Provide a sample uploading user ID."""
    return "550e8400-e29b-41d4-a716-446655440001"


@pytest.fixture
def row_factory():
    """Provide the student row builder."""
    return make_row


@pytest.fixture
def csv_factory():
    """Provide the CSV content builder."""
    return make_csv
