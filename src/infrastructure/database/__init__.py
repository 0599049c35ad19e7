# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure for PostgreSQL connections.

Example:
    from src.infrastructure.database import get_session

    async with get_session() as session:
        result = await session.execute(select(UploadSession))
"""

from src.infrastructure.database.connection import (
    DatabaseError,
    build_engine,
    build_sessionmaker,
    check_database_connection,
    clear_thread_db_connections,
    close_database,
    get_engine,
    get_session,
    get_sessionmaker,
    get_worker_sessionmaker,
    init_database,
)

__all__ = [
    "DatabaseError",
    "build_engine",
    "build_sessionmaker",
    "check_database_connection",
    "clear_thread_db_connections",
    "close_database",
    "get_engine",
    "get_session",
    "get_sessionmaker",
    "get_worker_sessionmaker",
    "init_database",
]
