# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

This module provides dependency functions for FastAPI endpoints.
Dependencies are used to:
- Get the database sessionmaker and the upload session store
- Get authenticated users and check their permissions
- Get the bulk upload service, progress publisher and student import service

Example:
    @router.get("/sessions")
    async def list_sessions(
        service: BulkUploadService = Depends(get_bulk_upload_service),
        current_user: CurrentUser = Depends(require_auth),
    ):
        ...
"""

import logging

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.api.middleware.auth import CurrentUser, get_current_user
from src.core.config import Settings, get_settings
from src.domains.bulk_upload import (
    AsyncioLauncher,
    BackgroundLauncher,
    BulkUploadService,
    DramatiqLauncher,
    RowProcessor,
    StudentImportService,
    UploadProgressPublisher,
    UploadSessionStore,
    build_upload_runner,
)
from src.infrastructure.database.connection import (
    DatabaseError,
    close_database,
    get_sessionmaker,
    init_database,
)
from src.services.identity import HostedIdentityClient, IdentityProvider

logger = logging.getLogger(__name__)

MANAGE_STUDENTS_PERMISSION = "students.manage"
READ_STUDENTS_PERMISSION = "students.read"

_launcher: BackgroundLauncher | None = None


async def init_db() -> None:
    """Initialize the database connection pool."""
    await init_database(get_settings())


async def close_db() -> None:
    """Close the database connection pool."""
    await close_database()


def build_identity_provider(settings: Settings) -> IdentityProvider:
    """Create the hosted identity client from settings."""
    return HostedIdentityClient(
        api_url=settings.identity.api_url,
        service_key=settings.identity.service_key.get_secret_value(),
        timeout=settings.identity.timeout,
    )


def build_launcher(settings: Settings) -> BackgroundLauncher:
    """Create the launcher selected by UPLOAD_RUNNER.

    The inline launcher builds a fresh runner per upload against the
    process-wide sessionmaker.
    """
    if settings.upload.runner == "dramatiq":
        logger.info("Uploads will run on Dramatiq workers")
        return DramatiqLauncher()

    identity = build_identity_provider(settings)
    logger.info("Uploads will run in the API process")
    return AsyncioLauncher(lambda: build_upload_runner(get_sessionmaker(), identity, settings))


def init_launcher(settings: Settings) -> BackgroundLauncher:
    """Create and register the process-wide launcher."""
    global _launcher
    _launcher = build_launcher(settings)
    return _launcher


def close_launcher() -> None:
    global _launcher
    _launcher = None


# =========================================================================
# Service Dependencies
# =========================================================================


def get_db_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Get the process-wide sessionmaker.

    Raises:
        HTTPException: 503 if the database has not been initialized.
    """
    try:
        return get_sessionmaker()
    except DatabaseError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not initialized",
        )


def get_upload_store(
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_db_sessionmaker),
) -> UploadSessionStore:
    return UploadSessionStore(sessionmaker)


def get_launcher() -> BackgroundLauncher:
    """Get the process-wide launcher.

    Raises:
        HTTPException: 503 if the launcher has not been initialized.
    """
    if _launcher is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Upload processing not available",
        )
    return _launcher


def get_bulk_upload_service(
    store: UploadSessionStore = Depends(get_upload_store),
    launcher: BackgroundLauncher = Depends(get_launcher),
) -> BulkUploadService:
    settings = get_settings()
    return BulkUploadService(
        store=store,
        launcher=launcher,
        max_file_bytes=settings.upload.max_file_bytes,
    )


def get_identity_provider() -> IdentityProvider:
    return build_identity_provider(get_settings())


def get_student_import_service(
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_db_sessionmaker),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> StudentImportService:
    settings = get_settings()
    processor = RowProcessor(
        sessionmaker=sessionmaker,
        identity=identity,
        default_password=settings.identity.default_password.get_secret_value(),
        student_email_domain=settings.identity.student_email_domain,
    )
    return StudentImportService(sessionmaker=sessionmaker, processor=processor)


def get_progress_publisher(
    store: UploadSessionStore = Depends(get_upload_store),
) -> UploadProgressPublisher:
    settings = get_settings()
    return UploadProgressPublisher(
        store=store,
        poll_interval=settings.upload.poll_interval_seconds,
        recent_log_window=settings.upload.recent_log_window,
    )


# =========================================================================
# Authentication Dependencies
# =========================================================================


def require_auth(request: Request) -> CurrentUser:
    """Require authenticated user.

    Raises:
        HTTPException: If not authenticated.
    """
    user = get_current_user(request)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


class RequirePermission:
    """Dependency for requiring specific permissions.

    Admins pass every permission check.

    Example:
        @router.post("/upload")
        async def upload(
            user: CurrentUser = Depends(RequirePermission("students.manage")),
        ):
            ...
    """

    def __init__(self, *permissions: str, require_all: bool = False) -> None:
        """Initialize permission requirement.

        Args:
            permissions: Required permission codes.
            require_all: If True, require all permissions. If False, any.
        """
        self.permissions = permissions
        self.require_all = require_all

    def __call__(self, request: Request) -> CurrentUser:
        """Check permissions and return user.

        Raises:
            HTTPException: If not authenticated or missing required permissions.
        """
        user = require_auth(request)
        if user.is_admin:
            return user

        if self.require_all:
            if not user.has_all_permissions(*self.permissions):
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Missing permissions: {', '.join(self.permissions)}",
                )
        else:
            if not user.has_any_permission(*self.permissions):
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Requires one of: {', '.join(self.permissions)}",
                )

        return user


require_manage_students = RequirePermission(MANAGE_STUDENTS_PERMISSION)
require_read_students = RequirePermission(READ_STUDENTS_PERMISSION, MANAGE_STUDENTS_PERMISSION)
