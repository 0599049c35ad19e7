# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Bulk student upload domain.

CSV parsing, per-row import, the session store shared by background
runners and progress streams, the ingress service and single-student
import and lookup.
"""

from src.domains.bulk_upload.csv_parser import StudentRow, parse_student_csv
from src.domains.bulk_upload.exceptions import (
    BulkUploadError,
    EmptyUploadError,
    InvalidUploadError,
    RowValidationError,
    StudentImportRejectedError,
    StudentNotFoundError,
    UploadSessionNotFoundError,
    UploadSessionStoreError,
    UploadTooLargeError,
)
from src.domains.bulk_upload.launcher import (
    AsyncioLauncher,
    BackgroundLauncher,
    DramatiqLauncher,
)
from src.domains.bulk_upload.progress import UploadProgressPublisher
from src.domains.bulk_upload.row_processor import (
    RowFailure,
    RowOutcome,
    RowProcessor,
    RowSuccess,
)
from src.domains.bulk_upload.runner import UploadRunner, build_upload_runner
from src.domains.bulk_upload.service import BulkUploadService
from src.domains.bulk_upload.session_store import UploadSessionStore
from src.domains.bulk_upload.students import StudentImportService

__all__ = [
    "AsyncioLauncher",
    "BackgroundLauncher",
    "BulkUploadError",
    "BulkUploadService",
    "DramatiqLauncher",
    "EmptyUploadError",
    "InvalidUploadError",
    "RowFailure",
    "RowOutcome",
    "RowProcessor",
    "RowSuccess",
    "RowValidationError",
    "StudentImportRejectedError",
    "StudentImportService",
    "StudentNotFoundError",
    "StudentRow",
    "UploadProgressPublisher",
    "UploadRunner",
    "UploadSessionNotFoundError",
    "UploadSessionStore",
    "UploadSessionStoreError",
    "UploadTooLargeError",
    "build_upload_runner",
    "parse_student_csv",
]
