# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exceptions for the bulk student upload pipeline.

- BulkUploadError: Base exception
- InvalidUploadError: The uploaded file is missing, of the wrong type or unreadable
- EmptyUploadError: The file parsed to zero rows
- UploadTooLargeError: The file exceeds the configured size limit
- UploadSessionNotFoundError: No session exists for an upload id
- UploadSessionStoreError: The session store could not read or write
- RowValidationError: A single row failed validation
- StudentNotFoundError: No student has the requested admission number
- StudentImportRejectedError: A single submitted row could not be imported
"""


class BulkUploadError(Exception):
    """Base exception for bulk upload errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InvalidUploadError(BulkUploadError):
    """Raised when the uploaded file cannot be accepted."""

    pass


class EmptyUploadError(InvalidUploadError):
    """Raised when the uploaded file contains no data rows."""

    def __init__(self) -> None:
        super().__init__("No data found in CSV file or file is empty.")


class UploadTooLargeError(InvalidUploadError):
    """Raised when the uploaded file exceeds the size limit."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(
            f"CSV file is too large ({size} bytes, limit {limit} bytes).",
            details={"size": size, "limit": limit},
        )


class UploadSessionNotFoundError(BulkUploadError):
    """Raised when no upload session exists for an upload id."""

    def __init__(self, upload_id: str) -> None:
        self.upload_id = upload_id
        super().__init__(f"Upload session not found: {upload_id}")


class UploadSessionStoreError(BulkUploadError):
    """Raised when the session store fails to read or write.

    Attributes:
        original_error: The underlying exception.
    """

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class RowValidationError(BulkUploadError):
    """Raised when a row's fields are missing or malformed."""

    pass


class StudentNotFoundError(BulkUploadError):
    """Raised when no student has the requested admission number."""

    def __init__(self, admission_no: str) -> None:
        self.admission_no = admission_no
        super().__init__(f"Student not found: {admission_no}")


class StudentImportRejectedError(BulkUploadError):
    """Raised when a single submitted row is reported as a row failure."""

    pass
