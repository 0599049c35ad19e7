# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""School directory domain.

Find-or-create operations for year groups, classes, students, parents
and their links.
"""

from src.domains.directory.service import (
    CompensationLog,
    DirectoryError,
    DirectoryService,
    RecordPersistenceError,
    StudentDetails,
)

__all__ = [
    "CompensationLog",
    "DirectoryError",
    "DirectoryService",
    "RecordPersistenceError",
    "StudentDetails",
]
