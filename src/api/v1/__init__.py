# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

Modules:
    student_uploads: Bulk student CSV upload, progress stream and session endpoints.
"""

from fastapi import APIRouter

from src.api.v1 import student_uploads

# Create the main v1 router
router = APIRouter(prefix="/api/v1")

router.include_router(student_uploads.router, prefix="/student-bulk", tags=["Student Bulk Upload"])
