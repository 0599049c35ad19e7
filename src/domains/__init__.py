# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for the school portal backend.

This package contains domain services that encapsulate business logic.

Domains:
    auth: JWT token handling.
    directory: School directory records (year groups, classes, students, parents).
    bulk_upload: CSV student import, upload sessions and progress streaming.
"""
