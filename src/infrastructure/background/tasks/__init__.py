# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background task actors.

- Uploads: bulk student upload processing

Usage:
    from src.infrastructure.background.tasks import process_upload_session

    process_upload_session.send(upload_id, [row.to_dict() for row in rows])

Running Workers:
    dramatiq src.infrastructure.background.tasks --processes 2 --threads 4
"""

from src.infrastructure.background.tasks.uploads import process_upload_session

__all__ = ["process_upload_session"]
