# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background processing middleware.

- LogContextMiddleware: binds message metadata to the logging context
"""

from src.infrastructure.background.middleware.log_context import LogContextMiddleware

__all__ = ["LogContextMiddleware"]
