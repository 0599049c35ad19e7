# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Logging context middleware for background processing.

Binds the Dramatiq message id and actor name to the structlog context
while a message is processed, so every log line a task emits can be tied
back to its message.
"""

import logging
from typing import Any

import dramatiq
from dramatiq import Message, Middleware

from src.utils.logging import bind_context, clear_context

logger = logging.getLogger(__name__)


class LogContextMiddleware(Middleware):
    """Binds message metadata to the logging context of worker threads."""

    def before_process_message(
        self,
        broker: dramatiq.Broker,
        message: Message,
    ) -> None:
        """Bind message metadata before processing.

        Args:
            broker: The broker instance.
            message: The message being processed.
        """
        bind_context(message_id=message.message_id, actor=message.actor_name)
        logger.debug("Processing message %s (%s)", message.message_id, message.actor_name)

    def after_process_message(
        self,
        broker: dramatiq.Broker,
        message: Message,
        *,
        result: Any = None,
        exception: BaseException | None = None,
    ) -> None:
        """Clear the logging context after processing.

        Args:
            broker: The broker instance.
            message: The processed message.
            result: The result of processing.
            exception: Any exception that occurred.
        """
        clear_context()

    def after_skip_message(
        self,
        broker: dramatiq.Broker,
        message: Message,
    ) -> None:
        """Clear the logging context after skipping a message."""
        clear_context()
