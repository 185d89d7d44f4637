"""Errors raised inside Chatterm.

Everything the UI can show to the user derives from :class:`ChattermError`.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)


class ChattermError(Exception):
    """Base exception carrying a user-facing message plus debug context."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}
        logger.debug(
            "%s: %s",
            type(self).__name__,
            message,
            extra={"error_context": self.context},
        )

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value!r}" for key, value in self.context.items())
        return f"{self.message} [{details}]"


class ConfigError(ChattermError):
    """Raised when the credential is missing or a setting cannot be used."""


class TranscriptError(ChattermError):
    """Raised when a transcript update would leave it inconsistent."""


class StreamingError(ChattermError):
    """Raised when a streamed record cannot be decoded or reports an error."""

    def __init__(
        self,
        message: str,
        record: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}
        if record is not None:
            ctx["record"] = record[:200]
        super().__init__(message, ctx)
        self.record = record


class ApiStatusError(ChattermError):
    """Raised when the completion service answers with a non-success status.

    The message is the response body verbatim so it can be shown to the user.
    """

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConnectionError(ChattermError):
    """Raised for network connection errors.

    Attributes:
        host: The host that couldn't be reached
    """

    def __init__(
        self,
        message: str,
        host: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}
        if host:
            ctx["host"] = host
        super().__init__(message, ctx)
        self.host = host
