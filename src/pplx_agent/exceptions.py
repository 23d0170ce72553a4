"""
pplx-agent Exception Hierarchy.

All custom exceptions inherit from AgentError for unified error handling.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)


class AgentError(Exception):
    """Base exception for pplx-agent errors.

    Attributes:
        message: Human-readable error description
        context: Additional context for debugging
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self._log_error()

    def _log_error(self) -> None:
        """Log the error creation at debug level.

        Command handlers report errors to the terminal themselves, so creation
        is only traced here.
        """
        logger.debug(
            f"{self.__class__.__name__}: {self.message}",
            extra={"error_context": self.context},
        )

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} [{ctx}]"
        return self.message


class ConfigError(AgentError):
    """Raised for configuration errors.

    Examples:
        - Malformed config file
        - Missing API key environment variable
    """


class PathEscapeError(AgentError):
    """Raised when a path resolves outside the project root.

    The operation is aborted; the root is never widened to accommodate it.
    """

    def __init__(
        self,
        path: str,
        root: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}
        ctx["root"] = root
        super().__init__(f"Blocked path (outside root): {path}", ctx)
        self.path = path
        self.root = root


class ApiError(AgentError):
    """Raised when the chat-completion API call fails.

    Attributes:
        status_code: HTTP status of the upstream response, if any
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}
        if status_code is not None:
            ctx["status_code"] = status_code
        super().__init__(message, ctx)
        self.status_code = status_code


class NotFoundError(AgentError):
    """Raised for a missing file, session, snippet or workspace."""

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"{kind.capitalize()} not found: {name}")
        self.kind = kind
        self.name = name


class ParseError(AgentError):
    """Raised for malformed command arguments.

    Attributes:
        usage: Usage string echoed back to the user
    """

    def __init__(self, message: str, usage: str | None = None) -> None:
        super().__init__(message)
        self.usage = usage
