"""Error taxonomy shared by the engine, the API and the CLI.

Every error raised on purpose by taskminder is a ``TaskminderError`` subclass
tagged with an ``ErrorKind``. Presentation layers match on ``kind`` rather than
on message strings.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Optional


class ErrorKind(StrEnum):
    """Closed set of error tags."""

    STORAGE = "storage"
    NOT_FOUND = "not_found"
    PERMISSION = "permission"
    VALIDATION = "validation"
    INVALID_TRANSITION = "invalid_transition"


class TaskminderError(Exception):
    """Base class for all taskminder errors."""

    kind: ErrorKind

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses and structured logs."""
        return {"kind": self.kind.value, "message": self.message, "context": self.context}


class StorageError(TaskminderError):
    """Persistence unavailable or corrupt."""

    kind = ErrorKind.STORAGE


class NotFoundError(TaskminderError):
    """An operation referenced an id that does not exist."""

    kind = ErrorKind.NOT_FOUND


class NotificationPermissionError(TaskminderError):
    """Notification permission is absent."""

    kind = ErrorKind.PERMISSION


class TaskValidationError(TaskminderError):
    """Malformed task definition."""

    kind = ErrorKind.VALIDATION


class InvalidTransitionError(TaskminderError):
    """Requested status change is not allowed from the current status."""

    kind = ErrorKind.INVALID_TRANSITION
