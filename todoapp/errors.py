"""Error kinds raised by the stores and rendered by the HTTP layer."""

from __future__ import annotations


class TodoError(RuntimeError):
    """Base class for failures that map onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(TodoError):
    """A required field is missing, empty or malformed."""

    status_code = 400


class DuplicateError(TodoError):
    """A username or email address is already registered."""

    status_code = 400


class AuthenticationError(TodoError):
    """Bad credentials, or a missing, invalid or expired bearer token."""

    status_code = 401


class NotFoundError(TodoError):
    """The resource does not exist or belongs to someone else."""

    status_code = 404


class InternalError(TodoError):
    """Unexpected storage or signing failure. The message stays generic."""

    status_code = 500

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)


__all__ = [
    "AuthenticationError",
    "DuplicateError",
    "InternalError",
    "NotFoundError",
    "TodoError",
    "ValidationError",
]
