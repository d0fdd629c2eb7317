"""Failure types raised by the stores and services.

Components raise these and let them propagate; only the HTTP layer turns them
into responses.
"""

from __future__ import annotations


class TaskManagerError(Exception):
    """Base class for every expected failure."""

    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(TaskManagerError):
    default_message = "Invalid input"


class UnauthenticatedError(TaskManagerError):
    default_message = "Not authorized, no token"


class ForbiddenError(TaskManagerError):
    default_message = "Not authorized to access this resource"


class NotFoundError(TaskManagerError):
    default_message = "Resource not found"


class ConflictError(TaskManagerError):
    default_message = "Resource already exists"


class InternalError(TaskManagerError):
    default_message = "Internal server error"


__all__ = [
    "ConflictError",
    "ForbiddenError",
    "InternalError",
    "NotFoundError",
    "TaskManagerError",
    "UnauthenticatedError",
    "ValidationError",
]
