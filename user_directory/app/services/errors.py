"""
Transport‑independent error taxonomy.

Every failure the service reports is a ``ServiceError`` carrying one of
three kinds.  Front‑ends map ``ErrorKind`` to their own status codes;
the service itself never deals in HTTP or gRPC statuses.
"""

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"


class ServiceError(Exception):
    """Base class for errors surfaced by ``UserService``."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(ServiceError):
    """Client supplied data that violates a validation rule."""

    kind = ErrorKind.INVALID_INPUT


class NotFoundError(ServiceError):
    """The referenced user does not exist."""

    kind = ErrorKind.NOT_FOUND


class InternalError(ServiceError):
    kind = ErrorKind.INTERNAL
