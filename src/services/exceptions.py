"""
Typed failures raised by the service layer.

Every service operation either returns its result or raises one of these. The
HTTP boundary maps `ServiceError.kind` to a status code, so callers never have
to inspect message text.
"""
from enum import StrEnum


class ErrorKind(StrEnum):
    """Classification of a service failure."""

    VALIDATION = "validation_error"  # caller's fault, do not retry
    NOT_FOUND = "not_found"  # absent, or not visible to this principal
    FORBIDDEN = "forbidden"  # visible, but role is insufficient
    CONFLICT = "conflict"  # uniqueness or state-machine violation; refresh and retry
    INTERNAL = "internal"  # store unavailable or unexpected fault


class ServiceError(Exception):
    """Base class for all typed service failures."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InputValidationError(ServiceError):
    """Raised when input is malformed or out of range."""

    kind = ErrorKind.VALIDATION


class NotFoundError(ServiceError):
    """
    Raised when a referenced entity is absent or belongs to another tenant.

    Cross-tenant access deliberately produces the same error as a missing row.
    """

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, resource_id: object | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        if resource_id is None:
            super().__init__(f"{resource} not found")
        else:
            super().__init__(f"{resource} '{resource_id}' not found")


class ForbiddenError(ServiceError):
    """Raised when the principal can see a resource but lacks the role to act on it."""

    kind = ErrorKind.FORBIDDEN


class ConflictError(ServiceError):
    """Raised on uniqueness violations and invalid state transitions."""

    kind = ErrorKind.CONFLICT


class InternalError(ServiceError):
    """Raised when the store fails in a way the caller cannot fix."""

    kind = ErrorKind.INTERNAL
