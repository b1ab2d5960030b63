"""Custom application exceptions.

Each exception carries an ``error_class`` so callers can tell "fix your input"
apart from "try again later" and "not allowed" without parsing messages.
"""

from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    error_class: str = "internal_error"

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)

    def __str__(self) -> str:
        return str(self.detail)


class ValidationError(AppException):
    """Bad input, nothing was changed."""

    error_class = "invalid_input"

    def __init__(self, detail: str = "Validation failed", errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors or []
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class NotFoundError(AppException):
    """Resource not found exception."""

    error_class = "not_found"

    def __init__(self, resource: str = "Resource", identifier: str | None = None) -> None:
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} with ID '{identifier}' not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class AuthenticationError(AppException):
    """Authentication failed exception."""

    error_class = "unauthenticated"

    def __init__(self, detail: str = "Authentication failed") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(AppException):
    """Actor lacks permission for the operation."""

    error_class = "forbidden"

    def __init__(self, detail: str = "You don't have permission to perform this action") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class InvalidStateError(AppException):
    """Operation is not legal from the booking's current status.

    Also raised when a concurrent request changed the booking first.
    """

    error_class = "conflict"

    def __init__(
        self,
        detail: str = "This operation is not allowed for the current booking status",
        current_status: str | None = None,
    ) -> None:
        self.current_status = current_status
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class PreconditionError(AppException):
    """A business precondition (e.g. advance payment) is not met."""

    error_class = "precondition_failed"

    def __init__(self, detail: str = "Precondition for this operation is not met") -> None:
        super().__init__(status_code=status.HTTP_412_PRECONDITION_FAILED, detail=detail)


class NoCapacityError(AppException):
    """No free bed in the hostel. Recoverable, retry allocation later."""

    error_class = "retry_later"

    def __init__(self, detail: str = "No beds available in this hostel") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class LockTimeoutError(AppException):
    """Could not acquire an inventory or booking lock in time."""

    error_class = "retry_later"

    def __init__(self, key: str) -> None:
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Resource '{key}' is busy. Please try again.",
        )


class RateLimitExceeded(AppException):
    """Rate limit exceeded exception."""

    error_class = "retry_later"

    def __init__(self, detail: str = "Too many requests. Please try again later.") -> None:
        super().__init__(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=detail)


class ExternalServiceError(AppException):
    """External service error."""

    error_class = "retry_later"

    def __init__(self, service: str, detail: str | None = None) -> None:
        message = f"External service '{service}' is unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=message)
