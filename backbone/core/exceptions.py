"""Closed error taxonomy shared by every handler and middleware.

This module defines the complete set of failures the API can report to a
client. Each failure kind owns exactly one stable wire code and one HTTP
status, so clients can branch on ``code`` without matching on ``message``.

Key components:
- **ErrorKind enum**: The total kind -> (wire code, HTTP status) mapping
- **AppError**: Base exception carrying a client-safe message and an optional
  cause that is only ever logged
- **Specialized exceptions**: One constructor class per kind
- **error_for_status**: Classification of framework HTTP errors into the
  same taxonomy

Adding a kind means adding an ErrorKind member with a unique code and
status and a matching AppError subclass.
"""

from enum import Enum
from typing import Any, ClassVar

INTERNAL_ERROR_MESSAGE = "an internal error occurred"
RATE_LIMITED_MESSAGE = "too many requests, please try again later"
TIMEOUT_MESSAGE = "request timed out"


class ErrorKind(Enum):
    """Every failure kind with its wire code and HTTP status."""

    BAD_REQUEST = ("BAD_REQUEST", 400)
    """Malformed or invalid client input."""

    UNAUTHORIZED = ("UNAUTHORIZED", 401)
    """Missing or invalid credentials."""

    FORBIDDEN = ("FORBIDDEN", 403)
    """Authenticated but not permitted."""

    NOT_FOUND = ("NOT_FOUND", 404)
    """Referenced resource or route is absent."""

    METHOD_NOT_ALLOWED = ("METHOD_NOT_ALLOWED", 405)
    """Route exists but does not accept the request method."""

    CONFLICT = ("CONFLICT", 409)
    """State conflict, e.g. a duplicate."""

    VALIDATION = ("VALIDATION_ERROR", 422)
    """Well-formed request whose fields fail validation."""

    RATE_LIMITED = ("RATE_LIMITED", 429)
    """Rate limit exhausted."""

    INTERNAL = ("INTERNAL_ERROR", 500)
    """Unexpected or wrapped failure."""

    TIMEOUT = ("TIMEOUT", 504)
    """Request exceeded the processing deadline."""

    def __init__(self, code: str, http_status: int) -> None:
        self.code = code
        self.http_status = http_status


class AppError(Exception):
    """Base exception for every failure reported to a client.

    Subclasses bind a fixed ErrorKind; instances carry the client-safe
    message plus diagnostics that stay server-side.

    Args:
        message: Client-safe, human-readable message
        cause: The original exception, logged but never serialized
        context: Additional diagnostic data for logs
    """

    kind: ClassVar[ErrorKind]

    def __init__(
        self,
        message: str,
        *,
        cause: BaseException | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.cause = cause
        self.context = context or {}

        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    @property
    def code(self) -> str:
        """Stable wire code of this error's kind."""
        return self.kind.code

    @property
    def http_status(self) -> int:
        """HTTP status of this error's kind."""
        return self.kind.http_status

    @property
    def is_server_error(self) -> bool:
        """Whether the error is the server's fault (5xx) and must be logged."""
        return self.http_status >= 500

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        cause_str = f", cause={self.cause!r}" if self.cause is not None else ""
        return f"{type(self).__name__}(code='{self.code}', message='{self.message}'{cause_str})"


class BadRequestError(AppError):
    """Malformed or invalid client input."""

    kind = ErrorKind.BAD_REQUEST


class UnauthorizedError(AppError):
    """Missing or invalid credentials."""

    kind = ErrorKind.UNAUTHORIZED


class ForbiddenError(AppError):
    """Caller is authenticated but not permitted to act."""

    kind = ErrorKind.FORBIDDEN


class NotFoundError(AppError):
    """Referenced resource or route does not exist."""

    kind = ErrorKind.NOT_FOUND


class MethodNotAllowedError(AppError):
    """Route does not accept the request method."""

    kind = ErrorKind.METHOD_NOT_ALLOWED


class ConflictError(AppError):
    """Request conflicts with current state."""

    kind = ErrorKind.CONFLICT


class ValidationError(AppError):
    """Request fields failed validation."""

    kind = ErrorKind.VALIDATION


class RateLimitedError(AppError):
    """Rate limit exhausted."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(self, message: str = RATE_LIMITED_MESSAGE) -> None:
        super().__init__(message)


class RequestTimeoutError(AppError):
    """Request processing exceeded its deadline."""

    kind = ErrorKind.TIMEOUT

    def __init__(
        self,
        message: str = TIMEOUT_MESSAGE,
        *,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, context=context)


class InternalError(AppError):
    """Unexpected failure.

    The client always sees the same generic message; the cause text is
    only available to the server-side log.

    Args:
        cause: The underlying exception, if any
        context: Additional diagnostic data for logs
    """

    kind = ErrorKind.INTERNAL

    def __init__(
        self,
        cause: BaseException | None = None,
        *,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(INTERNAL_ERROR_MESSAGE, cause=cause, context=context)


_ERROR_CLASSES: dict[ErrorKind, type[AppError]] = {
    cls.kind: cls
    for cls in (
        BadRequestError,
        UnauthorizedError,
        ForbiddenError,
        NotFoundError,
        MethodNotAllowedError,
        ConflictError,
        ValidationError,
        RateLimitedError,
        InternalError,
        RequestTimeoutError,
    )
}

_KINDS_BY_STATUS: dict[int, ErrorKind] = {kind.http_status: kind for kind in ErrorKind}


def error_for_status(status_code: int, message: str) -> AppError:
    """Classify a framework HTTP status into the error taxonomy.

    Args:
        status_code: HTTP status reported by the framework
        message: Client-safe detail for non-internal kinds

    Returns:
        AppError: Error of the kind owning the status; other 4xx statuses
            become BAD_REQUEST and other 5xx statuses become INTERNAL.
    """
    kind = _KINDS_BY_STATUS.get(status_code)
    if kind is None:
        kind = ErrorKind.INTERNAL if status_code >= 500 else ErrorKind.BAD_REQUEST

    if kind is ErrorKind.INTERNAL:
        return InternalError(context={"status_code": status_code, "detail": message})
    if kind is ErrorKind.RATE_LIMITED:
        return RateLimitedError()
    if kind is ErrorKind.TIMEOUT:
        return RequestTimeoutError()
    return _ERROR_CLASSES[kind](message)
