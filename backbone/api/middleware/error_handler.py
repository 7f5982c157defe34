"""Exception handlers mapping raised errors onto the response envelope.

Route handlers signal failures by raising an AppError subclass. Framework
errors (unknown route, wrong method, request validation) are classified
into the same taxonomy. All of them are rendered by the envelope codec.
Anything else propagates to RecovererMiddleware.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import Response
from starlette.exceptions import HTTPException

from backbone.api.utils.responses import get_codec
from backbone.core.exceptions import AppError, ValidationError, error_for_status

VALIDATION_ROOT_FIELD = "body"


def describe_validation_error(exc: RequestValidationError) -> str:
    """Summarize the first validation failure as a client-safe message.

    Args:
        exc: The validation error raised by FastAPI.

    Returns:
        str: Message naming the offending field, e.g.
            ``validation error on 'limit': Input should be a valid integer``.
    """
    errors = exc.errors()
    if not errors:
        return "validation error"

    first = errors[0]
    location = [str(part) for part in first.get("loc", ())]
    # Drop the source prefix (body, query, path, header, cookie)
    field = ".".join(location[1:]) or (location[0] if location else VALIDATION_ROOT_FIELD)
    return f"validation error on '{field}': {first.get('msg', 'invalid value')}"


async def app_error_handler(request: Request, exc: Exception) -> Response:
    """Render an AppError raised by a route handler.

    Raises:
        TypeError: If exc is not an AppError instance
    """
    if not isinstance(exc, AppError):
        raise TypeError(f"Expected AppError, got {type(exc).__name__}")

    return get_codec(request).error(exc)


async def http_exception_handler(request: Request, exc: Exception) -> Response:
    """Classify a Starlette HTTPException and render it as an envelope.

    Headers attached by the framework, such as ``Allow`` on 405, are kept.

    Raises:
        TypeError: If exc is not an HTTPException instance
    """
    if not isinstance(exc, HTTPException):
        raise TypeError(f"Expected HTTPException, got {type(exc).__name__}")

    error = error_for_status(exc.status_code, str(exc.detail))
    return get_codec(request).error(error, headers=exc.headers)


async def validation_error_handler(request: Request, exc: Exception) -> Response:
    """Render request validation failures as VALIDATION_ERROR.

    Raises:
        TypeError: If exc is not a RequestValidationError instance
    """
    if not isinstance(exc, RequestValidationError):
        raise TypeError(f"Expected RequestValidationError, got {type(exc).__name__}")

    request.app.state.logger.debug(
        "Request validation failed",
        error_count=len(exc.errors()),
        path=request.url.path,
    )
    return get_codec(request).error(ValidationError(describe_validation_error(exc)))


def register_exception_handlers(app: FastAPI) -> None:
    """Register the envelope exception handlers on the application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
