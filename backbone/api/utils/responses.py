"""JSON rendering and the envelope codec.

ORJSONResponse is the default response class of the application; it encodes
with orjson and hands anything orjson cannot encode natively (Pydantic
models, sets, ...) to pydantic's ``to_jsonable_python``.

EnvelopeCodec is the single place where handler results and errors become
HTTP responses. Handlers, exception handlers and middleware all go through
it, so every body on the wire has the same envelope and every server-side
failure is logged the same way.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

import orjson
from fastapi import Request
from fastapi.responses import JSONResponse, Response
from pydantic_core import PydanticSerializationError, to_jsonable_python
from starlette import status

from backbone.api.schemas.envelope import (
    PaginationMeta,
    error_body,
    paginated_body,
    success_body,
)
from backbone.core.context import RequestContext
from backbone.core.error_context import sanitize_error_context
from backbone.core.exceptions import AppError, InternalError

if TYPE_CHECKING:
    from loguru import Logger


class ORJSONResponse(JSONResponse):
    """JSON response encoded with orjson.

    Attributes:
        media_type: The media type for the response.
    """

    media_type = "application/json"

    def render(self, content: Any) -> bytes:  # noqa: ANN401 - accepts any JSON-serializable content
        """Render the content as JSON using orjson.

        Args:
            content: The content to serialize to JSON.

        Returns:
            bytes: The JSON-encoded bytes.

        Raises:
            orjson.JSONEncodeError: If the content cannot be encoded.
        """
        return orjson.dumps(
            content,
            default=to_jsonable_python,
            option=orjson.OPT_SORT_KEYS,
        )


class EnvelopeCodec:
    """Builds enveloped responses and logs server-side failures.

    Args:
        log: Service logger handle.
        sensitive_fields: Extra context keys redacted from error logs.
    """

    def __init__(self, log: Logger, sensitive_fields: Sequence[str] = ()) -> None:
        self.log = log
        self.sensitive_fields = tuple(sensitive_fields)

    def ok(self, data: object = None) -> Response:
        """200 with ``{"success": true, "data": ...}``."""
        return self._render(status.HTTP_200_OK, success_body(data))

    def created(self, data: object = None) -> Response:
        """201 with ``{"success": true, "data": ...}``."""
        return self._render(status.HTTP_201_CREATED, success_body(data))

    def no_content(self) -> Response:
        """204 with an empty body and no envelope."""
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    def paginated(self, data: Sequence[object], meta: PaginationMeta) -> Response:
        """200 with one page of items and its pagination meta."""
        return self._render(status.HTTP_200_OK, paginated_body(data, meta))

    def error(
        self,
        error: AppError,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        """Render an error envelope with the status of the error's kind.

        Server errors are logged with their cause and traceback; the client
        only ever receives the kind's code and the error's safe message.

        Args:
            error: The error to render.
            headers: Extra response headers, e.g. ``Allow`` or ``Retry-After``.

        Returns:
            Response: JSON error envelope.
        """
        if error.is_server_error:
            self._log_server_error(error)

        return ORJSONResponse(
            error_body(error),
            status_code=error.http_status,
            headers=dict(headers) if headers else None,
        )

    def _render(self, status_code: int, body: dict[str, Any]) -> Response:
        try:
            return ORJSONResponse(body, status_code=status_code)
        except (orjson.JSONEncodeError, PydanticSerializationError, TypeError, ValueError) as exc:
            return self.error(
                InternalError(exc, context={"stage": "response_encoding"})
            )

    def _log_server_error(self, error: AppError) -> None:
        failure = error.cause if error.cause is not None else error
        context = sanitize_error_context(failure, error.context, self.sensitive_fields)
        context["error_code"] = error.code
        context["correlation_id"] = RequestContext.get_correlation_id()
        self.log.opt(exception=error.cause).bind(**context).error(
            "Request failed with {}: {}", error.code, error.message
        )


def get_codec(request: Request) -> EnvelopeCodec:
    """FastAPI dependency returning the application's envelope codec."""
    codec: EnvelopeCodec = request.app.state.codec
    return codec
