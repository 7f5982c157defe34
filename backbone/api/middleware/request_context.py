"""Request context middleware for correlation IDs.

Every request is tagged with a correlation ID, taken from the incoming
``X-Correlation-ID`` header when it is well formed and freshly generated
otherwise. The ID is stored in the request context for the duration of the
request, bound to every log record emitted meanwhile, attached to the active
trace span and echoed back to the client.
"""

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from backbone.api.constants import CORRELATION_ID_HEADER
from backbone.core.context import RequestContext, resolve_correlation_id
from backbone.core.observability import tag_current_span


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware to manage request context and correlation IDs."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Process the request with context management.

        Args:
            request: The incoming request.
            call_next: The next middleware/endpoint.

        Returns:
            Response: Response with correlation ID header.
        """
        correlation_id = resolve_correlation_id(
            request.headers.get(CORRELATION_ID_HEADER)
        )
        tag_current_span(correlation_id)

        with (
            RequestContext.scope(correlation_id),
            logger.contextualize(correlation_id=correlation_id),
        ):
            response = await call_next(request)

        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response
