"""Cross-origin resource sharing with a quiet failure mode.

Starlette's CORSMiddleware answers a rejected preflight with a 400 and a
plain-text reason. Here a rejected preflight is answered with an empty 204
that carries no ``Access-Control-Allow-*`` headers, so the browser blocks
the actual request without learning which part of the allow-list failed.
Simple requests from disallowed origins proceed without permissive headers.
"""

from starlette.datastructures import Headers
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response
from starlette.status import HTTP_200_OK, HTTP_204_NO_CONTENT
from starlette.types import ASGIApp

from backbone.core.config import CorsConfig


class CorsAllowListMiddleware(CORSMiddleware):
    """CORS middleware configured from CorsConfig.

    Args:
        app: The ASGI application to wrap.
        config: Origin, method and header allow-lists.
    """

    def __init__(self, app: ASGIApp, *, config: CorsConfig) -> None:
        super().__init__(
            app,
            allow_origins=config.allowed_origins,
            allow_methods=config.allowed_methods,
            allow_headers=config.allowed_headers,
            allow_credentials=config.allow_credentials,
            expose_headers=config.exposed_headers,
            max_age=config.max_age,
        )

    def preflight_response(self, request_headers: Headers) -> Response:
        """Answer a preflight request; rejections become an empty 204."""
        response = super().preflight_response(request_headers)
        if response.status_code != HTTP_200_OK:
            return Response(status_code=HTTP_204_NO_CONTENT)
        return response
