"""HTTP request/response logging with performance monitoring.

Features:
- **Structured logging**: Request fields bound with ``logger.contextualize``
- **Performance tracking**: Request duration and slow request detection
- **Exclusion patterns**: Configurable path exclusion (e.g., health checks)
- **Error handling**: Logs failures while preserving exception propagation

The client address logged is the one resolved by RealIPMiddleware, and the
correlation ID is already bound by RequestContextMiddleware, so every record
of a request can be aggregated.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from backbone.api.constants import MAX_USER_AGENT_LENGTH
from backbone.core.constants import MILLISECONDS_PER_SECOND

if TYPE_CHECKING:
    from loguru import Logger

    from backbone.core.config import LogConfig


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging HTTP requests and responses.

    Args:
        app: The ASGI application.
        log: Service logger handle.
        log_config: Logging configuration.
    """

    def __init__(self, app: ASGIApp, *, log: Logger, log_config: LogConfig) -> None:
        super().__init__(app)
        self.log = log
        self.excluded_paths = frozenset(log_config.excluded_paths)
        self.slow_request_threshold_ms = log_config.slow_request_threshold_ms

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process the request and log details.

        Args:
            request: The incoming request.
            call_next: The next middleware/endpoint.

        Returns:
            Response: The response from the application.

        Raises:
            Exception: Any exception raised downstream is re-raised after logging.
        """
        if request.url.path in self.excluded_paths:
            return await call_next(request)

        user_agent = request.headers.get("user-agent", "")[:MAX_USER_AGENT_LENGTH]

        with self.log.contextualize(
            method=request.method,
            path=request.url.path,
            client_host=request.client.host if request.client else "unknown",
        ):
            self.log.debug("Request started", user_agent=user_agent or "unknown")
            start_time = time.perf_counter()

            try:
                response = await call_next(request)
            except Exception as exc:
                self.log.error(
                    "Request failed",
                    duration_ms=self._elapsed_ms(start_time),
                    error_type=type(exc).__name__,
                )
                raise

            duration_ms = self._elapsed_ms(start_time)
            self.log.info(
                "Request completed",
                status_code=response.status_code,
                duration_ms=duration_ms,
            )

            if duration_ms > self.slow_request_threshold_ms:
                self.log.warning(
                    "Slow request detected",
                    duration_ms=duration_ms,
                    threshold_ms=self.slow_request_threshold_ms,
                )

            return response

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        return round((time.perf_counter() - start_time) * MILLISECONDS_PER_SECOND, 2)
