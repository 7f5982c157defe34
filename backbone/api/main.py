"""FastAPI application factory.

This module assembles the request pipeline:
- Application lifespan logging (startup/shutdown)
- Middleware registration in the correct order
- Exception handler registration
- Health check and versioned API routes
- Optional OpenTelemetry instrumentation

Middleware run in reverse order of registration: the last one added is the
first to see a request. The resulting order, outermost first, is in-flight
tracking, request context, client address, security headers, request
logging, fault containment, deadline, CORS and rate limiting, followed by
FastAPI's exception handlers and the router.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from backbone.api.middleware.cors import CorsAllowListMiddleware
from backbone.api.middleware.error_handler import register_exception_handlers
from backbone.api.middleware.in_flight import InFlightMiddleware, InFlightTracker
from backbone.api.middleware.rate_limit import RateLimitMiddleware
from backbone.api.middleware.real_ip import RealIPMiddleware
from backbone.api.middleware.recoverer import RecovererMiddleware
from backbone.api.middleware.request_context import RequestContextMiddleware
from backbone.api.middleware.request_logging import RequestLoggingMiddleware
from backbone.api.middleware.security_headers import SecurityHeadersMiddleware
from backbone.api.middleware.timeout import TimeoutMiddleware
from backbone.api.routes import build_api_router, health_router
from backbone.api.utils.responses import EnvelopeCodec, ORJSONResponse
from backbone.core.observability import instrument_app, setup_tracing

if TYPE_CHECKING:
    from loguru import Logger

    from backbone.core.config import Settings


@asynccontextmanager
async def lifespan(app_instance: FastAPI) -> AsyncGenerator[None]:
    """Log application startup and shutdown.

    Args:
        app_instance: The FastAPI application instance.

    Yields:
        None: Nothing is yielded, this is just a lifespan context.
    """
    log: Logger = app_instance.state.logger
    log.info(
        "Application startup complete - {} v{}",
        app_instance.title,
        app_instance.version,
    )

    yield

    log.info("Application shutdown complete")


def create_app(settings: Settings, log: Logger) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Loaded application settings.
        log: Service logger handle shared by every component.

    Returns:
        FastAPI: Configured application; its in-flight tracker is available
            as ``app.state.in_flight``.
    """
    setup_tracing(settings, log)

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.is_development else None,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    codec = EnvelopeCodec(log, settings.log_config.sensitive_fields)
    tracker = InFlightTracker()

    application.state.settings = settings
    application.state.logger = log
    application.state.codec = codec
    application.state.in_flight = tracker

    register_exception_handlers(application)

    # 9. Rate limiting (closest to the router)
    application.add_middleware(
        RateLimitMiddleware,
        codec=codec,
        log=log,
        config=settings.rate_limit_config,
    )

    # 8. CORS allow-list
    application.add_middleware(CorsAllowListMiddleware, config=settings.cors_config)

    # 7. Per-request deadline
    application.add_middleware(
        TimeoutMiddleware,
        codec=codec,
        log=log,
        timeout_seconds=settings.server_config.request_timeout_seconds,
    )

    # 6. Fault containment
    application.add_middleware(RecovererMiddleware, codec=codec, log=log)

    # 5. Request logging
    application.add_middleware(
        RequestLoggingMiddleware, log=log, log_config=settings.log_config
    )

    # 4. Security headers
    application.add_middleware(SecurityHeadersMiddleware)

    # 3. Client address resolution
    application.add_middleware(RealIPMiddleware)

    # 2. Correlation ID
    application.add_middleware(RequestContextMiddleware)

    # 1. In-flight tracking (outermost)
    application.add_middleware(InFlightMiddleware, tracker=tracker)

    application.include_router(health_router)
    application.include_router(build_api_router())

    instrument_app(application, settings)

    log.debug("Application created", environment=settings.environment)
    return application
