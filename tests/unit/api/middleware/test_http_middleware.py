"""Unit tests for the BaseHTTPMiddleware-based stages.

Each middleware wraps a minimal Starlette app and is exercised through an
httpx client.
"""

import uuid
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from loguru import logger
from pytest_mock import MockerFixture
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from backbone.api.middleware.request_context import RequestContextMiddleware
from backbone.api.middleware.request_logging import RequestLoggingMiddleware
from backbone.api.middleware.security_headers import SecurityHeadersMiddleware
from backbone.core.config import LogConfig
from backbone.core.context import RequestContext

if TYPE_CHECKING:
    from loguru import Record


async def echo_context(request: Request) -> Response:
    logger.info("inside handler")
    return JSONResponse({"correlation_id": RequestContext.get_correlation_id()})


async def health(request: Request) -> Response:
    return JSONResponse({"status": "ok"})


def build_client(*middleware: Middleware) -> AsyncClient:
    app = Starlette(
        routes=[Route("/items", echo_context), Route("/health", health)],
        middleware=list(middleware),
    )
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.unit
class TestSecurityHeadersMiddleware:
    """Test suite for SecurityHeadersMiddleware."""

    async def test_adds_security_headers(self) -> None:
        """Every response carries the hardening headers."""
        async with build_client(Middleware(SecurityHeadersMiddleware)) as client:
            response = await client.get("/items")

        assert response.headers["x-content-type-options"] == "nosniff"
        assert response.headers["x-frame-options"] == "DENY"
        assert response.headers["x-xss-protection"] == "1; mode=block"
        assert response.headers["strict-transport-security"] == (
            "max-age=31536000; includeSubDomains"
        )
        assert response.headers["content-security-policy"].startswith("default-src 'none'")
        assert response.headers["referrer-policy"] == "no-referrer"
        assert "permissions-policy" in response.headers
        assert response.headers["cache-control"] == "no-store"
        assert response.headers["pragma"] == "no-cache"

    async def test_hsts_can_be_disabled(self) -> None:
        """HSTS is omitted when disabled."""
        async with build_client(
            Middleware(SecurityHeadersMiddleware, hsts_enabled=False)
        ) as client:
            response = await client.get("/items")

        assert "strict-transport-security" not in response.headers
        assert response.headers["x-frame-options"] == "DENY"


@pytest.mark.unit
class TestRequestContextMiddleware:
    """Test correlation ID handling."""

    async def test_propagates_incoming_id(self, captured_logs: list["Record"]) -> None:
        """An incoming ID is stored, bound to logs and echoed."""
        async with build_client(Middleware(RequestContextMiddleware)) as client:
            response = await client.get("/items", headers={"X-Correlation-ID": "given-id"})

        assert response.headers["x-correlation-id"] == "given-id"
        assert response.json() == {"correlation_id": "given-id"}
        handler_records = [r for r in captured_logs if r["message"] == "inside handler"]
        assert handler_records[0]["extra"]["correlation_id"] == "given-id"

    async def test_generates_id_when_missing(self) -> None:
        """A UUID4 is generated when the header is absent."""
        async with build_client(Middleware(RequestContextMiddleware)) as client:
            response = await client.get("/items")

        correlation_id = response.headers["x-correlation-id"]
        assert uuid.UUID(correlation_id).version == 4
        assert response.json() == {"correlation_id": correlation_id}

    async def test_replaces_malformed_id(self) -> None:
        """A malformed incoming ID is not echoed."""
        async with build_client(Middleware(RequestContextMiddleware)) as client:
            response = await client.get("/items", headers={"X-Correlation-ID": "a b;c"})

        correlation_id = response.headers["x-correlation-id"]
        assert correlation_id != "a b;c"
        assert uuid.UUID(correlation_id).version == 4

    async def test_ids_differ_between_requests(self) -> None:
        """Each request without a header gets a fresh ID."""
        async with build_client(Middleware(RequestContextMiddleware)) as client:
            first = await client.get("/items")
            second = await client.get("/items")

        assert first.headers["x-correlation-id"] != second.headers["x-correlation-id"]

    async def test_tags_current_span(self, mocker: MockerFixture) -> None:
        """The correlation ID is attached to the active trace span."""
        tag = mocker.patch("backbone.api.middleware.request_context.tag_current_span")

        async with build_client(Middleware(RequestContextMiddleware)) as client:
            await client.get("/items", headers={"X-Correlation-ID": "span-id"})

        tag.assert_called_once_with("span-id")


@pytest.mark.unit
class TestRequestLoggingMiddleware:
    """Test request logging."""

    async def test_logs_completion(self, captured_logs: list["Record"]) -> None:
        """Completed requests are logged with method, path, status and duration."""
        async with build_client(
            Middleware(RequestLoggingMiddleware, log=logger, log_config=LogConfig())
        ) as client:
            await client.get("/items")

        completed = [r for r in captured_logs if r["message"] == "Request completed"]
        assert len(completed) == 1
        extra = completed[0]["extra"]
        assert extra["method"] == "GET"
        assert extra["path"] == "/items"
        assert extra["status_code"] == 200
        assert extra["duration_ms"] >= 0
        assert extra["client_host"] == "127.0.0.1"

    async def test_excluded_paths_are_not_logged(self, captured_logs: list["Record"]) -> None:
        """Health checks are excluded by default."""
        async with build_client(
            Middleware(RequestLoggingMiddleware, log=logger, log_config=LogConfig())
        ) as client:
            await client.get("/health")

        assert not [r for r in captured_logs if r["message"].startswith("Request ")]

    async def test_slow_request_warning(
        self, mocker: MockerFixture, captured_logs: list["Record"]
    ) -> None:
        """Requests over the threshold produce a warning."""
        mocker.patch.object(RequestLoggingMiddleware, "_elapsed_ms", return_value=2500.0)

        async with build_client(
            Middleware(
                RequestLoggingMiddleware,
                log=logger,
                log_config=LogConfig(slow_request_threshold_ms=1000),
            )
        ) as client:
            await client.get("/items")

        slow = [r for r in captured_logs if r["message"] == "Slow request detected"]
        assert len(slow) == 1
        assert slow[0]["extra"]["duration_ms"] == 2500.0
        assert slow[0]["level"].name == "WARNING"
