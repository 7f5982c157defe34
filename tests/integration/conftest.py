"""Shared fixtures for integration tests.

The application is built with ``create_app`` and exercised through httpx
over ASGI. A probe router adds handlers that use every codec operation and
failure path, since the service itself only ships the health route.
"""

import asyncio
from collections.abc import AsyncGenerator, Callable
from typing import Annotated

import pytest
from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.responses import Response
from httpx import ASGITransport, AsyncClient
from loguru import logger

from backbone.api.main import create_app
from backbone.api.schemas.envelope import PaginationMeta
from backbone.api.utils.responses import EnvelopeCodec, get_codec
from backbone.core.config import Settings
from backbone.core.exceptions import ConflictError, InternalError

Codec = Annotated[EnvelopeCodec, Depends(get_codec)]

SLOW_HANDLER_SECONDS = 2.0


def build_probe_router() -> APIRouter:
    """Handlers exercising the envelope codec and the failure paths."""
    router = APIRouter(prefix="/probe")

    @router.post("/items")
    async def create_item(codec: Codec) -> Response:
        return codec.created({"id": 1, "name": "widget"})

    @router.delete("/items/{item_id}")
    async def delete_item(item_id: int, codec: Codec) -> Response:
        return codec.no_content()

    @router.get("/items")
    async def list_items(codec: Codec, limit: Annotated[int, Query(ge=1)] = 2) -> Response:
        items = [{"id": i} for i in range(limit)]
        return codec.paginated(items, PaginationMeta(cursor="next", has_more=True))

    @router.get("/conflict")
    async def conflict() -> Response:
        raise ConflictError("item already exists")

    @router.get("/internal")
    async def internal() -> Response:
        raise InternalError(RuntimeError("db password=hunter2 rejected"))

    @router.get("/crash")
    async def crash() -> Response:
        raise RuntimeError("secret stack detail")

    @router.get("/unencodable")
    async def unencodable(codec: Codec) -> Response:
        return codec.ok({"value": object()})

    @router.get("/slow")
    async def slow(codec: Codec, seconds: float = SLOW_HANDLER_SECONDS) -> Response:
        await asyncio.sleep(seconds)
        return codec.ok({"slept": True})

    @router.get("/client")
    async def client_address(request: Request, codec: Codec) -> Response:
        return codec.ok({"host": request.client.host if request.client else None})

    return router


@pytest.fixture
def make_app() -> Callable[[Settings], FastAPI]:
    """Factory building the application plus probe routes for given settings."""

    def factory(settings: Settings) -> FastAPI:
        app = create_app(settings, logger)
        app.include_router(build_probe_router())
        return app

    return factory


@pytest.fixture
def app(make_app: Callable[[Settings], FastAPI], test_settings: Settings) -> FastAPI:
    """Application with default test settings."""
    return make_app(test_settings)


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create test client for the application."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
