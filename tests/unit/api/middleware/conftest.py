"""Fixtures for middleware unit tests."""

import pytest
from loguru import logger
from starlette.types import Receive, Scope, Send

from backbone.api.utils.responses import EnvelopeCodec
from tests.unit.api.middleware.asgi_helpers import ASGICallable, ok_app


@pytest.fixture
def codec() -> EnvelopeCodec:
    """Codec writing to the global logger."""
    return EnvelopeCodec(logger)


@pytest.fixture
def scope_recorder() -> tuple[list[Scope], ASGICallable]:
    """ASGI app that records the scopes it receives."""
    seen: list[Scope] = []

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        seen.append(dict(scope))
        await ok_app(scope, receive, send)

    return seen, app
