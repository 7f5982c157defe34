"""Per-request processing deadline.

Downstream processing runs under ``asyncio.timeout``. When the deadline
expires the downstream task is cancelled and the client receives the
TIMEOUT envelope (504). If part of the response was already sent it cannot
be retracted; the expiry is logged and the partial response is left as is.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from backbone.core.exceptions import RequestTimeoutError

if TYPE_CHECKING:
    from loguru import Logger

    from backbone.api.utils.responses import EnvelopeCodec


class TimeoutMiddleware:
    """Pure ASGI middleware enforcing a processing deadline on HTTP requests.

    Args:
        app: The ASGI application to wrap.
        codec: Envelope codec rendering the timeout error.
        log: Service logger handle.
        timeout_seconds: Deadline applied to each request.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        codec: EnvelopeCodec,
        log: Logger,
        timeout_seconds: float,
    ) -> None:
        self.app = app
        self.codec = codec
        self.log = log
        self.timeout_seconds = timeout_seconds

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        deadline = asyncio.timeout(self.timeout_seconds)
        try:
            async with deadline:
                await self.app(scope, receive, send_wrapper)
        except TimeoutError:
            # A TimeoutError raised by the handler itself is not a deadline expiry
            if not deadline.expired():
                raise

            self.log.warning(
                "Request exceeded deadline of {}s",
                self.timeout_seconds,
                method=scope["method"],
                path=scope["path"],
                response_started=response_started,
            )
            if response_started:
                return

            response = self.codec.error(
                RequestTimeoutError(context={"timeout_seconds": self.timeout_seconds})
            )
            await response(scope, receive, send)
