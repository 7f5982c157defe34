"""Fault containment for the request pipeline.

Any exception escaping the stages below is turned into the internal error
envelope (500). The cause is logged with its traceback by the codec and
never reaches the client. When the response has already started, nothing
can be sent any more; the fault is logged and re-raised so the server
closes the connection.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from backbone.core.exceptions import InternalError

if TYPE_CHECKING:
    from loguru import Logger

    from backbone.api.utils.responses import EnvelopeCodec


class RecovererMiddleware:
    """Pure ASGI middleware converting unhandled exceptions into 500 envelopes.

    Args:
        app: The ASGI application to wrap.
        codec: Envelope codec rendering and logging the internal error.
        log: Service logger handle.
    """

    def __init__(self, app: ASGIApp, *, codec: EnvelopeCodec, log: Logger) -> None:
        self.app = app
        self.codec = codec
        self.log = log

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

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            if response_started:
                self.log.opt(exception=exc).error(
                    "Unhandled exception after response started",
                    method=scope["method"],
                    path=scope["path"],
                )
                raise

            error = InternalError(
                exc, context={"method": scope["method"], "path": scope["path"]}
            )
            response = self.codec.error(error)
            await response(scope, receive, send)
