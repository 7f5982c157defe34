"""Client address resolution behind reverse proxies.

Rewrites the ASGI ``client`` of each request to the address reported by the
most trusted proxy header present, so logging and rate limiting downstream
see the real caller instead of the load balancer.

Header precedence:
1. ``True-Client-IP``
2. ``X-Real-IP``
3. First entry of ``X-Forwarded-For``
4. The transport peer address
"""

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Receive, Scope, Send

from backbone.api.constants import (
    FORWARDED_FOR_HEADER,
    REAL_IP_HEADER,
    TRUE_CLIENT_IP_HEADER,
)


def resolve_client_ip(headers: Headers) -> str | None:
    """Return the client address reported by proxy headers, if any."""
    for header in (TRUE_CLIENT_IP_HEADER, REAL_IP_HEADER):
        value = headers.get(header, "").strip()
        if value:
            return value

    forwarded_for = headers.get(FORWARDED_FOR_HEADER, "")
    first_hop = forwarded_for.split(",", 1)[0].strip()
    return first_hop or None


class RealIPMiddleware:
    """Pure ASGI middleware replacing ``scope["client"]`` with the resolved address."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] in ("http", "websocket"):
            client_ip = resolve_client_ip(Headers(scope=scope))
            if client_ip is not None:
                peer = scope.get("client")
                port = peer[1] if peer else 0
                scope["client"] = (client_ip, port)

        await self.app(scope, receive, send)
