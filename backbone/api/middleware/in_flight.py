"""In-flight request tracking for graceful shutdown.

The lifecycle controller waits on the tracker during the drain: once the
count of active HTTP requests reaches zero the process may stop without
dropping work.
"""

import asyncio

from starlette.types import ASGIApp, Receive, Scope, Send


class InFlightTracker:
    """Counter of active requests with an awaitable idle state.

    Mutated only from the event loop thread.
    """

    def __init__(self) -> None:
        self._active = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def active(self) -> int:
        """Number of requests currently being processed."""
        return self._active

    def enter(self) -> None:
        """Record the start of a request."""
        self._active += 1
        self._idle.clear()

    def exit(self) -> None:
        """Record the end of a request."""
        self._active = max(0, self._active - 1)
        if self._active == 0:
            self._idle.set()

    async def wait_idle(self, timeout: float) -> bool:
        """Wait until no request is active.

        Args:
            timeout: Maximum time to wait, in seconds.

        Returns:
            bool: True if idle was reached, False if the timeout elapsed first.
        """
        try:
            await asyncio.wait_for(self._idle.wait(), timeout)
        except TimeoutError:
            return False
        return True


class InFlightMiddleware:
    """Pure ASGI middleware counting HTTP requests on an InFlightTracker."""

    def __init__(self, app: ASGIApp, *, tracker: InFlightTracker) -> None:
        self.app = app
        self.tracker = tracker

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        self.tracker.enter()
        try:
            await self.app(scope, receive, send)
        finally:
            self.tracker.exit()
