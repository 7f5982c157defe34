"""Process-wide request rate limiting.

A single token bucket is shared by every request. Tokens refill
continuously at ``requests_per_minute / 60`` per second up to ``burst``;
each request takes one token. An empty bucket answers with the
RATE_LIMITED envelope (429) and a ``Retry-After`` header. Exempt paths
(the health probe by default) never consume tokens.

The bucket is only touched from the event loop thread and never awaits
while updating, so it needs no lock.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from starlette.types import ASGIApp, Receive, Scope, Send

from backbone.api.constants import RETRY_AFTER_HEADER
from backbone.core.exceptions import RateLimitedError

if TYPE_CHECKING:
    from loguru import Logger

    from backbone.api.utils.responses import EnvelopeCodec
    from backbone.core.config import RateLimitConfig

SECONDS_PER_MINUTE = 60.0


class TokenBucket:
    """Continuously refilled token bucket.

    Args:
        rate: Tokens added per second.
        capacity: Maximum number of stored tokens.
        clock: Monotonic time source, in seconds.
    """

    def __init__(
        self,
        rate: float,
        capacity: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rate = rate
        self.capacity = capacity
        self._clock = clock
        self._tokens = float(capacity)
        self._updated_at = clock()

    @classmethod
    def from_config(cls, config: RateLimitConfig) -> TokenBucket:
        """Build the bucket described by the rate limit configuration."""
        return cls(config.requests_per_minute / SECONDS_PER_MINUTE, config.burst)

    @property
    def tokens(self) -> float:
        """Tokens currently available."""
        self._refill()
        return self._tokens

    def try_acquire(self) -> bool:
        """Take one token if available."""
        self._refill()
        if self._tokens >= 1:
            self._tokens -= 1
            return True
        return False

    def retry_after(self) -> int:
        """Whole seconds until the next token becomes available."""
        self._refill()
        missing = max(0.0, 1 - self._tokens)
        return max(1, math.ceil(missing / self.rate))

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated_at)
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self.rate)
        self._updated_at = now


class RateLimitMiddleware:
    """Pure ASGI middleware rejecting requests once the bucket is empty.

    Args:
        app: The ASGI application to wrap.
        codec: Envelope codec rendering the rate limit error.
        log: Service logger handle.
        config: Rate limit configuration.
        bucket: Bucket to draw from; built from ``config`` when omitted.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        codec: EnvelopeCodec,
        log: Logger,
        config: RateLimitConfig,
        bucket: TokenBucket | None = None,
    ) -> None:
        self.app = app
        self.codec = codec
        self.log = log
        self.enabled = config.enabled
        self.exempt_paths = frozenset(config.exempt_paths)
        self.bucket = bucket or TokenBucket.from_config(config)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if (
            not self.enabled
            or scope["type"] != "http"
            or scope["path"] in self.exempt_paths
            or self.bucket.try_acquire()
        ):
            await self.app(scope, receive, send)
            return

        retry_after = self.bucket.retry_after()
        self.log.warning(
            "Rate limit exceeded",
            path=scope["path"],
            retry_after=retry_after,
        )
        response = self.codec.error(
            RateLimitedError(),
            headers={RETRY_AFTER_HEADER: str(retry_after)},
        )
        await response(scope, receive, send)
