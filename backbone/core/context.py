"""Request-scoped correlation ID storage.

The correlation ID of the request being processed lives in a ContextVar.
Each request runs in its own task with its own copy of the context, so
concurrent requests never see each other's IDs. Code outside a request
(startup, shutdown) sees None.
"""

import re
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Final

MAX_CORRELATION_ID_LENGTH: Final[int] = 128

# Client-supplied IDs end up in logs and response headers
_CORRELATION_ID_PATTERN: Final[re.Pattern[str]] = re.compile(r"[A-Za-z0-9._:\-]+")

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


class RequestContext:
    """Access to the correlation ID of the current request."""

    @staticmethod
    def set_correlation_id(correlation_id: str) -> None:
        """Set the correlation ID for the current context."""
        _correlation_id_var.set(correlation_id)

    @staticmethod
    def get_correlation_id() -> str | None:
        """Return the correlation ID of the current context, if any."""
        return _correlation_id_var.get()

    @staticmethod
    def clear() -> None:
        """Forget the correlation ID of the current context."""
        _correlation_id_var.set(None)

    @staticmethod
    @contextmanager
    def scope(correlation_id: str) -> Iterator[str]:
        """Set the correlation ID for the duration of a block.

        The previous value is restored on exit, also when the block raises.

        Args:
            correlation_id: ID to expose inside the block.

        Yields:
            str: The correlation ID.
        """
        token = _correlation_id_var.set(correlation_id)
        try:
            yield correlation_id
        finally:
            _correlation_id_var.reset(token)


def generate_correlation_id() -> str:
    """Generate a unique correlation ID for request tracking.

    Returns:
        str: A string representation of a UUID4.

    Examples:
        >>> correlation_id = generate_correlation_id()
        >>> len(correlation_id)
        36
    """
    return str(uuid.uuid4())


def resolve_correlation_id(candidate: str | None) -> str:
    """Return ``candidate`` if it is a usable correlation ID, else a new one.

    Incoming IDs are accepted when they are at most
    MAX_CORRELATION_ID_LENGTH characters of letters, digits and ``._:-``.
    """
    if (
        candidate
        and len(candidate) <= MAX_CORRELATION_ID_LENGTH
        and _CORRELATION_ID_PATTERN.fullmatch(candidate)
    ):
        return candidate
    return generate_correlation_id()
