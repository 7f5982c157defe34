"""Sensitive data sanitization for error logging.

Error causes and diagnostic context are written to server-side logs only,
but even there secrets must not appear. This module redacts values whose
field names look sensitive before they reach a log record.

Key features:
- **Pattern matching**: Regex-based detection of sensitive field names
- **Configurable fields**: Additional sensitive names from LogConfig
- **Deep sanitization**: Recursive handling of nested data structures

Original data is never modified; only the logged copies are sanitized.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from re import Pattern
from typing import Any, Final

from backbone.core.constants import REDACTED

DEFAULT_SENSITIVE_PATTERN: Final[Pattern[str]] = re.compile(
    r"(password|passwd|pwd|secret|token|api[_-]?key|apikey|auth|authorization|"
    r"credential|private[_-]?key|access[_-]?key|session|"
    r"ssn|pin|cvv|cvc|card[_-]?number|connection[_-]?string)",
    re.IGNORECASE,
)

# Maximum depth for nested structure sanitization
MAX_DEPTH: Final[int] = 10


def is_sensitive_field(field_name: str, extra_fields: Iterable[str] = ()) -> bool:
    """Check if a field name indicates sensitive data.

    Args:
        field_name: The field name to check.
        extra_fields: Configured names treated as sensitive (substring match).

    Returns:
        bool: True if the field appears to contain sensitive data.
    """
    if DEFAULT_SENSITIVE_PATTERN.search(field_name):
        return True

    field_lower = field_name.lower()
    return any(sensitive.lower() in field_lower for sensitive in extra_fields)


def sanitize_value(
    value: object,
    field_name: str = "",
    depth: int = 0,
    extra_fields: Iterable[str] = (),
) -> object:
    """Sanitize a value if it appears to be sensitive.

    Recurses into dicts, lists and tuples up to MAX_DEPTH.

    Args:
        value: The value to potentially sanitize.
        field_name: The field name for context.
        depth: Current recursion depth.
        extra_fields: Configured names treated as sensitive.

    Returns:
        object: Sanitized value or original if not sensitive.
    """
    if depth > MAX_DEPTH:
        return REDACTED

    if field_name and is_sensitive_field(field_name, extra_fields):
        return REDACTED

    if isinstance(value, dict):
        return {
            k: sanitize_value(v, str(k), depth + 1, extra_fields)
            for k, v in value.items()
        }

    if isinstance(value, list):
        return [sanitize_value(item, "", depth + 1, extra_fields) for item in value]

    if isinstance(value, tuple):
        return tuple(sanitize_value(item, "", depth + 1, extra_fields) for item in value)

    return value


def sanitize_dict(
    data: dict[str, Any], extra_fields: Iterable[str] = ()
) -> dict[str, Any]:
    """Return a copy of ``data`` with sensitive fields redacted."""
    fields = tuple(extra_fields)
    return {key: sanitize_value(value, key, 0, fields) for key, value in data.items()}


def sanitize_error_context(
    error: BaseException,
    context: dict[str, Any] | None = None,
    extra_fields: Iterable[str] = (),
) -> dict[str, Any]:
    """Create sanitized error context for logging.

    Args:
        error: The exception to create context for.
        context: Additional context to include (will be sanitized).
        extra_fields: Configured names treated as sensitive.

    Returns:
        dict[str, Any]: Sanitized error context safe for logging.
    """
    fields = tuple(extra_fields)
    error_context: dict[str, Any] = {"error_type": type(error).__name__}

    if context:
        error_context.update(sanitize_dict(context, fields))

    return error_context
