"""Structured logging built on Loguru.

This module configures the process-wide Loguru sink once, during service
initialization, and hands back a bound logger that is passed explicitly to
every component that logs. Request-scoped fields (correlation ID, method,
path) are attached with ``logger.contextualize`` by the middleware.

Formatter types:
- **console**: Human-readable with inline context (development)
- **json**: One JSON object per line (staging, production)

Standard library loggers, uvicorn's included, are routed through
InterceptHandler so all output shares one format.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Final, cast

from loguru import logger

from backbone.core.constants import REDACTED

if TYPE_CHECKING:
    from loguru import Logger, Message, Record

    from backbone.core.config import Settings

CORRELATION_ID_DISPLAY_LENGTH: Final[int] = 8
MAX_FIELD_VALUE_LENGTH: Final[int] = 100

# Fields shown first, in this order, by the console formatter
PRIORITY_FIELDS: Final[tuple[str, ...]] = (
    "correlation_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "client_host",
)


def _escape(value: object) -> str:
    """Escape braces and tags so Loguru treats values as plain text."""
    return (
        str(value).replace("{", "{{").replace("}", "}}").replace("<", r"\<")
    )


def _format_priority_field(field: str, value: object) -> str:
    if field == "correlation_id" and len(str(value)) > CORRELATION_ID_DISPLAY_LENGTH:
        value = str(value)[:CORRELATION_ID_DISPLAY_LENGTH]
    elif field == "duration_ms":
        value = f"{value}ms"
    return _escape(value)


def _format_extra_field(key: str, value: object, sensitive_fields: tuple[str, ...]) -> str:
    str_value = str(value)
    if key in sensitive_fields:
        str_value = REDACTED
    elif len(str_value) > MAX_FIELD_VALUE_LENGTH:
        str_value = str_value[: MAX_FIELD_VALUE_LENGTH - 3] + "..."
    return f"{_escape(key)}={_escape(str_value)}"


def make_console_formatter(
    sensitive_fields: tuple[str, ...] = (),
) -> Callable[[Record], str]:
    """Build the development formatter that shows all context fields inline.

    Args:
        sensitive_fields: Extra-field names whose values are redacted.

    Returns:
        Callable[[Record], str]: Loguru format function.
    """

    def format_console_with_context(record: Record) -> str:
        extra = record["extra"]
        parts = [
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green>",
            "<level>{level: <8}</level>",
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan>",
        ]

        context_parts = [
            f"<yellow>{_format_priority_field(field, extra[field])}</yellow>"
            for field in PRIORITY_FIELDS
            if extra.get(field) is not None
        ]
        context_parts.extend(
            f"<dim>{_format_extra_field(key, value, sensitive_fields)}</dim>"
            for key, value in extra.items()
            if key not in PRIORITY_FIELDS and not key.startswith("_") and value is not None
        )
        if context_parts:
            parts.append(" ".join(f"[{part}]" for part in context_parts))

        parts.append(_escape(record["message"]))
        line = " | ".join(parts)
        if record["exception"] is not None:
            line += "\n{exception}"
        return line + "\n"

    return format_console_with_context


def serialize_for_json(record: Record) -> str:
    """Format a log record as a single JSON line.

    Args:
        record: Loguru record to format.

    Returns:
        str: JSON-formatted log entry with newline.
    """
    log_entry: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "logger": record["name"],
        "function": record["function"],
        "line": record["line"],
    }

    log_entry.update(
        {k: v for k, v in record["extra"].items() if not k.startswith("_")}
    )

    if (exc := record["exception"]) is not None:
        log_entry["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value) if exc.value else None,
        }

    return json.dumps(log_entry, default=str) + "\n"


class InterceptHandler(logging.Handler):
    """Intercept standard logging and redirect to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        """Forward log record to Loguru.

        Args:
            record: Standard library LogRecord to forward.
        """
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller outside the logging module
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).bind(
            logger_name=record.name
        ).log(level, record.getMessage())


def uvicorn_log_config() -> dict[str, Any]:
    """Logging dict config that routes uvicorn's loggers through Loguru."""
    handler = {"handlers": ["default"], "level": "INFO", "propagate": False}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "handlers": {
            "default": {"class": "backbone.core.logging.InterceptHandler"},
        },
        "loggers": {
            "uvicorn": handler,
            "uvicorn.error": handler,
            "uvicorn.access": {**handler, "level": "WARNING"},
        },
    }


def setup_logging(settings: Settings) -> Logger:
    """Configure the Loguru sink and return the service logger handle.

    Args:
        settings: Application settings containing log configuration.

    Returns:
        Logger: Logger bound with the service name, to be passed to every
            component that logs.
    """
    logger.remove()

    formatter_type = settings.resolved_log_formatter
    level = settings.resolved_log_level

    if formatter_type == "console":
        logger.add(
            sys.stdout,
            format=cast("Any", make_console_formatter(settings.log_config.sensitive_fields)),
            level=level,
            colorize=True,
            diagnose=settings.debug,
            backtrace=settings.debug,
        )
    else:

        def structured_sink(message: Message) -> None:
            """Write each record as one JSON line."""
            sys.stdout.write(serialize_for_json(message.record))
            sys.stdout.flush()

        logger.add(
            structured_sink,
            level=level,
            enqueue=True,  # Thread-safe async logging
            diagnose=False,
            backtrace=False,
        )

    # Configure standard library logging to use Loguru
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    service_logger = logger.bind(service=settings.app_name)
    service_logger.info(
        "Logging configured with {} formatter",
        formatter_type,
        log_level=level,
        environment=settings.environment,
    )
    return service_logger
