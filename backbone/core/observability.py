"""Optional distributed tracing with OpenTelemetry.

When enabled, every request gets a server span tagged with its correlation
ID, so traces and logs for one request can be joined. Spans are exported
either through the service logger (development) or over OTLP.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Final

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

if TYPE_CHECKING:
    from fastapi import FastAPI
    from loguru import Logger

    from backbone.core.config import Settings

SERVICE_NAME_KEY: Final[str] = "service.name"
SERVICE_VERSION_KEY: Final[str] = "service.version"
ENVIRONMENT_KEY: Final[str] = "deployment.environment"
DEFAULT_OTLP_ENDPOINT: Final[str] = "http://localhost:4317"


class LoguruSpanExporter(SpanExporter):
    """Span exporter that writes finished spans to the service logger."""

    def __init__(self, log: Logger) -> None:
        self.log = log

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        """Log one debug record per finished span."""
        for span in spans:
            span_context = span.get_span_context()
            if span_context is None:
                continue

            attributes = dict(span.attributes or {})
            duration_ms = None
            if span.end_time and span.start_time:
                duration_ms = (span.end_time - span.start_time) // 1_000_000

            self.log.bind(
                trace_id=f"0x{span_context.trace_id:032x}",
                span_id=f"0x{span_context.span_id:016x}",
                correlation_id=attributes.get("correlation_id"),
                span_name=span.name,
                duration_ms=duration_ms,
                status=span.status.status_code.name,
            ).debug("Trace span completed: {}", span.name)

        return SpanExportResult.SUCCESS


def get_span_exporter(settings: Settings, log: Logger) -> SpanExporter | None:
    """Return the exporter selected by configuration, or None when disabled."""
    config = settings.observability_config

    if config.exporter_type == "console":
        return LoguruSpanExporter(log)

    if config.exporter_type == "otlp":
        endpoint = config.exporter_endpoint or DEFAULT_OTLP_ENDPOINT
        log.info("Using OTLP exporter at {}", endpoint)
        return OTLPSpanExporter(endpoint=endpoint, insecure=settings.is_development)

    return None


def setup_tracing(settings: Settings, log: Logger) -> None:
    """Install a tracer provider with the configured sampler and exporter."""
    config = settings.observability_config
    if not config.enable_tracing:
        log.debug("Tracing disabled by configuration")
        return

    tracer_provider = TracerProvider(
        resource=Resource.create(
            {
                SERVICE_NAME_KEY: settings.app_name,
                SERVICE_VERSION_KEY: settings.app_version,
                ENVIRONMENT_KEY: settings.environment,
            }
        ),
        sampler=TraceIdRatioBased(config.trace_sample_rate),
    )

    exporter = get_span_exporter(settings, log)
    if exporter is not None:
        tracer_provider.add_span_processor(BatchSpanProcessor(exporter))

    trace.set_tracer_provider(tracer_provider)
    log.info(
        "Tracing configured",
        exporter_type=config.exporter_type,
        sample_rate=config.trace_sample_rate,
    )


def tag_current_span(correlation_id: str) -> None:
    """Attach the correlation ID to the active server span, if one is recording."""
    span = trace.get_current_span()
    if span.is_recording():
        span.set_attribute("correlation_id", correlation_id)


def instrument_app(app: FastAPI, settings: Settings) -> None:
    """Instrument the application for tracing when tracing is enabled."""
    if not settings.observability_config.enable_tracing:
        return

    FastAPIInstrumentor.instrument_app(
        app,
        excluded_urls="/health",
    )
