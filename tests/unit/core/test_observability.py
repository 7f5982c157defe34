"""Unit tests for OpenTelemetry setup."""

import pytest
from loguru import logger
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor, SpanExportResult
from pytest_mock import MockerFixture

from backbone.core.config import ObservabilityConfig, Settings
from backbone.core.observability import (
    LoguruSpanExporter,
    get_span_exporter,
    instrument_app,
    setup_tracing,
    tag_current_span,
)


def settings_with(**observability: object) -> Settings:
    return Settings(observability_config=ObservabilityConfig(**observability))


@pytest.mark.unit
class TestGetSpanExporter:
    """Test exporter selection."""

    def test_console_exporter(self) -> None:
        """Console exporter writes through the service logger."""
        exporter = get_span_exporter(settings_with(exporter_type="console"), logger)

        assert isinstance(exporter, LoguruSpanExporter)

    def test_otlp_exporter(self) -> None:
        """OTLP exporter is created for the configured endpoint."""
        exporter = get_span_exporter(
            settings_with(exporter_type="otlp", exporter_endpoint="http://collector:4317"),
            logger,
        )

        assert isinstance(exporter, OTLPSpanExporter)

    def test_none_exporter(self) -> None:
        """The none exporter disables export."""
        assert get_span_exporter(settings_with(exporter_type="none"), logger) is None

    def test_empty_endpoint_becomes_none(self) -> None:
        """An empty endpoint string is treated as unset."""
        assert ObservabilityConfig(exporter_endpoint="").exporter_endpoint is None


@pytest.mark.unit
class TestSetupTracing:
    """Test tracer provider installation."""

    def test_disabled_by_default(self, mocker: MockerFixture) -> None:
        """Nothing is installed when tracing is disabled."""
        set_provider = mocker.patch("backbone.core.observability.trace.set_tracer_provider")

        setup_tracing(Settings(), logger)

        set_provider.assert_not_called()

    def test_enabled_installs_provider(self, mocker: MockerFixture) -> None:
        """Enabling tracing installs a provider with the service resource."""
        set_provider = mocker.patch("backbone.core.observability.trace.set_tracer_provider")

        setup_tracing(settings_with(enable_tracing=True, exporter_type="none"), logger)

        provider = set_provider.call_args.args[0]
        assert isinstance(provider, TracerProvider)
        assert provider.resource.attributes["service.name"] == "Backbone API"

    def test_instrument_app_skipped_when_disabled(self, mocker: MockerFixture) -> None:
        """The application is left untouched when tracing is disabled."""
        instrument = mocker.patch(
            "backbone.core.observability.FastAPIInstrumentor.instrument_app"
        )

        instrument_app(mocker.Mock(), Settings())

        instrument.assert_not_called()


@pytest.mark.unit
class TestSpans:
    """Test span tagging and export."""

    def test_tag_and_export(self, captured_logs: list) -> None:
        """The correlation ID set on the active span is exported through the logger."""
        provider = TracerProvider()
        provider.add_span_processor(SimpleSpanProcessor(LoguruSpanExporter(logger)))
        tracer = provider.get_tracer("tests")

        with tracer.start_as_current_span("request"):
            tag_current_span("corr-1")

        records = [r for r in captured_logs if r["message"] == "Trace span completed: request"]
        assert len(records) == 1
        assert records[0]["extra"]["correlation_id"] == "corr-1"
        assert records[0]["extra"]["span_name"] == "request"

    def test_tag_without_span_is_noop(self) -> None:
        """Tagging outside of a recording span does nothing."""
        tag_current_span("corr-2")

    def test_exporter_reports_success(self) -> None:
        """Exporting an empty batch succeeds."""
        assert LoguruSpanExporter(logger).export([]) is SpanExportResult.SUCCESS
