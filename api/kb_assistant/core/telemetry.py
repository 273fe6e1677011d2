"""
Telemetry module for OpenTelemetry + Application Insights.

Traces the chat pipeline: query embedding, vector search, prompt
preparation and the response stream itself.
"""

import logging

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = logging.getLogger(__name__)

SERVICE_NAME = "kb-assistant"

_tracer: trace.Tracer | None = None
_provider: TracerProvider | None = None


def setup_telemetry(connection_string: str) -> None:
    """
    Install the tracer provider and, when configured, the Azure Monitor exporter.

    Args:
        connection_string: Application Insights connection string.
                          If empty, spans are recorded but never exported.
    """
    global _tracer, _provider

    _provider = TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))

    if not connection_string:
        logger.info("No connection string provided. Telemetry export disabled.")
    else:
        try:
            from azure.monitor.opentelemetry.exporter import (
                AzureMonitorTraceExporter,
            )
        except ImportError:
            logger.warning(
                "azure-monitor-opentelemetry-exporter not installed. "
                "Spans for %s will not be exported.",
                SERVICE_NAME,
            )
        else:
            exporter = AzureMonitorTraceExporter(connection_string=connection_string)
            _provider.add_span_processor(BatchSpanProcessor(exporter))
            logger.info("Application Insights telemetry enabled.")

    trace.set_tracer_provider(_provider)
    _tracer = trace.get_tracer(SERVICE_NAME)


def shutdown_telemetry() -> None:
    """Flush pending spans on application shutdown."""
    global _provider
    if _provider is not None:
        _provider.shutdown()
        _provider = None


def get_tracer() -> trace.Tracer:
    """Return the application tracer, initializing a no-op if not set up."""
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(SERVICE_NAME)
    return _tracer
