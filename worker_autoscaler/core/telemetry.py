from typing import Dict, Optional
import functools
import logging

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource, SERVICE_NAME
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

from worker_autoscaler.core.config import Settings, settings as default_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Global flags to ensure initialization only happens once
_logging_initialized = False
_telemetry_initialized = False


def _initialize_logging():
    global _logging_initialized

    if _logging_initialized:
        return

    logging.basicConfig(level=default_settings.log_level, format=LOG_FORMAT)
    _logging_initialized = True


def configure_telemetry(
    settings: Optional[Settings] = None,
) -> Optional[TracerProvider]:
    """
    Install an OTLP-exporting tracer provider, once.

    Without an exporter endpoint nothing is installed and spans stay no-op.
    """
    global _telemetry_initialized

    settings = settings or default_settings
    if _telemetry_initialized or not settings.otel_exporter_endpoint:
        return None

    resource = Resource(attributes={SERVICE_NAME: settings.otel_service_name})
    provider = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(
        endpoint=settings.otel_exporter_endpoint,
        headers=dict(settings.otel_exporter_headers),
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    _telemetry_initialized = True
    get_logger(__name__).info(
        f"Telemetry exporting to {settings.otel_exporter_endpoint}"
    )
    return provider


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance. Ensures logging is configured.
    Use this instead of logging.getLogger() directly.
    """
    if not _logging_initialized:
        _initialize_logging()
    return logging.getLogger(name)


def trace_span(func):
    """Decorator that creates a span named after the (class-qualified) function."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        span_name = func.__name__
        if args and hasattr(args[0], "__class__") and hasattr(args[0], func.__name__):
            span_name = f"{args[0].__class__.__name__}.{func.__name__}"

        tracer = trace.get_tracer("worker_autoscaler")
        with tracer.start_as_current_span(span_name):
            return func(*args, **kwargs)

    return wrapper


def span_attributes(attributes: Dict[str, str]) -> None:
    """Attach attributes to the current span, if one is recording."""
    current_span = trace.get_current_span()
    if current_span and current_span.is_recording():
        current_span.set_attributes(attributes)
