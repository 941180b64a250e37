"""
Observability module for structured logging and tracing.

This module provides:
- Structured logging with structlog (JSON or console rendering)
- OpenTelemetry spans around completion-endpoint round trips
- Correlation ID generation and propagation
- Credential redaction for diagnostics
"""

import logging
import sys
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Optional

import structlog
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Status, StatusCode

SERVICE_NAME = "code-smell-detector"


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """
    Configure structlog for the whole process.

    Args:
        level: Minimum log level name (debug, info, warning, error, critical)
        json_output: Render JSON lines instead of the console format
    """
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        # Logs go to stderr so they never interleave with rendered results
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def setup_tracing(enable_console_export: bool = False) -> TracerProvider:
    """
    Install the global OpenTelemetry tracer provider.

    Args:
        enable_console_export: Whether to export finished spans to the console

    Returns:
        The installed provider
    """
    resource = Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": "0.1.0",
    })
    provider = TracerProvider(resource=resource)
    if enable_console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    return provider


def generate_correlation_id() -> str:
    """Generate a unique correlation ID for one coordinator call."""
    return str(uuid.uuid4())


@contextmanager
def correlation_context(correlation_id: Optional[str] = None):
    """
    Bind a correlation ID to the logging context for the duration of a block.

    Args:
        correlation_id: Optional correlation ID (generates new if None)

    Yields:
        The correlation ID being used
    """
    if correlation_id is None:
        correlation_id = generate_correlation_id()

    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
    try:
        yield correlation_id
    finally:
        structlog.contextvars.unbind_contextvars("correlation_id")


@contextmanager
def trace_operation(
    operation_name: str,
    attributes: Optional[Dict[str, Any]] = None
):
    """
    Trace an operation as an OpenTelemetry span.

    Exceptions escaping the block are recorded on the span and re-raised.

    Args:
        operation_name: Name of the operation being traced
        attributes: Optional attributes to attach to the span

    Yields:
        The span object
    """
    tracer = trace.get_tracer(__name__)
    with tracer.start_as_current_span(operation_name) as span:
        if attributes:
            for key, value in attributes.items():
                span.set_attribute(key, value if isinstance(value, (bool, int, float)) else str(value))

        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, type(e).__name__))
            span.record_exception(e)
            raise


def redact_credential(credential: Optional[str]) -> str:
    """
    Render a credential in a form that is safe to log.

    Only the last four characters of long credentials are kept.
    """
    if not credential:
        return "<none>"
    if len(credential) <= 8:
        return "****"
    return f"****{credential[-4:]}"
