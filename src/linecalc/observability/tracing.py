"""OpenTelemetry tracing configuration for linecalc.

Document passes and per-line evaluator dispatch are traced when enabled:
- ``linecalc.pass``: one span per full-document pass
- ``linecalc.evaluate_line``: one child span per evaluated line

Environment Variables:
    LINECALC_OTEL_ENABLED: Set to "1" to enable tracing (default: disabled)
    LINECALC_REQUIRE_OTEL: Set to "1" to fail if tracing cannot initialize
    LINECALC_OTEL_SERVICE_NAME: Service name for spans (default: "linecalc")
    LINECALC_OTEL_EXPORTER: Exporter type, "console" or "otlp" (default: "console")
    LINECALC_OTEL_EXPORTER_OTLP_ENDPOINT: OTLP endpoint URL (optional)
    LINECALC_OTEL_RESOURCE_ATTRS: Comma-separated k=v pairs for resource attributes
    LINECALC_OTEL_TEST_CAPTURE: Set to "1" to use the in-memory exporter for tests

Span attributes carry line numbers, evaluator names and outcomes only, never
line text or variable values.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Final

from opentelemetry import trace

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import ReadableSpan, SpanProcessor, TracerProvider

logger = logging.getLogger(__name__)

ENV_OTEL_ENABLED: Final[str] = "LINECALC_OTEL_ENABLED"
ENV_REQUIRE_OTEL: Final[str] = "LINECALC_REQUIRE_OTEL"
ENV_SERVICE_NAME: Final[str] = "LINECALC_OTEL_SERVICE_NAME"
ENV_EXPORTER: Final[str] = "LINECALC_OTEL_EXPORTER"
ENV_OTLP_ENDPOINT: Final[str] = "LINECALC_OTEL_EXPORTER_OTLP_ENDPOINT"
ENV_RESOURCE_ATTRS: Final[str] = "LINECALC_OTEL_RESOURCE_ATTRS"
ENV_TEST_CAPTURE: Final[str] = "LINECALC_OTEL_TEST_CAPTURE"

PASS_SPAN: Final[str] = "linecalc.pass"
LINE_SPAN: Final[str] = "linecalc.evaluate_line"

_TRACER_NAME: Final[str] = "linecalc"

_tracer_provider: TracerProvider | None = None
_is_configured: bool = False
_test_exporter: Any = None  # InMemorySpanExporter when test capture is on


class TracingConfigError(Exception):
    """Raised when tracing configuration fails and LINECALC_REQUIRE_OTEL=1."""


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes")


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, "").strip() or default


def _parse_resource_attrs(attrs_str: str) -> dict[str, str]:
    """Parse ``k=v,k2=v2``; entries without a key or an ``=`` are ignored."""
    result: dict[str, str] = {}
    for pair in attrs_str.split(","):
        key, sep, value = pair.strip().partition("=")
        if sep and key.strip():
            result[key.strip()] = value.strip()
    return result


def _span_processor(exporter_type: str) -> SpanProcessor:
    """Pick the processor for the configured exporter.

    Console output is flushed per span so pass traces interleave with logs;
    OTLP export is batched.
    """
    from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor

    if exporter_type == "console":
        from opentelemetry.sdk.trace.export import ConsoleSpanExporter

        return SimpleSpanProcessor(ConsoleSpanExporter())
    if exporter_type == "otlp":
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

        endpoint = _env(ENV_OTLP_ENDPOINT)
        exporter = OTLPSpanExporter(endpoint=endpoint) if endpoint else OTLPSpanExporter()
        return BatchSpanProcessor(exporter)
    raise TracingConfigError(f"Unknown {ENV_EXPORTER} value: '{exporter_type}'")


def _install_provider(test_capture: bool) -> str:
    """Create and register the global TracerProvider; returns the exporter label."""
    global _tracer_provider, _test_exporter

    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider

    attributes = {"service.name": _env(ENV_SERVICE_NAME, "linecalc")}
    attributes.update(_parse_resource_attrs(_env(ENV_RESOURCE_ATTRS)))
    provider = TracerProvider(resource=Resource.create(attributes))

    if test_capture:
        from opentelemetry.sdk.trace.export import SimpleSpanProcessor
        from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
            InMemorySpanExporter,
        )

        _test_exporter = InMemorySpanExporter()
        provider.add_span_processor(SimpleSpanProcessor(_test_exporter))
        label = "in-memory"
    else:
        label = _env(ENV_EXPORTER, "console")
        provider.add_span_processor(_span_processor(label))

    trace.set_tracer_provider(provider)
    _tracer_provider = provider
    return label


def configure_tracing() -> bool:
    """Set up tracing from the LINECALC_OTEL_* environment.

    Safe to call repeatedly: once a provider is installed later calls return
    True without touching it.

    Returns:
        True if spans will be recorded, False if tracing is off or failed to start.

    Raises:
        TracingConfigError: Initialization failed and LINECALC_REQUIRE_OTEL=1.
    """
    global _is_configured

    if not _env_flag(ENV_OTEL_ENABLED):
        _is_configured = True
        logger.debug("OpenTelemetry tracing disabled (%s not set)", ENV_OTEL_ENABLED)
        return False

    test_capture = _env_flag(ENV_TEST_CAPTURE)
    # The global provider can be set only once per process.
    if test_capture and _test_exporter is not None:
        return True
    if _is_configured and _tracer_provider is not None:
        return True

    _is_configured = True
    try:
        label = _install_provider(test_capture)
    except Exception as e:
        logger.error("Failed to configure OpenTelemetry tracing: %s", e)
        if _env_flag(ENV_REQUIRE_OTEL):
            raise TracingConfigError(
                f"OpenTelemetry tracing required but configuration failed: {e}"
            ) from e
        return False

    logger.info("Tracing document passes: exporter=%s", label)
    return True


def instrument_fastapi(app: Any) -> None:
    """Add request spans to the API app; /health is not traced."""
    if not _env_flag(ENV_OTEL_ENABLED):
        return

    try:
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

        FastAPIInstrumentor.instrument_app(app, excluded_urls="health")
    except Exception as e:
        logger.warning("Failed to instrument FastAPI: %s", e)
        return
    logger.debug("FastAPI instrumented with OpenTelemetry")


def get_tracer() -> trace.Tracer:
    """Tracer for linecalc spans; a no-op tracer until tracing is configured."""
    return trace.get_tracer(_TRACER_NAME)


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None) -> Iterator[trace.Span]:
    """Start a span as the current span, dropping None-valued attributes."""
    clean = {k: v for k, v in (attributes or {}).items() if v is not None}
    with get_tracer().start_as_current_span(name, attributes=clean) as span:
        yield span


def set_span_attributes(span: trace.Span, attributes: dict[str, Any]) -> None:
    """Set attributes on a recording span, skipping None values."""
    if not span.is_recording():
        return
    for key, value in attributes.items():
        if value is not None:
            span.set_attribute(key, value)


def get_test_spans() -> list[ReadableSpan]:
    """Get captured spans from in-memory exporter (for testing).

    Returns:
        List of captured spans if LINECALC_OTEL_TEST_CAPTURE=1, else empty list.
    """
    if _test_exporter is not None:
        return list(_test_exporter.get_finished_spans())
    return []


def clear_test_spans() -> None:
    """Clear captured spans from in-memory exporter (for testing)."""
    if _test_exporter is not None:
        _test_exporter.clear()


def reset_tracing() -> None:
    """Reset tracing configuration (for testing).

    The OpenTelemetry TracerProvider cannot be replaced once set, so the test
    exporter is kept and only its spans are cleared.
    """
    global _is_configured

    clear_test_spans()
    _is_configured = False
