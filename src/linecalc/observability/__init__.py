"""linecalc observability.

Provides the env-gated OpenTelemetry tracing of document passes.
"""

from linecalc.observability.tracing import configure_tracing, start_span

__all__ = ["configure_tracing", "start_span"]
