# villa_sync/observability/tracing.py
"""
Minimal OpenTelemetry tracing bootstrap.
- Initializes a TracerProvider with a Console exporter.
- Instruments a FastAPI app when one is passed.
- Idempotent: safe to call multiple times.
"""
from __future__ import annotations

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor, ConsoleSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

_OTEL_INITIALIZED = False

TRACER_NAME = "villa_sync"


def init_tracing(app=None, service_name: str = "villa-sync"):
    """// initialize otel tracer (idempotent)

    Pass the FastAPI app to instrument request spans.
    """
    global _OTEL_INITIALIZED

    if not _OTEL_INITIALIZED:
        resource = Resource.create({"service.name": service_name})
        provider = TracerProvider(resource=resource)
        trace.set_tracer_provider(provider)
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
        _OTEL_INITIALIZED = True

    if app is not None:
        FastAPIInstrumentor.instrument_app(app)

    return trace.get_tracer(TRACER_NAME)


def get_tracer():
    """Tracer used by the sync services; a no-op tracer until init_tracing runs."""
    return trace.get_tracer(TRACER_NAME)
