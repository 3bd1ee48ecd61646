# villa_sync/observability/metrics.py
# minimal prometheus instrumentation for the sync client

from __future__ import annotations

import os
from typing import Optional, Tuple

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    CollectorRegistry,
    CONTENT_TYPE_LATEST,
    generate_latest,
)

# Detect multiprocess mode via environment.
# NOTE: PROMETHEUS_MULTIPROC_DIR must be set BEFORE importing this module in real multi-proc setups.
PROM_MP_DIR = os.environ.get("PROMETHEUS_MULTIPROC_DIR")
HAVE_MP = bool(PROM_MP_DIR and os.path.isdir(PROM_MP_DIR))

# Metrics always live in the default registry; in multiprocess mode a separate
# collection registry aggregates the per-process files for /metrics.
REGISTRY: Optional[CollectorRegistry] = None
if HAVE_MP:
    from prometheus_client.multiprocess import MultiProcessCollector

    REGISTRY = CollectorRegistry()
    MultiProcessCollector(REGISTRY)

_gauge_kwargs = {"multiprocess_mode": "livesum"} if HAVE_MP else {}

SHAPE_FETCH_COUNT = Counter(
    "shape_fetch_count",
    "Shape fetches by table and outcome",
    labelnames=("table", "outcome"),
)
SHAPE_FETCH_LATENCY = Histogram(
    "shape_fetch_latency_seconds",
    "Shape fetch latency in seconds",
    labelnames=("table",),
)
ACTIVE_SUBSCRIPTIONS = Gauge(
    "shape_subscriptions_active",
    "Subscriptions currently registered",
    **_gauge_kwargs,
)
POLL_LOOPS = Gauge(
    "shape_poll_loops_running",
    "Poll loops currently running",
    **_gauge_kwargs,
)
SYNC_CONNECTED = Gauge(
    "sync_service_connected",
    "1 when the last health check reported the sync service active",
    **({"multiprocess_mode": "max"} if HAVE_MP else {}),
)


def observe_fetch(table: str, outcome: str, elapsed: float) -> None:
    SHAPE_FETCH_COUNT.labels(table, outcome).inc()
    SHAPE_FETCH_LATENCY.labels(table).observe(elapsed)


def render_latest() -> Tuple[bytes, str]:
    """// expose /metrics payload from the configured registry"""
    if REGISTRY is not None:
        return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
    return generate_latest(), CONTENT_TYPE_LATEST
