"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

SEARCH_COUNT = Counter(
    "frec_searches_total",
    "Completed searches by strategy",
    labelnames=("strategy",),
    registry=REGISTRY,
)

SEARCH_LATENCY = Histogram(
    "frec_search_latency_seconds",
    "End-to-end search latency",
    registry=REGISTRY,
)

STAGE_LATENCY = Histogram(
    "frec_stage_latency_seconds",
    "Latency of individual pipeline stages",
    labelnames=("stage",),
    registry=REGISTRY,
)

DEGRADED_STAGES = Counter(
    "frec_degraded_stages_total",
    "Pipeline stages that failed and were skipped",
    labelnames=("stage",),
    registry=REGISTRY,
)

PROVIDER_RETRIES = Counter(
    "frec_provider_retries_total",
    "Retried calls to external providers",
    labelnames=("provider",),
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "SEARCH_COUNT",
    "SEARCH_LATENCY",
    "STAGE_LATENCY",
    "DEGRADED_STAGES",
    "PROVIDER_RETRIES",
    "metrics_response",
]
