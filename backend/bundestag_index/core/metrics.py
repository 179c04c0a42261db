"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

PASS_COUNT = Counter(
    "btix_passes_total",
    "Indexing passes by outcome",
    labelnames=("outcome",),
    registry=REGISTRY,
)

PASS_DURATION = Histogram(
    "btix_pass_duration_seconds",
    "Duration of indexing passes",
    registry=REGISTRY,
)

DOCUMENTS_INDEXED = Counter(
    "btix_documents_indexed_total",
    "Documents written to the vector store",
    labelnames=("category",),
    registry=REGISTRY,
)

DOCUMENTS_SKIPPED = Counter(
    "btix_documents_skipped_total",
    "Documents skipped because they were already indexed",
    labelnames=("category",),
    registry=REGISTRY,
)

CHUNKS_UPSERTED = Counter(
    "btix_chunks_upserted_total",
    "Points upserted into the vector store",
    labelnames=("collection",),
    registry=REGISTRY,
)

ERRORS = Counter(
    "btix_errors_total",
    "Errors by pipeline stage",
    labelnames=("stage",),
    registry=REGISTRY,
)

RETRIES = Counter(
    "btix_retries_total",
    "Retried upstream calls",
    labelnames=("target",),
    registry=REGISTRY,
)

THROTTLED = Counter(
    "btix_throttled_total",
    "Requests delayed by the local rate limiter",
    labelnames=("limiter",),
    registry=REGISTRY,
)

CIRCUIT_STATE = Gauge(
    "btix_circuit_state",
    "Circuit breaker state (0 closed, 1 half open, 2 open)",
    labelnames=("breaker",),
    registry=REGISTRY,
)

INDEXER_RUNNING = Gauge(
    "btix_indexer_running",
    "Whether an indexing pass is in progress",
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "PASS_COUNT",
    "PASS_DURATION",
    "DOCUMENTS_INDEXED",
    "DOCUMENTS_SKIPPED",
    "CHUNKS_UPSERTED",
    "ERRORS",
    "RETRIES",
    "THROTTLED",
    "CIRCUIT_STATE",
    "INDEXER_RUNNING",
    "metrics_response",
]
