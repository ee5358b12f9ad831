"""Prometheus metrics for ingestion, flushing and search."""

from __future__ import annotations

from contextlib import contextmanager
import time
from typing import TYPE_CHECKING

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest


if TYPE_CHECKING:
    from collections.abc import Generator


OCCURRENCES_INGESTED = Counter(
    "index_occurrences_ingested_total",
    "Occurrences written to a storage engine by the ingestion consumer",
    ["engine"],
)

INGEST_ERRORS = Counter(
    "index_ingest_errors_total",
    "Occurrences dropped because the storage engine rejected them",
    ["engine"],
)

PIPELINE_DEPTH = Gauge(
    "index_pipeline_depth",
    "Occurrences waiting in the ingestion queue",
)

FLUSH_BATCHES = Counter(
    "index_flush_batches_total",
    "Bulk occurrence flushes by outcome",
    ["status"],
)

FLUSHED_OCCURRENCES = Counter(
    "index_flushed_occurrences_total",
    "Occurrences persisted by bulk flushes",
)

DROPPED_OCCURRENCES = Counter(
    "index_dropped_occurrences_total",
    "Buffered occurrences discarded after a failed flush",
)

SEARCH_COUNT = Counter(
    "index_search_requests_total",
    "Search requests by outcome",
    ["status"],
)

SEARCH_LATENCY = Histogram(
    "index_search_latency_seconds",
    "Search query latency",
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)


@contextmanager
def track_latency(histogram: Histogram, **labels: str) -> Generator[None, None, None]:
    """Context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        target = histogram.labels(**labels) if labels else histogram
        target.observe(time.perf_counter() - start)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get content type for metrics endpoint."""
    return CONTENT_TYPE_LATEST
