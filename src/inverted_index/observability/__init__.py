"""Observability module for structured logging, Prometheus metrics, and tracing."""

from inverted_index.observability.logging import JsonFormatter, configure_logging
from inverted_index.observability.metrics import (
    DROPPED_OCCURRENCES,
    FLUSH_BATCHES,
    FLUSHED_OCCURRENCES,
    INGEST_ERRORS,
    OCCURRENCES_INGESTED,
    PIPELINE_DEPTH,
    SEARCH_COUNT,
    SEARCH_LATENCY,
    get_metrics,
    get_metrics_content_type,
    track_latency,
)
from inverted_index.observability.tracing import (
    TraceContextMiddleware,
    TraceIds,
    bind_trace_ids,
    create_span,
    current_trace_ids,
    get_tracer,
    init_tracing,
)


__all__ = [
    "DROPPED_OCCURRENCES",
    "FLUSHED_OCCURRENCES",
    "FLUSH_BATCHES",
    "INGEST_ERRORS",
    "OCCURRENCES_INGESTED",
    "PIPELINE_DEPTH",
    "SEARCH_COUNT",
    "SEARCH_LATENCY",
    "JsonFormatter",
    "TraceContextMiddleware",
    "TraceIds",
    "bind_trace_ids",
    "configure_logging",
    "create_span",
    "current_trace_ids",
    "get_metrics",
    "get_metrics_content_type",
    "get_tracer",
    "init_tracing",
    "track_latency",
]
