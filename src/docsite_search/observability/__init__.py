"""Observability module for OpenTelemetry-aligned tracing, metrics, and logging."""

from docsite_search.observability.context import (
    bind_span,
    get_trace_context,
    set_trace_context,
    trace_context,
    trace_scope,
)
from docsite_search.observability.logging import JsonFormatter, configure_logging
from docsite_search.observability.metrics import (
    INDEX_BUILD_LATENCY,
    INDEX_DOC_COUNT,
    INDEX_TERM_COUNT,
    QUERY_COUNT,
    SEARCH_LATENCY,
    get_metrics,
    get_metrics_content_type,
    init_metrics,
    track_latency,
)
from docsite_search.observability.tracing import create_span, get_tracer, init_tracing, set_tracer


__all__ = [
    "INDEX_BUILD_LATENCY",
    "INDEX_DOC_COUNT",
    "INDEX_TERM_COUNT",
    "QUERY_COUNT",
    "SEARCH_LATENCY",
    "JsonFormatter",
    "bind_span",
    "configure_logging",
    "create_span",
    "get_metrics",
    "get_metrics_content_type",
    "get_trace_context",
    "get_tracer",
    "init_metrics",
    "init_tracing",
    "set_trace_context",
    "set_tracer",
    "trace_context",
    "trace_scope",
    "track_latency",
]
