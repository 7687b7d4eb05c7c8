"""Context propagation for log/trace correlation across threads and tasks."""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import TYPE_CHECKING
from uuid import uuid4


if TYPE_CHECKING:
    from collections.abc import Generator


trace_context: ContextVar[dict | None] = ContextVar("trace_context", default=None)


def generate_trace_id() -> str:
    """Generate a 32-char hex trace ID."""
    return uuid4().hex


def generate_span_id() -> str:
    """Generate a 16-char hex span ID."""
    return uuid4().hex[:16]


def get_trace_context() -> dict:
    """Get current trace context with trace_id and span_id."""
    ctx = trace_context.get()
    if ctx is None or not ctx.get("trace_id"):
        ctx = {**(ctx or {}), "trace_id": generate_trace_id(), "span_id": generate_span_id()}
        trace_context.set(ctx)
    return ctx


def set_trace_context(trace_id: str, span_id: str, **extra: object) -> Token:
    """Set trace context, e.g. ``index="staging"``, for the current context."""
    return trace_context.set({"trace_id": trace_id, "span_id": span_id, **extra})


def bind_span(trace_id: str, span_id: str) -> Token:
    """Point log correlation at an active span, keeping extra keys such as ``index``."""
    ctx = trace_context.get() or {}
    return trace_context.set({**ctx, "trace_id": trace_id, "span_id": span_id})


@contextmanager
def trace_scope(**extra: object) -> Generator[dict, None, None]:
    """Add keys to the trace context for the duration of the block."""
    ctx = {**(trace_context.get() or {}), **extra}
    token = trace_context.set(ctx)
    try:
        yield ctx
    finally:
        trace_context.reset(token)
