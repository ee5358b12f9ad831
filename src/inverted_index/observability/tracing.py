"""OpenTelemetry tracing, log correlation ids and Starlette middleware.

Every log record carries a ``trace_id``/``span_id`` pair taken from
:func:`current_trace_ids`. HTTP requests bind a pair per request (honoring an
incoming ``X-Trace-Id`` header), and :func:`create_span` rebinds the pair to
the real OpenTelemetry ids for the duration of the span so log lines line up
with exported spans.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.trace import SpanKind, Status, StatusCode


if TYPE_CHECKING:
    from collections.abc import Generator

    from opentelemetry.trace import Span, Tracer

logger = logging.getLogger(__name__)

TRACE_HEADER = b"x-trace-id"

# Module-level tracer storage
_tracer_holder: dict[str, Tracer | None] = {"tracer": None}


@dataclass(frozen=True)
class TraceIds:
    """Correlation ids stamped on log records (hex, OpenTelemetry widths)."""

    trace_id: str
    span_id: str


_trace_ids: ContextVar[TraceIds | None] = ContextVar("index_trace_ids", default=None)


def _new_span_id() -> str:
    return uuid4().hex[:16]


def bind_trace_ids(trace_id: str, span_id: str | None = None) -> TraceIds:
    """Bind ids to the current context; a fresh span id is minted when omitted."""
    ids = TraceIds(trace_id=trace_id, span_id=span_id or _new_span_id())
    _trace_ids.set(ids)
    return ids


def current_trace_ids() -> TraceIds:
    """Ids bound to the current context, minting a new trace outside any request."""
    ids = _trace_ids.get()
    if ids is None:
        ids = bind_trace_ids(uuid4().hex)
    return ids


def init_tracing(
    service_name: str = "inverted-index",
    resource_attributes: dict[str, str] | None = None,
) -> TracerProvider:
    """Initialize OpenTelemetry tracing."""
    attributes = {"service.name": service_name}
    if resource_attributes:
        attributes.update(resource_attributes)
    resource = Resource.create(attributes)
    provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(provider)
    _tracer_holder["tracer"] = trace.get_tracer(__name__)
    logger.info("Tracing initialized for service: %s", service_name)
    return provider


def get_tracer() -> Tracer:
    """Get the configured tracer, falling back to the global provider."""
    if _tracer_holder["tracer"] is None:
        _tracer_holder["tracer"] = trace.get_tracer(__name__)
    return _tracer_holder["tracer"]  # type: ignore[return-value]


@contextmanager
def create_span(
    name: str,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """Create a traced span; log records emitted inside it carry its ids."""
    tracer = get_tracer()
    with tracer.start_as_current_span(name, kind=kind) as span:
        if attributes:
            for key, value in attributes.items():
                span.set_attribute(key, value)

        reset_token = None
        ctx = span.get_span_context()
        if ctx.is_valid:
            reset_token = _trace_ids.set(TraceIds(format(ctx.trace_id, "032x"), format(ctx.span_id, "016x")))

        try:
            yield span
        except Exception as exc:
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            span.record_exception(exc)
            raise
        finally:
            if reset_token is not None:
                _trace_ids.reset(reset_token)


class TraceContextMiddleware:
    """Starlette middleware binding correlation ids per HTTP request."""

    def __init__(self, app: Any) -> None:
        self.app = app

    async def __call__(self, scope: dict, receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        trace_id = headers.get(TRACE_HEADER, b"").decode() or uuid4().hex
        bind_trace_ids(trace_id)
        await self.app(scope, receive, send)
