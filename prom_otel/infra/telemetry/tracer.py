"""
Distributed Tracing — Span Handles over the Trace Export Provider
==================================================================

Provides span-based tracing bound to the trace export provider.
Falls back to no-op spans whenever that provider is not accepting
telemetry (before startup completes, or once it starts draining).

Usage:
    tracer = telemetry.traces.tracer(__name__)

    with tracer.span("main.startup", attributes={"example.key": "value"}) as span:
        span.set_attribute("registered_metrics", 3)

    # Or as decorator:
    @trace_span(tracer, "collector.flush")
    async def flush() -> None:
        ...
"""

from __future__ import annotations

import functools
import inspect
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace as otel_trace
from opentelemetry.trace import Status, StatusCode

# ── No-Op Implementation ──────────────────────────────────────────

class NoOpSpan:
    """Zero-cost span when the trace provider is not active."""

    __slots__ = ("attributes", "name", "start_time")

    def __init__(self, name: str = ""):
        self.name = name
        self.start_time = time.monotonic()
        self.attributes: dict[str, Any] = {}

    def set_attribute(self, key: str, value: Any) -> None:
        self.attributes[key] = value

    def set_status(self, status: Any, description: str | None = None) -> None:
        pass

    def add_event(self, name: str, attributes: dict[str, Any] | None = None) -> None:
        pass

    def record_exception(self, exception: BaseException, **kwargs: Any) -> None:
        pass

    def end(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.end()

_KINDS = {
    "internal": otel_trace.SpanKind.INTERNAL,
    "server": otel_trace.SpanKind.SERVER,
    "client": otel_trace.SpanKind.CLIENT,
    "producer": otel_trace.SpanKind.PRODUCER,
    "consumer": otel_trace.SpanKind.CONSUMER,
}

# ── Tracer ─────────────────────────────────────────────────────────

class Tracer:
    """
    Unified tracing interface.

    Wraps an OpenTelemetry tracer and consults ``accepting()`` on every
    span so nothing is recorded outside the provider's active window.
    """

    def __init__(self, otel_tracer: otel_trace.Tracer, accepting: Callable[[], bool]):
        self._tracer = otel_tracer
        self._accepting = accepting

    @contextmanager
    def span(
        self,
        name: str,
        *,
        attributes: dict[str, Any] | None = None,
        kind: str = "internal",
    ) -> Generator[Any, None, None]:
        """
        Create a traced span.

        Args:
            name: Span name (e.g., "main.startup", "sampler.read")
            attributes: Initial span attributes
            kind: Span kind — "internal", "server", "client", "producer", "consumer"
        """
        if not self._accepting():
            noop_span = NoOpSpan(name)
            if attributes:
                noop_span.attributes.update(attributes)
            yield noop_span
            return

        with self._tracer.start_as_current_span(
            name,
            kind=_KINDS.get(kind, otel_trace.SpanKind.INTERNAL),
            attributes=attributes,
            record_exception=False,
            set_status_on_exception=False,
        ) as span:
            try:
                yield span
            except Exception as exc:
                span.record_exception(exc)
                span.set_status(Status(StatusCode.ERROR, str(exc)))
                raise

# ── Decorator ──────────────────────────────────────────────────────

def trace_span(
    tracer: Tracer,
    name: str | None = None,
    *,
    attributes: dict[str, Any] | None = None,
) -> Callable:
    """
    Decorator to trace a function call.

    @trace_span(tracer, "collector.flush")
    async def flush() -> None:
        ...
    """

    def decorator(func: Callable) -> Callable:
        span_name = name or f"{func.__module__}.{func.__qualname__}"

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                with tracer.span(span_name, attributes=attributes):
                    return await func(*args, **kwargs)

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracer.span(span_name, attributes=attributes):
                return func(*args, **kwargs)

        return sync_wrapper

    return decorator
