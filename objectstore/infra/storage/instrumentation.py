"""Storage operation instrumentation with OpenTelemetry and Prometheus metrics."""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from objectstore.infra.tracing.opentelemetry import get_tracer

from . import metrics

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

_tracer = get_tracer("objectstore.storage")


@asynccontextmanager
async def track_storage_operation(
    operation: str,
    provider: str,
    key: str | None = None,
    location: str | None = None,
    size_bytes: int | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """Track a facade operation with a span and Prometheus metrics.

    The yielded dict can be updated by the caller; its entries become
    ``storage.result.*`` span attributes and ``result_size`` overrides
    ``size_bytes`` for the size histogram.

    Cancellation is not counted as an error; the span is still closed.

    Example:
        async with track_storage_operation("get", "s3", key="a/b.txt") as ctx:
            data = await reader.read()
            ctx["result_size"] = len(data)
    """
    start_time = time.perf_counter()
    context: dict[str, Any] = {}

    span_attributes: dict[str, Any] = {
        "storage.operation": operation,
        "storage.provider": provider,
    }
    if key is not None:
        span_attributes["storage.key"] = key
    if location:
        span_attributes["storage.location"] = location
    if size_bytes is not None:
        span_attributes["storage.size_bytes"] = size_bytes

    in_progress = metrics.storage_operations_in_progress.labels(provider=provider)
    in_progress.inc()

    with _tracer.start_as_current_span(
        f"storage.{operation}",
        attributes=span_attributes,
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        try:
            yield context

            duration = time.perf_counter() - start_time
            for k, v in context.items():
                span.set_attribute(f"storage.result.{k}", str(v))

            metrics.record_operation_success(
                operation=operation,
                provider=provider,
                duration_seconds=duration,
                size_bytes=context.get("result_size", size_bytes),
            )
            span.set_status(Status(StatusCode.OK))

        except Exception as e:
            duration = time.perf_counter() - start_time
            metrics.record_operation_error(
                operation=operation,
                provider=provider,
                error_type=type(e).__name__,
                duration_seconds=duration,
            )
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise

        finally:
            in_progress.dec()


def add_storage_event(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> None:
    """Add an event to the current storage span."""
    span = trace.get_current_span()
    if span and span.is_recording():
        span.add_event(name, attributes=attributes or {})
