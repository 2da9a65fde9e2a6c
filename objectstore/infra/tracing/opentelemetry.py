"""OpenTelemetry tracing helpers.

The facade only depends on the OpenTelemetry API. Without an SDK configured by
the embedding application every span is a no-op.
"""

from __future__ import annotations

from opentelemetry import trace


def get_tracer(name: str) -> trace.Tracer:
    """Get a tracer instance for creating custom spans.

    Args:
        name: Tracer name, typically __name__ of the module.

    Returns:
        Tracer instance for creating spans.

    Example:
        tracer = get_tracer(__name__)

        async def probe():
            with tracer.start_as_current_span("probe") as span:
                span.set_attribute("storage.provider", "s3")
    """
    return trace.get_tracer(name)
