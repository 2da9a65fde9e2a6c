"""Prometheus registry shared by every object store metric."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, generate_latest

# Custom registry so embedding applications decide what gets exposed
REGISTRY = CollectorRegistry()


def render_metrics() -> bytes:
    """Serialize all registered metrics in the Prometheus text format."""
    return generate_latest(REGISTRY)
