"""Storage metrics for Prometheus monitoring.

Tracks facade operations per provider, payload sizes, bucket handles opened
by the factory and cleanup failures that are logged instead of raised.

All metrics are registered with the shared REGISTRY from the prometheus module.

Usage:
    from objectstore.infra.storage.metrics import record_operation_success

    record_operation_success("upload", "s3", duration_seconds=1.5, size_bytes=1048576)
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

from objectstore.infra.metrics.prometheus import REGISTRY

# Network operations; 10ms to 30s
STORAGE_LATENCY_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)

# 1KB to 100MB
STORAGE_SIZE_BUCKETS = (1024, 10240, 102400, 1048576, 10485760, 52428800, 104857600)

storage_operations_total = Counter(
    "storage_operations_total",
    "Total storage operations",
    ["operation", "provider", "status"],
    registry=REGISTRY,
)

storage_operation_duration_seconds = Histogram(
    "storage_operation_duration_seconds",
    "Storage operation duration in seconds",
    ["operation", "provider"],
    buckets=STORAGE_LATENCY_BUCKETS,
    registry=REGISTRY,
)

storage_object_size_bytes = Histogram(
    "storage_object_size_bytes",
    "Size of objects uploaded/downloaded in bytes",
    ["operation", "provider"],
    buckets=STORAGE_SIZE_BUCKETS,
    registry=REGISTRY,
)

storage_operations_in_progress = Gauge(
    "storage_operations_in_progress",
    "Number of facade operations currently running",
    ["provider"],
    registry=REGISTRY,
)

storage_errors_total = Counter(
    "storage_errors_total",
    "Storage operation errors by type",
    ["operation", "provider", "error_type"],
    registry=REGISTRY,
)

storage_bucket_opens_total = Counter(
    "storage_bucket_opens_total",
    "Provider bucket handles opened by the factory",
    ["provider", "status"],
    registry=REGISTRY,
)

storage_cleanup_errors_total = Counter(
    "storage_cleanup_errors_total",
    "Close/cleanup failures that were logged and swallowed",
    ["provider", "resource"],
    registry=REGISTRY,
)


def record_operation_success(
    operation: str,
    provider: str,
    duration_seconds: float,
    size_bytes: int | None = None,
) -> None:
    """Record a successful storage operation.

    Args:
        operation: The facade operation (e.g. 'upload', 'get', 'delete')
        provider: Provider label (s3, gcs, azure, local)
        duration_seconds: Operation duration in seconds
        size_bytes: Optional payload size for upload/get
    """
    storage_operations_total.labels(operation=operation, provider=provider, status="success").inc()
    storage_operation_duration_seconds.labels(operation=operation, provider=provider).observe(
        duration_seconds
    )
    if size_bytes is not None:
        storage_object_size_bytes.labels(operation=operation, provider=provider).observe(size_bytes)


def record_operation_error(
    operation: str,
    provider: str,
    error_type: str,
    duration_seconds: float,
) -> None:
    """Record a failed storage operation.

    Args:
        operation: The facade operation
        provider: Provider label
        error_type: The error class name (e.g. 'StorageTimeoutError')
        duration_seconds: Operation duration in seconds before failure
    """
    storage_operations_total.labels(operation=operation, provider=provider, status="error").inc()
    storage_operation_duration_seconds.labels(operation=operation, provider=provider).observe(
        duration_seconds
    )
    storage_errors_total.labels(
        operation=operation, provider=provider, error_type=error_type
    ).inc()


def record_cleanup_error(provider: str, resource: str) -> None:
    """Count a close failure that was logged and not propagated."""
    storage_cleanup_errors_total.labels(provider=provider, resource=resource).inc()
