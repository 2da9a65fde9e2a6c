"""Storage facade over S3, GCS, Azure Blob and local filesystems.

Quick Start:
    from objectstore.core.schemas import Backend
    from objectstore.infra.storage import new_blob_storage

    backend = Backend.model_validate({"local": {"mountPath": "/data"}})
    storage = await new_blob_storage(backend, namespace="default")
    await storage.upload("reports/today.json", b"{}", "application/json")
"""

from __future__ import annotations

from .exceptions import (
    StorageAggregateError,
    StorageConfigurationError,
    StorageDownloadError,
    StorageError,
    StorageFileNotFoundError,
    StoragePermissionError,
    StorageQuotaExceededError,
    StorageSecretNotFoundError,
    StorageTimeoutError,
    StorageUploadError,
    StorageValidationError,
    is_not_found,
)
from .service import BlobStorage, blob_storage_from_settings, new_blob_storage, split_path

__all__ = [
    "BlobStorage",
    "StorageAggregateError",
    "StorageConfigurationError",
    "StorageDownloadError",
    "StorageError",
    "StorageFileNotFoundError",
    "StoragePermissionError",
    "StorageQuotaExceededError",
    "StorageSecretNotFoundError",
    "StorageTimeoutError",
    "StorageUploadError",
    "StorageValidationError",
    "blob_storage_from_settings",
    "is_not_found",
    "new_blob_storage",
    "split_path",
]
