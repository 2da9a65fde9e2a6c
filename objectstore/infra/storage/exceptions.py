"""Storage-specific exceptions shared by every provider bucket.

This module defines the error taxonomy surfaced by the facade and the
mappers that translate provider SDK errors into it. Callers test for
"object absent" through :func:`is_not_found` instead of inspecting
provider-specific error types.

Example:
    ```python
    from objectstore.infra.storage.exceptions import (
        StorageFileNotFoundError,
        map_boto_error,
    )

    try:
        await client.get_object(Bucket=bucket, Key=key)
    except ClientError as e:
        raise map_boto_error(e, operation="get", key=key) from e
    ```
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from objectstore.core.exceptions import ConfigurationError, ObjectStoreError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from azure.core.exceptions import AzureError
    from botocore.exceptions import ClientError
    from google.api_core.exceptions import GoogleAPIError


class StorageError(ObjectStoreError):
    """Base exception for all storage-related errors.

    Attributes:
        code: Error code identifier for programmatic error handling.
        message: Human-readable error message (alias of ``detail``).
        extra: Additional context (provider, key, operation, ...).

    Example:
        ```python
        raise StorageError(
            message="Failed to connect to storage backend",
            code="STORAGE_CONNECTION_ERROR",
            metadata={"provider": "s3", "endpoint": "s3.amazonaws.com"}
        )
        ```
    """

    def __init__(
        self,
        message: str,
        code: str = "STORAGE_ERROR",
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Initialize storage error.

        Args:
            message: Human-readable error message.
            code: Error code for programmatic handling.
            metadata: Additional error context.
        """
        self.message = message
        super().__init__(code=code, detail=message, extra=metadata or {})


class StorageConfigurationError(StorageError, ConfigurationError):
    """Raised when a backend descriptor or credential bundle is unusable.

    Covers ambiguous or absent provider variants, unknown providers,
    missing credential keys and malformed CA certificate data.
    """

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_CONFIGURATION_ERROR",
            metadata=metadata,
        )


class StorageSecretNotFoundError(StorageConfigurationError):
    """Raised when the named credential secret cannot be resolved."""

    def __init__(
        self,
        namespace: str,
        name: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.namespace = namespace
        self.name = name
        super().__init__(
            f"storage secret {namespace}/{name} not found",
            metadata={"namespace": namespace, "secret": name, **(metadata or {})},
        )
        self.code = "STORAGE_SECRET_NOT_FOUND"


class StorageFileNotFoundError(StorageError):
    """Raised when a requested object does not exist in storage.

    Example:
        ```python
        raise StorageFileNotFoundError(
            f"Object not found: {key}",
            metadata={"bucket": bucket, "key": key}
        )
        ```
    """

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_NOT_FOUND",
            metadata=metadata,
        )


class StorageUploadError(StorageError):
    """Raised when committing an object to storage fails."""

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_UPLOAD_ERROR",
            metadata=metadata,
        )


class StorageDownloadError(StorageError):
    """Raised when reading an object body fails mid-stream."""

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_DOWNLOAD_ERROR",
            metadata=metadata,
        )


class StoragePermissionError(StorageError):
    """Raised when the provider rejects the credentials or the operation.

    Example:
        ```python
        raise StoragePermissionError(
            "Access denied to bucket",
            metadata={"bucket": bucket, "operation": "PutObject"}
        )
        ```
    """

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_PERMISSION_DENIED",
            metadata=metadata,
        )


class StorageQuotaExceededError(StorageError):
    """Raised when the provider reports a quota or throttling limit."""

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_QUOTA_EXCEEDED",
            metadata=metadata,
        )


class StorageValidationError(StorageError):
    """Raised when a key or request parameter is rejected before or by the provider."""

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_VALIDATION_ERROR",
            metadata=metadata,
        )


class StorageTimeoutError(StorageError):
    """Raised when an operation exceeds its deadline.

    Example:
        ```python
        raise StorageTimeoutError(
            "get timed out",
            metadata={"operation": "get", "timeout_seconds": 30, "key": key}
        )
        ```
    """

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_TIMEOUT",
            metadata=metadata,
        )


class StorageAggregateError(StorageError):
    """Collects the per-object failures of a directory delete.

    Attributes:
        errors: Every failure encountered, in the order the keys were visited.
    """

    def __init__(
        self,
        errors: Sequence[Exception],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.errors = list(errors)
        summary = "; ".join(str(err) for err in self.errors)
        super().__init__(
            message=f"{len(self.errors)} error(s) occurred: {summary}",
            code="STORAGE_AGGREGATE_ERROR",
            metadata={"error_count": len(self.errors), **(metadata or {})},
        )


def is_not_found(error: BaseException) -> bool:
    """Return True when ``error`` means the object does not exist.

    Aggregate errors count as not-found only when every member is.
    """
    if isinstance(error, StorageAggregateError):
        return bool(error.errors) and all(is_not_found(e) for e in error.errors)
    return isinstance(error, StorageFileNotFoundError)


_NOT_FOUND_CODES = {"NoSuchKey", "NoSuchBucket", "404", "NotFound"}
_PERMISSION_CODES = {
    "AccessDenied",
    "ExpiredToken",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "InvalidToken",
    "TokenRefreshRequired",
    "403",
}
_TIMEOUT_CODES = {"RequestTimeout", "RequestTimeTooSkewed"}
_QUOTA_CODES = {"QuotaExceeded", "TooManyBuckets", "AccountProblem", "SlowDown"}
_VALIDATION_CODES = {
    "InvalidRequest",
    "InvalidArgument",
    "MalformedXML",
    "InvalidBucketName",
    "InvalidObjectState",
    "KeyTooLongError",
    "MetadataTooLarge",
}


def map_boto_error(
    error: ClientError,
    operation: str,
    key: str | None = None,
) -> StorageError:
    """Map a botocore ClientError to a domain StorageError.

    Args:
        error: The botocore ClientError to map.
        operation: The storage operation being performed (e.g. "get", "delete").
        key: Optional object key being operated on.

    Returns:
        StorageError: Appropriate domain-specific storage exception.

    Error Code Mappings:
        - NoSuchKey, NoSuchBucket, 404 -> StorageFileNotFoundError
        - AccessDenied, ExpiredToken, InvalidAccessKeyId, 403 -> StoragePermissionError
        - RequestTimeout, RequestTimeTooSkewed -> StorageTimeoutError
        - QuotaExceeded, TooManyBuckets, SlowDown -> StorageQuotaExceededError
        - InvalidRequest, InvalidArgument, MalformedXML -> StorageValidationError
        - Others -> StorageError
    """
    error_code = error.response.get("Error", {}).get("Code", "Unknown")
    error_message = error.response.get("Error", {}).get("Message", str(error))

    metadata: dict[str, Any] = {
        "operation": operation,
        "provider": "s3",
        "provider_error_code": error_code,
        "provider_error_message": error_message,
        "request_id": error.response.get("ResponseMetadata", {}).get("RequestId"),
    }
    if key:
        metadata["key"] = key
    if "BucketName" in error.response.get("Error", {}):
        metadata["bucket"] = error.response["Error"]["BucketName"]  # type: ignore[typeddict-item]

    message = f"{operation} failed: {error_message}"
    if error_code in _NOT_FOUND_CODES:
        return StorageFileNotFoundError(message, metadata=metadata)
    if error_code in _PERMISSION_CODES:
        return StoragePermissionError(message, metadata=metadata)
    if error_code in _TIMEOUT_CODES:
        return StorageTimeoutError(f"{operation} timed out: {error_message}", metadata=metadata)
    if error_code in _QUOTA_CODES:
        return StorageQuotaExceededError(message, metadata=metadata)
    if error_code in _VALIDATION_CODES:
        return StorageValidationError(message, metadata=metadata)
    return StorageError(message, metadata=metadata)


def map_google_error(
    error: GoogleAPIError,
    operation: str,
    key: str | None = None,
) -> StorageError:
    """Map a google-api-core exception to a domain StorageError."""
    from google.api_core import exceptions as gexc

    metadata: dict[str, Any] = {
        "operation": operation,
        "provider": "gcs",
        "provider_error": type(error).__name__,
    }
    if key:
        metadata["key"] = key
    message = f"{operation} failed: {error}"

    if isinstance(error, gexc.NotFound):
        return StorageFileNotFoundError(message, metadata=metadata)
    if isinstance(error, gexc.Forbidden | gexc.Unauthorized):
        return StoragePermissionError(message, metadata=metadata)
    if isinstance(error, gexc.DeadlineExceeded | gexc.RetryError):
        return StorageTimeoutError(f"{operation} timed out: {error}", metadata=metadata)
    if isinstance(error, gexc.TooManyRequests):
        return StorageQuotaExceededError(message, metadata=metadata)
    if isinstance(error, gexc.BadRequest):
        return StorageValidationError(message, metadata=metadata)
    return StorageError(message, metadata=metadata)


def map_azure_error(
    error: AzureError,
    operation: str,
    key: str | None = None,
) -> StorageError:
    """Map an azure-core exception to a domain StorageError."""
    from azure.core import exceptions as aexc

    status = getattr(error, "status_code", None)
    metadata: dict[str, Any] = {
        "operation": operation,
        "provider": "azure",
        "provider_error": type(error).__name__,
        "provider_error_code": getattr(error, "error_code", None),
        "status": status,
    }
    if key:
        metadata["key"] = key
    message = f"{operation} failed: {getattr(error, 'message', None) or error}"

    if isinstance(error, aexc.ResourceNotFoundError) or status == 404:
        return StorageFileNotFoundError(message, metadata=metadata)
    if isinstance(error, aexc.ClientAuthenticationError) or status in {401, 403}:
        return StoragePermissionError(message, metadata=metadata)
    if isinstance(error, aexc.ServiceRequestTimeoutError | aexc.ServiceResponseTimeoutError):
        return StorageTimeoutError(f"{operation} timed out", metadata=metadata)
    if status in {429, 503}:
        return StorageQuotaExceededError(message, metadata=metadata)
    if status == 400:
        return StorageValidationError(message, metadata=metadata)
    return StorageError(message, metadata=metadata)
