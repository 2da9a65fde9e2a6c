"""Base exception classes for the object store facade."""

from __future__ import annotations

from typing import Any


class ObjectStoreError(Exception):
    """Base object store exception.

    All custom exceptions should inherit from this class.

    Attributes:
        code: Stable error code identifier for programmatic handling.
        detail: Human-readable error message.
        extra: Additional context-specific information about the error.

    Example:
            raise ObjectStoreError(
            code="BACKEND_UNREACHABLE",
            detail="Could not reach the object store",
            extra={"provider": "s3", "endpoint": "http://minio:9000"}
        )
    """

    def __init__(
        self,
        code: str,
        detail: str,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize object store exception.

        Args:
            code: Error code identifier.
            detail: Human-readable error message.
            extra: Additional context about the error.
        """
        self.code = code
        self.detail = detail
        self.extra = extra or {}
        super().__init__(detail)

    def to_dict(self) -> dict[str, Any]:
        """Render the error as a plain mapping for logs and CLI output."""
        payload: dict[str, Any] = {"code": self.code, "detail": self.detail}
        if self.extra:
            payload["extra"] = self.extra
        return payload

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, detail={self.detail!r})"


class ConfigurationError(ObjectStoreError):
    """Raised when settings or a backend descriptor cannot be used as given.

    Example:
            raise ConfigurationError(
            code="BACKEND_AMBIGUOUS",
            detail="more than one provider is configured",
            extra={"providers": ["s3", "gcs"]}
        )
    """

    def __init__(
        self,
        detail: str,
        code: str = "CONFIGURATION_ERROR",
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(code=code, detail=detail, extra=extra)
