"""Bucket factory: provider dispatch and prefix scoping.

One factory lives as long as its facade. It validates credentials once, at
construction, and then opens a fresh provider bucket for every operation,
scoped below ``<backend prefix>/<directory>/``.
"""

from __future__ import annotations

import logging
import posixpath
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, assert_never

from objectstore.core.schemas.backend import ProviderKind
from objectstore.infra.storage import metrics
from objectstore.infra.storage.credentials import (
    CredentialMaterializer,
    azure_auth_from_environment,
)
from objectstore.infra.storage.exceptions import StorageConfigurationError, StorageValidationError

from .prefixed import PrefixedBucket

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from objectstore.core.schemas.backend import Backend
    from objectstore.core.settings.storage import StorageSettings
    from objectstore.infra.secrets.bundle import CredentialBundle
    from objectstore.infra.storage.credentials import AzureAuth, GCSAuth

    from .protocol import BlobReader, BlobWriter, Bucket

logger = logging.getLogger(__name__)

ROOT = "/"


def scope_prefix(base_prefix: str, directory: str) -> str:
    """Return the effective key prefix for ``directory`` below ``base_prefix``.

    The result is normalized, has no leading separator and always ends in
    ``/``; ``"/"`` means the bucket root.

    Example:
        >>> scope_prefix("/source/data", "2024/")
        'source/data/2024/'
        >>> scope_prefix("", "")
        '/'

    Raises:
        StorageValidationError: If ``directory`` climbs above the base prefix.
    """
    base = _normalize(base_prefix)
    relative = _normalize(directory)
    if relative == ".." or relative.startswith("../"):
        msg = f"directory {directory!r} escapes the backend prefix"
        raise StorageValidationError(msg, metadata={"directory": directory, "prefix": base_prefix})
    joined = "/".join(part for part in (base, relative) if part)
    if not joined:
        return ROOT
    return joined + "/"


def _normalize(path: str) -> str:
    stripped = path.strip("/")
    if not stripped:
        return ""
    normalized = posixpath.normpath(stripped)
    return "" if normalized == "." else normalized


class BucketFactory:
    """Opens prefix-scoped buckets for one backend descriptor.

    Raises:
        StorageConfigurationError: At construction, for ambiguous or unsupported
            providers and for unusable credentials.
    """

    def __init__(
        self,
        backend: Backend,
        bundle: CredentialBundle | None,
        settings: StorageSettings,
    ) -> None:
        self.backend = backend
        self.kind = backend.provider()
        self._bundle = bundle
        self._materializer = CredentialMaterializer(settings)
        self._base_prefix = backend.prefix()
        self._gcs_auth: GCSAuth | None = None
        self._azure_auth: AzureAuth | None = None

        match self.kind:
            case ProviderKind.S3:
                # rebuilt on every open; built here only to fail fast
                self._materializer.s3(backend.s3, bundle)  # type: ignore[arg-type]
            case ProviderKind.GCS:
                self._gcs_auth = self._materializer.gcs(backend.gcs, bundle)  # type: ignore[arg-type]
            case ProviderKind.AZURE:
                self._azure_auth = self._materializer.azure(backend.azure, bundle)  # type: ignore[arg-type]
                if self._azure_auth is None:
                    azure_auth_from_environment()
            case ProviderKind.LOCAL:
                pass
            case ProviderKind.SWIFT | ProviderKind.B2 | ProviderKind.REST:
                msg = f"unknown provider: {self.kind}"
                raise StorageConfigurationError(msg, metadata={"provider": str(self.kind)})
            case _:
                assert_never(self.kind)

    @property
    def provider(self) -> str:
        return str(self.kind)

    def prefix_for(self, directory: str) -> str:
        return scope_prefix(self._base_prefix, directory)

    async def _open_provider_bucket(self) -> Bucket:
        backend = self.backend
        match self.kind:
            case ProviderKind.S3:
                from .s3.backend import S3Bucket

                options = self._materializer.s3(backend.s3, self._bundle)  # type: ignore[arg-type]
                return await S3Bucket.open(options, backend.s3.bucket)  # type: ignore[union-attr]
            case ProviderKind.GCS:
                from .gcs.backend import GCSBucket

                return await GCSBucket.open(self._gcs_auth, backend.gcs.bucket)  # type: ignore[arg-type,union-attr]
            case ProviderKind.AZURE:
                from .azure.backend import AzureBucket

                auth = self._azure_auth or azure_auth_from_environment()
                return await AzureBucket.open(
                    auth,
                    backend.azure.container,  # type: ignore[union-attr]
                    max_concurrency=backend.max_connections(),
                )
            case ProviderKind.LOCAL:
                from .local.backend import LocalBucket

                return await LocalBucket.open(backend.local.mount_path)  # type: ignore[union-attr]
            case ProviderKind.SWIFT | ProviderKind.B2 | ProviderKind.REST:
                msg = f"unknown provider: {self.kind}"
                raise StorageConfigurationError(msg, metadata={"provider": str(self.kind)})
            case _:
                assert_never(self.kind)

    async def open(self, directory: str = "") -> Bucket:
        """Open a bucket scoped to ``directory``. The caller must close it.

        The directory is validated before any provider client is created.
        """
        prefix = self.prefix_for(directory)
        try:
            bucket = await self._open_provider_bucket()
        except Exception:
            metrics.storage_bucket_opens_total.labels(provider=self.provider, status="error").inc()
            raise
        metrics.storage_bucket_opens_total.labels(provider=self.provider, status="success").inc()

        if prefix == ROOT:
            return bucket
        return PrefixedBucket(bucket, prefix)

    @asynccontextmanager
    async def scope(self, directory: str = "") -> AsyncIterator[Bucket]:
        """Open a scoped bucket for the duration of the block, then close it quietly."""
        bucket = await self.open(directory)
        try:
            yield bucket
        finally:
            await close_quietly(bucket, resource="bucket", provider=self.provider)


async def close_quietly(
    resource_obj: Bucket | BlobReader | BlobWriter,
    resource: str,
    provider: str | None = None,
) -> None:
    """Close ``resource_obj``; failures are logged and counted, never raised."""
    provider = provider or str(getattr(resource_obj, "provider", "unknown"))
    try:
        await resource_obj.close()
    except Exception:
        metrics.record_cleanup_error(provider=provider, resource=resource)
        logger.warning(
            "Failed to close %s",
            resource,
            exc_info=True,
            extra={"provider": provider, "resource": resource},
        )
