"""Storage facade: one small interface over every supported provider.

Callers never branch on provider type. Every operation opens its own
prefix-scoped bucket through the factory, runs under an optional deadline
with tracing and metrics, and closes the bucket before returning. The
facade keeps no mutable state between calls, so one instance may serve
concurrent tasks.
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from objectstore.core.exceptions import ConfigurationError
from objectstore.core.settings import get_storage_settings
from objectstore.infra.logging.config import transport_debug_logging

from .backends.factory import BucketFactory, close_quietly
from .backends.protocol import DELIMITER
from .exceptions import (
    StorageAggregateError,
    StorageConfigurationError,
    StorageError,
    StorageTimeoutError,
    StorageValidationError,
)
from .instrumentation import add_storage_event, track_storage_operation

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from objectstore.core.schemas.backend import Backend
    from objectstore.core.settings.storage import StorageSettings
    from objectstore.infra.secrets.bundle import CredentialBundle
    from objectstore.infra.secrets.resolver import SecretResolver

    from .backends.protocol import Bucket

logger = logging.getLogger(__name__)


def split_path(path: str) -> tuple[str, str]:
    """Split a slash-separated path at its last separator into (directory, leaf)."""
    return posixpath.split(path)


class BlobStorage:
    """Provider-neutral object storage facade.

    Example:
        storage = await new_blob_storage(backend, namespace="backups", resolver=resolver)

        await storage.upload("data/sample.txt", b"sample data")
        assert await storage.get("data/sample.txt") == b"sample data"
        await storage.delete("data/sample.txt")

    Every public operation accepts ``timeout`` in seconds; when omitted the
    ``operation_timeout`` setting applies. An expired deadline raises
    StorageTimeoutError. Task cancellation propagates unchanged.
    """

    def __init__(
        self,
        backend: Backend,
        bundle: CredentialBundle | None = None,
        settings: StorageSettings | None = None,
    ) -> None:
        """Build the facade and validate the backend's credentials.

        Args:
            backend: Backend descriptor with exactly one provider variant.
            bundle: Resolved credential secret, if the backend references one.
            settings: Optional settings override; defaults to get_storage_settings().

        Raises:
            ConfigurationError: For an ambiguous or absent provider.
            StorageConfigurationError: For unsupported providers or unusable credentials.
        """
        self._settings = settings or get_storage_settings()
        self.backend = backend
        self._factory = BucketFactory(backend, bundle, self._settings)
        try:
            self.location: str | None = backend.location()
        except ConfigurationError:
            self.location = None

    @property
    def provider(self) -> str:
        return self._factory.provider

    @property
    def settings(self) -> StorageSettings:
        return self._settings

    @property
    def factory(self) -> BucketFactory:
        return self._factory

    # ========== Plumbing ==========

    @asynccontextmanager
    async def _operation(
        self,
        operation: str,
        key: str,
        timeout: float | None,
        size_bytes: int | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        deadline = timeout if timeout is not None else self._settings.operation_timeout
        async with track_storage_operation(
            operation,
            self.provider,
            key=key,
            location=self.location,
            size_bytes=size_bytes,
        ) as ctx:
            try:
                async with asyncio.timeout(deadline):
                    yield ctx
            except TimeoutError as e:
                msg = f"{operation} timed out after {deadline}s"
                raise StorageTimeoutError(
                    msg,
                    metadata={
                        "operation": operation,
                        "key": key,
                        "provider": self.provider,
                        "timeout_seconds": deadline,
                    },
                ) from e

    async def _read(self, bucket: Bucket, key: str) -> bytes:
        reader = await bucket.new_reader(key)
        try:
            return await reader.read()
        finally:
            await close_quietly(reader, resource="reader", provider=self.provider)

    async def _write(self, bucket: Bucket, key: str, data: bytes, content_type: str) -> None:
        writer = await bucket.new_writer(key, content_type)
        try:
            await writer.write(data)
        except Exception:
            # the write error is the one worth reporting; a close error is only logged
            await close_quietly(writer, resource="writer", provider=self.provider)
            raise
        await writer.close()

    # ========== Operations ==========

    async def exists(self, path: str, *, timeout: float | None = None) -> bool:
        """Return True if the object at ``path`` exists."""
        directory, name = split_path(path)
        async with self._operation("exists", path, timeout) as ctx:
            async with self._factory.scope(directory) as bucket:
                found = await bucket.exists(name)
            ctx["exists"] = found
        return found

    async def get(self, path: str, *, timeout: float | None = None) -> bytes:
        """Read the whole object at ``path``.

        Raises:
            StorageFileNotFoundError: If the object does not exist.
        """
        directory, name = split_path(path)
        async with self._operation("get", path, timeout) as ctx:
            async with self._factory.scope(directory) as bucket:
                data = await self._read(bucket, name)
            ctx["result_size"] = len(data)
        return data

    async def upload(
        self,
        path: str,
        data: bytes,
        content_type: str = "",
        *,
        timeout: float | None = None,
    ) -> None:
        """Write ``data`` to ``path``, replacing any existing object.

        The content type is never sniffed: it is ``content_type`` or unset.
        """
        directory, name = split_path(path)
        async with self._operation("upload", path, timeout, size_bytes=len(data)):
            async with self._factory.scope(directory) as bucket:
                await self._write(bucket, name, data, content_type)
        logger.debug(
            "Uploaded object",
            extra={"key": path, "size_bytes": len(data), "provider": self.provider},
        )

    async def list(self, directory: str, *, timeout: float | None = None) -> list[bytes]:
        """Return the contents of every file below ``directory``, at any depth.

        Directory markers are skipped. Results follow the provider's listing
        order. Every object is read fully into memory, so this is meant for
        small directories such as manifests and fixtures.
        """
        async with self._operation("list", directory, timeout) as ctx:
            async with self._factory.scope(directory) as bucket:
                contents: list[bytes] = []
                async for obj in bucket.list():
                    if obj.is_file:
                        contents.append(await self._read(bucket, obj.key))
            ctx["count"] = len(contents)
            ctx["result_size"] = sum(len(c) for c in contents)
        return contents

    async def list_dir_n(
        self,
        directory: str = "",
        depth: int = 0,
        *,
        timeout: float | None = None,
    ) -> list[str]:
        """Return directory keys below ``directory``, walking ``depth`` extra levels.

        ``depth=0`` returns only the immediate child directories, ``depth=1``
        adds grandchildren and a negative depth walks the whole subtree.
        Keys are relative to the facade root and end in ``/``; they are
        returned in pre-order.
        """
        start = directory.strip(DELIMITER)
        start = start + DELIMITER if start else ""
        async with self._operation("list_dir_n", directory, timeout) as ctx:
            async with self._factory.scope() as bucket:
                found: list[str] = []
                await self._walk_dirs(bucket, start, 0, depth, found)
            ctx["count"] = len(found)
        return found

    async def _walk_dirs(
        self,
        bucket: Bucket,
        prefix: str,
        level: int,
        depth: int,
        found: list[str],
    ) -> None:
        children = [obj.key async for obj in bucket.list(prefix, DELIMITER) if obj.is_dir]
        for child in children:
            found.append(child)
            if depth < 0 or level < depth:
                await self._walk_dirs(bucket, child, level + 1, depth, found)

    async def delete(
        self,
        path: str,
        is_dir: bool = False,
        *,
        timeout: float | None = None,
    ) -> None:
        """Delete one object, or every object below ``path`` when ``is_dir`` is set.

        Raises:
            StorageFileNotFoundError: If a single object does not exist.
            StorageAggregateError: With every per-object failure of a directory delete.
        """
        if is_dir:
            await self._delete_dir(path, timeout)
            return
        directory, name = split_path(path)
        async with self._operation("delete", path, timeout):
            async with self._factory.scope(directory) as bucket:
                await bucket.delete(name)
        logger.debug("Deleted object", extra={"key": path, "provider": self.provider})

    async def _delete_dir(self, path: str, timeout: float | None) -> None:
        async with self._operation("delete_dir", path, timeout) as ctx:
            async with self._factory.scope(path) as bucket:
                keys = [obj.key async for obj in bucket.list()]
                errors: list[StorageError] = []
                for key in keys:
                    try:
                        await bucket.delete(key)
                    except StorageError as e:
                        logger.warning(
                            "Failed to delete object",
                            extra={"directory": path, "key": key, "error": str(e)},
                        )
                        errors.append(e)
            ctx["count"] = len(keys)
            ctx["failed"] = len(errors)
            if errors:
                raise StorageAggregateError(errors, metadata={"directory": path})
        logger.info(
            "Deleted directory",
            extra={"directory": path, "objects": len(keys), "provider": self.provider},
        )

    async def mark_as_directory(self, path: str, *, timeout: float | None = None) -> None:
        """Write a zero-byte ``<path>/`` marker so an empty directory becomes listable."""
        directory, name = split_path(path.rstrip(DELIMITER))
        if not name:
            msg = "cannot mark the storage root as a directory"
            raise StorageValidationError(msg, metadata={"path": path})
        async with self._operation("mark_as_directory", path, timeout):
            async with self._factory.scope(directory) as bucket:
                await self._write(bucket, name + DELIMITER, b"", "")

    async def debug(
        self,
        path: str,
        data: bytes,
        content_type: str = "",
        *,
        timeout: float | None = None,
    ) -> None:
        """Connectivity probe: upload ``data`` to ``path`` and delete it again.

        Transport SDK loggers are switched to DEBUG while the probe runs.
        """
        directory, name = split_path(path)
        with transport_debug_logging():
            async with self._operation("debug", path, timeout, size_bytes=len(data)):
                async with self._factory.scope(directory) as bucket:
                    logger.info("Uploading data to backend", extra={"key": path})
                    await self._write(bucket, name, data, content_type)
                    add_storage_event("probe.uploaded", {"key": path})
                    logger.info("Cleaning up data from backend", extra={"key": path})
                    await bucket.delete(name)

    def __repr__(self) -> str:
        return f"BlobStorage(provider={self.provider!r}, location={self.location!r})"


async def new_blob_storage(
    backend: Backend,
    namespace: str,
    resolver: SecretResolver | None = None,
    settings: StorageSettings | None = None,
) -> BlobStorage:
    """Resolve the backend's credential secret and build a facade.

    The secret is fetched only when ``backend.storage_secret_name`` is set.

    Raises:
        ConfigurationError: For an ambiguous or absent provider.
        StorageSecretNotFoundError: If the referenced secret does not exist.
        StorageConfigurationError: For unusable credentials or when a secret is
            referenced but no resolver was supplied.
    """
    backend.provider()

    bundle: CredentialBundle | None = None
    if backend.storage_secret_name:
        if resolver is None:
            msg = f"backend references secret {backend.storage_secret_name} but no resolver was given"
            raise StorageConfigurationError(msg, metadata={"secret": backend.storage_secret_name})
        bundle = await resolver.fetch(namespace, backend.storage_secret_name)

    storage = BlobStorage(backend, bundle, settings)
    logger.info(
        "Storage facade ready",
        extra={
            "provider": storage.provider,
            "location": storage.location,
            "namespace": namespace,
            "secret": backend.storage_secret_name,
        },
    )
    return storage


async def blob_storage_from_settings(
    settings: StorageSettings | None = None,
    resolver: SecretResolver | None = None,
) -> BlobStorage:
    """Build a facade from ``StorageSettings``.

    Without an explicit resolver, secrets are read from ``settings.secrets_dir``.

    Raises:
        StorageConfigurationError: If no backend descriptor is configured.
    """
    settings = settings or get_storage_settings()
    if settings.backend is None:
        msg = "no storage backend configured (set backend in conf/storage.yaml or STORAGE_BACKEND)"
        raise StorageConfigurationError(msg)
    if resolver is None and settings.secrets_dir is not None:
        from objectstore.infra.secrets.resolver import DirectorySecretResolver

        resolver = DirectorySecretResolver(settings.secrets_dir)
    return await new_blob_storage(settings.backend, settings.namespace, resolver, settings)
