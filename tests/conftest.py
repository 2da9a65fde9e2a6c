"""Pytest configuration and shared fixtures.

This module provides reusable fixtures for testing across the entire test suite.

Organization:
    - Settings Fixtures: hermetic StorageSettings without YAML or env leakage
    - Bucket Fixtures: an in-memory Bucket implementation and facades over it
    - Local Fixtures: facades rooted at a pytest tmp_path
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest

from objectstore.core.schemas.backend import Backend
from objectstore.core.settings import StorageSettings, clear_settings_cache
from objectstore.infra.storage.backends.protocol import (
    BufferedBlobWriter,
    BytesBlobReader,
    ListObject,
)
from objectstore.infra.storage.exceptions import (
    StorageFileNotFoundError,
    StoragePermissionError,
)
from objectstore.infra.storage.service import BlobStorage

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable
    from pathlib import Path

# Keep repository conf/ files and developer .env values out of the tests
os.environ["STORAGE_CONFIG_DIR"] = "/nonexistent/objectstore-tests"
os.environ["LOGGING_CONFIG_DIR"] = "/nonexistent/objectstore-tests"


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Drop cached settings between tests."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def storage_settings(tmp_path: Path) -> StorageSettings:
    """Settings with a throwaway credentials directory."""
    return StorageSettings(credentials_dir=tmp_path / "credentials")


# ============================================================================
# Bucket Fixtures
# ============================================================================


class InMemoryBucket:
    """Dict-backed Bucket with S3-like listing semantics.

    ``fail_delete`` keys raise a permission error when deleted; ``closed``
    counts close calls so tests can assert handles are released.
    """

    def __init__(self, objects: dict[str, bytes] | None = None) -> None:
        self.objects: dict[str, bytes] = dict(objects or {})
        self.content_types: dict[str, str] = {}
        self.fail_delete: set[str] = set()
        self.closed = 0

    @property
    def provider(self) -> str:
        return "memory"

    async def exists(self, key: str) -> bool:
        return key in self.objects

    async def new_reader(self, key: str) -> BytesBlobReader:
        if key not in self.objects:
            raise StorageFileNotFoundError(f"get failed: {key} not found", metadata={"key": key})
        return BytesBlobReader(self.objects[key])

    async def new_writer(self, key: str, content_type: str = "") -> BufferedBlobWriter:
        async def commit(payload: bytes) -> None:
            self.objects[key] = payload
            self.content_types[key] = content_type

        return BufferedBlobWriter(commit)

    async def delete(self, key: str) -> None:
        if key in self.fail_delete:
            raise StoragePermissionError(f"delete failed: {key} denied", metadata={"key": key})
        if key not in self.objects:
            raise StorageFileNotFoundError(f"delete failed: {key} not found", metadata={"key": key})
        del self.objects[key]

    async def list(self, prefix: str = "", delimiter: str = "") -> AsyncIterator[ListObject]:
        seen: set[str] = set()
        for key in sorted(self.objects):
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix) :]
            if delimiter and delimiter in rest:
                directory = prefix + rest.split(delimiter, 1)[0] + delimiter
                if directory not in seen:
                    seen.add(directory)
                    yield ListObject(key=directory, is_dir=True)
                continue
            yield ListObject(key=key, size_bytes=len(self.objects[key]))

    async def close(self) -> None:
        self.closed += 1


@pytest.fixture
def memory_bucket_cls() -> type[InMemoryBucket]:
    """The in-memory bucket class, for tests that need several buckets."""
    return InMemoryBucket


@pytest.fixture
def memory_bucket() -> InMemoryBucket:
    """Empty in-memory bucket."""
    return InMemoryBucket()


@pytest.fixture
def make_memory_storage(
    memory_bucket: InMemoryBucket,
    storage_settings: StorageSettings,
) -> Callable[..., BlobStorage]:
    """Build facades over an in-memory bucket.

    The descriptor is an S3 backend without a secret; only the provider
    bucket is swapped, so prefix scoping runs through the real factory.
    """

    def _make(prefix: str = "", bucket: InMemoryBucket | None = None) -> BlobStorage:
        backend = Backend.model_validate({"s3": {"bucket": "stash", "prefix": prefix}})
        storage = BlobStorage(backend, settings=storage_settings)
        storage.factory._open_provider_bucket = AsyncMock(return_value=bucket or memory_bucket)  # type: ignore[method-assign]
        return storage

    return _make


# ============================================================================
# Local Fixtures
# ============================================================================


@pytest.fixture
def local_backend(tmp_path: Path) -> Backend:
    """Local backend rooted at a fresh directory."""
    root = tmp_path / "bucket"
    root.mkdir()
    return Backend.model_validate({"local": {"mountPath": str(root)}})


@pytest.fixture
def local_storage(local_backend: Backend, storage_settings: StorageSettings) -> BlobStorage:
    """Facade over the local backend."""
    return BlobStorage(local_backend, settings=storage_settings)
