"""Bucket protocol and normalized listing entry.

This module defines:
- Protocol interfaces every provider bucket implements (Bucket, BlobReader, BlobWriter)
- The provider-neutral ListObject returned by listings
- Buffered reader/writer helpers shared by providers whose SDK works on whole payloads
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from objectstore.infra.storage.exceptions import StorageError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from datetime import datetime

DELIMITER = "/"


@dataclass(frozen=True)
class ListObject:
    """One listing entry.

    Attributes:
        key: Key relative to the bucket (or to the prefix of a prefixed bucket)
        size_bytes: Object size; 0 for directories
        is_dir: True for common prefixes returned by a delimited listing
        last_modified: Modification time when the provider reports one
    """

    key: str
    size_bytes: int = 0
    is_dir: bool = False
    last_modified: datetime | None = None

    @property
    def is_file(self) -> bool:
        """A leaf object: not a directory and not a ``/``-terminated marker."""
        return not self.is_dir and bool(self.key) and not self.key.endswith(DELIMITER)


class BlobReader(Protocol):
    """Read side of a single object."""

    async def read(self) -> bytes:
        """Read the object to completion."""
        ...

    async def close(self) -> None:
        ...


class BlobWriter(Protocol):
    """Write side of a single object; the object becomes visible on close."""

    async def write(self, data: bytes) -> int:
        """Append ``data`` to the pending payload and return its length."""
        ...

    async def close(self) -> None:
        """Commit the payload. Errors from the provider surface here."""
        ...


class Bucket(Protocol):
    """Provider-neutral handle to a flat key space.

    Handles are transient: the factory opens one per facade operation and
    closes it when the operation ends.

    Example:
        ```python
        async with factory.scope("backups/2024") as bucket:
            if await bucket.exists("manifest.json"):
                reader = await bucket.new_reader("manifest.json")
        ```
    """

    @property
    def provider(self) -> str:
        """Provider label used in logs and metrics."""
        ...

    async def exists(self, key: str) -> bool:
        """Return True if ``key`` exists; not-found is not an error."""
        ...

    async def new_reader(self, key: str) -> BlobReader:
        """Open ``key`` for reading.

        Raises:
            StorageFileNotFoundError: If the key does not exist.
        """
        ...

    async def new_writer(self, key: str, content_type: str = "") -> BlobWriter:
        """Open ``key`` for writing. An empty content type is left unset."""
        ...

    async def delete(self, key: str) -> None:
        """Delete ``key``.

        Raises:
            StorageFileNotFoundError: If the key does not exist.
        """
        ...

    def list(self, prefix: str = "", delimiter: str = "") -> AsyncIterator[ListObject]:
        """Iterate keys starting with ``prefix``.

        With an empty delimiter the listing is flat and depth-unbounded. With
        ``"/"`` it stops at the next separator and reports the common prefix
        as a ``ListObject`` with ``is_dir=True`` and a trailing ``/``.
        """
        ...

    async def close(self) -> None:
        ...


class BytesBlobReader:
    """Reader over a payload that was fetched eagerly."""

    def __init__(self, data: bytes) -> None:
        self._data: bytes | None = data

    async def read(self) -> bytes:
        if self._data is None:
            raise StorageError("read on closed reader", code="STORAGE_READER_CLOSED")
        return self._data

    async def close(self) -> None:
        self._data = None


class BufferedBlobWriter:
    """Collects written chunks and hands the joined payload to ``commit`` on close.

    A second ``close`` is a no-op; writing after close raises.
    """

    def __init__(self, commit: Callable[[bytes], Awaitable[None]]) -> None:
        self._commit = commit
        self._chunks: list[bytes] = []
        self._closed = False

    async def write(self, data: bytes) -> int:
        if self._closed:
            raise StorageError("write on closed writer", code="STORAGE_WRITER_CLOSED")
        self._chunks.append(bytes(data))
        return len(data)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        payload = b"".join(self._chunks)
        self._chunks.clear()
        await self._commit(payload)
