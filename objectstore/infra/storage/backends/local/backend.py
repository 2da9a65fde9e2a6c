"""Local filesystem bucket.

Keys map to paths below a root directory. A key ending in ``/`` is a
directory marker: writing it creates the directory, deleting it removes the
directory when empty. Flat listings report files plus empty directories (as
markers); delimited listings report files and sub-directories of one level.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from objectstore.infra.storage.exceptions import (
    StorageConfigurationError,
    StorageError,
    StorageFileNotFoundError,
    StoragePermissionError,
    StorageValidationError,
)

from ..protocol import DELIMITER, BufferedBlobWriter, BytesBlobReader, ListObject

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from ..protocol import BlobReader, BlobWriter

logger = logging.getLogger(__name__)


def _map_os_error(error: OSError, operation: str, key: str) -> StorageError:
    metadata = {"operation": operation, "provider": "local", "key": key}
    message = f"{operation} failed: {error.strerror or error}"
    if isinstance(error, FileNotFoundError):
        return StorageFileNotFoundError(f"{operation} failed: {key} not found", metadata=metadata)
    if isinstance(error, NotADirectoryError | IsADirectoryError):
        # A file/directory clash means "no such object" to readers only
        if operation == "upload":
            msg = f"upload failed: {key} conflicts with an existing file or directory"
            return StorageValidationError(msg, metadata=metadata)
        return StorageFileNotFoundError(f"{operation} failed: {key} not found", metadata=metadata)
    if isinstance(error, PermissionError):
        return StoragePermissionError(message, metadata=metadata)
    return StorageError(message, metadata=metadata)


class LocalBucket:
    """Bucket over a directory tree."""

    def __init__(self, root: Path) -> None:
        self.root = root

    @classmethod
    async def open(cls, mount_path: str) -> LocalBucket:
        root = Path(mount_path)
        if not await asyncio.to_thread(root.is_dir):
            msg = f"local backend mount path {mount_path} is not a directory"
            raise StorageConfigurationError(msg, metadata={"mount_path": mount_path})
        return cls(root)

    @property
    def provider(self) -> str:
        return "local"

    def _path(self, key: str) -> Path:
        parts = PurePosixPath(key).parts
        if key.startswith(DELIMITER) or ".." in parts or "\\" in key:
            msg = f"invalid object key: {key!r}"
            raise StorageValidationError(msg, metadata={"key": key, "provider": "local"})
        return self.root.joinpath(*parts)

    # ========================================================================
    # Object operations
    # ========================================================================

    async def exists(self, key: str) -> bool:
        path = self._path(key)
        if key.endswith(DELIMITER) or not key:
            return await asyncio.to_thread(path.is_dir)
        return await asyncio.to_thread(path.is_file)

    async def new_reader(self, key: str) -> BlobReader:
        path = self._path(key)
        if key.endswith(DELIMITER):
            if not await asyncio.to_thread(path.is_dir):
                raise StorageFileNotFoundError(
                    f"get failed: {key} not found",
                    metadata={"key": key, "provider": "local"},
                )
            return BytesBlobReader(b"")
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise _map_os_error(e, "get", key) from e
        return BytesBlobReader(data)

    async def new_writer(self, key: str, content_type: str = "") -> BlobWriter:
        path = self._path(key)
        if not key:
            msg = "object key must not be empty"
            raise StorageValidationError(msg, metadata={"provider": "local"})

        async def commit(payload: bytes) -> None:
            try:
                await asyncio.to_thread(self._write, path, key, payload)
            except OSError as e:
                raise _map_os_error(e, "upload", key) from e

        return BufferedBlobWriter(commit)

    @staticmethod
    def _write(path: Path, key: str, payload: bytes) -> None:
        if key.endswith(DELIMITER):
            if payload:
                msg = f"directory marker {key!r} cannot carry data"
                raise StorageValidationError(msg, metadata={"key": key, "provider": "local"})
            path.mkdir(parents=True, exist_ok=True)
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as tmp:
                tmp.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            await asyncio.to_thread(self._delete, path, key)
        except OSError as e:
            raise _map_os_error(e, "delete", key) from e

    def _delete(self, path: Path, key: str) -> None:
        if key.endswith(DELIMITER) or not key:
            if not path.is_dir():
                raise FileNotFoundError(key)
            # a populated directory stays; its contents still imply it
            if path != self.root and not any(path.iterdir()):
                path.rmdir()
            return
        if path.is_dir():
            raise FileNotFoundError(key)
        path.unlink()

    # ========================================================================
    # Listing
    # ========================================================================

    async def list(self, prefix: str = "", delimiter: str = "") -> AsyncIterator[ListObject]:
        if delimiter and delimiter != DELIMITER:
            msg = f"unsupported delimiter {delimiter!r}"
            raise StorageValidationError(msg, metadata={"provider": "local"})
        try:
            entries = await asyncio.to_thread(self._scan, prefix, bool(delimiter))
        except OSError as e:
            raise _map_os_error(e, "list", prefix) from e
        for entry in entries:
            yield entry

    def _scan(self, prefix: str, delimited: bool) -> list[ListObject]:
        base_key = prefix.rpartition(DELIMITER)[0]
        base = self._path(base_key + DELIMITER) if base_key else self.root
        if not base.is_dir():
            return []

        entries: list[ListObject] = []
        if delimited:
            for child in base.iterdir():
                key = self._key(child)
                if child.name.startswith(".tmp-"):
                    continue
                if child.is_dir():
                    key += DELIMITER
                    if key.startswith(prefix):
                        entries.append(ListObject(key=key, is_dir=True))
                elif key.startswith(prefix):
                    entries.append(self._file_entry(child, key))
        else:
            for dirpath, dirnames, filenames in os.walk(base):
                current = Path(dirpath)
                if not dirnames and not filenames and current != self.root:
                    key = self._key(current) + DELIMITER
                    if key.startswith(prefix):
                        entries.append(ListObject(key=key))
                for name in filenames:
                    if name.startswith(".tmp-"):
                        continue
                    child = current / name
                    key = self._key(child)
                    if key.startswith(prefix):
                        entries.append(self._file_entry(child, key))
        entries.sort(key=lambda entry: entry.key)
        return entries

    def _key(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    @staticmethod
    def _file_entry(path: Path, key: str) -> ListObject:
        stat = path.stat()
        return ListObject(
            key=key,
            size_bytes=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
        )

    async def close(self) -> None:
        return None

    def __repr__(self) -> str:
        return f"LocalBucket(root={str(self.root)!r})"
