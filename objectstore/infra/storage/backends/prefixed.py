"""Prefix virtualization over any Bucket."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from .protocol import BlobReader, BlobWriter, Bucket, ListObject


class PrefixedBucket:
    """Scope a bucket to the keys below ``prefix``.

    Keys passed in are prepended with the prefix; keys coming back from
    listings have it stripped, so callers only ever see relative keys.
    Closing the prefixed bucket closes the wrapped one.
    """

    def __init__(self, bucket: Bucket, prefix: str) -> None:
        if not prefix.endswith("/"):
            msg = f"bucket prefix must end with '/': {prefix!r}"
            raise ValueError(msg)
        self._bucket = bucket
        self._prefix = prefix

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def inner(self) -> Bucket:
        return self._bucket

    @property
    def provider(self) -> str:
        return self._bucket.provider

    def _full(self, key: str) -> str:
        return self._prefix + key

    async def exists(self, key: str) -> bool:
        return await self._bucket.exists(self._full(key))

    async def new_reader(self, key: str) -> BlobReader:
        return await self._bucket.new_reader(self._full(key))

    async def new_writer(self, key: str, content_type: str = "") -> BlobWriter:
        return await self._bucket.new_writer(self._full(key), content_type)

    async def delete(self, key: str) -> None:
        await self._bucket.delete(self._full(key))

    async def list(self, prefix: str = "", delimiter: str = "") -> AsyncIterator[ListObject]:
        async for obj in self._bucket.list(self._full(prefix), delimiter):
            yield replace(obj, key=obj.key.removeprefix(self._prefix))

    async def close(self) -> None:
        await self._bucket.close()

    def __repr__(self) -> str:
        return f"PrefixedBucket({self._bucket!r}, prefix={self._prefix!r})"
