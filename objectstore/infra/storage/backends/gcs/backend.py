"""Google Cloud Storage bucket.

google-cloud-storage is a synchronous SDK; every call that may touch the
network runs in a worker thread via ``asyncio.to_thread``. Cancelling the
awaiting task abandons the result but cannot interrupt the thread itself.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from google.api_core.exceptions import GoogleAPIError
from google.cloud import storage

from objectstore.infra.storage.exceptions import map_google_error

from ..protocol import BufferedBlobWriter, BytesBlobReader, ListObject

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from objectstore.infra.storage.credentials import GCSAuth

    from ..protocol import BlobReader, BlobWriter

logger = logging.getLogger(__name__)


class GCSBucket:
    """Bucket handle backed by a ``google.cloud.storage.Client``."""

    def __init__(self, client: storage.Client, bucket: str) -> None:
        self._client = client
        self._bucket = client.bucket(bucket)
        self.bucket = bucket

    @classmethod
    async def open(cls, auth: GCSAuth, bucket: str) -> GCSBucket:
        client = await asyncio.to_thread(
            storage.Client,
            project=auth.project,
            credentials=auth.credentials,
        )
        logger.debug("Opened GCS bucket", extra={"bucket": bucket, "project": auth.project})
        return cls(client, bucket)

    @property
    def provider(self) -> str:
        return "gcs"

    async def exists(self, key: str) -> bool:
        try:
            return await asyncio.to_thread(self._bucket.blob(key).exists)
        except GoogleAPIError as e:
            raise map_google_error(e, operation="exists", key=key) from e

    async def new_reader(self, key: str) -> BlobReader:
        try:
            data = await asyncio.to_thread(self._bucket.blob(key).download_as_bytes)
        except GoogleAPIError as e:
            raise map_google_error(e, operation="get", key=key) from e
        return BytesBlobReader(data)

    async def new_writer(self, key: str, content_type: str = "") -> BlobWriter:
        blob = self._bucket.blob(key)

        async def commit(payload: bytes) -> None:
            try:
                await asyncio.to_thread(
                    blob.upload_from_string,
                    payload,
                    content_type=content_type or None,
                )
            except GoogleAPIError as e:
                raise map_google_error(e, operation="upload", key=key) from e

        return BufferedBlobWriter(commit)

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._bucket.blob(key).delete)
        except GoogleAPIError as e:
            raise map_google_error(e, operation="delete", key=key) from e

    async def list(self, prefix: str = "", delimiter: str = "") -> AsyncIterator[ListObject]:
        iterator = self._client.list_blobs(
            self._bucket,
            prefix=prefix or None,
            delimiter=delimiter or None,
        )
        pages: Iterator[Any] = iterator.pages
        while True:
            try:
                entries = await asyncio.to_thread(_next_page, pages)
            except GoogleAPIError as e:
                raise map_google_error(e, operation="list", key=prefix) from e
            if entries is None:
                return
            for entry in entries:
                yield entry

    async def close(self) -> None:
        await asyncio.to_thread(self._client.close)

    def __repr__(self) -> str:
        return f"GCSBucket(bucket={self.bucket!r})"


def _next_page(pages: Iterator[Any]) -> list[ListObject] | None:
    page = next(pages, None)
    if page is None:
        return None
    entries = [
        ListObject(
            key=blob.name,
            size_bytes=blob.size or 0,
            last_modified=blob.updated,
        )
        for blob in page
    ]
    entries.extend(ListObject(key=p, is_dir=True) for p in page.prefixes)
    entries.sort(key=lambda entry: entry.key)
    return entries
