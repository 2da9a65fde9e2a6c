"""Azure Blob Storage bucket on the async ``azure-storage-blob`` client."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from azure.core.exceptions import AzureError
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import BlobPrefix, ContainerClient

from objectstore.infra.storage.exceptions import map_azure_error

from ..protocol import BufferedBlobWriter, ListObject

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from objectstore.infra.storage.credentials import AzureAuth

    from ..protocol import BlobWriter

logger = logging.getLogger(__name__)


class AzureBlobReader:
    """Reader over a ``StorageStreamDownloader``."""

    def __init__(self, downloader: Any, key: str) -> None:
        self._downloader = downloader
        self._key = key

    async def read(self) -> bytes:
        try:
            return await self._downloader.readall()
        except AzureError as e:
            raise map_azure_error(e, operation="get", key=self._key) from e

    async def close(self) -> None:
        self._downloader = None


class AzureBucket:
    """Bucket handle over one container."""

    def __init__(self, container: ContainerClient, max_concurrency: int = 0) -> None:
        self._container = container
        self._max_concurrency = max_concurrency

    @classmethod
    async def open(cls, auth: AzureAuth, container: str, max_concurrency: int = 0) -> AzureBucket:
        client = ContainerClient(
            account_url=auth.account_url,
            container_name=container,
            credential=auth.credential(),
        )
        logger.debug(
            "Opened Azure container",
            extra={"container": container, "account": auth.account_name},
        )
        return cls(client, max_concurrency)

    @property
    def provider(self) -> str:
        return "azure"

    @property
    def container(self) -> str:
        return self._container.container_name

    def _transfer_options(self) -> dict[str, Any]:
        if self._max_concurrency > 0:
            return {"max_concurrency": self._max_concurrency}
        return {}

    async def exists(self, key: str) -> bool:
        try:
            return await self._container.get_blob_client(key).exists()
        except AzureError as e:
            raise map_azure_error(e, operation="exists", key=key) from e

    async def new_reader(self, key: str) -> AzureBlobReader:
        try:
            downloader = await self._container.download_blob(key, **self._transfer_options())
        except AzureError as e:
            raise map_azure_error(e, operation="get", key=key) from e
        return AzureBlobReader(downloader, key)

    async def new_writer(self, key: str, content_type: str = "") -> BlobWriter:
        async def commit(payload: bytes) -> None:
            options = self._transfer_options()
            if content_type:
                options["content_settings"] = ContentSettings(content_type=content_type)
            try:
                await self._container.upload_blob(key, payload, overwrite=True, **options)
            except AzureError as e:
                raise map_azure_error(e, operation="upload", key=key) from e

        return BufferedBlobWriter(commit)

    async def delete(self, key: str) -> None:
        try:
            await self._container.delete_blob(key)
        except AzureError as e:
            raise map_azure_error(e, operation="delete", key=key) from e

    async def list(self, prefix: str = "", delimiter: str = "") -> AsyncIterator[ListObject]:
        try:
            if delimiter:
                async for item in self._container.walk_blobs(
                    name_starts_with=prefix or None,
                    delimiter=delimiter,
                ):
                    if isinstance(item, BlobPrefix):
                        yield ListObject(key=item.name, is_dir=True)
                    else:
                        yield _to_list_object(item)
            else:
                async for item in self._container.list_blobs(name_starts_with=prefix or None):
                    yield _to_list_object(item)
        except AzureError as e:
            raise map_azure_error(e, operation="list", key=prefix) from e

    async def close(self) -> None:
        await self._container.close()

    def __repr__(self) -> str:
        return f"AzureBucket(container={self.container!r})"


def _to_list_object(props: Any) -> ListObject:
    return ListObject(
        key=props.name,
        size_bytes=props.size or 0,
        last_modified=props.last_modified,
    )
