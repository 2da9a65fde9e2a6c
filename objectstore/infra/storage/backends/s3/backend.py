"""S3-compatible bucket on aioboto3.

Works against AWS S3, MinIO and other S3-compatible services. Path-style
addressing is always used, so custom endpoints never need wildcard DNS.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from objectstore.infra.storage.exceptions import (
    StorageDownloadError,
    StorageError,
    StorageFileNotFoundError,
    StorageUploadError,
    map_boto_error,
)

from ..protocol import BufferedBlobWriter, ListObject

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from objectstore.infra.storage.credentials import S3ClientOptions

    from ..protocol import BlobWriter

logger = logging.getLogger(__name__)

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3BlobReader:
    """Reader over a get_object streaming body."""

    def __init__(self, body: Any, key: str) -> None:
        self._body = body
        self._key = key

    async def read(self) -> bytes:
        try:
            return await self._body.read()
        except (ClientError, BotoCoreError, OSError) as e:
            raise StorageDownloadError(
                f"Failed to read {self._key}: {e}",
                metadata={"key": self._key, "provider": "s3"},
            ) from e

    async def close(self) -> None:
        self._body.close()


class S3Bucket:
    """Bucket handle backed by one aioboto3 S3 client.

    The client is created when the bucket is opened and released on close;
    handles are never shared between facade operations.

    Example:
        bucket = await S3Bucket.open(options, "backups")
        try:
            await bucket.exists("manifest.json")
        finally:
            await bucket.close()
    """

    def __init__(self, client: Any, client_context: Any, bucket: str) -> None:
        self._client = client
        self._client_context = client_context
        self.bucket = bucket

    @classmethod
    async def open(
        cls,
        options: S3ClientOptions,
        bucket: str,
        session: aioboto3.Session | None = None,
    ) -> S3Bucket:
        session = session or aioboto3.Session()
        client_context = session.client("s3", config=options.config, **options.client_kwargs)
        try:
            client = await client_context.__aenter__()
        except (ClientError, BotoCoreError) as e:
            raise StorageError(
                f"Failed to create S3 client: {e}",
                code="STORAGE_CLIENT_ERROR",
                metadata={
                    "bucket": bucket,
                    "endpoint": options.client_kwargs.get("endpoint_url"),
                },
            ) from e
        logger.debug(
            "Opened S3 bucket",
            extra={
                "bucket": bucket,
                "endpoint": options.client_kwargs.get("endpoint_url"),
                "region": options.client_kwargs.get("region_name"),
                "tls_configured": options.tls_configured,
            },
        )
        return cls(client, client_context, bucket)

    @property
    def provider(self) -> str:
        return "s3"

    async def exists(self, key: str) -> bool:
        try:
            await self._client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                return False
            raise map_boto_error(e, operation="exists", key=key) from e
        return True

    async def new_reader(self, key: str) -> S3BlobReader:
        try:
            response = await self._client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            raise map_boto_error(e, operation="get", key=key) from e
        return S3BlobReader(response["Body"], key)

    async def new_writer(self, key: str, content_type: str = "") -> BlobWriter:
        async def commit(payload: bytes) -> None:
            extra_args: dict[str, Any] = {}
            if content_type:
                extra_args["ContentType"] = content_type
            try:
                await self._client.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=payload,
                    **extra_args,
                )
            except ClientError as e:
                raise map_boto_error(e, operation="upload", key=key) from e
            except BotoCoreError as e:
                raise StorageUploadError(
                    f"Failed to upload {key}: {e}",
                    metadata={"key": key, "bucket": self.bucket, "provider": "s3"},
                ) from e

        return BufferedBlobWriter(commit)

    async def delete(self, key: str) -> None:
        # DeleteObject succeeds on absent keys; absence must surface as not-found
        if not await self.exists(key):
            raise StorageFileNotFoundError(
                f"delete failed: {key} not found",
                metadata={"key": key, "bucket": self.bucket, "provider": "s3"},
            )
        try:
            await self._client.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            raise map_boto_error(e, operation="delete", key=key) from e

    async def list(self, prefix: str = "", delimiter: str = "") -> AsyncIterator[ListObject]:
        params: dict[str, Any] = {"Bucket": self.bucket, "Prefix": prefix}
        if delimiter:
            params["Delimiter"] = delimiter
        paginator = self._client.get_paginator("list_objects_v2")
        try:
            async for page in paginator.paginate(**params):
                entries = [
                    ListObject(
                        key=obj["Key"],
                        size_bytes=obj.get("Size", 0),
                        last_modified=obj.get("LastModified"),
                    )
                    for obj in page.get("Contents", [])
                ]
                entries.extend(
                    ListObject(key=cp["Prefix"], is_dir=True)
                    for cp in page.get("CommonPrefixes", [])
                )
                entries.sort(key=lambda entry: entry.key)
                for entry in entries:
                    yield entry
        except ClientError as e:
            raise map_boto_error(e, operation="list", key=prefix) from e

    async def close(self) -> None:
        await self._client_context.__aexit__(None, None, None)

    def __repr__(self) -> str:
        return f"S3Bucket(bucket={self.bucket!r})"
