"""Unit tests for the Google Cloud Storage bucket with a mocked client."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from google.api_core import exceptions as gexc

from objectstore.infra.storage.backends.gcs.backend import GCSBucket
from objectstore.infra.storage.credentials import GCSAuth
from objectstore.infra.storage.exceptions import (
    StorageFileNotFoundError,
    StoragePermissionError,
)


class _Page(list):
    def __init__(self, blobs, prefixes=()):
        super().__init__(blobs)
        self.prefixes = set(prefixes)


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def blob(client):
    return client.bucket.return_value.blob.return_value


@pytest.fixture
def bucket(client):
    return GCSBucket(client, "stash")


class TestGCSOpen:
    """Client creation."""

    @pytest.mark.asyncio
    async def test_open_passes_credentials(self):
        credentials = object()
        with patch("objectstore.infra.storage.backends.gcs.backend.storage.Client") as mock_client:
            bucket = await GCSBucket.open(GCSAuth(credentials=credentials, project="proj"), "stash")

        mock_client.assert_called_once_with(project="proj", credentials=credentials)
        mock_client.return_value.bucket.assert_called_once_with("stash")
        assert bucket.provider == "gcs"

    @pytest.mark.asyncio
    async def test_close(self, bucket, client):
        await bucket.close()

        client.close.assert_called_once()


class TestGCSObjects:
    """Object operations run in worker threads."""

    @pytest.mark.asyncio
    async def test_exists(self, bucket, blob):
        blob.exists.return_value = True

        assert await bucket.exists("a.txt") is True

    @pytest.mark.asyncio
    async def test_reader(self, bucket, blob):
        blob.download_as_bytes.return_value = b"payload"

        reader = await bucket.new_reader("a.txt")

        assert await reader.read() == b"payload"

    @pytest.mark.asyncio
    async def test_reader_missing(self, bucket, blob):
        blob.download_as_bytes.side_effect = gexc.NotFound("no such object")

        with pytest.raises(StorageFileNotFoundError):
            await bucket.new_reader("a.txt")

    @pytest.mark.asyncio
    async def test_writer(self, bucket, blob):
        writer = await bucket.new_writer("a.txt")
        await writer.write(b"payload")
        await writer.close()

        blob.upload_from_string.assert_called_once_with(b"payload", content_type=None)

    @pytest.mark.asyncio
    async def test_writer_forbidden(self, bucket, blob):
        blob.upload_from_string.side_effect = gexc.Forbidden("denied")
        writer = await bucket.new_writer("a.txt", "text/plain")
        await writer.write(b"payload")

        with pytest.raises(StoragePermissionError):
            await writer.close()

    @pytest.mark.asyncio
    async def test_delete_missing(self, bucket, blob):
        blob.delete.side_effect = gexc.NotFound("gone")

        with pytest.raises(StorageFileNotFoundError):
            await bucket.delete("a.txt")


class TestGCSListing:
    """Page-at-a-time listings."""

    @pytest.mark.asyncio
    async def test_listing_merges_prefixes(self, bucket, client):
        pages = [
            _Page(
                [SimpleNamespace(name="data/b.txt", size=2, updated=None)],
                prefixes=["data/a/"],
            ),
            _Page([SimpleNamespace(name="data/c.txt", size=None, updated=None)]),
        ]
        client.list_blobs.return_value = SimpleNamespace(pages=iter(pages))

        entries = [entry async for entry in bucket.list("data/", "/")]

        assert [(e.key, e.is_dir, e.size_bytes) for e in entries] == [
            ("data/a/", True, 0),
            ("data/b.txt", False, 2),
            ("data/c.txt", False, 0),
        ]
        _, kwargs = client.list_blobs.call_args
        assert kwargs == {"prefix": "data/", "delimiter": "/"}

    @pytest.mark.asyncio
    async def test_flat_listing(self, bucket, client):
        client.list_blobs.return_value = SimpleNamespace(pages=iter([]))

        assert [entry async for entry in bucket.list()] == []
        _, kwargs = client.list_blobs.call_args
        assert kwargs == {"prefix": None, "delimiter": None}
