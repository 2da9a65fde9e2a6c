"""Unit tests for the BlobStorage facade over an in-memory bucket."""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from objectstore.core.exceptions import ConfigurationError
from objectstore.core.schemas import Backend
from objectstore.core.settings import StorageSettings
from objectstore.infra.metrics import REGISTRY
from objectstore.infra.secrets import MappingSecretResolver
from objectstore.infra.storage import (
    BlobStorage,
    StorageAggregateError,
    StorageConfigurationError,
    StoragePermissionError,
    StorageSecretNotFoundError,
    StorageTimeoutError,
    StorageUploadError,
    StorageValidationError,
    blob_storage_from_settings,
    new_blob_storage,
    split_path,
)


def _cleanup_errors(resource: str) -> float:
    value = REGISTRY.get_sample_value(
        "storage_cleanup_errors_total",
        {"provider": "s3", "resource": resource},
    )
    return value or 0.0


class TestSplitPath:
    """Paths split at the last separator."""

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("data/sample.txt", ("data", "sample.txt")),
            ("a/b/c.txt", ("a/b", "c.txt")),
            ("top.txt", ("", "top.txt")),
        ],
    )
    def test_split(self, path, expected):
        assert split_path(path) == expected


class TestPrefixScoping:
    """Keys are written below the backend prefix and the operation directory."""

    @pytest.mark.asyncio
    async def test_upload_lands_under_prefix(self, make_memory_storage, memory_bucket):
        storage = make_memory_storage(prefix="/source/data")

        await storage.upload("2024/report.json", b"{}", "application/json")

        assert memory_bucket.objects == {"source/data/2024/report.json": b"{}"}
        assert memory_bucket.content_types["source/data/2024/report.json"] == "application/json"

    @pytest.mark.asyncio
    async def test_content_type_is_never_sniffed(self, make_memory_storage, memory_bucket):
        storage = make_memory_storage()

        await storage.upload("page.html", b"<html></html>")

        assert memory_bucket.content_types["page.html"] == ""

    @pytest.mark.asyncio
    async def test_prefixes_are_isolated(self, make_memory_storage, memory_bucket):
        """Two facades on one bucket never see each other's keys."""
        storage_a = make_memory_storage(prefix="a")
        storage_b = make_memory_storage(prefix="b")

        await storage_a.upload("f.txt", b"from a")

        assert await storage_b.list("") == []
        assert await storage_b.exists("f.txt") is False
        assert await storage_a.list("") == [b"from a"]
        assert set(memory_bucket.objects) == {"a/f.txt"}

    @pytest.mark.asyncio
    async def test_every_operation_closes_its_bucket(self, make_memory_storage, memory_bucket):
        storage = make_memory_storage()

        await storage.upload("x/y.txt", b"1")
        await storage.exists("x/y.txt")
        await storage.get("x/y.txt")
        await storage.list("x")
        await storage.list_dir_n("")
        await storage.delete("x/y.txt")

        assert memory_bucket.closed == 6

    @pytest.mark.asyncio
    async def test_escaping_directory_never_opens_a_bucket(
        self, make_memory_storage, memory_bucket
    ):
        storage = make_memory_storage(prefix="base")
        before = REGISTRY.get_sample_value(
            "storage_bucket_opens_total", {"provider": "s3", "status": "success"}
        ) or 0.0

        with pytest.raises(StorageValidationError):
            await storage.get("../x.txt")

        storage.factory._open_provider_bucket.assert_not_awaited()
        assert memory_bucket.closed == 0
        after = REGISTRY.get_sample_value(
            "storage_bucket_opens_total", {"provider": "s3", "status": "success"}
        ) or 0.0
        assert after == before


class TestOperations:
    """Facade semantics independent of the provider."""

    @pytest.mark.asyncio
    async def test_list_skips_markers(self, make_memory_storage, memory_bucket):
        memory_bucket.objects.update(
            {"data/a.txt": b"a", "data/sub/": b"", "data/sub/b.txt": b"b"},
        )
        storage = make_memory_storage()

        assert await storage.list("data") == [b"a", b"b"]

    @pytest.mark.asyncio
    async def test_list_dir_n_is_relative_to_facade_root(self, make_memory_storage, memory_bucket):
        memory_bucket.objects.update(
            {
                "p/a/one.txt": b"1",
                "p/a/b/two.txt": b"2",
                "p/c/": b"",
            }
        )
        storage = make_memory_storage(prefix="p")

        assert await storage.list_dir_n("", 0) == ["a/", "c/"]
        assert await storage.list_dir_n("a", 0) == ["a/b/"]
        assert await storage.list_dir_n("", -1) == ["a/", "a/b/", "c/"]

    @pytest.mark.asyncio
    async def test_mark_as_directory(self, make_memory_storage, memory_bucket):
        storage = make_memory_storage()

        await storage.mark_as_directory("backups/empty")

        assert memory_bucket.objects == {"backups/empty/": b""}
        assert await storage.list_dir_n("backups") == ["backups/empty/"]

    @pytest.mark.asyncio
    async def test_mark_root_is_rejected(self, make_memory_storage):
        storage = make_memory_storage()

        with pytest.raises(StorageValidationError):
            await storage.mark_as_directory("/")

    @pytest.mark.asyncio
    async def test_delete_dir_aggregates_failures(self, make_memory_storage, memory_bucket):
        memory_bucket.objects.update({"d/a": b"a", "d/b": b"b", "d/sub/c": b"c"})
        memory_bucket.fail_delete.add("d/b")
        storage = make_memory_storage()

        with pytest.raises(StorageAggregateError) as exc_info:
            await storage.delete("d", is_dir=True)

        assert len(exc_info.value.errors) == 1
        assert isinstance(exc_info.value.errors[0], StoragePermissionError)
        assert set(memory_bucket.objects) == {"d/b"}

    @pytest.mark.asyncio
    async def test_debug_uploads_then_deletes(self, make_memory_storage, memory_bucket, caplog):
        storage = make_memory_storage()

        with caplog.at_level(logging.INFO, logger="objectstore.infra.storage.service"):
            await storage.debug("probe/p.txt", b"probe")

        assert memory_bucket.objects == {}
        messages = [r.getMessage() for r in caplog.records]
        assert "Uploading data to backend" in messages
        assert "Cleaning up data from backend" in messages

    def test_location(self, make_memory_storage):
        storage = make_memory_storage()

        assert storage.provider == "s3"
        assert storage.location == "s3:stash"


class TestErrorPropagation:
    """Timeouts, cleanup failures and write/close ordering."""

    @pytest.mark.asyncio
    async def test_timeout(self, make_memory_storage, memory_bucket):
        async def slow_exists(key):
            await asyncio.sleep(5)
            return True

        memory_bucket.exists = slow_exists
        storage = make_memory_storage()

        with pytest.raises(StorageTimeoutError) as exc_info:
            await storage.exists("a.txt", timeout=0.01)

        assert exc_info.value.extra["operation"] == "exists"
        assert memory_bucket.closed == 1

    @pytest.mark.asyncio
    async def test_default_timeout_from_settings(self, memory_bucket):
        async def slow_exists(key):
            await asyncio.sleep(5)
            return True

        memory_bucket.exists = slow_exists
        backend = Backend.model_validate({"s3": {"bucket": "stash"}})
        storage = BlobStorage(backend, settings=StorageSettings(operation_timeout=0.01))
        storage.factory._open_provider_bucket = AsyncMock(return_value=memory_bucket)

        with pytest.raises(StorageTimeoutError):
            await storage.exists("a.txt")

    @pytest.mark.asyncio
    async def test_close_failure_does_not_mask_result(
        self, make_memory_storage, memory_bucket, caplog
    ):
        memory_bucket.objects["a.txt"] = b"data"
        memory_bucket.close = AsyncMock(side_effect=RuntimeError("pool already closed"))
        storage = make_memory_storage()
        before = _cleanup_errors("bucket")

        with caplog.at_level(logging.WARNING):
            assert await storage.get("a.txt") == b"data"

        assert _cleanup_errors("bucket") == before + 1
        assert any("Failed to close bucket" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_write_error_wins_over_close_error(self, make_memory_storage, memory_bucket):
        writer = MagicMock()
        writer.write = AsyncMock(side_effect=StorageUploadError("connection reset"))
        writer.close = AsyncMock(side_effect=RuntimeError("close failed"))
        memory_bucket.new_writer = AsyncMock(return_value=writer)
        storage = make_memory_storage()
        before = _cleanup_errors("writer")

        with pytest.raises(StorageUploadError, match="connection reset"):
            await storage.upload("a.txt", b"data")

        writer.close.assert_awaited_once()
        assert _cleanup_errors("writer") == before + 1

    @pytest.mark.asyncio
    async def test_close_error_surfaces_when_write_succeeds(
        self, make_memory_storage, memory_bucket
    ):
        writer = MagicMock()
        writer.write = AsyncMock(return_value=4)
        writer.close = AsyncMock(side_effect=StorageUploadError("commit failed"))
        memory_bucket.new_writer = AsyncMock(return_value=writer)
        storage = make_memory_storage()

        with pytest.raises(StorageUploadError, match="commit failed"):
            await storage.upload("a.txt", b"data")


class TestCancellation:
    """Task cancellation releases handles and is not reported as a timeout."""

    @staticmethod
    def _blocking_reader(memory_bucket):
        entered = asyncio.Event()

        async def new_reader(key):
            entered.set()
            await asyncio.sleep(5)

        memory_bucket.new_reader = new_reader
        return entered

    @pytest.mark.asyncio
    async def test_cancelled_get_closes_bucket(self, make_memory_storage, memory_bucket):
        entered = self._blocking_reader(memory_bucket)
        storage = make_memory_storage()

        task = asyncio.create_task(storage.get("a.txt"))
        await entered.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert memory_bucket.closed == 1

    @pytest.mark.asyncio
    async def test_cancellation_is_not_a_timeout(self, make_memory_storage, memory_bucket):
        entered = self._blocking_reader(memory_bucket)
        storage = make_memory_storage()

        task = asyncio.create_task(storage.get("a.txt", timeout=30))
        await entered.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert task.cancelled()
        assert memory_bucket.closed == 1


class TestConstruction:
    """Secret resolution and descriptor validation at construction."""

    @pytest.mark.asyncio
    async def test_resolves_secret(self, storage_settings):
        backend = Backend.model_validate(
            {"storageSecretName": "s3-secret", "s3": {"bucket": "stash"}},
        )
        resolver = MappingSecretResolver(
            {
                ("backups", "s3-secret"): {
                    "AWS_ACCESS_KEY_ID": "key-id",
                    "AWS_SECRET_ACCESS_KEY": "secret",
                }
            }
        )

        storage = await new_blob_storage(backend, "backups", resolver, storage_settings)

        assert storage.provider == "s3"

    @pytest.mark.asyncio
    async def test_missing_secret(self, storage_settings):
        backend = Backend.model_validate(
            {"storageSecretName": "s3-secret", "s3": {"bucket": "stash"}},
        )

        with pytest.raises(StorageSecretNotFoundError) as exc_info:
            await new_blob_storage(backend, "backups", MappingSecretResolver(), storage_settings)

        assert "backups/s3-secret" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_missing_credential_key(self, storage_settings):
        backend = Backend.model_validate(
            {"storageSecretName": "s3-secret", "s3": {"bucket": "stash"}},
        )
        resolver = MappingSecretResolver(
            {("backups", "s3-secret"): {"AWS_ACCESS_KEY_ID": "key-id"}},
        )

        with pytest.raises(StorageConfigurationError) as exc_info:
            await new_blob_storage(backend, "backups", resolver, storage_settings)

        assert exc_info.value.extra["missing_key"] == "AWS_SECRET_ACCESS_KEY"
        assert "backups/s3-secret" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_secret_without_resolver(self, storage_settings):
        backend = Backend.model_validate(
            {"storageSecretName": "s3-secret", "s3": {"bucket": "stash"}},
        )

        with pytest.raises(StorageConfigurationError):
            await new_blob_storage(backend, "backups", None, storage_settings)

    @pytest.mark.asyncio
    async def test_ambiguous_backend(self, storage_settings):
        backend = Backend.model_validate({"s3": {"bucket": "a"}, "gcs": {"bucket": "b"}})

        with pytest.raises(ConfigurationError):
            await new_blob_storage(backend, "default", None, storage_settings)

    @pytest.mark.asyncio
    async def test_unsupported_provider(self, storage_settings):
        backend = Backend.model_validate({"swift": {"container": "stash"}})

        with pytest.raises(StorageConfigurationError, match="unknown provider: swift"):
            await new_blob_storage(backend, "default", None, storage_settings)

    @pytest.mark.asyncio
    async def test_from_settings_reads_secrets_dir(self, tmp_path):
        secret_dir = tmp_path / "secrets" / "backups" / "s3-secret"
        secret_dir.mkdir(parents=True)
        (secret_dir / "AWS_ACCESS_KEY_ID").write_text("key-id")
        (secret_dir / "AWS_SECRET_ACCESS_KEY").write_text("secret")
        settings = StorageSettings(
            namespace="backups",
            secrets_dir=tmp_path / "secrets",
            backend={"storageSecretName": "s3-secret", "s3": {"bucket": "stash"}},
        )

        storage = await blob_storage_from_settings(settings)

        assert storage.location == "s3:stash"

    @pytest.mark.asyncio
    async def test_from_settings_without_backend(self):
        with pytest.raises(StorageConfigurationError, match="no storage backend configured"):
            await blob_storage_from_settings(StorageSettings())
