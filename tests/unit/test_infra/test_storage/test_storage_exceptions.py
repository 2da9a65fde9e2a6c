"""Unit tests for the storage error taxonomy and provider error mapping."""

import pytest
from azure.core.exceptions import HttpResponseError, ResourceNotFoundError
from botocore.exceptions import ClientError
from google.api_core import exceptions as gexc

from objectstore.core.exceptions import ConfigurationError, ObjectStoreError
from objectstore.infra.storage.exceptions import (
    StorageAggregateError,
    StorageConfigurationError,
    StorageError,
    StorageFileNotFoundError,
    StoragePermissionError,
    StorageQuotaExceededError,
    StorageSecretNotFoundError,
    StorageTimeoutError,
    StorageValidationError,
    is_not_found,
    map_azure_error,
    map_boto_error,
    map_google_error,
)


class TestTaxonomy:
    """Test exception hierarchy and payloads."""

    def test_configuration_errors_are_both_kinds(self):
        error = StorageConfigurationError("bad descriptor", metadata={"provider": "s3"})

        assert isinstance(error, StorageError)
        assert isinstance(error, ConfigurationError)
        assert isinstance(error, ObjectStoreError)
        assert error.to_dict() == {
            "code": "STORAGE_CONFIGURATION_ERROR",
            "detail": "bad descriptor",
            "extra": {"provider": "s3"},
        }

    def test_secret_not_found(self):
        error = StorageSecretNotFoundError("backups", "s3-secret")

        assert error.code == "STORAGE_SECRET_NOT_FOUND"
        assert str(error) == "storage secret backups/s3-secret not found"
        assert isinstance(error, StorageConfigurationError)

    def test_aggregate_message(self):
        error = StorageAggregateError(
            [StorageFileNotFoundError("a missing"), StoragePermissionError("b denied")],
        )

        assert str(error) == "2 error(s) occurred: a missing; b denied"
        assert error.extra["error_count"] == 2


class TestIsNotFound:
    """Test the not-found predicate."""

    def test_not_found(self):
        assert is_not_found(StorageFileNotFoundError("missing")) is True

    def test_other_errors(self):
        assert is_not_found(StoragePermissionError("denied")) is False
        assert is_not_found(KeyError("x")) is False

    def test_aggregate_of_not_found(self):
        error = StorageAggregateError([StorageFileNotFoundError("a"), StorageFileNotFoundError("b")])
        assert is_not_found(error) is True

    def test_mixed_aggregate(self):
        error = StorageAggregateError([StorageFileNotFoundError("a"), StorageError("b")])
        assert is_not_found(error) is False

    def test_empty_aggregate(self):
        assert is_not_found(StorageAggregateError([])) is False


class TestBotoMapping:
    """Test botocore ClientError mapping."""

    @pytest.mark.parametrize(
        ("code", "expected"),
        [
            ("NoSuchKey", StorageFileNotFoundError),
            ("404", StorageFileNotFoundError),
            ("AccessDenied", StoragePermissionError),
            ("InvalidAccessKeyId", StoragePermissionError),
            ("RequestTimeout", StorageTimeoutError),
            ("SlowDown", StorageQuotaExceededError),
            ("InvalidArgument", StorageValidationError),
        ],
    )
    def test_codes(self, code, expected):
        error = ClientError({"Error": {"Code": code, "Message": "boom"}}, "GetObject")

        mapped = map_boto_error(error, operation="get", key="a.txt")

        assert type(mapped) is expected
        assert mapped.extra["provider_error_code"] == code
        assert mapped.extra["key"] == "a.txt"

    def test_unknown_code(self):
        error = ClientError({"Error": {"Code": "InternalError", "Message": "oops"}}, "PutObject")

        mapped = map_boto_error(error, operation="upload")

        assert type(mapped) is StorageError
        assert str(mapped) == "upload failed: oops"


class TestGoogleMapping:
    """Test google-api-core mapping."""

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (gexc.NotFound("x"), StorageFileNotFoundError),
            (gexc.Forbidden("x"), StoragePermissionError),
            (gexc.Unauthorized("x"), StoragePermissionError),
            (gexc.DeadlineExceeded("x"), StorageTimeoutError),
            (gexc.TooManyRequests("x"), StorageQuotaExceededError),
            (gexc.BadRequest("x"), StorageValidationError),
            (gexc.InternalServerError("x"), StorageError),
        ],
    )
    def test_types(self, error, expected):
        assert type(map_google_error(error, operation="get")) is expected


class TestAzureMapping:
    """Test azure-core mapping."""

    def test_not_found(self):
        mapped = map_azure_error(ResourceNotFoundError("BlobNotFound"), operation="get", key="a")
        assert isinstance(mapped, StorageFileNotFoundError)

    def test_status_codes(self):
        error = HttpResponseError("throttled")
        error.status_code = 503

        assert isinstance(map_azure_error(error, operation="upload"), StorageQuotaExceededError)

    def test_unknown(self):
        mapped = map_azure_error(HttpResponseError("weird"), operation="list")
        assert type(mapped) is StorageError
