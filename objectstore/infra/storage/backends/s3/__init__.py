"""S3-compatible bucket."""

from .backend import S3BlobReader, S3Bucket

__all__ = ["S3BlobReader", "S3Bucket"]
