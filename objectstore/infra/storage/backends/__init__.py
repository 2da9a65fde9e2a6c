"""Provider buckets behind a provider-neutral protocol."""

from .factory import BucketFactory, close_quietly, scope_prefix
from .prefixed import PrefixedBucket
from .protocol import (
    BlobReader,
    BlobWriter,
    Bucket,
    BufferedBlobWriter,
    BytesBlobReader,
    ListObject,
)

__all__ = [
    "BlobReader",
    "BlobWriter",
    "Bucket",
    "BucketFactory",
    "BufferedBlobWriter",
    "BytesBlobReader",
    "ListObject",
    "PrefixedBucket",
    "close_quietly",
    "scope_prefix",
]
