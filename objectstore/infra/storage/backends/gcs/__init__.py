"""Google Cloud Storage bucket."""

from .backend import GCSBucket

__all__ = ["GCSBucket"]
