"""Azure Blob Storage bucket."""

from .backend import AzureBlobReader, AzureBucket

__all__ = ["AzureBlobReader", "AzureBucket"]
