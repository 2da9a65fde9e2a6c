"""Local filesystem bucket."""

from .backend import LocalBucket

__all__ = ["LocalBucket"]
