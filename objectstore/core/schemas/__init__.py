"""Pydantic schemas shared across the object store facade."""

from .backend import (
    AzureSpec,
    B2Spec,
    Backend,
    GCSSpec,
    LocalSpec,
    ProviderKind,
    RestServerSpec,
    S3Spec,
    SwiftSpec,
)

__all__ = [
    "AzureSpec",
    "B2Spec",
    "Backend",
    "GCSSpec",
    "LocalSpec",
    "ProviderKind",
    "RestServerSpec",
    "S3Spec",
    "SwiftSpec",
]
