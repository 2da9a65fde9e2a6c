"""Backend descriptor: which provider to use, where, and with what secret.

Exactly one provider variant may be populated. Field names accept both the
snake_case Python names and the camelCase keys used by the custom resource
schema (``storageSecretName``, ``mountPath``, ``insecureTLS`` ...), so a
descriptor can be loaded straight from YAML manifests.
"""

from __future__ import annotations

from enum import StrEnum
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from objectstore.core.exceptions import ConfigurationError


class ProviderKind(StrEnum):
    """Provider identifiers as they appear in locations and metrics labels."""

    S3 = "s3"
    GCS = "gcs"
    AZURE = "azure"
    LOCAL = "local"
    SWIFT = "swift"
    B2 = "b2"
    REST = "rest"


class _SpecBase(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
        frozen=True,
    )


class S3Spec(_SpecBase):
    """S3 or S3-compatible (MinIO, Ceph RGW) bucket."""

    endpoint: str = Field(default="", description="Custom endpoint URL; empty means AWS")
    bucket: str = Field(..., min_length=1)
    prefix: str = ""
    region: str = ""
    insecure_tls: bool = Field(
        default=False,
        alias="insecureTLS",
        description="Skip server certificate verification",
    )


class GCSSpec(_SpecBase):
    """Google Cloud Storage bucket."""

    bucket: str = Field(..., min_length=1)
    prefix: str = ""
    max_connections: int = Field(default=0, ge=0)


class AzureSpec(_SpecBase):
    """Azure Blob Storage container."""

    container: str = Field(..., min_length=1)
    prefix: str = ""
    max_connections: int = Field(default=0, ge=0)


class LocalSpec(_SpecBase):
    """Mounted filesystem directory.

    ``sub_path`` is carried for descriptor compatibility; the bucket root is
    always ``mount_path``.
    """

    mount_path: str = Field(..., min_length=1)
    sub_path: str = ""


class SwiftSpec(_SpecBase):
    container: str = Field(..., min_length=1)
    prefix: str = ""


class B2Spec(_SpecBase):
    bucket: str = Field(..., min_length=1)
    prefix: str = ""
    max_connections: int = Field(default=0, ge=0)


class RestServerSpec(_SpecBase):
    url: str = Field(..., min_length=1)


class Backend(_SpecBase):
    """Tagged backend descriptor.

    Example:
        ```python
        backend = Backend.model_validate(
            {"s3": {"bucket": "backups", "prefix": "demo"}, "storageSecretName": "s3-creds"}
        )
        assert backend.provider() is ProviderKind.S3
        assert backend.location() == "s3:backups"
        ```
    """

    storage_secret_name: str | None = Field(
        default=None,
        description="Name of the secret holding provider credentials",
    )
    local: LocalSpec | None = None
    s3: S3Spec | None = None
    gcs: GCSSpec | None = None
    azure: AzureSpec | None = None
    swift: SwiftSpec | None = None
    b2: B2Spec | None = None
    rest: RestServerSpec | None = None

    def _variants(self) -> list[ProviderKind]:
        candidates = {
            ProviderKind.S3: self.s3,
            ProviderKind.GCS: self.gcs,
            ProviderKind.AZURE: self.azure,
            ProviderKind.LOCAL: self.local,
            ProviderKind.SWIFT: self.swift,
            ProviderKind.B2: self.b2,
            ProviderKind.REST: self.rest,
        }
        return [kind for kind, spec in candidates.items() if spec is not None]

    def provider(self) -> ProviderKind:
        """Return the single populated provider variant.

        Raises:
            ConfigurationError: If no variant or more than one is set.
        """
        variants = self._variants()
        if not variants:
            raise ConfigurationError(
                "no storage provider is configured",
                code="BACKEND_PROVIDER_MISSING",
            )
        if len(variants) > 1:
            raise ConfigurationError(
                "ambiguous storage backend: more than one provider is configured",
                code="BACKEND_PROVIDER_AMBIGUOUS",
                extra={"providers": [str(v) for v in variants]},
            )
        return variants[0]

    def container(self) -> str:
        """Bucket, container, mount path or REST host, depending on the provider."""
        match self.provider():
            case ProviderKind.S3:
                return self.s3.bucket  # type: ignore[union-attr]
            case ProviderKind.GCS:
                return self.gcs.bucket  # type: ignore[union-attr]
            case ProviderKind.AZURE:
                return self.azure.container  # type: ignore[union-attr]
            case ProviderKind.LOCAL:
                return self.local.mount_path  # type: ignore[union-attr]
            case ProviderKind.SWIFT:
                return self.swift.container  # type: ignore[union-attr]
            case ProviderKind.B2:
                return self.b2.bucket  # type: ignore[union-attr]
            case ProviderKind.REST:
                return urlsplit(self.rest.url).netloc  # type: ignore[union-attr]

    def prefix(self) -> str:
        """Configured key prefix; empty for Local, the URL path for Rest."""
        match self.provider():
            case ProviderKind.S3:
                return self.s3.prefix  # type: ignore[union-attr]
            case ProviderKind.GCS:
                return self.gcs.prefix  # type: ignore[union-attr]
            case ProviderKind.AZURE:
                return self.azure.prefix  # type: ignore[union-attr]
            case ProviderKind.SWIFT:
                return self.swift.prefix  # type: ignore[union-attr]
            case ProviderKind.B2:
                return self.b2.prefix  # type: ignore[union-attr]
            case ProviderKind.REST:
                return urlsplit(self.rest.url).path  # type: ignore[union-attr]
            case _:
                return ""

    def location(self) -> str:
        """``<provider>:<container>``; GCS reports ``gs:<bucket>``.

        Raises:
            ConfigurationError: For REST servers, which have no location.
        """
        kind = self.provider()
        if kind is ProviderKind.REST:
            raise ConfigurationError(
                "rest server backend has no location",
                code="BACKEND_NO_LOCATION",
            )
        scheme = "gs" if kind is ProviderKind.GCS else str(kind)
        return f"{scheme}:{self.container()}"

    def max_connections(self) -> int:
        for spec in (self.gcs, self.azure, self.b2):
            if spec is not None:
                return spec.max_connections
        return 0

    def endpoint(self) -> str | None:
        """S3 endpoint or REST URL; ``None`` for providers without one."""
        if self.s3 is not None:
            return self.s3.endpoint
        if self.rest is not None:
            return self.rest.url
        return None

    def region(self) -> str | None:
        if self.s3 is not None:
            return self.s3.region
        return None
