"""Object storage facade settings.

Environment variables use STORAGE_ prefix; nested values use ``__``.
Example: STORAGE_NAMESPACE="backups"
         STORAGE_BACKEND='{"s3": {"bucket": "stash", "endpoint": "http://minio:9000"}}'
         STORAGE_OPERATION_TIMEOUT=30

The backend descriptor is usually kept in conf/storage.yaml:

    backend:
      storageSecretName: minio-creds
      s3:
        endpoint: https://minio.local:9000
        bucket: stash
        prefix: demo
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from objectstore.core.schemas.backend import Backend

from .yaml_sources import create_storage_yaml_source

RetryMode = Literal["standard", "adaptive", "legacy"]


class StorageSettings(BaseSettings):
    """Settings that drive facade construction and provider transports."""

    # ──────────────────────────────────────────────────────────────
    # Backend selection
    # ──────────────────────────────────────────────────────────────

    backend: Backend | None = Field(
        default=None,
        description="Backend descriptor (exactly one provider variant)",
    )

    namespace: str = Field(
        default="default",
        min_length=1,
        description="Namespace used to resolve the backend's credential secret",
    )

    secrets_dir: Path | None = Field(
        default=None,
        description="Root of a mounted-secret tree laid out as <dir>/<namespace>/<name>/<key>",
    )

    # ──────────────────────────────────────────────────────────────
    # Credentials
    # ──────────────────────────────────────────────────────────────

    credentials_via_environment: bool = Field(
        default=False,
        description=(
            "Publish GCS/Azure credentials through process environment variables "
            "instead of per-client credential objects. Not safe when facades for "
            "different accounts are built concurrently."
        ),
    )

    credentials_dir: Path = Field(
        default=Path("/tmp/credentials"),
        description="Directory for the GCS service account file in environment mode",
    )

    # ──────────────────────────────────────────────────────────────
    # Operation limits
    # ──────────────────────────────────────────────────────────────

    operation_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Default deadline in seconds for facade operations; None disables",
    )

    connect_timeout: int = Field(
        default=10,
        ge=1,
        le=300,
        description="Transport connect timeout in seconds",
    )

    read_timeout: int = Field(
        default=60,
        ge=1,
        le=3600,
        description="Transport read timeout in seconds",
    )

    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Maximum number of retry attempts for failed provider calls",
    )

    retry_mode: RetryMode = Field(
        default="standard",
        description="botocore retry mode: standard, adaptive, or legacy",
    )

    max_pool_connections: int = Field(
        default=10,
        ge=1,
        le=200,
        description="Connection pool size when the descriptor does not set maxConnections",
    )

    @computed_field
    @property
    def is_configured(self) -> bool:
        """Check if a backend descriptor has been supplied."""
        return self.backend is not None

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        populate_by_name=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Customize settings source precedence: init > yaml > env > dotenv > secrets."""
        return (
            init_settings,
            create_storage_yaml_source(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )
