"""Credential materializer.

Turns a credential bundle plus backend parameters into what each provider
transport needs: botocore client options for S3, a credentials object for
GCS and a named-key credential for Azure. Nothing here touches the network.

GCS and Azure credentials are per-instance objects handed straight to the
client constructor. ``StorageSettings.credentials_via_environment`` switches
to the legacy mode that writes the service-account file to a fixed path and
exports ``GOOGLE_APPLICATION_CREDENTIALS`` / ``AZURE_STORAGE_*``; that mode
mutates process-wide state, so facades for different GCS or Azure accounts
must not be constructed concurrently while it is enabled.
"""

from __future__ import annotations

import json
import logging
import os
import ssl
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from aiobotocore.config import AioConfig

from .exceptions import StorageConfigurationError

if TYPE_CHECKING:
    from google.auth.credentials import Credentials as GoogleCredentials

    from objectstore.core.schemas.backend import AzureSpec, GCSSpec, S3Spec
    from objectstore.core.settings.storage import StorageSettings
    from objectstore.infra.secrets.bundle import CredentialBundle

logger = logging.getLogger(__name__)

# Keys inside the credential bundle
AWS_ACCESS_KEY_ID = "AWS_ACCESS_KEY_ID"
AWS_SECRET_ACCESS_KEY = "AWS_SECRET_ACCESS_KEY"  # noqa: S105
CA_CERT_DATA = "CA_CERT_DATA"
GOOGLE_SERVICE_ACCOUNT_JSON_KEY = "GOOGLE_SERVICE_ACCOUNT_JSON_KEY"
AZURE_ACCOUNT_NAME = "AZURE_ACCOUNT_NAME"
AZURE_ACCOUNT_KEY = "AZURE_ACCOUNT_KEY"

# Process environment used by the legacy credential mode
GOOGLE_APPLICATION_CREDENTIALS = "GOOGLE_APPLICATION_CREDENTIALS"
AZURE_STORAGE_ACCOUNT = "AZURE_STORAGE_ACCOUNT"
AZURE_STORAGE_KEY = "AZURE_STORAGE_KEY"


@dataclass(frozen=True)
class S3ClientOptions:
    """Keyword arguments for ``aioboto3.Session().client("s3", ...)``."""

    client_kwargs: dict[str, Any] = field(repr=False)
    config: AioConfig
    tls_configured: bool = False


@dataclass(frozen=True)
class GCSAuth:
    """Credentials and project for ``google.cloud.storage.Client``.

    ``credentials=None`` means application default credentials.
    """

    credentials: GoogleCredentials | None = None
    project: str | None = None


@dataclass(frozen=True)
class AzureAuth:
    account_name: str
    account_key: str = field(repr=False)

    @property
    def account_url(self) -> str:
        return f"https://{self.account_name}.blob.core.windows.net"

    def credential(self) -> Any:
        from azure.core.credentials import AzureNamedKeyCredential

        return AzureNamedKeyCredential(self.account_name, self.account_key)


def build_tls_context(ca_cert: bytes | None, insecure: bool) -> ssl.SSLContext:
    """Build a client TLS context from optional PEM CA data and the insecure flag.

    Raises:
        StorageConfigurationError: If ``ca_cert`` cannot be parsed.
    """
    context = ssl.create_default_context()
    if ca_cert:
        try:
            context.load_verify_locations(cadata=ca_cert.decode("ascii"))
        except (ssl.SSLError, ValueError, UnicodeDecodeError) as e:
            msg = "failed to parse CA certificate"
            raise StorageConfigurationError(msg, metadata={"error": str(e)}) from e
    if insecure:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


class CredentialMaterializer:
    """Produces provider authentication from a bundle and descriptor fields."""

    def __init__(self, settings: StorageSettings) -> None:
        self.settings = settings

    # ========================================================================
    # S3
    # ========================================================================

    def s3(
        self,
        spec: S3Spec,
        bundle: CredentialBundle | None,
        max_pool_connections: int | None = None,
    ) -> S3ClientOptions:
        """Build S3 client options.

        Static keys are used when a bundle is present; otherwise botocore's
        default credential chain applies. A TLS context is installed only
        when the bundle carries CA data or the descriptor asks for insecure
        TLS, leaving the transport defaults untouched otherwise.
        """
        client_kwargs: dict[str, Any] = {}
        if spec.region:
            client_kwargs["region_name"] = spec.region
        if spec.endpoint:
            client_kwargs["endpoint_url"] = spec.endpoint

        ca_cert: bytes | None = None
        if bundle is not None:
            client_kwargs["aws_access_key_id"] = bundle.require_text(AWS_ACCESS_KEY_ID)
            client_kwargs["aws_secret_access_key"] = bundle.require_text(AWS_SECRET_ACCESS_KEY)
            ca_cert = bundle.get(CA_CERT_DATA) or None

        connector_args: dict[str, Any] | None = None
        if ca_cert or spec.insecure_tls:
            connector_args = {"ssl_context": build_tls_context(ca_cert, spec.insecure_tls)}

        config = AioConfig(
            s3={"addressing_style": "path"},
            retries={
                "max_attempts": self.settings.max_retries,
                "mode": self.settings.retry_mode,
            },
            connect_timeout=self.settings.connect_timeout,
            read_timeout=self.settings.read_timeout,
            max_pool_connections=max_pool_connections or self.settings.max_pool_connections,
            connector_args=connector_args,
        )
        return S3ClientOptions(
            client_kwargs=client_kwargs,
            config=config,
            tls_configured=connector_args is not None,
        )

    # ========================================================================
    # GCS
    # ========================================================================

    def gcs(self, spec: GCSSpec, bundle: CredentialBundle | None) -> GCSAuth:
        if bundle is None:
            return GCSAuth()

        raw = bundle.require(GOOGLE_SERVICE_ACCOUNT_JSON_KEY)
        if self.settings.credentials_via_environment:
            path = self._write_credentials_file(GOOGLE_SERVICE_ACCOUNT_JSON_KEY, raw)
            os.environ[GOOGLE_APPLICATION_CREDENTIALS] = str(path)
            logger.warning(
                "GCS credentials exported through process environment",
                extra={"secret": bundle.ref, "path": str(path), "bucket": spec.bucket},
            )
            return GCSAuth()

        from google.oauth2 import service_account

        try:
            info = json.loads(raw)
            credentials = service_account.Credentials.from_service_account_info(info)
        except (ValueError, KeyError) as e:
            msg = f"storage secret {bundle.ref} has an invalid {GOOGLE_SERVICE_ACCOUNT_JSON_KEY}"
            raise StorageConfigurationError(
                msg, metadata={"secret": bundle.ref, "error": str(e)}
            ) from e
        return GCSAuth(credentials=credentials, project=info.get("project_id"))

    def _write_credentials_file(self, name: str, data: bytes) -> Path:
        directory = self.settings.credentials_dir
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_bytes(data)
        path.chmod(0o600)
        return path

    # ========================================================================
    # Azure
    # ========================================================================

    def azure(self, spec: AzureSpec, bundle: CredentialBundle | None) -> AzureAuth | None:
        """Return per-instance Azure auth, or None when it must come from the environment."""
        if bundle is None:
            return None

        account_key = bundle.require_text(AZURE_ACCOUNT_KEY)
        account_name = bundle.require_text(AZURE_ACCOUNT_NAME)
        if self.settings.credentials_via_environment:
            os.environ[AZURE_STORAGE_KEY] = account_key
            os.environ[AZURE_STORAGE_ACCOUNT] = account_name
            logger.warning(
                "Azure credentials exported through process environment",
                extra={"secret": bundle.ref, "container": spec.container},
            )
            return None
        return AzureAuth(account_name=account_name, account_key=account_key)


def azure_auth_from_environment() -> AzureAuth:
    """Read Azure storage account credentials from the process environment.

    Raises:
        StorageConfigurationError: If either variable is unset.
    """
    account_name = os.environ.get(AZURE_STORAGE_ACCOUNT)
    account_key = os.environ.get(AZURE_STORAGE_KEY)
    if not account_name or not account_key:
        missing = [
            var
            for var, value in ((AZURE_STORAGE_ACCOUNT, account_name), (AZURE_STORAGE_KEY, account_key))
            if not value
        ]
        msg = f"azure storage credentials not configured: {', '.join(missing)} unset"
        raise StorageConfigurationError(msg, metadata={"missing": missing})
    return AzureAuth(account_name=account_name, account_key=account_key)
