"""Secret resolvers: fetch a credential bundle by namespace and name."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from objectstore.infra.storage.exceptions import StorageSecretNotFoundError

from .bundle import CredentialBundle

logger = logging.getLogger(__name__)


class SecretResolver(Protocol):
    """Anything that can turn ``(namespace, name)`` into a credential bundle."""

    async def fetch(self, namespace: str, name: str) -> CredentialBundle:
        """Return the bundle.

        Raises:
            StorageSecretNotFoundError: If the secret does not exist.
        """
        ...


class MappingSecretResolver:
    """In-memory resolver, handy for tests and for embedding applications.

    Example:
        resolver = MappingSecretResolver(
            {("backups", "s3-creds"): {"AWS_ACCESS_KEY_ID": b"...", "AWS_SECRET_ACCESS_KEY": b"..."}}
        )
    """

    def __init__(
        self,
        secrets: Mapping[tuple[str, str], Mapping[str, bytes | str]] | None = None,
    ) -> None:
        self._secrets: dict[tuple[str, str], dict[str, bytes]] = {}
        for (namespace, name), data in (secrets or {}).items():
            self.put(namespace, name, data)

    def put(self, namespace: str, name: str, data: Mapping[str, bytes | str]) -> None:
        self._secrets[(namespace, name)] = {
            key: value.encode("utf-8") if isinstance(value, str) else bytes(value)
            for key, value in data.items()
        }

    async def fetch(self, namespace: str, name: str) -> CredentialBundle:
        try:
            data = self._secrets[(namespace, name)]
        except KeyError:
            raise StorageSecretNotFoundError(namespace, name) from None
        return CredentialBundle(namespace=namespace, name=name, data=dict(data))


class DirectorySecretResolver:
    """Reads secrets mounted as ``<root>/<namespace>/<name>/<key>`` files.

    This is the layout produced by projecting Kubernetes secrets into a pod,
    one directory per secret and one file per key. Hidden entries
    (``..data`` symlinks and the like) are skipped.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _read(self, namespace: str, name: str) -> dict[str, bytes]:
        secret_dir = self.root / namespace / name
        if not secret_dir.is_dir():
            raise StorageSecretNotFoundError(
                namespace, name, metadata={"path": str(secret_dir)}
            )
        data: dict[str, bytes] = {}
        for entry in sorted(secret_dir.iterdir()):
            if entry.name.startswith(".") or not entry.is_file():
                continue
            data[entry.name] = entry.read_bytes()
        return data

    async def fetch(self, namespace: str, name: str) -> CredentialBundle:
        data = await asyncio.to_thread(self._read, namespace, name)
        logger.debug(
            "Resolved storage secret",
            extra={"namespace": namespace, "secret": name, "keys": sorted(data)},
        )
        return CredentialBundle(namespace=namespace, name=name, data=data)
