"""Credential bundle: the resolved key/value data of one storage secret."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from objectstore.infra.storage.exceptions import StorageConfigurationError


@dataclass(frozen=True)
class CredentialBundle:
    """Secret data scoped to one backend.

    Values are kept as bytes, the way mounted or API-fetched secrets arrive.
    ``repr`` never shows the values.
    """

    namespace: str
    name: str
    data: Mapping[str, bytes] = field(default_factory=dict, repr=False)

    @property
    def ref(self) -> str:
        return f"{self.namespace}/{self.name}"

    def get(self, key: str) -> bytes | None:
        return self.data.get(key)

    def require(self, key: str) -> bytes:
        """Return ``key`` or fail with an error naming the key and the secret."""
        value = self.data.get(key)
        if value is None:
            msg = f"storage secret {self.ref} missing {key} key"
            raise StorageConfigurationError(
                msg,
                metadata={"namespace": self.namespace, "secret": self.name, "missing_key": key},
            )
        return value

    def require_text(self, key: str) -> str:
        return self.require(key).decode("utf-8").strip()

    def __contains__(self, key: object) -> bool:
        return key in self.data
