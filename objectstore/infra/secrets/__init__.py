"""Credential secret resolution."""

from .bundle import CredentialBundle
from .resolver import DirectorySecretResolver, MappingSecretResolver, SecretResolver

__all__ = [
    "CredentialBundle",
    "DirectorySecretResolver",
    "MappingSecretResolver",
    "SecretResolver",
]
