"""Credential storage and secret resolution.

Two concerns live here:

- the credential store (``CredentialStore``): domains holding the
  username/password credentials used to mint tokens and the secret-text
  credentials the tokens are saved as;
- secret references in configuration (``CredentialResolver``): the store
  master password and server API keys as ``@keyring:service/key`` or
  ``${VAR_NAME}`` references.
"""

from token_exchange.exceptions import (
    BackendNotAvailableError,
    CredentialError,
    CredentialFormatError,
    CredentialNotFoundError,
    EncryptionError,
    StorageError,
)

from .encrypted_store import EncryptedFileCredentialStore
from .environment_backend import EnvironmentBackend
from .keyring_backend import KeyringBackend
from .matching import first_or_none, requirements_from_uri, specifications_for, with_id
from .resolver import CredentialResolver
from .store import AUTOGENERATED_DOMAIN_DESCRIPTION, CredentialStore, InMemoryCredentialStore

__all__ = [
    "AUTOGENERATED_DOMAIN_DESCRIPTION",
    "BackendNotAvailableError",
    "CredentialError",
    "CredentialFormatError",
    "CredentialNotFoundError",
    "CredentialResolver",
    "CredentialStore",
    "EncryptedFileCredentialStore",
    "EncryptionError",
    "EnvironmentBackend",
    "InMemoryCredentialStore",
    "KeyringBackend",
    "StorageError",
    "first_or_none",
    "requirements_from_uri",
    "specifications_for",
    "with_id",
]
