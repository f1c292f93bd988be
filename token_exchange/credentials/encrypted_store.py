"""Encrypted file credential store using Fernet symmetric encryption.

Security Model:
- Master key derived from a password (PBKDF2-HMAC-SHA256)
- The whole store (domains and credentials) is one Fernet token (AES-128-CBC + HMAC)
- File stored at .token-exchange/credentials.enc, salt next to it
- Writes go to a temporary file that atomically replaces the store
"""

import base64
import json
import logging
import secrets
from pathlib import Path
from typing import Any, cast

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from pydantic import SecretStr

from token_exchange.enums import CredentialScope
from token_exchange.exceptions import EncryptionError, StorageError
from token_exchange.models.domain import (
    Credential,
    Domain,
    DomainSpecification,
    HostnameSpecification,
    SchemeSpecification,
    StringCredential,
    UsernamePasswordCredential,
)

from .store import InMemoryCredentialStore

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


class EncryptedFileCredentialStore(InMemoryCredentialStore):
    """Credential store persisted to an encrypted JSON file.

    Security Considerations:
    - Master password must be protected (use a ``@keyring:`` or ``${ENV}`` reference)
    - File permissions are restricted to 600 (user read/write only)
    - Anyone holding the master password can read every stored secret

    Example:
        >>> store = EncryptedFileCredentialStore(
        ...     file_path=Path(".token-exchange/credentials.enc"),
        ...     master_password="secure-password",
        ... )
        >>> [domain.name for domain in store.domains()]
        [None]
    """

    def __init__(
        self,
        file_path: Path,
        master_password: str,
        salt: bytes | None = None,
    ) -> None:
        """Initialize the store and load existing state from disk.

        Args:
            file_path: Path to encrypted credentials file
            master_password: Password the encryption key is derived from
            salt: Cryptographic salt (loaded or generated if not provided)

        Raises:
            EncryptionError: If the existing file cannot be decrypted
        """
        super().__init__()
        if not master_password:
            raise EncryptionError(
                "Master password not provided",
                suggestion="Set store.master_password in the configuration",
            )
        self.file_path = file_path
        self.salt = salt or self._load_or_generate_salt()
        self.fernet = self._create_fernet(master_password, self.salt)
        self._load()

    @property
    def name(self) -> str:
        return "encrypted_file"

    @staticmethod
    def _create_fernet(password: str, salt: bytes) -> Fernet:
        """Derive encryption key from password.

        Uses PBKDF2-HMAC-SHA256 with 480,000 iterations (OWASP 2023 recommendation).
        """
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=480_000,
        )
        key = kdf.derive(password.encode("utf-8"))
        return Fernet(base64.urlsafe_b64encode(key))

    def _load_or_generate_salt(self) -> bytes:
        """Load salt from ``credentials.salt`` beside the store, or generate one."""
        salt_file = self.file_path.parent / "credentials.salt"

        if salt_file.exists():
            return salt_file.read_bytes()

        salt = secrets.token_bytes(16)
        salt_file.parent.mkdir(parents=True, exist_ok=True)
        salt_file.write_bytes(salt)

        try:
            salt_file.chmod(0o600)
        except OSError as e:
            logger.warning(f"Could not set salt file permissions: {e}")

        return salt

    def _load(self) -> None:
        """Decrypt the store file into memory.

        Raises:
            EncryptionError: If decryption or parsing fails
        """
        if not self.file_path.exists():
            return

        try:
            decrypted = self.fernet.decrypt(self.file_path.read_bytes())
            data = cast(dict[str, Any], json.loads(decrypted.decode("utf-8")))
        except InvalidToken as e:
            raise EncryptionError(
                "Invalid master password or corrupted credentials file",
                suggestion="Verify your master password",
            ) from e
        except json.JSONDecodeError as e:
            raise EncryptionError(
                "Credentials file is corrupted",
                suggestion="Restore from backup or delete and recreate",
            ) from e
        except OSError as e:
            raise EncryptionError(f"Failed to read credentials file: {e}") from e

        with self._lock:
            self._domains = decode_store(data)
        logger.debug(f"Loaded credentials from {self.file_path}")

    def _save(self) -> None:
        """Encrypt and atomically write the store.

        Raises:
            StorageError: If the file cannot be written
        """
        payload = json.dumps(encode_store(self._domains), indent=2).encode("utf-8")
        encrypted = self.fernet.encrypt(payload)

        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            temp_file = self.file_path.with_suffix(".tmp")
            temp_file.write_bytes(encrypted)
            try:
                temp_file.chmod(0o600)
            except OSError as e:
                logger.warning(f"Could not set file permissions: {e}")
            temp_file.replace(self.file_path)
        except OSError as e:
            raise StorageError(f"Failed to save credentials: {e}") from e

        logger.debug(f"Saved credentials to {self.file_path}")


# =============================================================================
# Serialization
# =============================================================================


def encode_store(domains: dict[Domain, list[Credential]]) -> dict[str, Any]:
    return {
        "version": FORMAT_VERSION,
        "domains": [
            {
                "name": domain.name,
                "description": domain.description,
                "specifications": [_encode_specification(s) for s in domain.specifications],
                "credentials": [_encode_credential(c) for c in credentials],
            }
            for domain, credentials in domains.items()
        ],
    }


def decode_store(data: dict[str, Any]) -> dict[Domain, list[Credential]]:
    if data.get("version") != FORMAT_VERSION:
        raise EncryptionError(f"Unsupported credentials file version: {data.get('version')}")
    domains: dict[Domain, list[Credential]] = {}
    for entry in data.get("domains", []):
        domain = Domain(
            name=entry.get("name"),
            description=entry.get("description"),
            specifications=tuple(_decode_specification(s) for s in entry.get("specifications", [])),
        )
        domains[domain] = [_decode_credential(c) for c in entry.get("credentials", [])]
    domains.setdefault(Domain(name=None), [])
    return domains


def _encode_specification(spec: DomainSpecification) -> dict[str, Any]:
    if isinstance(spec, SchemeSpecification):
        return {"type": "scheme", "schemes": list(spec.schemes)}
    return {"type": "hostname", "includes": spec.includes, "excludes": spec.excludes}


def _decode_specification(data: dict[str, Any]) -> DomainSpecification:
    if data["type"] == "scheme":
        return SchemeSpecification(schemes=tuple(data["schemes"]))
    if data["type"] == "hostname":
        return HostnameSpecification(includes=data.get("includes"), excludes=data.get("excludes"))
    raise EncryptionError(f"Unknown domain specification type: {data['type']}")


def _encode_credential(credential: Credential) -> dict[str, Any]:
    base = {
        "id": credential.id,
        "scope": credential.scope.value,
        "owner": credential.owner,
    }
    if isinstance(credential, UsernamePasswordCredential):
        return {
            **base,
            "type": "username_password",
            "username": credential.username,
            "password": credential.password.get_secret_value(),
            "description": credential.description,
        }
    return {
        **base,
        "type": "string",
        "description": credential.description,
        "secret": credential.secret.get_secret_value(),
    }


def _decode_credential(data: dict[str, Any]) -> Credential:
    scope = CredentialScope(data.get("scope", CredentialScope.GLOBAL.value))
    if data["type"] == "username_password":
        return UsernamePasswordCredential(
            id=data["id"],
            username=data["username"],
            password=SecretStr(data["password"]),
            description=data.get("description", ""),
            scope=scope,
            owner=data.get("owner"),
        )
    if data["type"] == "string":
        return StringCredential(
            id=data["id"],
            description=data.get("description", ""),
            secret=SecretStr(data["secret"]),
            scope=scope,
            owner=data.get("owner"),
        )
    raise EncryptionError(f"Unknown credential type: {data['type']}")
