"""OS-level keyring backend using system credential stores.

Platform Support:
- Linux: Secret Service API (GNOME Keyring, KWallet)
- macOS: Keychain
- Windows: Windows Credential Locker
"""

import logging
from typing import cast

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from token_exchange.exceptions import BackendNotAvailableError, CredentialError

logger = logging.getLogger(__name__)

# Keyring entries are namespaced to avoid clashing with other applications
SERVICE_PREFIX = "token-exchange"


class KeyringBackend:
    """Secrets held in the operating system keyring.

    The recommended place for the store master password on workstations.

    Example:
        >>> backend = KeyringBackend()
        >>> backend.set('store', 'master_password', 's3cret')
        >>> backend.get('store', 'master_password')
        's3cret'
    """

    @property
    def name(self) -> str:
        return "keyring"

    @property
    def available(self) -> bool:
        """Check if a functional keyring backend is configured.

        Headless systems usually only have the ``fail`` keyring, which
        reports priority 0.
        """
        try:
            return bool(keyring.get_keyring().priority > 0)
        except Exception as e:
            logger.debug(f"Keyring not available: {e}")
            return False

    def _require_available(self) -> None:
        if not self.available:
            raise BackendNotAvailableError(
                "Keyring backend is not available",
                suggestion="Configure a keyring backend or use ${VAR_NAME} references",
            )

    def get(self, service: str, key: str | None = None) -> str | None:
        """Retrieve a secret from the keyring.

        Raises:
            BackendNotAvailableError: If keyring is not available
            CredentialError: If the keyring operation fails
        """
        self._require_available()
        try:
            secret = cast(str | None, keyring.get_password(f"{SERVICE_PREFIX}/{service}", key or ""))
        except KeyringError as e:
            raise CredentialError(
                f"Keyring operation failed: {e}", reference=f"@keyring:{service}/{key}"
            ) from e

        if secret is not None:
            logger.debug(f"Retrieved secret from keyring: {service}/{key}")
        return secret

    def set(self, service: str, key: str, value: str) -> None:
        """Store a secret in the keyring.

        Raises:
            BackendNotAvailableError: If keyring is not available
            CredentialError: If the keyring operation fails
        """
        self._require_available()
        if not value:
            raise ValueError("Secret value cannot be empty")

        try:
            keyring.set_password(f"{SERVICE_PREFIX}/{service}", key, value)
        except KeyringError as e:
            raise CredentialError(
                f"Failed to store secret: {e}", reference=f"@keyring:{service}/{key}"
            ) from e
        logger.info(f"Stored secret in keyring: {service}/{key}")

    def delete(self, service: str, key: str) -> bool:
        """Delete a secret from the keyring.

        Returns:
            True if deleted, False if not found
        """
        self._require_available()
        try:
            keyring.delete_password(f"{SERVICE_PREFIX}/{service}", key)
        except PasswordDeleteError:
            return False
        except KeyringError as e:
            raise CredentialError(
                f"Failed to delete secret: {e}", reference=f"@keyring:{service}/{key}"
            ) from e
        logger.info(f"Deleted secret from keyring: {service}/{key}")
        return True
