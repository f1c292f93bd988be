"""Resolve secret references found in configuration files."""

import logging
import re
from collections.abc import Sequence

from token_exchange.exceptions import (
    BackendNotAvailableError,
    CredentialError,
    CredentialFormatError,
    CredentialNotFoundError,
)

from .backend import SecretBackend
from .environment_backend import EnvironmentBackend
from .keyring_backend import KeyringBackend

logger = logging.getLogger(__name__)


class CredentialResolver:
    """Resolve secret references to actual values.

    Supports three reference formats:
    1. @keyring:service/key - OS keyring
    2. ${VAR_NAME} - Environment variable
    3. Direct value - Returned as-is (not recommended)

    Example:
        >>> resolver = CredentialResolver()
        >>> password = resolver.resolve("@keyring:store/master_password")
        >>> api_key = resolver.resolve("${TOKEN_EXCHANGE_ADMIN_KEY}")
        >>> direct = resolver.resolve("literal-value")
    """

    KEYRING_PATTERN = re.compile(r"^@keyring:([^/]+)/(.+)$")
    ENV_PATTERN = re.compile(r"^\$\{([A-Z_][A-Z0-9_]*)\}$")

    def __init__(self, backends: Sequence[SecretBackend] | None = None) -> None:
        """Initialize credential resolver.

        Args:
            backends: Backends to route references to. Defaults to the
                environment and keyring backends.
        """
        self.backends: tuple[SecretBackend, ...] = (
            tuple(backends) if backends else (EnvironmentBackend(), KeyringBackend())
        )
        self._cache: dict[str, str] = {}

    def resolve(self, value: str, cache: bool = True) -> str:
        """Resolve a secret reference to its value.

        Raises:
            CredentialNotFoundError: If the referenced secret doesn't exist
            CredentialFormatError: If the reference is malformed
            BackendNotAvailableError: If the required backend is unavailable
        """
        if cache and value in self._cache:
            return self._cache[value]

        keyring_match = self.KEYRING_PATTERN.match(value)
        env_match = self.ENV_PATTERN.match(value)

        if keyring_match:
            resolved = self._resolve_via("keyring", keyring_match.group(1), keyring_match.group(2), value)
        elif env_match:
            resolved = self._resolve_via("environment", env_match.group(1), None, value)
        elif value.startswith("@keyring:"):
            raise CredentialFormatError(
                "Invalid keyring reference",
                reference=value,
                suggestion="Use the form @keyring:service/key",
            )
        else:
            return value

        if cache:
            self._cache[value] = resolved
        return resolved

    def _resolve_via(self, backend_name: str, service: str, key: str | None, reference: str) -> str:
        for backend in self.backends:
            if backend.name != backend_name:
                continue

            if not backend.available:
                raise BackendNotAvailableError(
                    f"{backend_name.capitalize()} backend is not available on this system",
                    reference=reference,
                    suggestion="Use environment variables instead: ${VAR_NAME}",
                )

            try:
                secret = backend.get(service, key)
            except CredentialError:
                raise
            except Exception as e:
                raise CredentialError(f"Failed to resolve {backend_name} secret: {e}", reference=reference) from e

            if secret is None:
                if backend_name == "environment":
                    raise CredentialNotFoundError(
                        f"Environment variable not set: {service}",
                        reference=reference,
                        suggestion=f"Set the environment variable:\n  export {service}='your-secret-here'",
                    )
                raise CredentialNotFoundError(
                    f"Secret not found in keyring: {service}/{key}",
                    reference=reference,
                    suggestion=f"Store the secret with:\n  token-exchange secrets set {service}/{key}",
                )

            logger.debug(f"Resolved {backend_name} secret: {service}/{key}" if key else f"Resolved {backend_name} secret: {service}")
            return secret

        raise BackendNotAvailableError(
            f"No {backend_name} backend configured",
            reference=reference,
            suggestion=f"Ensure a {backend_name} backend is available in the resolver.",
        )

    def clear_cache(self) -> None:
        self._cache.clear()
