"""Protocol for backends that hold secrets referenced from configuration."""

from typing import Protocol


class SecretBackend(Protocol):
    """Interface shared by the keyring and environment backends.

    The resolver routes a reference to the backend whose ``name`` matches
    the reference prefix.
    """

    @property
    def name(self) -> str:
        """Backend identifier (e.g., 'keyring', 'environment')."""
        ...

    @property
    def available(self) -> bool:
        """Check if this backend is usable on the current system."""
        ...

    def get(self, service: str, key: str | None = None) -> str | None:
        """Retrieve a secret.

        Args:
            service: Service identifier, or variable name for the environment backend
            key: Key within the service (unused by the environment backend)

        Returns:
            Secret value or None if not found

        Raises:
            BackendNotAvailableError: If backend is not available
        """
        ...
