"""Environment variable backend for CI/CD and containerized deployments."""

import logging
import os

logger = logging.getLogger(__name__)


class EnvironmentBackend:
    """Read secrets from environment variables.

    Suited to containers and CI jobs where the store master password and
    server API keys are injected at runtime. Values are visible to every
    process that can read this process' environment.

    Example:
        >>> os.environ['TOKEN_EXCHANGE_MASTER_PASSWORD'] = 'hunter2'
        >>> EnvironmentBackend().get('TOKEN_EXCHANGE_MASTER_PASSWORD')
        'hunter2'
    """

    @property
    def name(self) -> str:
        return "environment"

    @property
    def available(self) -> bool:
        """Environment backend is always available."""
        return True

    def get(self, service: str, key: str | None = None) -> str | None:
        """Return the value of environment variable ``service``.

        ``key`` is accepted for interface compatibility and ignored.
        """
        value = os.getenv(service)

        if value is not None:
            logger.debug(f"Retrieved secret from environment: {service}")

        return value
