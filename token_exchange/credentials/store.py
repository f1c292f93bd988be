"""Credential store protocol and the in-memory store.

The store keeps credentials grouped by domain. Lookups filter by domain
requirements and by the authentication the lookup runs as: ``SYSTEM`` sees
the system store (credentials without an owner), any other principal sees
only its own personal credentials.

Writes require ``Permission.MANAGE_DOMAINS``; the exchange performs them
inside ``AccessControl.elevated()``.
"""

import logging
import threading
from collections.abc import Callable, Sequence
from typing import Protocol, TypeVar

from token_exchange.credentials.matching import parse_server_url, specifications_for
from token_exchange.enums import Permission
from token_exchange.exceptions import PermissionDeniedError, StorageError
from token_exchange.models.domain import (
    GLOBAL_DOMAIN,
    Credential,
    Domain,
    DomainRequirement,
    HostnameRequirement,
    SchemeRequirement,
)
from token_exchange.security import SYSTEM, Authentication

logger = logging.getLogger(__name__)

C = TypeVar("C")

AUTOGENERATED_DOMAIN_DESCRIPTION = "GitLab domain (autogenerated)"


class CredentialStore(Protocol):
    """Protocol defining the interface for credential stores.

    Implementations must be safe to call from several request handlers;
    each call is atomic, but sequences of calls are not.
    """

    @property
    def name(self) -> str:
        """Store identifier (e.g., 'memory', 'encrypted_file')."""
        ...

    def domains(self) -> list[Domain]:
        """Return all domains, the global domain first."""
        ...

    def get_domain(self, name: str | None) -> Domain | None:
        """Return the domain called ``name`` (None for the global domain)."""
        ...

    def credentials(self, domain: Domain = GLOBAL_DOMAIN) -> list[Credential]:
        """Return the credentials stored in ``domain``."""
        ...

    def lookup_credentials(
        self,
        kind: type[C],
        authentication: Authentication,
        requirements: Sequence[DomainRequirement],
    ) -> list[C]:
        """Return credentials of ``kind`` visible to ``authentication`` for ``requirements``."""
        ...

    def get_or_create_domain(self, server_url: str, *, authentication: Authentication) -> Domain:
        """Return a domain serving ``server_url``, creating one if needed."""
        ...

    def add_credentials(self, domain: Domain, credential: Credential, *, authentication: Authentication) -> bool:
        """Add ``credential`` to ``domain``.

        Returns:
            True if stored, False if a credential with that id already exists there

        Raises:
            PermissionDeniedError: If ``authentication`` may not manage the store
            StorageError: If the change cannot be persisted
        """
        ...

    def remove_credentials(self, domain: Domain, credential_id: str, *, authentication: Authentication) -> bool:
        """Remove the credential with ``credential_id`` from ``domain``."""
        ...

    def remove_domain(self, domain: Domain, *, authentication: Authentication) -> bool:
        """Remove ``domain`` and its credentials; the global domain cannot be removed."""
        ...


class InMemoryCredentialStore:
    """Credential store kept in process memory.

    Subclasses persist the state by overriding ``_save``; a failed save
    restores the previous in-memory state before the error propagates.

    Example:
        >>> store = InMemoryCredentialStore()
        >>> domain = store.get_or_create_domain("https://gitlab.example.com", authentication=SYSTEM)
        >>> domain.name
        'gitlab.example.com'
    """

    def __init__(self, initial: dict[Domain, list[Credential]] | None = None) -> None:
        self._lock = threading.RLock()
        self._domains: dict[Domain, list[Credential]] = {GLOBAL_DOMAIN: []}
        if initial:
            for domain, credentials in initial.items():
                self._domains.setdefault(domain, []).extend(credentials)

    @property
    def name(self) -> str:
        return "memory"

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def domains(self) -> list[Domain]:
        with self._lock:
            return list(self._domains)

    def get_domain(self, name: str | None) -> Domain | None:
        with self._lock:
            for domain in self._domains:
                if domain.name == name:
                    return domain
            return None

    def credentials(self, domain: Domain = GLOBAL_DOMAIN) -> list[Credential]:
        with self._lock:
            return list(self._domains.get(domain, []))

    def lookup_credentials(
        self,
        kind: type[C],
        authentication: Authentication,
        requirements: Sequence[DomainRequirement],
    ) -> list[C]:
        with self._lock:
            found: list[C] = []
            for domain, credentials in self._domains.items():
                if not domain.test(requirements):
                    continue
                for credential in credentials:
                    if isinstance(credential, kind) and self._visible_to(credential, authentication):
                        found.append(credential)
            return found

    @staticmethod
    def _visible_to(credential: Credential, authentication: Authentication) -> bool:
        if authentication is SYSTEM:
            return credential.owner is None
        return credential.owner == authentication.name

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def get_or_create_domain(self, server_url: str, *, authentication: Authentication) -> Domain:
        """Return a domain serving ``server_url``, creating one if needed.

        The domain is looked up by hostname and reused when it accepts the
        server's scheme and hostname. When the hostname is already taken by a
        domain for another scheme, the new domain is named ``scheme://host``.
        Concurrent callers may race; the result is best-effort, not transactional.

        Raises:
            PermissionDeniedError: If ``authentication`` may not manage the store
            StorageError: If no usable domain name is free or the save fails
        """
        self._check_manage(authentication)
        scheme, host, _, _ = parse_server_url(server_url)
        requirements = [SchemeRequirement(scheme), HostnameRequirement(host)]

        with self._lock:
            for candidate in (host, f"{scheme}://{host}"):
                existing = self.get_domain(candidate)
                if existing is None:
                    domain = Domain(
                        name=candidate,
                        description=AUTOGENERATED_DOMAIN_DESCRIPTION,
                        specifications=specifications_for(server_url),
                    )
                    self._apply(lambda: self._domains.setdefault(domain, []), domain.name)
                    logger.info(f"Created domain {domain.name}")
                    return domain
                if existing.test(requirements):
                    return existing

        raise StorageError(f"No domain available for {scheme}://{host}", domain=host)

    def add_credentials(self, domain: Domain, credential: Credential, *, authentication: Authentication) -> bool:
        self._check_write(credential, authentication)
        with self._lock:
            if domain not in self._domains:
                raise StorageError(f"Unknown domain: {domain.name}", domain=domain.name)
            if credential in self._domains[domain]:
                return False
            self._apply(lambda: self._domains[domain].append(credential), domain.name)
            logger.info(f"Stored credential {credential.id} in domain {domain.name or 'global'}")
            return True

    def remove_credentials(self, domain: Domain, credential_id: str, *, authentication: Authentication) -> bool:
        self._check_manage(authentication)
        with self._lock:
            credentials = self._domains.get(domain, [])
            remaining = [c for c in credentials if c.id != credential_id]
            if len(remaining) == len(credentials):
                return False

            def mutate() -> None:
                self._domains[domain] = remaining

            self._apply(mutate, domain.name)
            logger.info(f"Removed credential {credential_id} from domain {domain.name or 'global'}")
            return True

    def remove_domain(self, domain: Domain, *, authentication: Authentication) -> bool:
        """Remove ``domain`` and every credential in it.

        Raises:
            ValueError: For the global domain
        """
        self._check_manage(authentication)
        if domain.is_global:
            raise ValueError("The global domain cannot be removed")
        with self._lock:
            if domain not in self._domains:
                return False
            self._apply(lambda: self._domains.pop(domain), domain.name)
            logger.info(f"Removed domain {domain.name}")
            return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _check_manage(authentication: Authentication) -> None:
        if not authentication.has_permission(Permission.MANAGE_DOMAINS):
            raise PermissionDeniedError(Permission.MANAGE_DOMAINS, authentication.name)

    def _check_write(self, credential: Credential, authentication: Authentication) -> None:
        # Principals may always write to their own personal store
        if credential.owner is not None and credential.owner == authentication.name:
            return
        self._check_manage(authentication)

    def _apply(self, mutate: Callable[[], object], domain_name: str | None) -> None:
        snapshot = {domain: list(credentials) for domain, credentials in self._domains.items()}
        mutate()
        try:
            self._save()
        except StorageError:
            self._domains = snapshot
            raise
        except Exception as e:
            self._domains = snapshot
            raise StorageError(f"Failed to save credentials: {e}", domain=domain_name) from e

    def _save(self) -> None:
        """Persist the current state. The in-memory store keeps nothing on disk."""
