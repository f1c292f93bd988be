"""Authentication and access control for administrative operations.

Every workflow receives an ``AccessControl`` for the invoking caller instead
of reaching for a process-wide identity. Privileged store writes run inside
``AccessControl.elevated()``, which swaps in the ``SYSTEM`` authentication and
restores the caller's identity when the block exits, whether it raised or not.

Example:
    >>> acl = AccessControl(Authentication("alice", frozenset({Permission.READ})))
    >>> acl.has_permission(Permission.ADMINISTER)
    False
    >>> with acl.elevated() as auth:
    ...     auth is SYSTEM
    True
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass, field

import structlog

from token_exchange.enums import Permission
from token_exchange.exceptions import PermissionDeniedError

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Authentication:
    """An authenticated principal and the permissions granted to it."""

    name: str
    permissions: frozenset[Permission] = field(default_factory=frozenset)

    @classmethod
    def administrator(cls, name: str) -> Authentication:
        """Build an authentication holding every permission."""
        return cls(name, frozenset(Permission))

    @classmethod
    def user(cls, name: str) -> Authentication:
        """Build an authentication with read access only."""
        return cls(name, frozenset({Permission.READ}))

    def has_permission(self, permission: Permission) -> bool:
        # Administer implies every other permission
        return permission in self.permissions or Permission.ADMINISTER in self.permissions


SYSTEM = Authentication("SYSTEM", frozenset(Permission))
ANONYMOUS = Authentication("anonymous")


class AccessControl:
    """Permission checks and scoped elevation for one invocation."""

    def __init__(self, authentication: Authentication) -> None:
        self._caller = authentication
        self._current = authentication

    @property
    def caller(self) -> Authentication:
        """The authentication that started the invocation."""
        return self._caller

    @property
    def current(self) -> Authentication:
        """The authentication in effect right now (SYSTEM while elevated)."""
        return self._current

    def has_permission(self, permission: Permission) -> bool:
        return self._current.has_permission(permission)

    def check_permission(self, permission: Permission) -> None:
        """Raise ``PermissionDeniedError`` unless the current authentication holds ``permission``."""
        if not self.has_permission(permission):
            log.warning("permission_denied", principal=self._current.name, permission=permission.value)
            raise PermissionDeniedError(permission, self._current.name)

    @contextmanager
    def impersonate(self, authentication: Authentication) -> Iterator[Authentication]:
        """Run the enclosed block as ``authentication``."""
        previous = self._current
        self._current = authentication
        try:
            yield authentication
        finally:
            self._current = previous

    def elevated(self) -> AbstractContextManager[Authentication]:
        """Run the enclosed block as ``SYSTEM``."""
        return self.impersonate(SYSTEM)
