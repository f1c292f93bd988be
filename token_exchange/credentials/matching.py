"""URL requirements and credential matchers.

Turns a server URL into the requirements a domain is tested against, and
provides the small predicates used to pick credentials out of a lookup.
"""

from __future__ import annotations

import urllib.parse
from collections.abc import Callable, Iterable
from typing import TypeVar

from token_exchange.exceptions import ConfigurationError
from token_exchange.models.domain import (
    DomainRequirement,
    HostnamePortRequirement,
    HostnameRequirement,
    HostnameSpecification,
    PathRequirement,
    SchemeRequirement,
    SchemeSpecification,
)

DEFAULT_PORTS = {"http": 80, "https": 443}

C = TypeVar("C")
CredentialsMatcher = Callable[[object], bool]


def parse_server_url(server_url: str) -> tuple[str, str, int | None, str]:
    """Split a server URL into scheme, lower-cased host, port and path.

    Raises:
        ConfigurationError: If the URL has no scheme or no host
    """
    parsed = urllib.parse.urlsplit(server_url.strip())
    if not parsed.scheme or not parsed.hostname:
        raise ConfigurationError(f"Invalid server URL: {server_url!r}")
    try:
        port = parsed.port
    except ValueError as e:
        raise ConfigurationError(f"Invalid port in server URL: {server_url!r}") from e
    return parsed.scheme.lower(), parsed.hostname.lower(), port, parsed.path


def requirements_from_uri(server_url: str) -> list[DomainRequirement]:
    """Build the domain requirements for credentials used against ``server_url``.

    Example:
        >>> requirements_from_uri("https://gitlab.example.com/group")
        [SchemeRequirement(scheme='https'), HostnameRequirement(hostname='gitlab.example.com'),
         HostnamePortRequirement(hostname='gitlab.example.com', port=443), PathRequirement(path='/group')]
    """
    scheme, host, port, path = parse_server_url(server_url)
    requirements: list[DomainRequirement] = [SchemeRequirement(scheme), HostnameRequirement(host)]
    if port is None:
        port = DEFAULT_PORTS.get(scheme)
    if port is not None:
        requirements.append(HostnamePortRequirement(host, port))
    if path:
        requirements.append(PathRequirement(path))
    return requirements


def specifications_for(server_url: str) -> tuple[SchemeSpecification, HostnameSpecification]:
    """Specifications requiring the exact scheme and hostname of ``server_url``."""
    scheme, host, _, _ = parse_server_url(server_url)
    return SchemeSpecification(schemes=(scheme,)), HostnameSpecification(includes=host)


def with_id(credential_id: str) -> CredentialsMatcher:
    """Match credentials whose id equals ``credential_id``."""

    def matcher(credential: object) -> bool:
        return getattr(credential, "id", None) == credential_id

    return matcher


def first_or_none(credentials: Iterable[C], matcher: CredentialsMatcher) -> C | None:
    """Return the first credential accepted by ``matcher``."""
    for credential in credentials:
        if matcher(credential):
            return credential
    return None
