"""
Domain models for the credential store and exchange results.

This module contains the data classes stored in and returned by the credential
store: username/password credentials, the secret-text credentials minted from
GitLab tokens, and the domains (storage partitions) that decide which
credentials are offered for a given server URL.

Example:
    Building the domain the exchange creates for a GitLab server::

        domain = Domain(
            name="gitlab.example.com",
            description="GitLab domain (autogenerated)",
            specifications=(
                SchemeSpecification(schemes=("https",)),
                HostnameSpecification(includes="gitlab.example.com"),
            ),
        )
        domain.test([SchemeRequirement("https"), HostnameRequirement("gitlab.example.com")])
"""

from __future__ import annotations

import fnmatch
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from pydantic import SecretStr

from token_exchange.enums import CredentialScope, ValidationKind

# =============================================================================
# Requirements
# =============================================================================


@dataclass(frozen=True)
class SchemeRequirement:
    """The URL scheme a credential will be used with (e.g. ``https``)."""

    scheme: str


@dataclass(frozen=True)
class HostnameRequirement:
    """The hostname a credential will be used with."""

    hostname: str


@dataclass(frozen=True)
class HostnamePortRequirement:
    """The hostname and port a credential will be used with."""

    hostname: str
    port: int


@dataclass(frozen=True)
class PathRequirement:
    """The URL path a credential will be used with."""

    path: str


DomainRequirement = Union[SchemeRequirement, HostnameRequirement, HostnamePortRequirement, PathRequirement]


# =============================================================================
# Specifications
# =============================================================================


class SpecificationResult(str, Enum):
    """Answer of a domain specification to a set of requirements.

    A specification that does not understand any of the requirements answers
    UNKNOWN, which never excludes a domain.
    """

    UNKNOWN = "unknown"
    POSITIVE = "positive"
    NEGATIVE = "negative"


def _split_patterns(patterns: str | None) -> list[str]:
    if not patterns:
        return []
    return [p.strip().lower() for p in patterns.split(",") if p.strip()]


@dataclass(frozen=True)
class SchemeSpecification:
    """Accepts requirements whose scheme is one of ``schemes``."""

    schemes: tuple[str, ...]

    def test(self, requirements: Iterable[DomainRequirement]) -> SpecificationResult:
        accepted = {s.lower() for s in self.schemes}
        for requirement in requirements:
            if isinstance(requirement, SchemeRequirement):
                if requirement.scheme.lower() in accepted:
                    return SpecificationResult.POSITIVE
                return SpecificationResult.NEGATIVE
        return SpecificationResult.UNKNOWN


@dataclass(frozen=True)
class HostnameSpecification:
    """Accepts requirements whose hostname matches the include patterns.

    Both ``includes`` and ``excludes`` are comma-separated glob patterns,
    compared case-insensitively. Empty includes accept every host that is
    not excluded.
    """

    includes: str | None = None
    excludes: str | None = None

    def test(self, requirements: Iterable[DomainRequirement]) -> SpecificationResult:
        for requirement in requirements:
            if not isinstance(requirement, (HostnameRequirement, HostnamePortRequirement)):
                continue
            host = requirement.hostname.lower()
            if any(fnmatch.fnmatchcase(host, p) for p in _split_patterns(self.excludes)):
                return SpecificationResult.NEGATIVE
            includes = _split_patterns(self.includes)
            if not includes or any(fnmatch.fnmatchcase(host, p) for p in includes):
                return SpecificationResult.POSITIVE
            return SpecificationResult.NEGATIVE
        return SpecificationResult.UNKNOWN


DomainSpecification = Union[SchemeSpecification, HostnameSpecification]


# =============================================================================
# Domains
# =============================================================================


@dataclass(frozen=True)
class Domain:
    """A named partition of the credential store.

    Domains are equal when their names are equal; the global domain has no
    name and no specifications and therefore matches every URL.
    """

    name: str | None
    """Domain name, usually the hostname of the server it serves."""

    description: str | None = field(default=None, compare=False)
    """Free-form description shown to administrators."""

    specifications: tuple[DomainSpecification, ...] = field(default=(), compare=False)
    """Match specifications deciding which URLs the domain serves."""

    @property
    def is_global(self) -> bool:
        """Check if this is the unnamed global domain."""
        return self.name is None

    def test(self, requirements: Iterable[DomainRequirement]) -> bool:
        """Check whether credentials in this domain apply to ``requirements``.

        A domain matches when none of its specifications answers NEGATIVE.
        """
        requirements = list(requirements)
        return all(spec.test(requirements) is not SpecificationResult.NEGATIVE for spec in self.specifications)


GLOBAL_DOMAIN = Domain(name=None)


# =============================================================================
# Credentials
# =============================================================================


@dataclass(frozen=True)
class UsernamePasswordCredential:
    """A stored username/password pair.

    Credentials with ``owner`` set live in that principal's personal store
    and are only visible to lookups made as that principal; credentials
    without an owner live in the system store.
    """

    id: str
    username: str = field(compare=False)
    password: SecretStr = field(compare=False, repr=False)
    description: str = field(default="", compare=False)
    scope: CredentialScope = field(default=CredentialScope.GLOBAL, compare=False)
    owner: str | None = field(default=None, compare=False)

    @property
    def display_name(self) -> str:
        name = f"{self.username}/******"
        if self.description:
            name = f"{name} ({self.description})"
        return name


@dataclass(frozen=True)
class StringCredential:
    """A secret-text credential holding a GitLab personal access token."""

    id: str
    description: str = field(compare=False)
    secret: SecretStr = field(compare=False, repr=False)
    scope: CredentialScope = field(default=CredentialScope.GLOBAL, compare=False)
    owner: str | None = field(default=None, compare=False)

    @property
    def display_name(self) -> str:
        return self.description or self.id


Credential = Union[UsernamePasswordCredential, StringCredential]


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class FormValidation:
    """Result of an administrative operation, rendered by the caller's UI.

    Example:
        >>> result = FormValidation.error("Please specify credentials to create token")
        >>> result.is_ok
        False
    """

    kind: ValidationKind
    message: str
    credential_id: str | None = None

    @classmethod
    def ok(cls, message: str, credential_id: str | None = None) -> FormValidation:
        return cls(ValidationKind.OK, message, credential_id)

    @classmethod
    def error(cls, message: str) -> FormValidation:
        return cls(ValidationKind.ERROR, message)

    @property
    def is_ok(self) -> bool:
        return self.kind is ValidationKind.OK

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.credential_id is not None:
            data["credential_id"] = self.credential_id
        return data


@dataclass(frozen=True)
class ListBoxOption:
    """One entry of a credential selection list."""

    display_name: str
    value: str
    selected: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.display_name, "value": self.value, "selected": self.selected}
