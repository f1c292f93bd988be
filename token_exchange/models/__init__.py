"""Core domain models for the token exchange.

Key Models:
    - UsernamePasswordCredential: Stored login used to mint tokens
    - StringCredential: Secret-text credential holding a minted token
    - Domain: Named store partition with URL match specifications
    - FormValidation: Result of an administrative operation
    - ListBoxOption: Entry of a credential selection list

Example:
    >>> from token_exchange.models import Domain, FormValidation
    >>> FormValidation.ok("Created credentials with id 42").is_ok
    True
"""

from token_exchange.models.domain import (
    GLOBAL_DOMAIN,
    Credential,
    Domain,
    DomainRequirement,
    DomainSpecification,
    FormValidation,
    HostnamePortRequirement,
    HostnameRequirement,
    HostnameSpecification,
    ListBoxOption,
    PathRequirement,
    SchemeRequirement,
    SchemeSpecification,
    SpecificationResult,
    StringCredential,
    UsernamePasswordCredential,
)

__all__ = [
    "GLOBAL_DOMAIN",
    "Credential",
    "Domain",
    "DomainRequirement",
    "DomainSpecification",
    "FormValidation",
    "HostnamePortRequirement",
    "HostnameRequirement",
    "HostnameSpecification",
    "ListBoxOption",
    "PathRequirement",
    "SchemeRequirement",
    "SchemeSpecification",
    "SpecificationResult",
    "StringCredential",
    "UsernamePasswordCredential",
]
