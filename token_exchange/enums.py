"""Enumerations for token scopes, credential scopes and permissions."""

from enum import Enum


class TokenScope(str, Enum):
    """Scopes that can be granted to a GitLab personal access token."""

    API = "api"
    READ_USER = "read_user"

    def __str__(self) -> str:
        return self.value


# Scopes requested for every token minted by the exchange
REQUIRED_SCOPES: tuple[TokenScope, ...] = (TokenScope.API, TokenScope.READ_USER)


class CredentialScope(str, Enum):
    """Visibility of a stored credential.

    - global: offered to jobs and integrations that look it up
    - system: only used by the exchange itself
    """

    GLOBAL = "global"
    SYSTEM = "system"

    def __str__(self) -> str:
        return self.value


class Permission(str, Enum):
    """Permissions checked by the access control layer."""

    ADMINISTER = "administer"
    MANAGE_DOMAINS = "manage_domains"
    READ = "read"

    def __str__(self) -> str:
        return self.value


class ValidationKind(str, Enum):
    """Outcome of a form validation result."""

    OK = "ok"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value
