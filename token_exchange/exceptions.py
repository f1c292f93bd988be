"""Custom exception hierarchy for the token exchange helper.

This module defines a structured exception hierarchy that lets the CLI and
HTTP layers map failures onto exit codes and status codes without string
matching.

Exception Hierarchy:
    TokenExchangeError (base)
    ├── ConfigurationError
    ├── CredentialError
    │   ├── CredentialNotFoundError
    │   ├── CredentialFormatError
    │   ├── BackendNotAvailableError
    │   └── EncryptionError
    ├── StorageError
    ├── PermissionDeniedError
    └── ExternalServiceError
        └── TokenCreationError

User input problems (blank credential id, unknown credential) are not
exceptions: they are returned as ``FormValidation`` results.

Example Usage:
    >>> from token_exchange.exceptions import ConfigurationError
    >>> try:
    ...     load_config(path)
    ... except FileNotFoundError as e:
    ...     raise ConfigurationError(f"Config file not found: {path}") from e
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from token_exchange.enums import Permission


class TokenExchangeError(Exception):
    """Base exception for all token exchange errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        """Initialize exception.

        Args:
            message: Error message
        """
        self.message = message
        super().__init__(message)


class ConfigurationError(TokenExchangeError):
    """Configuration-related errors.

    Examples:
        - Configuration file not found
        - Invalid YAML syntax
        - Missing required configuration fields
    """

    pass


class CredentialError(TokenExchangeError):
    """Credential-related errors.

    Raised when a secret reference in the configuration cannot be resolved
    or a credential backend fails.

    Attributes:
        message: Human-readable error description
        reference: The credential reference that failed (e.g., "@keyring:gitlab/master")
        suggestion: Optional suggestion for resolution
    """

    def __init__(
        self,
        message: str,
        reference: str | None = None,
        suggestion: str | None = None,
    ) -> None:
        """Initialize exception.

        Args:
            message: Error message
            reference: The credential reference that failed
            suggestion: Optional suggestion for resolution
        """
        self.reference = reference
        self.suggestion = suggestion

        full_message = message
        if reference:
            full_message = f"{message} (reference: {reference})"
        if suggestion:
            full_message = f"{full_message}\nSuggestion: {suggestion}"

        super().__init__(full_message)
        # Preserve original message (super sets self.message to full_message)
        self.message = message


class CredentialNotFoundError(CredentialError):
    """Credential reference points at nothing in its backend."""

    pass


class CredentialFormatError(CredentialError):
    """Credential reference has invalid format."""

    pass


class BackendNotAvailableError(CredentialError):
    """Requested backend is not available on this system."""

    pass


class EncryptionError(CredentialError):
    """Encryption or decryption of the credential store failed."""

    pass


class StorageError(TokenExchangeError):
    """Credential store write failed.

    Raised by store implementations when a domain or credential cannot be
    persisted (I/O failure, serialization failure).

    Attributes:
        domain: Name of the domain being written, if known
    """

    def __init__(self, message: str, domain: str | None = None) -> None:
        """Initialize exception.

        Args:
            message: Error message
            domain: Domain name involved in the failed write
        """
        self.domain = domain
        super().__init__(message)


class PermissionDeniedError(TokenExchangeError):
    """The current authentication lacks a required permission.

    This is a hard failure: the operation is aborted before any side effect.

    Attributes:
        permission: The permission that was checked
        principal: Name of the authentication that failed the check
    """

    def __init__(self, permission: Permission, principal: str) -> None:
        """Initialize exception.

        Args:
            permission: Permission that was required
            principal: Name of the denied principal
        """
        self.permission = permission
        self.principal = principal
        super().__init__(f"{principal} is missing the {permission.value} permission")


class ExternalServiceError(TokenExchangeError):
    """External service communication errors.

    Raised when communication with GitLab fails (HTTP errors, timeouts,
    unexpected responses).
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_text: str | None = None,
    ) -> None:
        """Initialize exception.

        Args:
            message: Error message
            status_code: HTTP status code (if applicable)
            response_text: Response body text (if applicable)
        """
        self.message = message
        self.status_code = status_code
        self.response_text = response_text

        full_message = message
        if status_code:
            full_message = f"{message} (HTTP {status_code})"

        super().__init__(full_message)
        self.message = message


class TokenCreationError(ExternalServiceError):
    """GitLab refused or failed to issue a personal access token.

    Examples:
        - Invalid username or password
        - Sign-in page has no CSRF token (not a GitLab instance)
        - Token form rejected the requested scopes
        - Network failure
    """

    pass
