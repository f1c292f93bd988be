"""Pydantic field types that resolve secret references while loading configuration."""

from typing import Annotated, Any

from pydantic import BeforeValidator, SecretStr
from pydantic_core import PydanticCustomError

from token_exchange.credentials.resolver import CredentialResolver
from token_exchange.exceptions import CredentialError

# Resolver shared by every settings instance (replace with set_resolver in tests)
_resolver: CredentialResolver | None = None


def get_resolver() -> CredentialResolver:
    global _resolver
    if _resolver is None:
        _resolver = CredentialResolver()
    return _resolver


def set_resolver(resolver: CredentialResolver | None) -> None:
    """Set the resolver used by credential fields; None restores the default."""
    global _resolver
    _resolver = resolver


def resolve_credential_secret(value: Any) -> SecretStr:
    """Resolve ``@keyring:`` and ``${ENV}`` references into a ``SecretStr``.

    Raises:
        PydanticCustomError: If the reference cannot be resolved
    """
    if isinstance(value, SecretStr):
        return value
    if not isinstance(value, str):
        return SecretStr(str(value))

    try:
        return SecretStr(get_resolver().resolve(value))
    except CredentialError as e:
        error_msg = e.message
        if e.suggestion:
            error_msg = f"{error_msg}\n\nSuggestion: {e.suggestion}"
        raise PydanticCustomError(
            "credential_resolution_error", error_msg, {"reference": e.reference}
        ) from e


CredentialSecret = Annotated[SecretStr, BeforeValidator(resolve_credential_secret)]


__all__ = [
    "CredentialSecret",
    "get_resolver",
    "resolve_credential_secret",
    "set_resolver",
]
