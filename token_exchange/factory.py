"""Build the store, issuer and creator described by the settings."""

from token_exchange.config.settings import ExchangeSettings
from token_exchange.creator import PersonalAccessTokenCreator
from token_exchange.credentials.encrypted_store import EncryptedFileCredentialStore
from token_exchange.credentials.store import CredentialStore, InMemoryCredentialStore
from token_exchange.exceptions import ConfigurationError
from token_exchange.providers.base import TokenIssuer
from token_exchange.providers.gitlab_tokens import GitLabTokenIssuer


def create_store(settings: ExchangeSettings) -> CredentialStore:
    """Open the credential store configured in ``settings.store``.

    Raises:
        ConfigurationError: If the encrypted store has no master password
        EncryptionError: If the existing store cannot be decrypted
    """
    if settings.store.backend == "memory":
        return InMemoryCredentialStore()

    if settings.store.master_password is None:
        raise ConfigurationError(
            "store.master_password is required for the encrypted_file store "
            "(e.g. master_password: \"@keyring:store/master_password\")"
        )
    return EncryptedFileCredentialStore(
        file_path=settings.store.path,
        master_password=settings.store.master_password.get_secret_value(),
    )


def create_issuer(settings: ExchangeSettings) -> TokenIssuer:
    return GitLabTokenIssuer(timeout=settings.gitlab.timeout, verify_ssl=settings.gitlab.verify_ssl)


def create_creator(
    settings: ExchangeSettings,
    store: CredentialStore | None = None,
    issuer: TokenIssuer | None = None,
) -> PersonalAccessTokenCreator:
    """Wire a ``PersonalAccessTokenCreator`` from ``settings``.

    ``store`` and ``issuer`` override the configured ones (used by tests).
    """
    return PersonalAccessTokenCreator(
        store=store if store is not None else create_store(settings),
        issuer=issuer if issuer is not None else create_issuer(settings),
        default_server_url=settings.gitlab.server_url,
        token_name=settings.gitlab.token_name,
        token_expires_in_days=settings.gitlab.token_expires_in_days,
    )
