"""Exchange GitLab logins for personal access tokens stored as credentials.

The creator backs three administrative operations:

- ``fill_credentials_id_items``: list the username/password credentials an
  administrator may pick for a server URL;
- ``create_token_by_credentials``: mint a token from a stored login;
- ``create_token_by_password``: mint a token from a username and password
  typed in by the administrator.

Both token operations check ``Permission.ADMINISTER`` first, then funnel into
the same routine that wraps the token in a ``StringCredential`` and stores it
in a domain matching the server's scheme and hostname. User mistakes and
GitLab failures come back as ``FormValidation`` errors; only a failed
permission check raises.
"""

import asyncio
import uuid
from datetime import date, timedelta

import structlog
from pydantic import SecretStr

from token_exchange.credentials.matching import first_or_none, parse_server_url, requirements_from_uri, with_id
from token_exchange.credentials.store import CredentialStore
from token_exchange.enums import REQUIRED_SCOPES, CredentialScope, Permission
from token_exchange.exceptions import ConfigurationError, StorageError, TokenCreationError
from token_exchange.models.domain import (
    Domain,
    FormValidation,
    ListBoxOption,
    StringCredential,
    UsernamePasswordCredential,
)
from token_exchange.providers.base import TokenIssuer
from token_exchange.security import SYSTEM, AccessControl

log = structlog.get_logger(__name__)

GITLAB_SERVER_URL = "https://gitlab.com"


class PersonalAccessTokenCreator:
    """Convert a GitLab login and password into a stored token credential.

    Example:
        >>> creator = PersonalAccessTokenCreator(store, GitLabTokenIssuer())
        >>> acl = AccessControl(Authentication.administrator("admin"))
        >>> result = await creator.create_token_by_credentials(acl, "https://gitlab.example.com", "ci-login")
        >>> result.message
        'Created credentials with id 0b0e...'
    """

    CURRENT_SELECTION = "- current -"
    EMPTY_SELECTION = "- none -"

    def __init__(
        self,
        store: CredentialStore,
        issuer: TokenIssuer,
        default_server_url: str = GITLAB_SERVER_URL,
        token_name: str = "mytoken",
        token_expires_in_days: int | None = None,
    ) -> None:
        """Initialize the creator.

        Args:
            store: Credential store logins are read from and tokens written to
            issuer: Service that mints the tokens
            default_server_url: Server used when a request leaves the URL blank
            token_name: Token label used when exchanging a stored login
            token_expires_in_days: Lifetime of minted tokens; None for no expiry
        """
        self.store = store
        self.issuer = issuer
        self.default_server_url = default_server_url
        self.token_name = token_name
        self.token_expires_in_days = token_expires_in_days

    def server_url_or_default(self, server_url: str | None) -> str:
        if server_url is None or not server_url.strip():
            return self.default_server_url
        return server_url.strip()

    # ------------------------------------------------------------------
    # Candidate listing
    # ------------------------------------------------------------------

    def fill_credentials_id_items(
        self,
        acl: AccessControl,
        server_url: str | None,
        credentials_id: str | None,
    ) -> list[ListBoxOption]:
        """List the logins offered for ``server_url``.

        Callers without ``Permission.ADMINISTER`` only get their current
        selection back, so credential metadata does not leak to them.
        """
        current = (credentials_id or "").strip()
        if not acl.has_permission(Permission.ADMINISTER):
            if not current:
                return []
            return [ListBoxOption(self.CURRENT_SELECTION, current, selected=True)]

        options = [ListBoxOption(self.EMPTY_SELECTION, "", selected=not current)]
        try:
            requirements = requirements_from_uri(self.server_url_or_default(server_url))
        except ConfigurationError as e:
            log.warning("fill_credentials_invalid_url", server_url=server_url, error=e.message)
            if current:
                options.append(ListBoxOption(self.CURRENT_SELECTION, current, selected=True))
            return options

        seen: set[str] = set()
        for authentication in (SYSTEM, acl.caller):
            for credential in self.store.lookup_credentials(UsernamePasswordCredential, authentication, requirements):
                if credential.id in seen:
                    continue
                seen.add(credential.id)
                options.append(ListBoxOption(credential.display_name, credential.id, selected=credential.id == current))

        if current and current not in seen:
            options.append(ListBoxOption(self.CURRENT_SELECTION, current, selected=True))
        return options

    # ------------------------------------------------------------------
    # Token creation
    # ------------------------------------------------------------------

    def lookup_credentials(
        self,
        acl: AccessControl,
        server_url: str,
        credentials_id: str,
    ) -> UsernamePasswordCredential | None:
        """Find the login ``credentials_id`` applicable to ``server_url``.

        The system store is searched first, then the caller's personal store.

        Raises:
            ConfigurationError: If ``server_url`` is not a valid URL
        """
        requirements = requirements_from_uri(server_url)
        for authentication in (SYSTEM, acl.caller):
            credential = first_or_none(
                self.store.lookup_credentials(UsernamePasswordCredential, authentication, requirements),
                with_id(credentials_id),
            )
            if credential is not None:
                log.debug("credentials_found", credentials_id=credentials_id, principal=authentication.name)
                return credential
        return None

    async def create_token_by_credentials(
        self,
        acl: AccessControl,
        server_url: str | None,
        credentials_id: str | None,
    ) -> FormValidation:
        """Mint a token from the stored login ``credentials_id``.

        Raises:
            PermissionDeniedError: If the caller is not an administrator
        """
        acl.check_permission(Permission.ADMINISTER)
        if credentials_id is None or not credentials_id.strip():
            return FormValidation.error("Please specify credentials to create token")

        url = self.server_url_or_default(server_url)
        try:
            credentials = self.lookup_credentials(acl, url, credentials_id.strip())
        except ConfigurationError as e:
            return FormValidation.error(e.message)

        if credentials is None:
            log.info("credentials_not_found", credentials_id=credentials_id, server_url=url)
            return FormValidation.error("Can't create GitLab token, credentials are null")

        try:
            token = await self.issuer.create_personal_access_token(
                credentials.username,
                credentials.password.get_secret_value(),
                url,
                self.token_name,
                REQUIRED_SCOPES,
                self._expires_at(),
            )
        except TokenCreationError as e:
            log.error("token_creation_failed", server_url=url, username=credentials.username, error=e.message)
            return FormValidation.error(f"Can't create GL token - {e.message}")

        return await self._save_token_in_thread(acl, url, SecretStr(token), credentials.username)

    async def create_token_by_password(
        self,
        acl: AccessControl,
        server_url: str | None,
        username: str | None,
        password: str | SecretStr | None,
    ) -> FormValidation:
        """Mint a token from a username and password supplied by the caller.

        Raises:
            PermissionDeniedError: If the caller is not an administrator
        """
        acl.check_permission(Permission.ADMINISTER)
        secret = password if isinstance(password, SecretStr) else SecretStr(password or "")
        if username is None or not username.strip() or not secret.get_secret_value():
            return FormValidation.error("Please specify username and password to create token")

        url = self.server_url_or_default(server_url)
        try:
            parse_server_url(url)
        except ConfigurationError as e:
            return FormValidation.error(e.message)

        username = username.strip()
        try:
            token = await self.issuer.create_personal_access_token(
                username,
                secret.get_secret_value(),
                url,
                str(uuid.uuid4()),
                REQUIRED_SCOPES,
                self._expires_at(),
            )
        except TokenCreationError as e:
            log.error("token_creation_failed", server_url=url, username=username, error=e.message)
            return FormValidation.error(f"Can't create GL token for {username} - {e.message}")

        return await self._save_token_in_thread(acl, url, SecretStr(token), username)

    # ------------------------------------------------------------------
    # Materialization and persistence
    # ------------------------------------------------------------------

    def create_credentials(self, server_url: str | None, token: SecretStr, username: str) -> StringCredential:
        """Wrap ``token`` in a new credential describing where it came from."""
        url = self.server_url_or_default(server_url)
        return StringCredential(
            id=str(uuid.uuid4()),
            description=f"Auto Generated by {url} server for {username} user",
            secret=token,
            scope=CredentialScope.GLOBAL,
        )

    def store_credentials(self, acl: AccessControl, server_url: str, credential: StringCredential) -> Domain:
        """Save ``credential`` in the domain serving ``server_url``.

        Runs as ``SYSTEM``; the caller's identity is restored afterwards.

        Raises:
            StorageError: If the domain or credential cannot be saved, or a
                credential with the same id already exists in the domain
        """
        with acl.elevated() as authentication:
            domain = self.store.get_or_create_domain(server_url, authentication=authentication)
            if not self.store.add_credentials(domain, credential, authentication=authentication):
                raise StorageError(f"credential {credential.id} already exists", domain=domain.name)
        return domain

    async def _save_token_in_thread(
        self, acl: AccessControl, url: str, token: SecretStr, username: str
    ) -> FormValidation:
        # Store writes block on file I/O
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._save_token, acl, url, token, username)

    def _save_token(self, acl: AccessControl, url: str, token: SecretStr, username: str) -> FormValidation:
        credential = self.create_credentials(url, token, username)
        try:
            domain = self.store_credentials(acl, url, credential)
        except StorageError as e:
            log.error(
                "credentials_store_failed",
                credential_id=credential.id,
                server_url=url,
                error=e.message,
                exc_info=True,
            )
            return FormValidation.error(f"Can't add credentials for domain {e.domain or url} - {e.message}")

        log.info("credentials_stored", credential_id=credential.id, domain=domain.name, username=username)
        return FormValidation.ok(f"Created credentials with id {credential.id}", credential_id=credential.id)

    def _expires_at(self) -> date | None:
        if self.token_expires_in_days is None:
            return None
        return date.today() + timedelta(days=self.token_expires_in_days)
