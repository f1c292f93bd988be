"""Abstract interface for services that mint personal access tokens."""

from collections.abc import Sequence
from datetime import date
from typing import Protocol

from token_exchange.enums import TokenScope


class TokenIssuer(Protocol):
    """Exchange a username/password pair for a personal access token."""

    async def create_personal_access_token(
        self,
        username: str,
        password: str,
        server_url: str,
        token_name: str,
        scopes: Sequence[TokenScope],
        expires_at: date | None = None,
    ) -> str:
        """Mint a token on ``server_url`` for ``username``.

        Args:
            username: Login of the account the token is issued to
            password: Plaintext password of that account
            server_url: Base URL of the GitLab instance
            token_name: Label shown next to the token in the user's settings
            scopes: Scopes granted to the token
            expires_at: Optional expiry date of the token

        Returns:
            The token value

        Raises:
            TokenCreationError: If the service refuses or cannot be reached
        """
        ...
