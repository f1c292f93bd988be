"""Token issuing services.

Key Components:
    - TokenIssuer: Protocol for minting personal access tokens
    - GitLabTokenIssuer: Mints GitLab tokens through a web sign-in session
"""

from token_exchange.providers.base import TokenIssuer
from token_exchange.providers.gitlab_tokens import GitLabTokenIssuer

__all__ = ["GitLabTokenIssuer", "TokenIssuer"]
