"""Pytest configuration and shared fixtures."""

from datetime import date

import pytest
from pydantic import SecretStr

from token_exchange.creator import PersonalAccessTokenCreator
from token_exchange.credentials.store import InMemoryCredentialStore
from token_exchange.exceptions import TokenCreationError
from token_exchange.models.domain import GLOBAL_DOMAIN, UsernamePasswordCredential
from token_exchange.security import AccessControl, Authentication


class FakeTokenIssuer:
    """Token issuer recording its calls instead of talking to GitLab."""

    def __init__(self, token="glpat-test-token", error=None):
        self.token = token
        self.error = error
        self.calls = []

    async def create_personal_access_token(
        self, username, password, server_url, token_name, scopes, expires_at: date | None = None
    ):
        self.calls.append(
            {
                "username": username,
                "password": password,
                "server_url": server_url,
                "token_name": token_name,
                "scopes": tuple(scopes),
                "expires_at": expires_at,
            }
        )
        if self.error is not None:
            raise TokenCreationError(self.error)
        return self.token


@pytest.fixture
def ci_login() -> UsernamePasswordCredential:
    """A system-wide GitLab login."""
    return UsernamePasswordCredential(
        id="ci-login",
        username="ci-bot",
        password=SecretStr("bot-password"),
        description="CI bot",
    )


@pytest.fixture
def store(ci_login) -> InMemoryCredentialStore:
    """In-memory store holding the CI login in the global domain."""
    return InMemoryCredentialStore({GLOBAL_DOMAIN: [ci_login]})


@pytest.fixture
def issuer() -> FakeTokenIssuer:
    return FakeTokenIssuer()


@pytest.fixture
def failing_issuer() -> FakeTokenIssuer:
    return FakeTokenIssuer(error="Invalid username or password")


@pytest.fixture
def admin_acl() -> AccessControl:
    """Access control for an administrator."""
    return AccessControl(Authentication.administrator("admin"))


@pytest.fixture
def user_acl() -> AccessControl:
    """Access control for a principal with read access only."""
    return AccessControl(Authentication.user("alice"))


@pytest.fixture
def creator(store, issuer) -> PersonalAccessTokenCreator:
    """Creator wired to the in-memory store and the fake issuer."""
    return PersonalAccessTokenCreator(store, issuer, default_server_url="https://gitlab.com")
