"""Tests for secret reference resolution."""

from unittest.mock import Mock, patch

import pytest

from token_exchange.credentials import CredentialResolver, EnvironmentBackend, KeyringBackend
from token_exchange.exceptions import (
    BackendNotAvailableError,
    CredentialError,
    CredentialFormatError,
    CredentialNotFoundError,
)


@pytest.fixture
def keyring_backend():
    """Create a mock keyring backend."""
    backend = Mock()
    backend.name = "keyring"
    backend.available = True
    backend.get.return_value = "keyring-secret"
    return backend


@pytest.fixture
def resolver(keyring_backend):
    return CredentialResolver(backends=[EnvironmentBackend(), keyring_backend])


class TestCredentialResolver:
    """Test CredentialResolver functionality."""

    def test_resolve_direct_value(self, resolver):
        """Test plain values are returned unchanged."""
        assert resolver.resolve("plain-password") == "plain-password"

    def test_resolve_environment(self, resolver, monkeypatch):
        monkeypatch.setenv("TOKEN_EXCHANGE_TEST_SECRET", "env-secret")

        assert resolver.resolve("${TOKEN_EXCHANGE_TEST_SECRET}") == "env-secret"

    def test_environment_not_set(self, resolver, monkeypatch):
        monkeypatch.delenv("TOKEN_EXCHANGE_MISSING", raising=False)

        with pytest.raises(CredentialNotFoundError) as exc_info:
            resolver.resolve("${TOKEN_EXCHANGE_MISSING}")

        assert exc_info.value.message == "Environment variable not set: TOKEN_EXCHANGE_MISSING"
        assert exc_info.value.reference == "${TOKEN_EXCHANGE_MISSING}"

    def test_resolve_keyring(self, resolver, keyring_backend):
        assert resolver.resolve("@keyring:store/master_password") == "keyring-secret"
        keyring_backend.get.assert_called_once_with("store", "master_password")

    def test_keyring_secret_missing(self, resolver, keyring_backend):
        keyring_backend.get.return_value = None

        with pytest.raises(CredentialNotFoundError) as exc_info:
            resolver.resolve("@keyring:store/master_password")

        assert "token-exchange secrets set store/master_password" in exc_info.value.suggestion

    def test_keyring_unavailable(self, resolver, keyring_backend):
        keyring_backend.available = False

        with pytest.raises(BackendNotAvailableError):
            resolver.resolve("@keyring:store/master_password")

    def test_keyring_backend_failure_wrapped(self, resolver, keyring_backend):
        keyring_backend.get.side_effect = RuntimeError("dbus is down")

        with pytest.raises(CredentialError, match="dbus is down"):
            resolver.resolve("@keyring:store/master_password")

    def test_malformed_keyring_reference(self, resolver):
        with pytest.raises(CredentialFormatError):
            resolver.resolve("@keyring:no-slash")

    def test_no_backend_configured(self):
        resolver = CredentialResolver(backends=[EnvironmentBackend()])

        with pytest.raises(BackendNotAvailableError, match="No keyring backend configured"):
            resolver.resolve("@keyring:store/master_password")

    def test_cache(self, resolver, keyring_backend):
        """Test resolved values are cached until the cache is cleared."""
        resolver.resolve("@keyring:store/master_password")
        resolver.resolve("@keyring:store/master_password")
        assert keyring_backend.get.call_count == 1

        resolver.clear_cache()
        resolver.resolve("@keyring:store/master_password")
        assert keyring_backend.get.call_count == 2


class TestKeyringBackend:
    """Test KeyringBackend against a patched keyring module."""

    @pytest.fixture
    def mock_keyring(self):
        with patch("token_exchange.credentials.keyring_backend.keyring") as mock_module:
            mock_module.get_keyring.return_value.priority = 1
            yield mock_module

    def test_get_uses_prefixed_service(self, mock_keyring):
        mock_keyring.get_password.return_value = "s3cret"

        assert KeyringBackend().get("store", "master_password") == "s3cret"
        mock_keyring.get_password.assert_called_once_with("token-exchange/store", "master_password")

    def test_unavailable(self, mock_keyring):
        mock_keyring.get_keyring.return_value.priority = 0

        backend = KeyringBackend()

        assert backend.available is False
        with pytest.raises(BackendNotAvailableError):
            backend.get("store", "master_password")

    def test_set_rejects_empty_value(self, mock_keyring):
        with pytest.raises(ValueError):
            KeyringBackend().set("store", "master_password", "")


class TestEnvironmentBackend:
    """Test EnvironmentBackend."""

    def test_get(self, monkeypatch):
        monkeypatch.setenv("TOKEN_EXCHANGE_ENV_TEST", "value")

        backend = EnvironmentBackend()

        assert backend.available is True
        assert backend.get("TOKEN_EXCHANGE_ENV_TEST") == "value"
        assert backend.get("TOKEN_EXCHANGE_ENV_TEST_MISSING") is None
