"""Unit tests for token_exchange/config - Settings loading and credential fields."""

from unittest.mock import Mock

import pytest
from pydantic import SecretStr, ValidationError

from token_exchange.config.credential_fields import resolve_credential_secret, set_resolver
from token_exchange.config.settings import ExchangeSettings, PrincipalConfig, ServerConfig
from token_exchange.exceptions import ConfigurationError, CredentialNotFoundError

CONFIG = """
gitlab:
  default_server_url: https://gitlab.example.com/
  token_name: ci-token
  token_expires_in_days: 30
store:
  backend: memory
server:
  port: 9000
  principals:
    - name: admin
      api_key: ${ADMIN_API_KEY}
      administrator: true
log_level: ${LOG_LEVEL:-DEBUG}
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "token-exchange.yaml"
    path.write_text(CONFIG)
    return path


@pytest.fixture
def mock_resolver():
    """Install a mock resolver for credential fields."""
    resolver = Mock()
    set_resolver(resolver)
    yield resolver
    set_resolver(None)


class TestExchangeSettings:
    """Tests for ExchangeSettings."""

    def test_defaults(self):
        settings = ExchangeSettings()

        assert settings.gitlab.server_url == "https://gitlab.com"
        assert settings.gitlab.token_name == "mytoken"
        assert settings.gitlab.token_expires_in_days is None
        assert settings.store.backend == "encrypted_file"
        assert settings.server.principals == []

    def test_from_yaml(self, config_file, monkeypatch):
        monkeypatch.setenv("ADMIN_API_KEY", "from-env")
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        settings = ExchangeSettings.from_yaml(str(config_file))

        assert settings.gitlab.server_url == "https://gitlab.example.com"
        assert settings.gitlab.token_name == "ci-token"
        assert settings.gitlab.token_expires_in_days == 30
        assert settings.store.backend == "memory"
        assert settings.server.port == 9000
        assert settings.server.principals[0].api_key.get_secret_value() == "from-env"
        assert settings.log_level == "DEBUG"

    def test_missing_env_var(self, config_file, monkeypatch):
        monkeypatch.delenv("ADMIN_API_KEY", raising=False)

        with pytest.raises(ConfigurationError, match="ADMIN_API_KEY"):
            ExchangeSettings.from_yaml(str(config_file))

    def test_comments_not_interpolated(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("# api_key: ${NOT_SET_ANYWHERE}\nlog_level: WARNING\n")

        assert ExchangeSettings.from_yaml(str(path)).log_level == "WARNING"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Configuration file not found"):
            ExchangeSettings.from_yaml(str(tmp_path / "missing.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("gitlab: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            ExchangeSettings.from_yaml(str(path))

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- one\n- two\n")

        with pytest.raises(ConfigurationError, match="must be a YAML object"):
            ExchangeSettings.from_yaml(str(path))

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("gitlab:\n  token_expires_in_days: 1000\n")

        with pytest.raises(ConfigurationError, match="Failed to validate configuration"):
            ExchangeSettings.from_yaml(str(path))

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("TOKEN_EXCHANGE_GITLAB__TOKEN_NAME", "from-env")

        assert ExchangeSettings().gitlab.token_name == "from-env"

    def test_duplicate_principals(self):
        with pytest.raises(ValidationError, match="Duplicate principal names: admin"):
            ServerConfig(
                principals=[
                    {"name": "admin", "api_key": "a"},
                    {"name": "admin", "api_key": "b"},
                ]
            )


class TestCredentialFields:
    """Tests for secret reference resolution in settings."""

    def test_reference_resolved(self, mock_resolver):
        mock_resolver.resolve.return_value = "resolved-key"

        principal = PrincipalConfig(name="admin", api_key="@keyring:server/admin")

        assert principal.api_key.get_secret_value() == "resolved-key"
        mock_resolver.resolve.assert_called_once_with("@keyring:server/admin")

    def test_resolution_error_becomes_validation_error(self, mock_resolver):
        mock_resolver.resolve.side_effect = CredentialNotFoundError(
            "Secret not found in keyring: server/admin",
            reference="@keyring:server/admin",
        )

        with pytest.raises(ValidationError, match="Secret not found in keyring"):
            PrincipalConfig(name="admin", api_key="@keyring:server/admin")

    def test_secret_str_passthrough(self, mock_resolver):
        value = SecretStr("already-secret")

        assert resolve_credential_secret(value) is value
        mock_resolver.resolve.assert_not_called()


class TestServerConfig:
    """Tests for principal validation."""

    def test_system_name_reserved(self):
        with pytest.raises(ValidationError, match="Principal name SYSTEM is reserved"):
            ServerConfig(principals=[{"name": "SYSTEM", "api_key": "k", "administrator": True}])
