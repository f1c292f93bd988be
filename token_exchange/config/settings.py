"""
Configuration system using Pydantic for type-safe settings management.

This module provides the configuration classes for the GitLab connection,
the credential store and the administrative HTTP server.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from token_exchange.config.credential_fields import CredentialSecret
from token_exchange.exceptions import ConfigurationError
from token_exchange.security import SYSTEM


class GitLabConfig(BaseModel):
    """GitLab connection and token settings."""

    default_server_url: HttpUrl = Field(
        default="https://gitlab.com",
        validate_default=True,
        description="Server used when a request leaves the server URL blank",
    )
    token_name: str = Field(default="mytoken", min_length=1, description="Label of tokens minted from stored logins")
    token_expires_in_days: int | None = Field(
        default=None,
        ge=1,
        le=365,
        description="Lifetime of minted tokens (GitLab 16+ instances may require one)",
    )
    timeout: float = Field(default=30.0, gt=0, description="Timeout in seconds for each GitLab request")
    verify_ssl: bool = Field(default=True, description="Verify GitLab TLS certificates")

    @property
    def server_url(self) -> str:
        """Default server URL without a trailing slash."""
        return str(self.default_server_url).rstrip("/")


class StoreConfig(BaseModel):
    """Credential store configuration.

    Supports credential references for master_password:
    - master_password: "@keyring:store/master_password"
    - master_password: "${TOKEN_EXCHANGE_MASTER_PASSWORD}"
    """

    backend: Literal["encrypted_file", "memory"] = Field(
        default="encrypted_file", description="Store implementation (memory keeps nothing on disk)"
    )
    path: Path = Field(default=Path(".token-exchange/credentials.enc"), description="Encrypted store file")
    master_password: CredentialSecret | None = Field(
        default=None,
        description="Master password of the store (supports @keyring:, ${ENV})",
    )


class PrincipalConfig(BaseModel):
    """A caller allowed to use the HTTP server."""

    name: str = Field(..., min_length=1, description="Principal name")
    api_key: CredentialSecret = Field(..., description="Bearer token identifying the principal")
    administrator: bool = Field(default=False, description="Grant the administer permission")


class ServerConfig(BaseModel):
    """Administrative HTTP server configuration."""

    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=8080, ge=1, le=65535, description="Bind port")
    principals: list[PrincipalConfig] = Field(default_factory=list, description="Known callers")

    @field_validator("principals")
    @classmethod
    def unique_names(cls, principals: list[PrincipalConfig]) -> list[PrincipalConfig]:
        names = [p.name for p in principals]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate principal names: {', '.join(duplicates)}")
        if SYSTEM.name in names:
            raise ValueError(f"Principal name {SYSTEM.name} is reserved")
        return principals


class ExchangeSettings(BaseSettings):
    """Main settings of the token exchange.

    Values come from a YAML file (``from_yaml``) and can be overridden with
    ``TOKEN_EXCHANGE_`` environment variables, e.g.
    ``TOKEN_EXCHANGE_GITLAB__TOKEN_NAME=ci``.
    """

    model_config = SettingsConfigDict(
        env_prefix="TOKEN_EXCHANGE_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    gitlab: GitLabConfig = Field(default_factory=GitLabConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    log_level: str = Field(default="INFO", description="Minimum log level")

    @classmethod
    def from_yaml(cls, config_path: str) -> ExchangeSettings:
        """Load settings from YAML file with environment variable interpolation.

        Supports ${VAR_NAME} and ${VAR_NAME:-default} substitution.

        Raises:
            ConfigurationError: If config file is invalid or missing required fields
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            yaml_content = config_file.read_text()
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file: {config_path}") from e

        try:
            yaml_content = cls._interpolate_env_vars(yaml_content)
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment variable reference in config: {e}") from e

        try:
            config_dict = yaml.safe_load(yaml_content) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}") from e
        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration must be a YAML object, not a list or scalar")

        try:
            return cls(**config_dict)
        except Exception as e:
            raise ConfigurationError(f"Failed to validate configuration: {e}") from e

    @staticmethod
    def _interpolate_env_vars(content: str) -> str:
        """Interpolate ${VAR_NAME} placeholders with environment variables.

        YAML comment lines are preserved unchanged, so examples in comments
        do not need the variables set.

        Raises:
            ValueError: If a required environment variable is not set
        """
        pattern = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default_value = match.group(2)
            value = os.getenv(var_name)

            if value is not None:
                return value
            elif default_value is not None:
                return default_value
            else:
                raise ValueError(f"Environment variable {var_name} is not set")

        def process_line(line: str) -> str:
            if line.lstrip().startswith("#"):
                return line
            return pattern.sub(replace_var, line)

        return "\n".join(process_line(line) for line in content.split("\n"))
