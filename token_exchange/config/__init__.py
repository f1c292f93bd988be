"""Configuration for the token exchange.

Key Components:
    - ExchangeSettings: Main configuration container with YAML loading support
    - GitLabConfig: Default server, token label and lifetime, HTTP options
    - StoreConfig: Encrypted credential store location and master password
    - ServerConfig: HTTP server bind address and known principals

Example:
    >>> from token_exchange.config import ExchangeSettings
    >>> settings = ExchangeSettings.from_yaml("token-exchange.yaml")
    >>> settings.gitlab.server_url
    'https://gitlab.com'
"""

from token_exchange.config.settings import (
    ExchangeSettings,
    GitLabConfig,
    PrincipalConfig,
    ServerConfig,
    StoreConfig,
)

__all__ = ["ExchangeSettings", "GitLabConfig", "PrincipalConfig", "ServerConfig", "StoreConfig"]
