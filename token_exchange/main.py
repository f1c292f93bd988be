"""CLI entry point for the token exchange."""

import asyncio
import getpass
import sys
from collections.abc import Coroutine
from typing import Any

import click
import structlog
from pydantic import ValidationError

from token_exchange.cli.credentials import credentials_group
from token_exchange.cli.secrets import secrets_group
from token_exchange.config.settings import ExchangeSettings
from token_exchange.creator import PersonalAccessTokenCreator
from token_exchange.exceptions import ConfigurationError, TokenExchangeError
from token_exchange.factory import create_creator
from token_exchange.models.domain import FormValidation
from token_exchange.security import AccessControl, Authentication
from token_exchange.utils.logging_config import configure_logging

log = structlog.get_logger(__name__)


@click.group()
@click.option(
    "--config",
    envvar="TOKEN_EXCHANGE_CONFIG",
    default=None,
    help="Path to configuration file (defaults and TOKEN_EXCHANGE_* variables if omitted)",
)
@click.option("--log-level", default=None, help="Logging level (overrides the configuration)")
@click.pass_context
def cli(ctx: click.Context, config: str | None, log_level: str | None) -> None:
    """token-exchange: convert GitLab logins into personal access token credentials."""
    try:
        settings = ExchangeSettings.from_yaml(config) if config else ExchangeSettings()
    except ConfigurationError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    except ValidationError as e:
        click.echo(f"Error: invalid configuration: {e}", err=True)
        sys.exit(1)

    configure_logging(log_level or settings.log_level)
    ctx.obj = {"settings": settings}


def _local_access_control() -> AccessControl:
    return AccessControl(Authentication.administrator(getpass.getuser()))


def _build_creator(ctx: click.Context) -> PersonalAccessTokenCreator:
    try:
        return create_creator(ctx.obj["settings"])
    except TokenExchangeError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("creator_setup_failed", exc_info=True)
        sys.exit(1)


def _report(result: FormValidation) -> None:
    if result.is_ok:
        click.echo(click.style(result.message, fg="green"))
        return
    click.echo(click.style(f"Error: {result.message}", fg="red"), err=True)
    sys.exit(1)


def _run(operation: Coroutine[Any, Any, FormValidation]) -> None:
    try:
        result = asyncio.run(operation)
    except TokenExchangeError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("operation_failed", exc_info=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)
    _report(result)


@cli.command(name="create-token")
@click.option("--server-url", default="", help="GitLab server URL (blank for the configured default)")
@click.option("--credentials-id", required=True, help="Id of the stored login to exchange")
@click.pass_context
def create_token(ctx: click.Context, server_url: str, credentials_id: str) -> None:
    """Exchange a stored login for a personal access token credential."""
    creator = _build_creator(ctx)
    _run(creator.create_token_by_credentials(_local_access_control(), server_url, credentials_id))


@cli.command(name="create-token-password")
@click.option("--server-url", default="", help="GitLab server URL (blank for the configured default)")
@click.option("--username", required=True, help="GitLab login")
@click.option("--password", prompt=True, hide_input=True, help="GitLab password")
@click.pass_context
def create_token_password(ctx: click.Context, server_url: str, username: str, password: str) -> None:
    """Exchange a username and password for a personal access token credential."""
    creator = _build_creator(ctx)
    _run(creator.create_token_by_password(_local_access_control(), server_url, username, password))


@cli.command(name="list-candidates")
@click.option("--server-url", default="", help="GitLab server URL (blank for the configured default)")
@click.option("--credentials-id", default="", help="Currently selected credential id")
@click.pass_context
def list_candidates(ctx: click.Context, server_url: str, credentials_id: str) -> None:
    """List the stored logins that can be exchanged for the server URL."""
    creator = _build_creator(ctx)
    for option in creator.fill_credentials_id_items(_local_access_control(), server_url, credentials_id):
        marker = "*" if option.selected else " "
        click.echo(f"{marker} {option.value or '-':<38} {option.display_name}")


@cli.command()
@click.option("--host", default=None, help="Bind address (overrides the configuration)")
@click.option("--port", type=int, default=None, help="Bind port (overrides the configuration)")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Run the administrative HTTP server."""
    import uvicorn

    from token_exchange.server import create_app

    settings: ExchangeSettings = ctx.obj["settings"]
    if not settings.server.principals:
        click.echo("Warning: no principals configured, every caller is anonymous", err=True)

    app = create_app(settings, _build_creator(ctx))
    uvicorn.run(app, host=host or settings.server.host, port=port or settings.server.port)


cli.add_command(credentials_group)
cli.add_command(secrets_group)


if __name__ == "__main__":
    cli()
