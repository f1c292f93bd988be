"""CLI commands for secrets referenced from the configuration file.

The store master password and server API keys can be written to the OS
keyring and referenced as ``@keyring:service/key`` in the configuration.
"""

import sys

import click

from token_exchange.credentials.keyring_backend import KeyringBackend
from token_exchange.exceptions import CredentialError


def _parse_service_key(reference: str) -> tuple[str, str]:
    """Split ``service/key`` into its parts.

    Raises:
        ValueError: If reference doesn't contain a slash separator
    """
    if "/" not in reference:
        raise ValueError(f"Invalid reference format: {reference}\nExpected format: service/key (e.g., store/master_password)")
    service, key = reference.split("/", 1)
    return service, key


@click.group(name="secrets")
def secrets_group() -> None:
    """Manage keyring secrets used by the configuration.

    Examples:

        token-exchange secrets set store/master_password

        # then in token-exchange.yaml:
        #   store:
        #     master_password: "@keyring:store/master_password"
    """
    pass


@secrets_group.command(name="set")
@click.argument("reference")
@click.option("--value", prompt=True, hide_input=True, confirmation_prompt=True, help="Secret value")
def set_secret(reference: str, value: str) -> None:
    """Store a secret under REFERENCE (service/key) in the OS keyring."""
    try:
        service, key = _parse_service_key(reference)
        KeyringBackend().set(service, key, value)
    except CredentialError as e:
        click.echo(click.style(f"Error: {e.message}", fg="red"), err=True)
        if e.suggestion:
            click.echo(click.style(f"Suggestion: {e.suggestion}", fg="yellow"), err=True)
        sys.exit(1)
    except ValueError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(click.style("Secret stored successfully", fg="green"))
    click.echo(f"Reference it as: @keyring:{service}/{key}")


@secrets_group.command(name="delete")
@click.argument("reference")
@click.confirmation_option(prompt="Are you sure you want to delete this secret?")
def delete_secret(reference: str) -> None:
    """Delete the secret stored under REFERENCE (service/key)."""
    try:
        service, key = _parse_service_key(reference)
        deleted = KeyringBackend().delete(service, key)
    except CredentialError as e:
        click.echo(click.style(f"Error: {e.message}", fg="red"), err=True)
        sys.exit(1)
    except ValueError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    if deleted:
        click.echo(click.style("Secret deleted successfully", fg="green"))
    else:
        click.echo(click.style("Secret not found", fg="yellow"))
