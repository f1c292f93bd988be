"""CLI commands for managing the credential store.

This module provides the ``token-exchange credentials`` command group used to
seed the store with GitLab logins and to inspect what the exchange created.

Commands:
    - add: Store a username/password credential
    - list: Show credentials (secrets are never printed)
    - remove: Delete a credential
    - domains: Show domains and their match specifications
    - remove-domain: Delete a domain with its credentials

Example:
    Store a login for a self-hosted GitLab and exchange it::

        $ token-exchange credentials add --username ci-bot --server-url https://gitlab.example.com
        $ token-exchange create-token --server-url https://gitlab.example.com --credentials-id <id>
"""

import getpass
import sys
import uuid

import click
from pydantic import SecretStr

from token_exchange.credentials.store import CredentialStore
from token_exchange.exceptions import TokenExchangeError
from token_exchange.factory import create_store
from token_exchange.models.domain import (
    GLOBAL_DOMAIN,
    Domain,
    HostnameSpecification,
    SchemeSpecification,
    UsernamePasswordCredential,
)
from token_exchange.security import Authentication


def _operator() -> Authentication:
    """The local operator; whoever can read the store file administers it."""
    return Authentication.administrator(getpass.getuser())


def _open_store(ctx: click.Context) -> CredentialStore:
    try:
        return create_store(ctx.obj["settings"])
    except TokenExchangeError as e:
        click.echo(click.style(f"Error: {e.message}", fg="red"), err=True)
        sys.exit(1)


def _describe_domain(domain: Domain) -> str:
    if domain.is_global:
        return "(global)"
    parts = []
    for spec in domain.specifications:
        if isinstance(spec, SchemeSpecification):
            parts.append(f"scheme={','.join(spec.schemes)}")
        elif isinstance(spec, HostnameSpecification):
            parts.append(f"host={spec.includes or '*'}")
            if spec.excludes:
                parts.append(f"exclude={spec.excludes}")
    return f"{domain.name} [{' '.join(parts)}]" if parts else str(domain.name)


@click.group(name="credentials")
def credentials_group() -> None:
    """Manage the credential store.

    Examples:

        # Store a GitLab login in the domain of its server
        token-exchange credentials add --username ci-bot --server-url https://gitlab.example.com

        # Show what is stored
        token-exchange credentials list
    """
    pass


@credentials_group.command(name="add")
@click.option("--username", required=True, help="GitLab login")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True, help="GitLab password")
@click.option("--id", "credential_id", default=None, help="Credential id (random if omitted)")
@click.option("--description", default="", help="Free-form description")
@click.option("--server-url", default=None, help="Store in the domain serving this URL instead of the global domain")
@click.option("--owner", default=None, help="Store in this principal's personal store")
@click.pass_context
def add_credential(
    ctx: click.Context,
    username: str,
    password: str,
    credential_id: str | None,
    description: str,
    server_url: str | None,
    owner: str | None,
) -> None:
    """Store a username/password credential."""
    store = _open_store(ctx)
    operator = _operator()
    credential = UsernamePasswordCredential(
        id=credential_id or str(uuid.uuid4()),
        username=username,
        password=SecretStr(password),
        description=description,
        owner=owner,
    )

    try:
        domain = store.get_or_create_domain(server_url, authentication=operator) if server_url else GLOBAL_DOMAIN
        added = store.add_credentials(domain, credential, authentication=operator)
    except TokenExchangeError as e:
        click.echo(click.style(f"Error: {e.message}", fg="red"), err=True)
        sys.exit(1)

    if not added:
        click.echo(click.style(f"Credential {credential.id} already exists", fg="yellow"))
        sys.exit(1)
    click.echo(click.style(f"Stored credential {credential.id} in {_describe_domain(domain)}", fg="green"))


@credentials_group.command(name="list")
@click.pass_context
def list_credentials(ctx: click.Context) -> None:
    """List stored credentials by domain."""
    store = _open_store(ctx)
    for domain in store.domains():
        click.echo(click.style(_describe_domain(domain), bold=True))
        credentials = store.credentials(domain)
        if not credentials:
            click.echo("  (empty)")
        for credential in credentials:
            owner = f" owner={credential.owner}" if credential.owner else ""
            click.echo(f"  {credential.id}  {credential.display_name}{owner}")


@credentials_group.command(name="remove")
@click.argument("credential_id")
@click.confirmation_option(prompt="Are you sure you want to delete this credential?")
@click.pass_context
def remove_credential(ctx: click.Context, credential_id: str) -> None:
    """Delete CREDENTIAL_ID from every domain holding it."""
    store = _open_store(ctx)
    operator = _operator()
    removed = False
    try:
        for domain in store.domains():
            removed = store.remove_credentials(domain, credential_id, authentication=operator) or removed
    except TokenExchangeError as e:
        click.echo(click.style(f"Error: {e.message}", fg="red"), err=True)
        sys.exit(1)

    if removed:
        click.echo(click.style("Credential deleted successfully", fg="green"))
    else:
        click.echo(click.style("Credential not found", fg="yellow"))


@credentials_group.command(name="domains")
@click.pass_context
def list_domains(ctx: click.Context) -> None:
    """List domains and their match specifications."""
    store = _open_store(ctx)
    for domain in store.domains():
        description = f"  {domain.description}" if domain.description else ""
        click.echo(f"{_describe_domain(domain)}{description}")


@credentials_group.command(name="remove-domain")
@click.argument("name")
@click.confirmation_option(prompt="Are you sure you want to delete this domain and its credentials?")
@click.pass_context
def remove_domain(ctx: click.Context, name: str) -> None:
    """Delete domain NAME and every credential stored in it."""
    store = _open_store(ctx)
    domain = store.get_domain(name)
    if domain is None:
        click.echo(click.style("Domain not found", fg="yellow"))
        return

    try:
        store.remove_domain(domain, authentication=_operator())
    except TokenExchangeError as e:
        click.echo(click.style(f"Error: {e.message}", fg="red"), err=True)
        sys.exit(1)
    click.echo(click.style(f"Domain {name} deleted successfully", fg="green"))
