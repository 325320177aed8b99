"""Login and logout commands."""

from __future__ import annotations

import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.prompt import Prompt

from capi_cli.client.errors import UAADiscoveryError, error_handler
from capi_cli.client.platform import PlatformClient, uaa_from_links
from capi_cli.client.uaa import UAAClient
from capi_cli.commands._common import ApiOpt, get_manager
from capi_cli.config.constants import DEFAULT_CLIENT_ID, DEFAULT_CLIENT_SECRET

logger = logging.getLogger(__name__)
console = Console()


@error_handler
def login(
    ctx: typer.Context,
    endpoint: Annotated[
        str, typer.Argument(help="API endpoint (defaults to the current API)"),
    ] = "",
    username: Annotated[str, typer.Option("--username", "-u", help="Username")] = "",
    password: Annotated[str, typer.Option("--password", "-p", help="Password")] = "",
    skip_ssl_validation: Annotated[
        bool, typer.Option("--skip-ssl-validation", help="Skip SSL certificate validation"),
    ] = False,
) -> None:
    """Log in to an API endpoint with the password grant."""
    mgr = get_manager(ctx)
    if endpoint:
        domain, api_config = mgr.ensure_api(endpoint, skip_ssl_validation=skip_ssl_validation)
    else:
        api_config, domain = mgr.resolve()
    if skip_ssl_validation:
        api_config.skip_ssl_validation = True

    console.print(f"API endpoint: [bold]{api_config.endpoint}[/]")
    with PlatformClient(api_config) as client:
        api_config.api_links = client.get_links()
    uaa = api_config.uaa_endpoint or uaa_from_links(api_config.api_links)
    if not uaa:
        raise UAADiscoveryError(
            f"No UAA endpoint found in API links of {api_config.endpoint}"
        )
    logger.debug("Using UAA endpoint %s for %s", uaa, domain)

    if not username:
        username = Prompt.ask("Username")
    if not password:
        password = typer.prompt("Password", hide_input=True)

    console.print("Authenticating...")
    token = UAAClient().password_grant(
        uaa,
        username=username,
        password=password,
        client_id=api_config.uaa_client_id or DEFAULT_CLIENT_ID,
        client_secret=api_config.uaa_client_secret or DEFAULT_CLIENT_SECRET,
        verify=not api_config.skip_ssl_validation,
    )
    api_config.username = username
    mgr.update_api_token(domain, token)
    console.print(f"[green]Logged in to '{domain}' as {username}.[/]")


@error_handler
def logout(ctx: typer.Context, api: ApiOpt = "") -> None:
    """Discard the stored credentials of the current API (or --api)."""
    mgr = get_manager(ctx)
    _, domain = mgr.resolve(api)
    mgr.logout(domain)
    console.print(f"[green]Logged out of '{domain}'.[/]")
