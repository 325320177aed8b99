"""API endpoint commands: add, list, delete, and target endpoints."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

from capi_cli.client.errors import error_handler
from capi_cli.commands._common import FormatOpt, get_manager, resolve_format
from capi_cli.output.formatter import output

app = typer.Typer(name="apis", help="Manage platform API endpoints.")
console = Console()


@app.command()
@error_handler
def add(
    ctx: typer.Context,
    endpoint: Annotated[str, typer.Argument(help="API endpoint, e.g. https://api.example.com")],
    skip_ssl_validation: Annotated[
        bool, typer.Option("--skip-ssl-validation", help="Skip SSL certificate validation"),
    ] = False,
) -> None:
    """Add a platform API endpoint."""
    mgr = get_manager(ctx)
    key, api_config, became_current = mgr.add_api(
        endpoint, skip_ssl_validation=skip_ssl_validation,
    )
    if became_current:
        console.print(f"[green]API '{key}' ({api_config.endpoint}) added and set as current target.[/]")
    else:
        console.print(f"[green]API '{key}' ({api_config.endpoint}) added.[/]")


@app.command("list")
@error_handler
def list_apis(ctx: typer.Context, fmt: FormatOpt = None) -> None:
    """List all configured API endpoints."""
    mgr = get_manager(ctx)
    config = mgr.config
    if not config.apis:
        console.print("[yellow]No APIs configured. Use 'capi apis add' to add one.[/]")
        return

    entries = []
    rows = []
    for domain in sorted(config.apis):
        api_config = config.apis[domain]
        current = domain == config.current_api
        entries.append({
            "domain": domain,
            "endpoint": api_config.endpoint,
            "username": api_config.username,
            "organization": api_config.organization,
            "space": api_config.space,
            "skip_ssl_validation": api_config.skip_ssl_validation,
            "current": current,
        })
        rows.append([
            domain,
            api_config.endpoint,
            api_config.username,
            api_config.organization,
            api_config.space,
            current,
        ])

    output(
        entries,
        resolve_format(fmt, mgr),
        columns=["Domain", "Endpoint", "User", "Org", "Space", "Current"],
        rows=rows,
        title="APIs",
    )


@app.command()
@error_handler
def delete(
    ctx: typer.Context,
    domain: Annotated[str, typer.Argument(help="Domain of the API to delete")],
) -> None:
    """Remove an API endpoint from the configuration."""
    mgr = get_manager(ctx)
    was_current = mgr.config.current_api == domain
    new_current = mgr.remove_api(domain)
    if not was_current:
        console.print(f"[green]API '{domain}' deleted.[/]")
    elif new_current:
        console.print(f"[green]API '{domain}' deleted. Current API switched to '{new_current}'.[/]")
    else:
        console.print(f"[green]API '{domain}' deleted. No APIs remaining.[/]")


@app.command()
@error_handler
def target(
    ctx: typer.Context,
    domain: Annotated[str, typer.Argument(help="Domain of the API to target")],
) -> None:
    """Set an API endpoint as the current target."""
    mgr = get_manager(ctx)
    mgr.set_current(domain)
    console.print(f"[green]API '{domain}' is now the current target.[/]")
