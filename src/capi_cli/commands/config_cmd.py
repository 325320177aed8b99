"""Config commands: show, set, unset, and clear CLI settings."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console
from rich.prompt import Confirm

from capi_cli.client.errors import error_handler
from capi_cli.commands._common import ApiOpt, FormatOpt, get_manager, resolve_format
from capi_cli.config.manager import GLOBAL_KEYS
from capi_cli.output.formatter import output

app = typer.Typer(name="config", help="Show and edit CLI configuration.")
console = Console()


@app.command()
@error_handler
def show(ctx: typer.Context, api: ApiOpt = "", fmt: FormatOpt = None) -> None:
    """Show global settings, or one API's settings with --api (secrets masked)."""
    mgr = get_manager(ctx)
    fmt = resolve_format(fmt, mgr)

    if api:
        api_config, domain = mgr.resolve(api)
        data = {"domain": domain, **api_config.masked_dict()}
        output(data, fmt, title=f"API: {domain}")
        return

    config = mgr.config
    data = {
        "config_file": str(mgr.config_path),
        "current_api": config.current_api,
        "output": config.output,
        "no_color": config.no_color,
        "apis": sorted(config.apis),
    }
    if fmt == "table":
        data["apis"] = ", ".join(data["apis"]) or "-"
    output(data, fmt, title="Configuration")


@app.command("set")
@error_handler
def set_value(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Setting name")],
    value: Annotated[str, typer.Argument(help="New value")],
    api: ApiOpt = "",
) -> None:
    """Set a global setting, or a setting of the current API (or --api)."""
    mgr = get_manager(ctx)
    if not api and key in GLOBAL_KEYS:
        mgr.set_global(key, value)
        console.print(f"[green]Set {key} = {value}[/]")
        return

    _, domain = mgr.resolve(api)
    mgr.set_api_value(domain, key, value)
    console.print(f"[green]Set {key} = {value} for API '{domain}'[/]")


@app.command()
@error_handler
def unset(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Setting name")],
    api: ApiOpt = "",
) -> None:
    """Reset a setting to its default."""
    mgr = get_manager(ctx)
    if not api and key in GLOBAL_KEYS:
        mgr.unset_global(key)
        console.print(f"[green]Unset {key}[/]")
        return

    _, domain = mgr.resolve(api)
    mgr.unset_api_value(domain, key)
    console.print(f"[green]Unset {key} for API '{domain}'[/]")


@app.command()
@error_handler
def clear(
    ctx: typer.Context,
    api: ApiOpt = "",
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation")] = False,
) -> None:
    """Clear one API's settings (--api), or delete the whole configuration."""
    mgr = get_manager(ctx)

    if api:
        _, domain = mgr.resolve(api)
        if not force and not Confirm.ask(f"Clear all settings for API '{domain}'?"):
            raise typer.Abort()
        mgr.clear_api(domain)
        console.print(f"[green]Settings for API '{domain}' cleared.[/]")
        return

    if not force and not Confirm.ask(f"Delete configuration file {mgr.config_path}?"):
        raise typer.Abort()
    if mgr.clear_all():
        console.print("[green]Configuration cleared.[/]")
    else:
        console.print("[yellow]No configuration file to clear.[/]")
