"""Root Typer app: global options and command group registration."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from capi_cli import __version__
from capi_cli.commands import apis, config_cmd, login, token
from capi_cli.commands._common import AppState
from capi_cli.config.constants import APP_NAME

app = typer.Typer(
    name=APP_NAME,
    help="Manage platform API endpoints and their access tokens.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def version_callback(value: bool) -> None:
    if value:
        print(f"{APP_NAME} {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Attach a stderr RichHandler to the package logger."""
    logger = logging.getLogger("capi_cli")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None, "--version", "-V", callback=version_callback, is_eager=True, help="Show version and exit."
    ),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Config file path (default: $CAPI_CONFIG or ~/.capi/config.yml)."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """capi: platform API endpoints, tokens, and settings."""
    configure_logging(verbose)
    ctx.obj = AppState(config_path=config.expanduser() if config else None)


# Register command groups
app.add_typer(apis.app, name="apis")
app.add_typer(token.app, name="token")
app.add_typer(config_cmd.app, name="config")
app.command("login")(login.login)
app.command("logout")(login.logout)


def main() -> None:
    app()
