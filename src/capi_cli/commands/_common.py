"""Shared helpers for CLI commands: manager access, options, output format."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated

import typer

from capi_cli.config.constants import OUTPUT_FORMATS
from capi_cli.config.manager import ConfigManager
from capi_cli.output.formatter import configure_console

# Shared Typer option type aliases
ApiOpt = Annotated[
    str,
    typer.Option("--api", "-a", help="API domain or endpoint (defaults to the current API)"),
]
FormatOpt = Annotated[
    str | None,
    typer.Option("--format", "-f", help=f"Output format ({', '.join(OUTPUT_FORMATS)})"),
]


@dataclass
class AppState:
    """Per-invocation state carried on the Typer context."""

    config_path: Path | None = None
    _manager: ConfigManager | None = field(default=None, repr=False)

    @property
    def manager(self) -> ConfigManager:
        if self._manager is None:
            self._manager = ConfigManager(config_path=self.config_path)
        return self._manager


def get_manager(ctx: typer.Context) -> ConfigManager:
    """Return the invocation's ConfigManager and apply its display settings."""
    state = ctx.find_root().obj
    if not isinstance(state, AppState):
        state = AppState()
        ctx.find_root().obj = state
    manager = state.manager
    configure_console(no_color=manager.config.no_color)
    return manager


def resolve_format(fmt: str | None, manager: ConfigManager) -> str:
    """Explicit ``--format`` wins over the stored ``output`` setting."""
    chosen = fmt or manager.config.output
    if chosen not in OUTPUT_FORMATS:
        raise typer.BadParameter(
            f"Unknown format '{chosen}'. Use one of: {', '.join(OUTPUT_FORMATS)}",
            param_hint="--format",
        )
    return chosen
