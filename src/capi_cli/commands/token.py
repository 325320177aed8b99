"""Token commands: inspect and refresh stored access tokens."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

import typer
from rich.console import Console

from capi_cli.auth.refresh import TokenRefresher
from capi_cli.auth.token import Token, build_status_report, evaluate_status
from capi_cli.client.errors import AuthenticationError, NoAPIsConfiguredError, error_handler
from capi_cli.commands._common import ApiOpt, FormatOpt, get_manager, resolve_format
from capi_cli.output.formatter import output

app = typer.Typer(name="token", help="Inspect and refresh access tokens.")
console = Console()

AllOpt = Annotated[bool, typer.Option("--all", help="Apply to every configured API")]

_STATUS_STYLES = {
    "Valid": "green",
    "Expires soon": "yellow",
    "Expired": "red",
    "No token": "dim",
    "Unknown expiration": "yellow",
}


def _styled(status: str) -> str:
    style = _STATUS_STYLES.get(status)
    return f"[{style}]{status}[/]" if style else status


@app.command()
@error_handler
def status(
    ctx: typer.Context,
    api: ApiOpt = "",
    all_apis: AllOpt = False,
    fmt: FormatOpt = None,
) -> None:
    """Show the token status of the current API (or --api / --all)."""
    mgr = get_manager(ctx)
    fmt = resolve_format(fmt, mgr)
    now = datetime.now(timezone.utc)

    if not all_apis:
        api_config, domain = mgr.resolve(api)
        output(build_status_report(api_config, domain, now), fmt, title=f"Token status: {domain}")
        return

    apis = mgr.config.apis
    if not apis:
        raise NoAPIsConfiguredError()
    reports = [build_status_report(apis[domain], domain, now) for domain in sorted(apis)]
    if fmt != "table":
        output(reports, fmt)
        return

    rows = []
    for report in reports:
        domain = report["api_domain"]
        rows.append([
            domain,
            _styled(evaluate_status(apis[domain], now).value),
            report.get("expires_at"),
            report.get("time_until_expiry"),
            report.get("refresh_token_available", False),
            domain == mgr.config.current_api,
        ])
    output(
        reports,
        fmt,
        columns=["Domain", "Status", "Expires At", "Remaining", "Refreshable", "Current"],
        rows=rows,
        title="Token status",
    )


def _print_expiry(token: Token) -> None:
    if token.expires_at is not None:
        console.print(f"New token expires at: {token.expires_at.isoformat()}")


@app.command()
@error_handler
def refresh(
    ctx: typer.Context,
    api: ApiOpt = "",
    all_apis: AllOpt = False,
) -> None:
    """Refresh the access token of the current API (or --api / --all)."""
    mgr = get_manager(ctx)
    refresher = TokenRefresher(mgr, echo=console.print)

    if not all_apis:
        api_config, domain = mgr.resolve(api)
        token = refresher.refresh(api_config, domain)
        _print_expiry(token)
        return

    if not mgr.config.apis:
        raise NoAPIsConfiguredError()
    results = refresher.refresh_all()
    if not results:
        console.print("[yellow]No APIs have a refresh token. Run 'capi login' first.[/]")
        return

    failed = []
    for domain, result in results.items():
        if isinstance(result, Token):
            _print_expiry(result)
        else:
            console.print(f"[red]{domain}: {result}[/]")
            failed.append(domain)
    if failed:
        raise AuthenticationError(
            f"Token refresh failed for {len(failed)} API(s): {', '.join(failed)}"
        )
    console.print(f"[green]Refreshed {len(results)} token(s).[/]")
