"""bundledesk CLI: operator console for hot-update bundle metadata."""

from __future__ import annotations

from typing import Optional

import typer

from bundledesk.cli import bundles, info, reports
from bundledesk.config import PROVIDER_NAMES

app = typer.Typer(
    name="bundledesk",
    help="bundledesk CLI: inspect and manage hot-update bundle metadata.",
    no_args_is_help=True,
)


class _State:
    """Global CLI state shared across subcommands."""

    provider: str | None = None
    json_output: bool = False


state = _State()


def _version_callback(value: bool) -> None:
    if value:
        from bundledesk import __version__

        print(f"bundledesk {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    provider: Optional[str] = typer.Option(
        None,
        "--provider",
        "-p",
        envvar="BUNDLEDESK_PROVIDER",
        help=f"Metadata provider ({', '.join(PROVIDER_NAMES)}; default: memory)",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
    version: bool = typer.Option(
        False, "--version", help="Show version", is_eager=True, callback=_version_callback
    ),
) -> None:
    """Global options for all bundledesk commands."""
    if provider is not None and provider.strip().lower() not in PROVIDER_NAMES:
        raise typer.BadParameter(
            f"expected one of: {', '.join(PROVIDER_NAMES)}", param_hint="--provider"
        )
    state.provider = provider.strip().lower() if provider else None
    state.json_output = json_output
    if ctx.invoked_subcommand is None and not version:
        print(ctx.get_help())
        raise typer.Exit()


# Register subcommand groups
app.add_typer(bundles.app, name="bundles", help="List, update, delete and promote bundles")

# Register top-level commands
app.command(name="info")(info.info_cmd)
app.command(name="stats")(reports.stats_cmd)
app.command(name="deployments")(reports.deployments_cmd)
app.command(name="rollback")(reports.rollback_cmd)


def main() -> None:
    """Entry point for the bundledesk CLI."""
    app()
