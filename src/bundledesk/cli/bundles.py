"""bundledesk bundles: list and manage bundle records."""

from __future__ import annotations

from typing import Any, Optional

import typer

from bundledesk.cli import _exitcodes as ec
from bundledesk.cli._output import print_error, print_json, print_object, print_table
from bundledesk.cli._provider import provider_session, resolve_config
from bundledesk.mapping import format_age, format_bytes, version_label
from bundledesk.types import PLATFORMS, Bundle

app = typer.Typer(no_args_is_help=True)

# Upper bound on records examined when --platform/--channel filters are given.
FILTER_SCAN_LIMIT = 1000

BUNDLE_HEADERS = ["ID", "PLATFORM", "CHANNEL", "VERSION", "ENABLED", "FORCE", "SIZE", "CREATED"]


def _bundle_row(bundle: Bundle) -> list[Any]:
    return [
        bundle.id,
        bundle.platform,
        bundle.channel,
        version_label(bundle),
        "yes" if bundle.enabled else "no",
        "yes" if bundle.force_update else "no",
        format_bytes(bundle.size),
        format_age(bundle.created_at),
    ]


@app.command("list")
def list_cmd(
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Maximum bundles to show"),
    platform: Optional[str] = typer.Option(None, "--platform", help="Only ios or android"),
    channel: Optional[str] = typer.Option(None, "--channel", help="Only this channel"),
) -> None:
    """List bundles, most recent first."""
    from bundledesk.cli import state

    if platform is not None and platform not in PLATFORMS:
        print_error(f"--platform must be one of: {', '.join(PLATFORMS)}")
        raise typer.Exit(ec.USAGE_ERROR)

    with provider_session() as provider:
        if platform is None and channel is None:
            bundles = provider.list_bundles(limit)
        else:
            bundles = [
                b
                for b in provider.list_bundles(FILTER_SCAN_LIMIT)
                if (platform is None or b.platform == platform)
                and (channel is None or b.channel == channel)
            ]
            bundles = bundles[: limit or resolve_config().list_limit]

    if state.json_output:
        print_json([b.to_json_dict() for b in bundles])
    else:
        print_table(BUNDLE_HEADERS, [_bundle_row(b) for b in bundles])


@app.command("update")
def update_cmd(
    bundle_id: str = typer.Argument(..., help="Bundle id"),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="New release message"),
    enabled: Optional[bool] = typer.Option(
        None, "--enable/--disable", help="Enable or disable the bundle"
    ),
    force_update: Optional[bool] = typer.Option(
        None, "--force-update/--no-force-update", help="Require clients to apply immediately"
    ),
) -> None:
    """Update a bundle's message, enabled flag or force-update flag."""
    from bundledesk.cli import state

    fields: dict[str, Any] = {}
    if message is not None:
        fields["message"] = message
    if enabled is not None:
        fields["enabled"] = enabled
    if force_update is not None:
        fields["forceUpdate"] = force_update
    if not fields:
        print_error("Nothing to update; pass --message, --enable/--disable or --force-update")
        raise typer.Exit(ec.USAGE_ERROR)

    with provider_session() as provider:
        provider.update_bundle(bundle_id, fields)

    print_object({"success": True, "id": bundle_id, **fields}, json_mode=state.json_output)


@app.command("delete")
def delete_cmd(
    bundle_id: str = typer.Argument(..., help="Bundle id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a bundle record."""
    from bundledesk.cli import state

    if not yes:
        typer.confirm(f"Delete bundle {bundle_id}?", abort=True)

    with provider_session() as provider:
        provider.delete_bundle(bundle_id)

    print_object({"success": True, "id": bundle_id}, json_mode=state.json_output)


@app.command("promote")
def promote_cmd(
    bundle_id: str = typer.Argument(..., help="Bundle id"),
    channel: str = typer.Option(..., "--channel", "-c", help="Target channel"),
    move: bool = typer.Option(False, "--move", help="Move instead of copy"),
) -> None:
    """Copy (default) or move a bundle to another channel."""
    from bundledesk.cli import state

    with provider_session() as provider:
        promoted_id = provider.promote_bundle(bundle_id, channel, move=move)

    print_object(
        {
            "success": True,
            "id": promoted_id,
            "source_id": bundle_id,
            "channel": channel,
            "mode": "move" if move else "copy",
        },
        json_mode=state.json_output,
    )
