"""bundledesk stats / deployments / rollback: top-level commands."""

from __future__ import annotations

from typing import Optional

import typer

from bundledesk.cli._output import print_json, print_object, print_table
from bundledesk.cli._provider import provider_session
from bundledesk.mapping import format_age

DEPLOYMENT_HEADERS = ["ID", "VERSION", "PLATFORM", "CHANNEL", "STATUS", "DEPLOYED", "BY", "SIZE"]


def stats_cmd() -> None:
    """Show bundle counts and the most recent creation time."""
    from bundledesk.cli import state

    with provider_session() as provider:
        stats = provider.get_stats()

    if state.json_output:
        print_json(stats.to_json_dict())
        return
    print_object(
        {
            "Total bundles": stats.total,
            "Enabled": f"{stats.enabled_count} ({stats.enabled_ratio_percent}%)",
            "Most recent": format_age(stats.most_recent_created_at),
        }
    )


def deployments_cmd(
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Maximum deployments to show"),
) -> None:
    """List recent deployments derived from bundle records."""
    from bundledesk.cli import state

    with provider_session() as provider:
        deployments = provider.list_deployments(limit)

    if state.json_output:
        print_json([d.to_json_dict() for d in deployments])
        return
    print_table(
        DEPLOYMENT_HEADERS,
        [
            [
                d.id,
                d.version,
                d.platform,
                d.channel,
                d.status,
                format_age(d.deployed_at),
                d.deployed_by,
                d.bundle_size,
            ]
            for d in deployments
        ],
    )


def rollback_cmd(bundle_id: str = typer.Argument(..., help="Bundle id")) -> None:
    """Toggle a bundle's enabled flag."""
    from bundledesk.cli import state

    with provider_session() as provider:
        enabled = provider.rollback(bundle_id)

    print_object(
        {"success": True, "id": bundle_id, "enabled": enabled, "message": "Rollback completed"},
        json_mode=state.json_output,
    )
