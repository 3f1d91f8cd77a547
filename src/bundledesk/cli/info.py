"""bundledesk info: show the selected provider and its backend details."""

from __future__ import annotations

from bundledesk.cli._output import print_object
from bundledesk.cli._provider import provider_session


def info_cmd() -> None:
    """Show the selected provider, its backend location and capabilities."""
    from bundledesk.cli import state

    with provider_session() as provider:
        data = provider.provider_info()

    if state.json_output:
        print_object(data, json_mode=True)
        return
    print_object({k.replace("_", " ").capitalize(): v for k, v in data.items()})
