"""CLI helpers for provider construction and error-to-exit-code mapping."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import typer

from bundledesk.cli import _exitcodes as ec
from bundledesk.cli._output import print_error
from bundledesk.config import BundleDeskConfig, config_from_env
from bundledesk.errors import (
    BundleDeskError,
    ConfigurationError,
    ConnectivityError,
    NotFoundError,
    UnsupportedOperationError,
    ValidationError,
)
from bundledesk.provider import BundleProvider, open_provider


def resolve_config() -> BundleDeskConfig:
    """Environment config with the global ``--provider`` option applied."""
    from bundledesk.cli import state

    cfg = config_from_env()
    if state.provider:
        cfg.provider = state.provider
    return cfg


def open_cli_provider() -> BundleProvider:
    return open_provider(resolve_config())


@contextmanager
def provider_session() -> Iterator[BundleProvider]:
    """Open the selected provider and translate failures into exit codes."""
    try:
        provider = open_cli_provider()
    except (ConfigurationError, ConnectivityError, ValueError) as e:
        print_error(f"Cannot open provider: {e}")
        raise typer.Exit(ec.DATABASE_ERROR)

    try:
        yield provider
    except ValidationError as e:
        print_error(str(e))
        raise typer.Exit(ec.USAGE_ERROR)
    except NotFoundError as e:
        print_error(str(e))
        raise typer.Exit(ec.NOT_FOUND)
    except UnsupportedOperationError as e:
        print_error(str(e))
        raise typer.Exit(ec.UNSUPPORTED)
    except ConnectivityError as e:
        print_error(str(e))
        raise typer.Exit(ec.DATABASE_ERROR)
    except BundleDeskError as e:
        print_error(str(e))
        raise typer.Exit(ec.EXECUTION_FAILURE)
    finally:
        provider.close()
