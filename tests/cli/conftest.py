"""Shared fixtures for CLI tests."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING

import pytest
from typer.testing import CliRunner

from bundledesk.cli import app
from tests.conftest import seed_sqlite

if TYPE_CHECKING:
    from click.testing import Result


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("BUNDLEDESK_PROVIDER", "BUNDLEDESK_SQLITE_PATH", "BUNDLEDESK_S3_BUCKET"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def seeded_db(tmp_path, monkeypatch):
    """A file-backed SQLite bundles table selected through the environment."""
    db_path = str(tmp_path / "bundles.db")
    conn = sqlite3.connect(db_path)
    seed_sqlite(conn)
    conn.close()
    monkeypatch.setenv("BUNDLEDESK_SQLITE_PATH", db_path)
    return db_path


def invoke(runner: CliRunner, args: list[str], provider: str | None = None) -> "Result":
    """Invoke CLI with the provider selected before the subcommand."""
    if provider:
        args = ["--provider", provider] + args
    return runner.invoke(app, args, catch_exceptions=False)
