"""Relational provider over a hot-updater style ``bundles`` table (sqlite3)."""

from __future__ import annotations

import json
import os
import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Iterator

from bundledesk.config import BundleDeskConfig
from bundledesk.errors import ConnectivityError
from bundledesk.mapping import as_bool
from bundledesk.provider import RowStoreProvider


def _sql_value(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    return value


def create_bundles_table(conn: sqlite3.Connection) -> None:
    """Create the bundles table (one-time setup, not called at request time)."""
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS bundles (
            id TEXT PRIMARY KEY,
            platform TEXT NOT NULL,
            target_app_version TEXT,
            should_force_update INTEGER NOT NULL DEFAULT 0,
            enabled INTEGER NOT NULL DEFAULT 1,
            file_hash TEXT,
            git_commit_hash TEXT,
            message TEXT,
            channel TEXT NOT NULL DEFAULT 'production',
            fingerprint_hash TEXT,
            metadata TEXT,
            storage_uri TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_bundles_channel
            ON bundles(channel, platform, id DESC);
    """)
    conn.commit()


class SqliteProvider(RowStoreProvider):
    """Writable provider issuing parameterized SQL against the ``bundles`` table.

    The connection is shared by concurrent requests and guarded by a lock.
    """

    name = "sqlite"

    def __init__(
        self,
        config: BundleDeskConfig,
        *,
        connection: sqlite3.Connection | None = None,
    ) -> None:
        super().__init__(config)
        self.db_path = config.sqlite_path
        self._lock = threading.Lock()
        self._columns: frozenset[str] | None = None
        if connection is None:
            with self._backend_call("connect"):
                connection = sqlite3.connect(
                    self.db_path,
                    timeout=config.request_timeout_s,
                    check_same_thread=False,
                )
        self._conn = connection
        self._conn.row_factory = sqlite3.Row

    @contextmanager
    def _backend_call(self, operation: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as e:
            raise ConnectivityError(operation, f"{type(e).__name__}: {e}") from e

    def _table_columns(self) -> frozenset[str]:
        if self._columns is None:
            rows = self._conn.execute("PRAGMA table_info(bundles)").fetchall()
            if not rows:
                raise sqlite3.OperationalError("no such table: bundles")
            self._columns = frozenset(str(row[1]) for row in rows)
        return self._columns

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def provider_info(self) -> dict[str, Any]:
        info = super().provider_info()
        info["db_path"] = self.db_path
        if self.db_path != ":memory:" and os.path.exists(self.db_path):
            info["file_size_bytes"] = os.path.getsize(self.db_path)
        return info

    # --- Row hooks ---

    def scan_rows(self, limit: int | None) -> list[dict[str, Any]]:
        sql = "SELECT * FROM bundles ORDER BY id DESC"
        params: list[Any] = []
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        with self._lock, self._backend_call("scan_rows"):
            return [dict(row) for row in self._conn.execute(sql, params).fetchall()]

    def fetch_row(self, bundle_id: str) -> dict[str, Any] | None:
        with self._lock, self._backend_call("fetch_row"):
            row = self._conn.execute("SELECT * FROM bundles WHERE id = ?", (bundle_id,)).fetchone()
        return dict(row) if row is not None else None

    def insert_row(self, row: dict[str, Any]) -> None:
        with self._lock, self._backend_call("insert_row"):
            known = self._table_columns()
            columns = [c for c in row if c in known]
            placeholders = ", ".join("?" for _ in columns)
            self._conn.execute(
                f"INSERT INTO bundles ({', '.join(columns)}) VALUES ({placeholders})",
                [_sql_value(row[c]) for c in columns],
            )
            self._conn.commit()

    def update_row(self, bundle_id: str, changes: dict[str, Any]) -> bool:
        with self._lock, self._backend_call("update_row"):
            known = self._table_columns()
            unknown = set(changes) - known
            if unknown:
                raise sqlite3.OperationalError(f"unknown bundle columns: {sorted(unknown)}")
            assignments = ", ".join(f"{c} = ?" for c in changes)
            cursor = self._conn.execute(
                f"UPDATE bundles SET {assignments} WHERE id = ?",
                [*changes.values(), bundle_id],
            )
            self._conn.commit()
            return cursor.rowcount > 0

    def delete_row(self, bundle_id: str) -> bool:
        with self._lock, self._backend_call("delete_row"):
            cursor = self._conn.execute("DELETE FROM bundles WHERE id = ?", (bundle_id,))
            self._conn.commit()
            return cursor.rowcount > 0

    def toggle_enabled(self, bundle_id: str) -> bool | None:
        with self._lock, self._backend_call("toggle_enabled"):
            row = self._conn.execute(
                "SELECT enabled FROM bundles WHERE id = ?", (bundle_id,)
            ).fetchone()
            if row is None:
                return None
            enabled = not as_bool(row["enabled"])
            self._conn.execute(
                "UPDATE bundles SET enabled = ? WHERE id = ?", (enabled, bundle_id)
            )
            self._conn.commit()
        return enabled
