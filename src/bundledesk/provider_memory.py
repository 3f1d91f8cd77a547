"""In-memory provider seeded with the fixture data set."""

from __future__ import annotations

import copy
import threading
from typing import Any, Iterable

from bundledesk.config import BundleDeskConfig
from bundledesk.mapping import NATIVE_COLUMNS, as_bool
from bundledesk.provider import RowStoreProvider
from bundledesk.types import Bundle

FIXTURE_ROWS: tuple[dict[str, Any], ...] = (
    {
        "id": "0190e209-a000-7a3c-8d21-5b6f0c9e1a01",
        "platform": "ios",
        "channel": "production",
        "enabled": True,
        "should_force_update": False,
        "message": "Production release v1.2.5",
        "fingerprint_hash": "abc123def456",
        "target_app_version": "1.2.5",
        "git_commit_hash": "a1b2c3d4e5f60718293a4b5c6d7e8f9012345678",
        "metadata": {"app_version": "1.2.5"},
    },
    {
        "id": "0190e209-a000-7b41-9e02-7c8d1f2a3b02",
        "platform": "android",
        "channel": "production",
        "enabled": True,
        "should_force_update": False,
        "message": "Production release v1.2.5",
        "fingerprint_hash": "xyz789uvw012",
        "target_app_version": "1.2.5",
        "git_commit_hash": "a1b2c3d4e5f60718293a4b5c6d7e8f9012345678",
        "metadata": {"app_version": "1.2.5"},
    },
    {
        "id": "0190bdfd-1c00-7c11-8a3b-1d2e3f4a5b03",
        "platform": "ios",
        "channel": "staging",
        "enabled": False,
        "should_force_update": False,
        "message": "Staging test",
        "fingerprint_hash": "def456ghi789",
        "target_app_version": "1.2.4",
        "git_commit_hash": "b2c3d4e5f60718293a4b5c6d7e8f901234567890",
        "metadata": {"app_version": "1.2.4"},
    },
    {
        "id": "0190bdfd-1c00-7d22-9b4c-2e3f4a5b6c04",
        "platform": "android",
        "channel": "staging",
        "enabled": False,
        "should_force_update": True,
        "message": "Critical fix",
        "fingerprint_hash": "ghi789jkl012",
        "target_app_version": "1.2.4",
        "git_commit_hash": "b2c3d4e5f60718293a4b5c6d7e8f901234567890",
        "metadata": {"app_version": "1.2.4"},
    },
    {
        "id": "019099f0-9800-7e33-ac5d-3f4a5b6c7d05",
        "platform": "ios",
        "channel": "production",
        "enabled": True,
        "should_force_update": False,
        "message": "Previous release",
        "fingerprint_hash": "jkl012mno345",
        "target_app_version": "1.2.3",
        "git_commit_hash": "c3d4e5f60718293a4b5c6d7e8f90123456789012",
        "metadata": {"app_version": "1.2.3"},
    },
    {
        "id": "019099f0-9800-7f44-bd6e-4a5b6c7d8e06",
        "platform": "android",
        "channel": "production",
        "enabled": True,
        "should_force_update": False,
        "message": "Previous release",
        "fingerprint_hash": "mno345pqr678",
        "target_app_version": "1.2.3",
        "git_commit_hash": "c3d4e5f60718293a4b5c6d7e8f90123456789012",
        "metadata": {"app_version": "1.2.3"},
    },
)

FIXTURE_SIZES: dict[str, int] = {
    "0190e209-a000-7a3c-8d21-5b6f0c9e1a01": 2411725,
    "0190e209-a000-7b41-9e02-7c8d1f2a3b02": 2202010,
    "0190bdfd-1c00-7c11-8a3b-1d2e3f4a5b03": 2306867,
    "0190bdfd-1c00-7d22-9b4c-2e3f4a5b6c04": 2097152,
    "019099f0-9800-7e33-ac5d-3f4a5b6c7d05": 2097152,
    "019099f0-9800-7f44-bd6e-4a5b6c7d8e06": 1992294,
}


class MemoryProvider(RowStoreProvider):
    """Writable provider over a process-local dict of native rows."""

    name = "memory"

    def __init__(
        self,
        config: BundleDeskConfig | None = None,
        *,
        rows: Iterable[dict[str, Any]] | None = None,
        sizes: dict[str, int] | None = None,
    ) -> None:
        super().__init__(config or BundleDeskConfig(provider="memory"))
        seed = FIXTURE_ROWS if rows is None else rows
        self._rows: dict[str, dict[str, Any]] = {str(r["id"]): copy.deepcopy(r) for r in seed}
        self._sizes = dict(FIXTURE_SIZES if sizes is None and rows is None else sizes or {})
        self._lock = threading.Lock()

    def scan_rows(self, limit: int | None) -> list[dict[str, Any]]:
        with self._lock:
            rows = sorted(self._rows.values(), key=lambda r: str(r["id"]), reverse=True)
            if limit is not None:
                rows = rows[:limit]
            return [copy.deepcopy(r) for r in rows]

    def fetch_row(self, bundle_id: str) -> dict[str, Any] | None:
        with self._lock:
            row = self._rows.get(bundle_id)
            return copy.deepcopy(row) if row is not None else None

    def insert_row(self, row: dict[str, Any]) -> None:
        with self._lock:
            self._rows[str(row["id"])] = copy.deepcopy(row)

    def update_row(self, bundle_id: str, changes: dict[str, Any]) -> bool:
        with self._lock:
            row = self._rows.get(bundle_id)
            if row is None:
                return False
            row.update(changes)
            return True

    def delete_row(self, bundle_id: str) -> bool:
        with self._lock:
            self._sizes.pop(bundle_id, None)
            return self._rows.pop(bundle_id, None) is not None

    def toggle_enabled(self, bundle_id: str) -> bool | None:
        column = NATIVE_COLUMNS["enabled"]
        with self._lock:
            row = self._rows.get(bundle_id)
            if row is None:
                return None
            row[column] = not as_bool(row.get(column))
            return row[column]

    def _with_sizes(self, bundles: list[Bundle]) -> list[Bundle]:
        return [
            b.model_copy(update={"size": self._sizes[b.id]}) if b.id in self._sizes else b
            for b in bundles
        ]

    def provider_info(self) -> dict[str, Any]:
        info = super().provider_info()
        with self._lock:
            info["row_count"] = len(self._rows)
        return info
