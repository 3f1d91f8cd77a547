"""Tests for stats aggregation."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from bundledesk.mapping import bundle_from_record
from bundledesk.stats import aggregate, enabled_ratio_percent, stats_from_counts
from bundledesk.types import NEVER


def test_empty_set() -> None:
    stats = aggregate([])
    assert stats.total == 0
    assert stats.enabled_count == 0
    assert stats.enabled_ratio_percent == 0
    assert stats.most_recent_created_at == NEVER


@pytest.mark.parametrize(
    ("enabled", "total", "expected"),
    [(4, 6, 67), (1, 8, 13), (1, 3, 33), (0, 5, 0), (5, 5, 100), (3, 0, 0)],
)
def test_ratio_rounds_half_up(enabled, total, expected) -> None:
    assert enabled_ratio_percent(enabled, total) == expected


def test_aggregate_counts_and_most_recent() -> None:
    bundles = [
        bundle_from_record({"id": "0190e209-a000-7a3c-8d21-5b6f0c9e1a01", "platform": "ios", "enabled": True}),
        bundle_from_record({"id": "0190bdfd-1c00-7c11-8a3b-1d2e3f4a5b03", "platform": "ios"}),
        bundle_from_record({"id": "legacy-bundle", "platform": "android", "enabled": True}),
    ]
    stats = aggregate(bundles)
    assert stats.total == 3
    assert stats.enabled_count == 2
    assert stats.enabled_ratio_percent == 67
    assert stats.most_recent_created_at == datetime(2024, 7, 24, tzinfo=timezone.utc)
    assert 0 <= stats.enabled_count <= stats.total


def test_stats_json_shape() -> None:
    data = stats_from_counts(2, 1).to_json_dict()
    assert data == {
        "total": 2,
        "enabledCount": 1,
        "enabledRatioPercent": 50,
        "mostRecentCreatedAt": "never",
    }
