"""Summary counters derived from the current bundle set."""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from bundledesk.types import NEVER, Bundle, Stats, Timestamp


def enabled_ratio_percent(enabled: int, total: int) -> int:
    if total <= 0:
        return 0
    ratio = Decimal(enabled) * 100 / Decimal(total)
    return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def stats_from_counts(total: int, enabled: int, most_recent: Timestamp = NEVER) -> Stats:
    return Stats(
        total=total,
        enabled_count=enabled,
        enabled_ratio_percent=enabled_ratio_percent(enabled, total),
        most_recent_created_at=most_recent,
    )


def aggregate(bundles: Iterable[Bundle]) -> Stats:
    """Compute Stats over an already-loaded bundle set."""
    total = 0
    enabled = 0
    most_recent: datetime | None = None
    for bundle in bundles:
        total += 1
        if bundle.enabled:
            enabled += 1
        created = bundle.created_at
        if isinstance(created, datetime) and (most_recent is None or created > most_recent):
            most_recent = created
    return stats_from_counts(total, enabled, most_recent or NEVER)
