"""Channel promotion: move a bundle to another channel or copy it there."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from bundledesk.errors import NotFoundError, ValidationError
from bundledesk.ids import new_bundle_id
from bundledesk.mapping import FIELD_ALIASES, NATIVE_COLUMNS
from bundledesk.types import DEFAULT_CHANNEL

logger = logging.getLogger(__name__)

# Backend timestamps describe the source record, not the copy.
_NON_CONTENT_KEYS = frozenset(FIELD_ALIASES["created_at"])


class RowStore(Protocol):
    """Native-row operations a writable provider exposes to the promotion engine."""

    def fetch_row(self, bundle_id: str) -> dict[str, Any] | None: ...

    def insert_row(self, row: dict[str, Any]) -> None: ...

    def update_row(self, bundle_id: str, changes: dict[str, Any]) -> bool: ...


def build_channel_copy(
    row: dict[str, Any], target_channel: str, *, new_id: str | None = None
) -> dict[str, Any]:
    """Return a copy of a native row with a fresh id and the target channel."""
    copy = {k: v for k, v in row.items() if k not in _NON_CONTENT_KEYS}
    copy["id"] = new_id or new_bundle_id()
    copy[NATIVE_COLUMNS["channel"]] = target_channel
    return copy


def promote(store: RowStore, bundle_id: str, target_channel: str, *, move: bool) -> str:
    """Move or copy ``bundle_id`` into ``target_channel``; return the promoted record's id."""
    if move:
        if not store.update_row(bundle_id, {NATIVE_COLUMNS["channel"]: target_channel}):
            raise NotFoundError(bundle_id)
        logger.info("Moved bundle %s to channel '%s'.", bundle_id, target_channel)
        return bundle_id

    row = store.fetch_row(bundle_id)
    if row is None:
        raise NotFoundError(bundle_id)
    current = row.get(NATIVE_COLUMNS["channel"]) or DEFAULT_CHANNEL
    if current == target_channel:
        raise ValidationError(
            f"Bundle {bundle_id} is already in channel '{target_channel}'; "
            "copying to the same channel is not allowed"
        )
    copy = build_channel_copy(row, target_channel)
    store.insert_row(copy)
    logger.info(
        "Copied bundle %s from '%s' to '%s' as %s.", bundle_id, current, target_channel, copy["id"]
    )
    return str(copy["id"])
