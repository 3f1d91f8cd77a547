"""Time-sortable bundle identifiers (UUIDv7)."""

from __future__ import annotations

import os
import time
import uuid
from datetime import datetime, timezone
from typing import Any

_TIMESTAMP_HEX_DIGITS = 12  # 48 bits
_VERSION_DIGIT = 12


def decode_timestamp(bundle_id: Any) -> datetime | None:
    """Extract the millisecond timestamp embedded in the leading 48 bits of an id.

    Returns None when the value is not a UUIDv7 (version nibble 7); callers
    fall back to another signal.
    """
    if not isinstance(bundle_id, str):
        return None
    digits = bundle_id.replace("-", "").strip()
    if len(digits) <= _VERSION_DIGIT or digits[_VERSION_DIGIT] != "7":
        return None
    try:
        millis = int(digits[:_TIMESTAMP_HEX_DIGITS], 16)
    except ValueError:
        return None
    try:
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def new_bundle_id(now_ms: int | None = None) -> str:
    """Generate a UUIDv7 string whose leading bits carry the current time."""
    millis = int(time.time() * 1000) if now_ms is None else now_ms
    rand = int.from_bytes(os.urandom(10), "big")
    value = (millis & 0xFFFFFFFFFFFF) << 80
    value |= 0x7 << 76
    value |= ((rand >> 62) & 0xFFF) << 64
    value |= 0b10 << 62
    value |= rand & ((1 << 62) - 1)
    return str(uuid.UUID(int=value))
