"""Canonical record mapper: backend-native rows, items and manifests to Bundle."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Mapping

from bundledesk.errors import MalformedRecordError
from bundledesk.ids import decode_timestamp
from bundledesk.types import (
    DEFAULT_CHANNEL,
    NEVER,
    PLATFORMS,
    SIZE_UNAVAILABLE,
    UNKNOWN_VERSION,
    Bundle,
    BundlePatch,
    Deployment,
    Timestamp,
)

# Canonical field -> accepted native spellings, in lookup order.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "platform": ("platform",),
    "channel": ("channel",),
    "target_app_version": ("target_app_version", "targetAppVersion"),
    "enabled": ("enabled",),
    "force_update": ("should_force_update", "shouldForceUpdate", "force_update", "forceUpdate"),
    "message": ("message",),
    "fingerprint_hash": ("fingerprint_hash", "fingerprintHash"),
    "commit_hash": ("git_commit_hash", "gitCommitHash", "commit_hash", "commitHash"),
    "file_hash": ("file_hash", "fileHash"),
    "storage_location": ("storage_uri", "storageUri", "storage_location", "storageLocation"),
    "created_at": ("created_at", "createdAt"),
    "metadata": ("metadata",),
}

# Canonical mutable field -> native column written by relational/document backends.
NATIVE_COLUMNS: dict[str, str] = {
    "message": "message",
    "enabled": "enabled",
    "force_update": "should_force_update",
    "channel": "channel",
}

_APP_VERSION_KEYS = ("app_version", "appVersion")


def _pick(record: Mapping[str, Any], canonical: str) -> Any:
    for key in FIELD_ALIASES[canonical]:
        value = record.get(key)
        if value is not None:
            return value
    return None


def as_bool(value: Any) -> bool:
    """Interpret sqlite integers, DynamoDB Decimals and JSON strings as booleans."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    return False


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def _metadata(value: Any) -> dict[str, Any]:
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, str) and value.strip():
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return {}
        return dict(parsed) if isinstance(parsed, dict) else {}
    return {}


def _explicit_timestamp(value: Any) -> datetime | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float, Decimal)):
        try:
            return datetime.fromtimestamp(float(value) / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=timezone.utc)
    return None


def resolve_created_at(
    record: Mapping[str, Any],
    bundle_id: str,
    last_modified: datetime | None = None,
) -> Timestamp:
    """Explicit backend timestamp, else the id's timestamp, else last-modified, else never."""
    explicit = _explicit_timestamp(_pick(record, "created_at"))
    if explicit is not None:
        return explicit
    decoded = decode_timestamp(bundle_id)
    if decoded is not None:
        return decoded
    if last_modified is not None:
        return _explicit_timestamp(last_modified) or NEVER
    return NEVER


def bundle_from_record(
    record: Mapping[str, Any],
    *,
    last_modified: datetime | None = None,
    size: int | None = None,
    source_key: str | None = None,
) -> Bundle:
    """Map one backend-native record to a canonical Bundle.

    Raises MalformedRecordError when the record has no usable id or an unknown
    platform; every other absent field resolves to its documented default.
    """
    source = source_key or "record"
    if not isinstance(record, Mapping):
        raise MalformedRecordError(source, f"expected an object, got {type(record).__name__}")

    raw_id = record.get("id")
    if raw_id is None or not str(raw_id).strip():
        raise MalformedRecordError(source, "missing bundle id")
    bundle_id = str(raw_id).strip()

    platform = str(_pick(record, "platform") or "").strip().lower()
    if platform not in PLATFORMS:
        raise MalformedRecordError(source, f"unsupported platform {platform or None!r}")

    return Bundle(
        id=bundle_id,
        platform=platform,  # type: ignore[arg-type]
        channel=_optional_str(_pick(record, "channel")) or DEFAULT_CHANNEL,
        target_app_version=_optional_str(_pick(record, "target_app_version")),
        enabled=as_bool(_pick(record, "enabled")),
        force_update=as_bool(_pick(record, "force_update")),
        message=_optional_str(_pick(record, "message")),
        fingerprint_hash=_optional_str(_pick(record, "fingerprint_hash")),
        commit_hash=_optional_str(_pick(record, "commit_hash")),
        file_hash=_optional_str(_pick(record, "file_hash")),
        storage_location=_optional_str(_pick(record, "storage_location")),
        metadata=_metadata(_pick(record, "metadata")),
        created_at=resolve_created_at(record, bundle_id, last_modified),
        size=size if size is not None else SIZE_UNAVAILABLE,
        source_key=source_key,
    )


def version_label(bundle: Bundle) -> str:
    for key in _APP_VERSION_KEYS:
        value = bundle.metadata.get(key)
        if value:
            return str(value)
    if bundle.commit_hash:
        return bundle.commit_hash[:7]
    return UNKNOWN_VERSION


def format_bytes(size: int | str | None) -> str:
    if not isinstance(size, int) or isinstance(size, bool):
        return SIZE_UNAVAILABLE
    if size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(units) - 1:
        value /= 1024
        unit += 1
    return f"{value:.1f} {units[unit]}"


def format_age(value: Timestamp, now: datetime | None = None) -> str:
    """Render a timestamp as a coarse relative age ("3 days ago")."""
    if not isinstance(value, datetime):
        return "Never"
    current = now or datetime.now(timezone.utc)
    seconds = int((current - value).total_seconds())
    minutes, hours, days = seconds // 60, seconds // 3600, seconds // 86400
    if days > 0:
        return f"{days} day{'s' if days > 1 else ''} ago"
    if hours > 0:
        return f"{hours} hour{'s' if hours > 1 else ''} ago"
    if minutes > 0:
        return f"{minutes} minute{'s' if minutes > 1 else ''} ago"
    return "Just now"


def deployment_from_bundle(bundle: Bundle) -> Deployment:
    return Deployment(
        id=bundle.id,
        version=version_label(bundle),
        platform=bundle.platform,
        channel=bundle.channel,
        status="success" if bundle.enabled else "failed",
        deployed_at=bundle.created_at,
        deployed_by=bundle.message or "System",
        bundle_size=format_bytes(bundle.size),
    )


def patch_to_native(patch: BundlePatch) -> dict[str, Any]:
    """Translate a BundlePatch into native column assignments."""
    changes: dict[str, Any] = {}
    if patch.message is not None:
        changes[NATIVE_COLUMNS["message"]] = patch.message
    if patch.enabled is not None:
        changes[NATIVE_COLUMNS["enabled"]] = patch.enabled
    if patch.force_update is not None:
        changes[NATIVE_COLUMNS["force_update"]] = patch.force_update
    return changes


def created_at_sort_key(bundle: Bundle) -> tuple[float, str]:
    created = bundle.created_at
    stamp = created.timestamp() if isinstance(created, datetime) else float("-inf")
    return stamp, bundle.id
