"""Canonical record shapes shared by every provider."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictBool, field_validator
from pydantic.alias_generators import to_camel

NEVER = "never"
SIZE_UNAVAILABLE = "N/A"
DEFAULT_CHANNEL = "production"
UNKNOWN_VERSION = "unknown"
PLATFORMS = ("ios", "android")
MAX_CHANNEL_LENGTH = 64

Platform = Literal["ios", "android"]
Timestamp = datetime | Literal["never"]


def normalize_channel(value: Any) -> str:
    """Return a stripped channel name or raise ValueError."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError("channel must be a non-empty string")
    channel = value.strip()
    if "/" in channel:
        raise ValueError(f"channel may not contain '/': {channel!r}")
    if len(channel) > MAX_CHANNEL_LENGTH:
        raise ValueError(f"channel longer than {MAX_CHANNEL_LENGTH} characters")
    return channel


class _CanonicalModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_json_dict(self) -> dict[str, Any]:
        """Dump with camelCase keys; absent optional fields are omitted, not null."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Bundle(_CanonicalModel):
    """A channel-scoped unit of deployable update content plus its metadata."""

    id: str
    platform: Platform
    channel: str = DEFAULT_CHANNEL
    target_app_version: str | None = None
    enabled: bool = False
    force_update: bool = False
    message: str | None = None
    fingerprint_hash: str | None = None
    commit_hash: str | None = None
    file_hash: str | None = None
    storage_location: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: Timestamp = NEVER
    size: int | Literal["N/A"] = SIZE_UNAVAILABLE
    source_key: str | None = None


class Deployment(_CanonicalModel):
    """Read-only history projection of a Bundle."""

    id: str
    version: str
    platform: Platform
    channel: str
    status: Literal["success", "failed"]
    deployed_at: Timestamp
    deployed_by: str
    bundle_size: str
    downloads: int = 0


class Stats(_CanonicalModel):
    total: int
    enabled_count: int
    enabled_ratio_percent: int
    most_recent_created_at: Timestamp


class BundlePatch(BaseModel):
    """Partial update of the mutable bundle fields."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    message: str | None = None
    enabled: StrictBool | None = None
    force_update: StrictBool | None = None

    def is_empty(self) -> bool:
        return self.message is None and self.enabled is None and self.force_update is None


class PromoteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    bundle_id: str = Field(
        min_length=1, validation_alias=AliasChoices("bundleId", "id", "bundle_id")
    )
    target_channel: str = Field(validation_alias=AliasChoices("targetChannel", "target_channel"))
    move: StrictBool = False

    @field_validator("target_channel", mode="before")
    @classmethod
    def _check_channel(cls, value: Any) -> str:
        return normalize_channel(value)
