"""Provider abstraction: one bundle capability set over every metadata backend."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Protocol, runtime_checkable

import pydantic

from bundledesk import promotion
from bundledesk.config import PROVIDER_NAMES, BundleDeskConfig
from bundledesk.errors import (
    ConfigurationError,
    MalformedRecordError,
    NotFoundError,
    UnsupportedOperationError,
    ValidationError,
)
from bundledesk.mapping import (
    bundle_from_record,
    created_at_sort_key,
    deployment_from_bundle,
    patch_to_native,
)
from bundledesk.stats import aggregate
from bundledesk.types import Bundle, BundlePatch, Deployment, Stats, normalize_channel

logger = logging.getLogger(__name__)

PUBLISHER_HINT = "Publish, promote or disable bundles with the hot-updater CLI instead."


@runtime_checkable
class BundleProvider(Protocol):
    """Backend-agnostic capability set used by the HTTP boundary and the CLI."""

    name: str
    read_only: bool

    def list_bundles(self, limit: int | None = None) -> list[Bundle]: ...

    def list_deployments(self, limit: int | None = None) -> list[Deployment]: ...

    def get_stats(self) -> Stats: ...

    def update_bundle(self, bundle_id: str, fields: BundlePatch | Mapping[str, Any]) -> None: ...

    def delete_bundle(self, bundle_id: str) -> None: ...

    def promote_bundle(self, bundle_id: str, target_channel: str, move: bool = False) -> str: ...

    def rollback(self, bundle_id: str) -> bool: ...

    def provider_info(self) -> dict[str, Any]: ...

    def close(self) -> None: ...


def _check_id(bundle_id: Any) -> str:
    if not isinstance(bundle_id, str) or not bundle_id.strip():
        raise ValidationError("Bundle ID is required")
    return bundle_id.strip()


def _check_limit(limit: Any, default: int) -> int:
    if limit is None:
        return default
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError(f"limit must be a positive integer, got {limit!r}")
    return limit


def _check_patch(fields: BundlePatch | Mapping[str, Any]) -> BundlePatch:
    if isinstance(fields, BundlePatch):
        return fields
    if not isinstance(fields, Mapping):
        raise ValidationError("Update fields must be an object")
    try:
        return BundlePatch.model_validate(dict(fields))
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid bundle update: {e.errors(include_url=False)}") from e


def _check_channel(target_channel: Any) -> str:
    try:
        return normalize_channel(target_channel)
    except ValueError as e:
        raise ValidationError(f"Invalid target channel: {e}") from e


class RowStoreProvider:
    """Capability set implemented over a backend's native rows.

    Subclasses implement the row hooks (``scan_rows``, ``fetch_row``,
    ``insert_row``, ``update_row``, ``delete_row``, ``toggle_enabled``) against their storage and
    re-classify backend errors before they leave the hook.
    """

    name = "abstract"
    read_only = False

    def __init__(self, config: BundleDeskConfig) -> None:
        self._config = config

    # --- Row hooks ---

    def scan_rows(self, limit: int | None) -> list[dict[str, Any]]:
        raise NotImplementedError

    def fetch_row(self, bundle_id: str) -> dict[str, Any] | None:
        raise NotImplementedError

    def insert_row(self, row: dict[str, Any]) -> None:
        raise NotImplementedError

    def update_row(self, bundle_id: str, changes: dict[str, Any]) -> bool:
        raise NotImplementedError

    def delete_row(self, bundle_id: str) -> bool:
        raise NotImplementedError

    def toggle_enabled(self, bundle_id: str) -> bool | None:
        """Flip ``enabled`` on one row in a single step; None when the row is absent."""
        raise NotImplementedError

    # --- Lifecycle ---

    def close(self) -> None:
        pass

    def provider_info(self) -> dict[str, Any]:
        return {"provider": self.name, "read_only": self.read_only}

    # --- Reads ---

    def _with_sizes(self, bundles: list[Bundle]) -> list[Bundle]:
        return bundles

    def _load_bundles(self, limit: int | None) -> list[Bundle]:
        bundles: list[Bundle] = []
        for row in self.scan_rows(limit):
            try:
                bundles.append(bundle_from_record(row))
            except MalformedRecordError as e:
                logger.warning("Skipping malformed %s row %r: %s", self.name, row.get("id"), e)
        return bundles

    def list_bundles(self, limit: int | None = None) -> list[Bundle]:
        count = _check_limit(limit, self._config.list_limit)
        bundles = self._load_bundles(count)
        bundles.sort(key=created_at_sort_key, reverse=True)
        return self._with_sizes(bundles[:count])

    def list_deployments(self, limit: int | None = None) -> list[Deployment]:
        count = _check_limit(limit, self._config.deployments_limit)
        return [deployment_from_bundle(b) for b in self.list_bundles(count)]

    def get_stats(self) -> Stats:
        return aggregate(self._load_bundles(None))

    # --- Mutations ---

    def _require_writable(self, operation: str) -> None:
        if self.read_only:
            raise UnsupportedOperationError(operation, self.name, PUBLISHER_HINT)

    def update_bundle(self, bundle_id: str, fields: BundlePatch | Mapping[str, Any]) -> None:
        bundle_id = _check_id(bundle_id)
        patch = _check_patch(fields)
        self._require_writable("update_bundle")
        changes = patch_to_native(patch)
        if not changes:
            if self.fetch_row(bundle_id) is None:
                raise NotFoundError(bundle_id)
            return
        if not self.update_row(bundle_id, changes):
            raise NotFoundError(bundle_id)
        logger.info("Updated bundle %s: %s", bundle_id, ", ".join(sorted(changes)))

    def delete_bundle(self, bundle_id: str) -> None:
        bundle_id = _check_id(bundle_id)
        self._require_writable("delete_bundle")
        if not self.delete_row(bundle_id):
            raise NotFoundError(bundle_id)
        logger.info("Deleted bundle %s.", bundle_id)

    def promote_bundle(self, bundle_id: str, target_channel: str, move: bool = False) -> str:
        bundle_id = _check_id(bundle_id)
        channel = _check_channel(target_channel)
        if not isinstance(move, bool):
            raise ValidationError("move must be a boolean")
        self._require_writable("promote_bundle")
        return promotion.promote(self, bundle_id, channel, move=move)

    def rollback(self, bundle_id: str) -> bool:
        """Toggle the bundle's enabled flag and return the new state.

        This flips the flag; it does not restore a previously active bundle.
        """
        bundle_id = _check_id(bundle_id)
        self._require_writable("rollback")
        enabled = self.toggle_enabled(bundle_id)
        if enabled is None:
            raise NotFoundError(bundle_id)
        logger.info("Rolled back bundle %s: enabled=%s", bundle_id, enabled)
        return enabled


def open_provider(config: BundleDeskConfig | None = None) -> BundleProvider:
    """Construct the provider named by ``config.provider``."""
    cfg = config or BundleDeskConfig()
    name = cfg.provider
    if name == "memory":
        from bundledesk.provider_memory import MemoryProvider

        return MemoryProvider(cfg)
    if name == "sqlite":
        from bundledesk.provider_sqlite import SqliteProvider

        return SqliteProvider(cfg)
    if name == "dynamodb":
        from bundledesk.provider_dynamodb import DynamoDBProvider

        return DynamoDBProvider(cfg)
    if name == "s3":
        from bundledesk.provider_s3 import S3ManifestProvider

        return S3ManifestProvider(cfg)
    if name == "s3-sqlite":
        from bundledesk.provider_s3_sqlite import S3SqliteProvider

        return S3SqliteProvider(cfg)
    raise ConfigurationError(
        f"Unsupported provider '{name}'; expected one of: {', '.join(PROVIDER_NAMES)}"
    )


__all__ = [
    "BundleProvider",
    "RowStoreProvider",
    "PUBLISHER_HINT",
    "open_provider",
]
