"""Reassemble bundle records from JSON manifests scattered across an S3 bucket.

The bucket has no query engine, so records are discovered by convention. An
ordered list of strategies is evaluated short-circuit; each strategy either
returns a definitive ``ManifestScan`` or ``None`` when it does not apply:

1. a consolidated manifest at the prefix root (``bundles.json`` and friends),
2. per-path manifests at ``{channel}/{platform}/{version}/update.json``.

A malformed or unreadable manifest only degrades its own records.
"""

from __future__ import annotations

import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol
from urllib.parse import urlparse

from botocore.exceptions import BotoCoreError, ClientError

from bundledesk.aws import backend_call, is_not_found
from bundledesk.errors import ConnectivityError, MalformedRecordError
from bundledesk.mapping import bundle_from_record, created_at_sort_key
from bundledesk.types import Bundle

logger = logging.getLogger(__name__)

CONSOLIDATED_MANIFEST_NAMES = ("bundles.json", "index.json", "manifest.json")
PATH_MANIFEST_PATTERN = re.compile(
    r"^(?P<channel>[^/]+)/(?P<platform>[^/]+)/(?P<version>[^/]+)/(?:update|manifest)\.json$"
)
_WRAPPER_KEYS = ("bundles", "items", "data")
_APP_VERSION_KEYS = ("app_version", "appVersion")


@dataclass
class ManifestObject:
    key: str
    rel_key: str
    last_modified: datetime | None = None
    size: int | None = None


@dataclass
class ManifestScan:
    """Outcome of one reconstruction pass."""

    strategy: str | None
    bundles: list[Bundle] = field(default_factory=list)
    source_keys: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    truncated: bool = False


class ManifestStrategy(Protocol):
    name: str

    def scan(
        self, reconstructor: ManifestReconstructor, objects: list[ManifestObject]
    ) -> ManifestScan | None: ...


def _unwrap(document: Any) -> list[Any] | None:
    """Return the record array of a manifest document, or None if there is none."""
    if isinstance(document, list):
        return document
    if isinstance(document, dict):
        for key in _WRAPPER_KEYS:
            value = document.get(key)
            if isinstance(value, list):
                return value
    return None


def _with_path_defaults(record: Any, channel: str, platform: str, version: str) -> Any:
    if not isinstance(record, dict):
        return record
    merged = dict(record)
    if not merged.get("channel"):
        merged["channel"] = channel
    if not merged.get("platform"):
        merged["platform"] = platform
    metadata = merged.get("metadata")
    if isinstance(metadata, dict):
        if not any(metadata.get(k) for k in _APP_VERSION_KEYS):
            merged["metadata"] = {**metadata, "app_version": version}
    elif metadata is None:
        merged["metadata"] = {"app_version": version}
    return merged


class ConsolidatedManifestStrategy:
    """Use a single index file at the prefix root as the authoritative source."""

    name = "consolidated"

    def __init__(self, names: tuple[str, ...] = CONSOLIDATED_MANIFEST_NAMES) -> None:
        self.names = names

    def scan(
        self, reconstructor: ManifestReconstructor, objects: list[ManifestObject]
    ) -> ManifestScan | None:
        by_rel_key = {obj.rel_key: obj for obj in objects}
        for name in self.names:
            obj = by_rel_key.get(name)
            if obj is None:
                continue
            try:
                records = _unwrap(reconstructor.fetch_json(obj.key))
                if records is None:
                    raise MalformedRecordError(obj.key, "expected an array of bundles")
            except (MalformedRecordError, ConnectivityError) as e:
                logger.warning("Ignoring consolidated manifest %s: %s", obj.key, e)
                continue
            result = ManifestScan(strategy=self.name, source_keys=[obj.key])
            result.bundles = reconstructor.map_records(records, obj, result.skipped)
            return result
        return None


class PathManifestStrategy:
    """Aggregate per-path manifests following ``{channel}/{platform}/{version}/update.json``."""

    name = "per-path"

    def scan(
        self, reconstructor: ManifestReconstructor, objects: list[ManifestObject]
    ) -> ManifestScan | None:
        matches = [
            (obj, m) for obj in objects if (m := PATH_MANIFEST_PATTERN.match(obj.rel_key))
        ]
        if not matches:
            return None

        cap = reconstructor.max_manifests
        if len(matches) > cap:
            logger.debug("Processing %d of %d per-path manifests.", cap, len(matches))
            matches.sort(
                key=lambda pair: (pair[0].last_modified is not None, pair[0].last_modified),
                reverse=True,
            )
            matches = matches[:cap]

        result = ManifestScan(strategy=self.name)
        workers = max(1, min(reconstructor.concurrency, len(matches)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="manifest-fetch") as pool:
            futures = {
                pool.submit(self._load, reconstructor, obj, match, result.skipped): obj
                for obj, match in matches
            }
            for future in as_completed(futures):
                obj = futures[future]
                try:
                    bundles = future.result()
                except (MalformedRecordError, ConnectivityError) as e:
                    logger.warning("Skipping manifest %s: %s", obj.key, e)
                    result.skipped.append(obj.key)
                    continue
                result.source_keys.append(obj.key)
                result.bundles.extend(bundles)
        return result

    def _load(
        self,
        reconstructor: ManifestReconstructor,
        obj: ManifestObject,
        match: re.Match[str],
        skipped: list[str],
    ) -> list[Bundle]:
        document = reconstructor.fetch_json(obj.key)
        records = _unwrap(document)
        if records is None:
            if not isinstance(document, dict):
                raise MalformedRecordError(obj.key, "expected a bundle object or array")
            records = [document]
        channel, platform, version = match.group("channel", "platform", "version")
        records = [_with_path_defaults(r, channel, platform, version) for r in records]
        return reconstructor.map_records(records, obj, skipped)


class PayloadSizeResolver:
    """Best-effort payload size lookup via HEAD requests."""

    def __init__(
        self,
        client: Any,
        *,
        bucket: str,
        prefix: str = "",
        key_template: str = "{id}/bundle.zip",
        concurrency: int = 8,
    ) -> None:
        self._s3 = client
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.key_template = key_template
        self.concurrency = concurrency

    def payload_key(self, bundle: Bundle) -> str:
        if bundle.storage_location:
            parsed = urlparse(bundle.storage_location)
            if parsed.scheme == "s3" and parsed.netloc == self.bucket and parsed.path.strip("/"):
                return parsed.path.lstrip("/")
        rel_key = self.key_template.format(id=bundle.id)
        return f"{self.prefix}/{rel_key}" if self.prefix else rel_key

    def lookup(self, bundle: Bundle) -> int | None:
        """Return the payload's byte size, or None when it is not (yet) published."""
        key = self.payload_key(bundle)
        try:
            resp = self._s3.head_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            if not is_not_found(e):
                logger.debug("Size lookup for %s failed: %s", key, e)
            return None
        length = resp.get("ContentLength")
        return int(length) if isinstance(length, int) else None

    def resolve(self, bundles: list[Bundle]) -> list[Bundle]:
        if not bundles:
            return bundles
        workers = max(1, min(self.concurrency, len(bundles)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="payload-size") as pool:
            sizes = list(pool.map(self.lookup, bundles))
        return [
            b.model_copy(update={"size": size}) if size is not None else b
            for b, size in zip(bundles, sizes)
        ]


class ManifestReconstructor:
    """Discover, fetch and reassemble bundle records from an S3 bucket."""

    def __init__(
        self,
        client: Any,
        *,
        bucket: str,
        prefix: str = "",
        scan_limit: int = 1000,
        max_manifests: int = 100,
        concurrency: int = 8,
        strategies: list[ManifestStrategy] | None = None,
        size_resolver: PayloadSizeResolver | None = None,
    ) -> None:
        self._s3 = client
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.scan_limit = scan_limit
        self.max_manifests = max_manifests
        self.concurrency = concurrency
        self.strategies: list[ManifestStrategy] = strategies or [
            ConsolidatedManifestStrategy(),
            PathManifestStrategy(),
        ]
        self.size_resolver = size_resolver

    def _rel_key(self, key: str) -> str:
        if self.prefix and key.startswith(f"{self.prefix}/"):
            return key[len(self.prefix) + 1 :]
        return key

    def list_objects(self) -> tuple[list[ManifestObject], bool]:
        """List one bounded page of objects; truncation is reported, not followed."""
        kwargs: dict[str, Any] = {"Bucket": self.bucket, "MaxKeys": self.scan_limit}
        if self.prefix:
            kwargs["Prefix"] = f"{self.prefix}/"
        with backend_call("list_objects"):
            resp = self._s3.list_objects_v2(**kwargs)
        objects = [
            ManifestObject(
                key=str(item["Key"]),
                rel_key=self._rel_key(str(item["Key"])),
                last_modified=item.get("LastModified"),
                size=item.get("Size"),
            )
            for item in resp.get("Contents", [])
            if item.get("Key")
        ]
        truncated = bool(resp.get("IsTruncated"))
        if truncated:
            logger.info(
                "Object listing of s3://%s/%s truncated at %d keys.",
                self.bucket,
                self.prefix,
                self.scan_limit,
            )
        return objects, truncated

    def fetch_json(self, key: str) -> Any:
        """Fetch and parse one JSON object.

        Missing or unparsable objects raise MalformedRecordError; other backend
        failures raise ConnectivityError.
        """
        with backend_call("get_object"):
            try:
                resp = self._s3.get_object(Bucket=self.bucket, Key=key)
                body = resp["Body"].read()
            except ClientError as e:
                if is_not_found(e):
                    raise MalformedRecordError(key, "manifest disappeared during scan") from e
                raise
        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedRecordError(key, f"invalid JSON: {e}") from e

    def map_records(
        self, records: list[Any], obj: ManifestObject, skipped: list[str]
    ) -> list[Bundle]:
        bundles: list[Bundle] = []
        for index, record in enumerate(records):
            try:
                bundles.append(
                    bundle_from_record(
                        record, last_modified=obj.last_modified, source_key=obj.key
                    )
                )
            except MalformedRecordError as e:
                logger.warning("Skipping record %d of %s: %s", index, obj.key, e.detail)
                skipped.append(f"{obj.key}#{index}")
        return bundles

    def scan(self, *, resolve_sizes: bool = True) -> ManifestScan:
        objects, truncated = self.list_objects()
        result: ManifestScan | None = None
        for strategy in self.strategies:
            result = strategy.scan(self, objects)
            if result is not None:
                break
        if result is None:
            logger.info("No manifests found in s3://%s/%s.", self.bucket, self.prefix)
            result = ManifestScan(strategy=None)
        result.truncated = truncated
        if resolve_sizes and self.size_resolver is not None:
            result.bundles = self.size_resolver.resolve(result.bundles)
        result.bundles.sort(key=created_at_sort_key, reverse=True)
        return result
