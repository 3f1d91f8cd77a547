"""Tests for mapping native records to canonical bundles."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from bundledesk.errors import MalformedRecordError
from bundledesk.mapping import (
    bundle_from_record,
    created_at_sort_key,
    deployment_from_bundle,
    format_age,
    format_bytes,
    patch_to_native,
    version_label,
)
from bundledesk.types import NEVER, BundlePatch

FIXTURE_ID = "0190e209-a000-7a3c-8d21-5b6f0c9e1a01"


def _record(**overrides):
    record = {"id": FIXTURE_ID, "platform": "ios"}
    record.update(overrides)
    return record


class TestBundleFromRecord:
    def test_native_row(self) -> None:
        bundle = bundle_from_record(
            _record(
                channel="staging",
                enabled=1,
                should_force_update=0,
                git_commit_hash="a1b2c3d4e5f6",
                fingerprint_hash="abc",
                storage_uri="s3://b/k.zip",
                metadata='{"app_version": "1.2.5"}',
            )
        )
        assert bundle.channel == "staging"
        assert bundle.enabled is True
        assert bundle.force_update is False
        assert bundle.commit_hash == "a1b2c3d4e5f6"
        assert bundle.storage_location == "s3://b/k.zip"
        assert bundle.metadata == {"app_version": "1.2.5"}
        assert bundle.size == "N/A"

    def test_camel_case_manifest(self) -> None:
        bundle = bundle_from_record(
            _record(shouldForceUpdate=True, gitCommitHash="ffff", targetAppVersion="2.0")
        )
        assert bundle.force_update is True
        assert bundle.commit_hash == "ffff"
        assert bundle.target_app_version == "2.0"

    def test_defaults(self) -> None:
        bundle = bundle_from_record(_record())
        assert bundle.channel == "production"
        assert bundle.enabled is False
        assert bundle.force_update is False
        assert bundle.metadata == {}

    def test_decimal_flags(self) -> None:
        bundle = bundle_from_record(_record(enabled=Decimal(1), should_force_update=Decimal(0)))
        assert bundle.enabled is True
        assert bundle.force_update is False

    def test_missing_id_is_malformed(self) -> None:
        with pytest.raises(MalformedRecordError):
            bundle_from_record({"platform": "ios"})

    def test_unknown_platform_is_malformed(self) -> None:
        with pytest.raises(MalformedRecordError, match="unsupported platform"):
            bundle_from_record(_record(platform="web"))

    def test_non_object_is_malformed(self) -> None:
        with pytest.raises(MalformedRecordError):
            bundle_from_record(["not", "a", "record"])  # type: ignore[arg-type]

    def test_absent_optionals_omitted_from_json(self) -> None:
        data = bundle_from_record(_record()).to_json_dict()
        assert "message" not in data
        assert "sourceKey" not in data
        assert data["forceUpdate"] is False
        assert data["size"] == "N/A"


class TestCreatedAt:
    def test_explicit_timestamp_wins(self) -> None:
        bundle = bundle_from_record(_record(created_at="2023-01-02T03:04:05Z"))
        assert bundle.created_at == datetime(2023, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_epoch_millis(self) -> None:
        bundle = bundle_from_record(_record(createdAt=1_700_000_000_000))
        assert bundle.created_at == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)

    def test_decoded_from_id(self) -> None:
        assert bundle_from_record(_record()).created_at == datetime(2024, 7, 24, tzinfo=timezone.utc)

    def test_last_modified_fallback(self) -> None:
        modified = datetime(2024, 1, 1, tzinfo=timezone.utc)
        bundle = bundle_from_record(_record(id="legacy-bundle"), last_modified=modified)
        assert bundle.created_at == modified

    def test_uuid4_id_uses_last_modified(self) -> None:
        modified = datetime(2024, 1, 1, tzinfo=timezone.utc)
        bundle = bundle_from_record(
            _record(id="ffffff00-0000-4000-8000-000000000000"), last_modified=modified
        )
        assert bundle.created_at == modified

    def test_never(self) -> None:
        assert bundle_from_record(_record(id="legacy-bundle")).created_at == NEVER

    def test_sort_key_places_never_last(self) -> None:
        dated = bundle_from_record(_record())
        undated = bundle_from_record(_record(id="legacy-bundle"))
        ordered = sorted([undated, dated], key=created_at_sort_key, reverse=True)
        assert [b.id for b in ordered] == [FIXTURE_ID, "legacy-bundle"]


class TestVersionLabel:
    def test_app_version_first(self) -> None:
        bundle = bundle_from_record(
            _record(metadata={"app_version": "1.2.5"}, git_commit_hash="a1b2c3d4e5")
        )
        assert version_label(bundle) == "1.2.5"

    def test_commit_hash_prefix(self) -> None:
        bundle = bundle_from_record(_record(git_commit_hash="a1b2c3d4e5f6"))
        assert version_label(bundle) == "a1b2c3d"

    def test_unknown(self) -> None:
        assert version_label(bundle_from_record(_record())) == "unknown"


class TestDeployment:
    def test_projection(self) -> None:
        bundle = bundle_from_record(
            _record(enabled=True, message="Hotfix", metadata={"app_version": "1.0"}),
            size=2411725,
        )
        deployment = deployment_from_bundle(bundle)
        assert deployment.version == "1.0"
        assert deployment.status == "success"
        assert deployment.deployed_by == "Hotfix"
        assert deployment.bundle_size == "2.3 MB"
        assert deployment.downloads == 0
        assert deployment.deployed_at == bundle.created_at

    def test_disabled_without_message(self) -> None:
        deployment = deployment_from_bundle(bundle_from_record(_record(enabled=False)))
        assert deployment.status == "failed"
        assert deployment.deployed_by == "System"
        assert deployment.bundle_size == "N/A"


@pytest.mark.parametrize(
    ("size", "expected"),
    [(0, "0 B"), (512, "512.0 B"), (1536, "1.5 KB"), (2097152, "2.0 MB"), ("N/A", "N/A")],
)
def test_format_bytes(size, expected) -> None:
    assert format_bytes(size) == expected


def test_format_age() -> None:
    now = datetime(2024, 7, 27, tzinfo=timezone.utc)
    assert format_age(now - timedelta(days=3), now) == "3 days ago"
    assert format_age(now - timedelta(days=1, hours=2), now) == "1 day ago"
    assert format_age(now - timedelta(hours=5), now) == "5 hours ago"
    assert format_age(now - timedelta(seconds=20), now) == "Just now"
    assert format_age(NEVER, now) == "Never"


def test_patch_to_native_uses_column_names() -> None:
    patch = BundlePatch.model_validate({"forceUpdate": True, "message": "m"})
    assert patch_to_native(patch) == {"should_force_update": True, "message": "m"}
    assert patch_to_native(BundlePatch()) == {}
