"""Configuration for the bundledesk provider layer."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

PROVIDER_NAMES = ("memory", "sqlite", "dynamodb", "s3", "s3-sqlite")


@dataclass
class BundleDeskConfig:
    """Process-wide configuration, read once at startup."""

    provider: str = "memory"
    list_limit: int = 20
    deployments_limit: int = 50
    read_fallback: bool = True
    request_timeout_s: float = 10.0
    sqlite_path: str = "bundles.db"
    aws_region: str | None = None
    dynamodb_table: str = "hot-updater-bundles"
    dynamodb_endpoint_url: str | None = None
    dynamodb_scan_limit: int = 1000
    s3_bucket: str | None = None
    s3_prefix: str = ""
    s3_endpoint_url: str | None = None
    s3_payload_key_template: str = "{id}/bundle.zip"
    s3_scan_limit: int = 1000
    s3_max_manifests: int = 100
    s3_fetch_concurrency: int = 8


def _env_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def config_from_env(environ: Mapping[str, str] | None = None) -> BundleDeskConfig:
    """Build config from ``BUNDLEDESK_*`` environment variables."""
    env = os.environ if environ is None else environ
    cfg = BundleDeskConfig()

    cfg.provider = env.get("BUNDLEDESK_PROVIDER", cfg.provider).strip().lower()
    if "BUNDLEDESK_LIST_LIMIT" in env:
        cfg.list_limit = int(env["BUNDLEDESK_LIST_LIMIT"])
    if "BUNDLEDESK_READ_FALLBACK" in env:
        cfg.read_fallback = _env_bool(env["BUNDLEDESK_READ_FALLBACK"])
    if "BUNDLEDESK_REQUEST_TIMEOUT_S" in env:
        cfg.request_timeout_s = float(env["BUNDLEDESK_REQUEST_TIMEOUT_S"])

    cfg.sqlite_path = env.get("BUNDLEDESK_SQLITE_PATH", cfg.sqlite_path)
    cfg.aws_region = env.get("BUNDLEDESK_AWS_REGION") or env.get("AWS_REGION")

    cfg.dynamodb_table = env.get("BUNDLEDESK_DYNAMODB_TABLE", cfg.dynamodb_table)
    cfg.dynamodb_endpoint_url = env.get("BUNDLEDESK_DYNAMODB_ENDPOINT_URL")

    cfg.s3_bucket = env.get("BUNDLEDESK_S3_BUCKET")
    cfg.s3_prefix = env.get("BUNDLEDESK_S3_PREFIX", cfg.s3_prefix).strip("/")
    cfg.s3_endpoint_url = env.get("BUNDLEDESK_S3_ENDPOINT_URL")
    if "BUNDLEDESK_S3_MAX_MANIFESTS" in env:
        cfg.s3_max_manifests = int(env["BUNDLEDESK_S3_MAX_MANIFESTS"])
    return cfg
