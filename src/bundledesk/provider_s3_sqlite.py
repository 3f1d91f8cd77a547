"""Relational metadata with payload sizes looked up in S3."""

from __future__ import annotations

import sqlite3
from typing import Any

from bundledesk.aws import make_client
from bundledesk.config import BundleDeskConfig
from bundledesk.errors import ConfigurationError
from bundledesk.manifest import PayloadSizeResolver
from bundledesk.provider_sqlite import SqliteProvider
from bundledesk.types import Bundle


class S3SqliteProvider(SqliteProvider):
    """Writable sqlite provider whose listings carry payload sizes from the bucket."""

    name = "s3-sqlite"

    def __init__(
        self,
        config: BundleDeskConfig,
        *,
        connection: sqlite3.Connection | None = None,
        client: Any | None = None,
    ) -> None:
        if not config.s3_bucket:
            raise ConfigurationError("The s3-sqlite provider requires BUNDLEDESK_S3_BUCKET")
        super().__init__(config, connection=connection)
        if client is None:
            client = make_client(
                "s3",
                region=config.aws_region,
                endpoint_url=config.s3_endpoint_url,
                timeout_s=config.request_timeout_s,
            )
        self._s3 = client
        self.sizes = PayloadSizeResolver(
            client,
            bucket=config.s3_bucket,
            prefix=config.s3_prefix,
            key_template=config.s3_payload_key_template,
            concurrency=config.s3_fetch_concurrency,
        )

    def provider_info(self) -> dict[str, Any]:
        info = super().provider_info()
        info["bucket"] = self.sizes.bucket
        return info

    def _with_sizes(self, bundles: list[Bundle]) -> list[Bundle]:
        return self.sizes.resolve(bundles)
