"""Read-only provider reconstructing bundles from JSON manifests in S3."""

from __future__ import annotations

from typing import Any

from bundledesk.aws import make_client
from bundledesk.config import BundleDeskConfig
from bundledesk.errors import ConfigurationError
from bundledesk.manifest import ManifestReconstructor, PayloadSizeResolver
from bundledesk.provider import RowStoreProvider
from bundledesk.types import Bundle


class S3ManifestProvider(RowStoreProvider):
    """Bundles discovered by convention in an S3 bucket.

    The bucket is written by the publishing toolchain; every mutation raises
    ``UnsupportedOperationError`` before any backend call.
    """

    name = "s3"
    read_only = True

    def __init__(self, config: BundleDeskConfig, *, client: Any | None = None) -> None:
        super().__init__(config)
        if not config.s3_bucket:
            raise ConfigurationError("The s3 provider requires BUNDLEDESK_S3_BUCKET")
        if client is None:
            client = make_client(
                "s3",
                region=config.aws_region,
                endpoint_url=config.s3_endpoint_url,
                timeout_s=config.request_timeout_s,
            )
        self._s3 = client
        self.reconstructor = ManifestReconstructor(
            client,
            bucket=config.s3_bucket,
            prefix=config.s3_prefix,
            scan_limit=config.s3_scan_limit,
            max_manifests=config.s3_max_manifests,
            concurrency=config.s3_fetch_concurrency,
            size_resolver=PayloadSizeResolver(
                client,
                bucket=config.s3_bucket,
                prefix=config.s3_prefix,
                key_template=config.s3_payload_key_template,
                concurrency=config.s3_fetch_concurrency,
            ),
        )

    def provider_info(self) -> dict[str, Any]:
        info = super().provider_info()
        info["bucket"] = self.reconstructor.bucket
        info["prefix"] = self.reconstructor.prefix
        info["max_manifests"] = self.reconstructor.max_manifests
        return info

    def _load_bundles(self, limit: int | None) -> list[Bundle]:
        # Ordering is only known after the whole scan, so the caller applies ``limit``.
        return list(self.reconstructor.scan(resolve_sizes=False).bundles)

    def _with_sizes(self, bundles: list[Bundle]) -> list[Bundle]:
        if self.reconstructor.size_resolver is None:
            return bundles
        return self.reconstructor.size_resolver.resolve(bundles)

    def close(self) -> None:
        close = getattr(self._s3, "close", None)
        if callable(close):
            close()
