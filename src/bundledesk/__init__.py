"""bundledesk: one canonical bundle view over hot-update metadata backends."""

from bundledesk.config import BundleDeskConfig, config_from_env
from bundledesk.errors import (
    BundleDeskError,
    ConfigurationError,
    ConnectivityError,
    MalformedRecordError,
    NotFoundError,
    UnsupportedOperationError,
    ValidationError,
)
from bundledesk.fallback import FallbackReads
from bundledesk.ids import decode_timestamp, new_bundle_id
from bundledesk.mapping import bundle_from_record, deployment_from_bundle
from bundledesk.provider import BundleProvider, RowStoreProvider, open_provider
from bundledesk.provider_memory import MemoryProvider
from bundledesk.stats import aggregate
from bundledesk.types import Bundle, BundlePatch, Deployment, PromoteRequest, Stats

__version__ = "0.1.0"

__all__ = [
    "Bundle",
    "BundleDeskConfig",
    "BundleDeskError",
    "BundlePatch",
    "BundleProvider",
    "ConfigurationError",
    "ConnectivityError",
    "Deployment",
    "FallbackReads",
    "MalformedRecordError",
    "MemoryProvider",
    "NotFoundError",
    "PromoteRequest",
    "RowStoreProvider",
    "Stats",
    "UnsupportedOperationError",
    "ValidationError",
    "aggregate",
    "bundle_from_record",
    "config_from_env",
    "decode_timestamp",
    "deployment_from_bundle",
    "new_bundle_id",
    "open_provider",
]
