"""Read fallback: serve fixture data when the backend is unreachable."""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from bundledesk.errors import ConnectivityError
from bundledesk.provider import BundleProvider
from bundledesk.provider_memory import MemoryProvider
from bundledesk.types import Bundle, Deployment, Stats

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FallbackReads:
    """Wrap a provider's reads so a connectivity failure yields fixture data.

    Only ``list_bundles``, ``list_deployments`` and ``get_stats`` are covered.
    Mutations must go to ``provider`` directly and fail loudly.
    """

    def __init__(self, provider: BundleProvider, *, enabled: bool = True) -> None:
        self.provider = provider
        self.enabled = enabled
        self._fixtures = MemoryProvider()

    def _read(self, operation: str, primary: Callable[[], T], fixture: Callable[[], T]) -> T:
        try:
            return primary()
        except ConnectivityError as e:
            if not self.enabled:
                raise
            logger.warning(
                "%s failed on provider '%s' (%s); serving fixture data.",
                operation,
                self.provider.name,
                e.detail,
            )
            return fixture()

    def list_bundles(self, limit: int | None = None) -> list[Bundle]:
        return self._read(
            "list_bundles",
            lambda: self.provider.list_bundles(limit),
            lambda: self._fixtures.list_bundles(limit),
        )

    def list_deployments(self, limit: int | None = None) -> list[Deployment]:
        return self._read(
            "list_deployments",
            lambda: self.provider.list_deployments(limit),
            lambda: self._fixtures.list_deployments(limit),
        )

    def get_stats(self) -> Stats:
        return self._read("get_stats", self.provider.get_stats, self._fixtures.get_stats)
