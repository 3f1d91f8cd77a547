"""Structured error types for bundledesk."""

from __future__ import annotations


class BundleDeskError(Exception):
    """Base error for all bundledesk errors."""


class ConnectivityError(BundleDeskError):
    """Raised when the selected backend is unreachable or a call timed out."""

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Backend unavailable during {operation}: {detail}")


class NotFoundError(BundleDeskError):
    """Raised when a referenced bundle id does not exist in the backend."""

    def __init__(self, bundle_id: str) -> None:
        self.bundle_id = bundle_id
        super().__init__(f"Bundle not found: {bundle_id}")


class UnsupportedOperationError(BundleDeskError):
    """Raised when the selected provider cannot perform a mutation."""

    def __init__(self, operation: str, provider: str, alternative: str) -> None:
        self.operation = operation
        self.provider = provider
        self.alternative = alternative
        super().__init__(
            f"Operation '{operation}' is not supported by the '{provider}' provider. "
            f"{alternative}"
        )


class MalformedRecordError(BundleDeskError):
    """Raised when a single manifest or row cannot be turned into a bundle."""

    def __init__(self, source: str, detail: str) -> None:
        self.source = source
        self.detail = detail
        super().__init__(f"Malformed record in {source}: {detail}")


class ValidationError(BundleDeskError):
    """Raised when caller-supplied parameters fail basic constraints."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigurationError(BundleDeskError):
    """Raised when the provider configuration is incomplete or unknown."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
