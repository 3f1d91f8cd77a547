"""boto3 client construction and botocore error classification."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from bundledesk.errors import ConfigurationError, ConnectivityError

NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})
CONDITION_FAILED_CODE = "ConditionalCheckFailedException"


def boto_config(timeout_s: float) -> BotoConfig:
    return BotoConfig(
        connect_timeout=timeout_s,
        read_timeout=timeout_s,
        retries={"max_attempts": 3, "mode": "standard"},
    )


@contextmanager
def client_setup(service: str) -> Iterator[None]:
    """Report a client that cannot be built (no region, bad endpoint) as a config problem."""
    try:
        yield
    except (BotoCoreError, ValueError) as e:
        raise ConfigurationError(f"Cannot create {service} client: {e}") from e


def make_client(
    service: str, *, region: str | None, endpoint_url: str | None, timeout_s: float
) -> Any:
    with client_setup(service):
        session = boto3.Session(region_name=region)
        return session.client(
            service,
            region_name=region,
            endpoint_url=endpoint_url,
            config=boto_config(timeout_s),
        )


def make_resource(
    service: str, *, region: str | None, endpoint_url: str | None, timeout_s: float
) -> Any:
    with client_setup(service):
        session = boto3.Session(region_name=region)
        return session.resource(
            service,
            region_name=region,
            endpoint_url=endpoint_url,
            config=boto_config(timeout_s),
        )


def error_code(err: Exception) -> str:
    if isinstance(err, ClientError):
        return str(err.response.get("Error", {}).get("Code", ""))
    return ""


def is_not_found(err: Exception) -> bool:
    return error_code(err) in NOT_FOUND_CODES


def is_condition_failed(err: Exception) -> bool:
    return error_code(err) == CONDITION_FAILED_CODE


def classify_error(operation: str, err: Exception) -> ConnectivityError:
    """Re-classify a botocore failure as a connectivity error for the caller."""
    if isinstance(err, ClientError):
        message = err.response.get("Error", {}).get("Message", "") or str(err)
        return ConnectivityError(operation, f"{error_code(err) or 'ClientError'}: {message}")
    return ConnectivityError(operation, f"{type(err).__name__}: {err}")


@contextmanager
def backend_call(operation: str) -> Iterator[None]:
    """Translate raw botocore exceptions raised inside the block."""
    try:
        yield
    except (ClientError, BotoCoreError) as e:
        raise classify_error(operation, e) from e
