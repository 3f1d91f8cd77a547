"""Document-store provider over a DynamoDB bundles table."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from botocore.exceptions import ClientError

from bundledesk.aws import backend_call, is_condition_failed, make_resource
from bundledesk.config import BundleDeskConfig
from bundledesk.errors import ConnectivityError
from bundledesk.mapping import NATIVE_COLUMNS, as_bool
from bundledesk.provider import RowStoreProvider

logger = logging.getLogger(__name__)

TOGGLE_ATTEMPTS = 3


def _from_dynamo(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_from_dynamo(v) for v in value]
    return value


def _to_dynamo(value: Any) -> Any:
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _to_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_dynamo(v) for v in value]
    return value


class DynamoDBProvider(RowStoreProvider):
    """Writable provider keyed by ``id`` on a DynamoDB table.

    Listing scans at most ``dynamodb_scan_limit`` items and orders them by id.
    """

    name = "dynamodb"

    def __init__(self, config: BundleDeskConfig, *, table: Any | None = None) -> None:
        super().__init__(config)
        self.table_name = config.dynamodb_table
        if table is None:
            resource = make_resource(
                "dynamodb",
                region=config.aws_region,
                endpoint_url=config.dynamodb_endpoint_url,
                timeout_s=config.request_timeout_s,
            )
            table = resource.Table(self.table_name)
        self._table = table

    def provider_info(self) -> dict[str, Any]:
        info = super().provider_info()
        info["table"] = self.table_name
        info["scan_limit"] = self._config.dynamodb_scan_limit
        return info

    def scan_rows(self, limit: int | None) -> list[dict[str, Any]]:
        bound = self._config.dynamodb_scan_limit
        items: list[dict[str, Any]] = []
        kwargs: dict[str, Any] = {}
        truncated = False
        with backend_call("scan_rows"):
            while True:
                resp = self._table.scan(Limit=bound - len(items), **kwargs)
                items.extend(resp.get("Items", []))
                last_key = resp.get("LastEvaluatedKey")
                if not last_key:
                    break
                if len(items) >= bound:
                    truncated = True
                    break
                kwargs["ExclusiveStartKey"] = last_key
        if truncated:
            logger.info("DynamoDB scan of '%s' stopped at %d items.", self.table_name, bound)
        items.sort(key=lambda item: str(item.get("id", "")), reverse=True)
        if limit is not None:
            items = items[:limit]
        return [_from_dynamo(item) for item in items]

    def fetch_row(self, bundle_id: str) -> dict[str, Any] | None:
        with backend_call("fetch_row"):
            resp = self._table.get_item(Key={"id": bundle_id})
        item = resp.get("Item")
        return _from_dynamo(item) if item is not None else None

    def insert_row(self, row: dict[str, Any]) -> None:
        with backend_call("insert_row"):
            self._table.put_item(
                Item=_to_dynamo(row),
                ConditionExpression="attribute_not_exists(id)",
            )

    def update_row(self, bundle_id: str, changes: dict[str, Any]) -> bool:
        names = {f"#f{i}": column for i, column in enumerate(changes)}
        values = {f":v{i}": _to_dynamo(value) for i, value in enumerate(changes.values())}
        expression = "SET " + ", ".join(f"#f{i} = :v{i}" for i in range(len(changes)))
        with backend_call("update_row"):
            try:
                self._table.update_item(
                    Key={"id": bundle_id},
                    UpdateExpression=expression,
                    ExpressionAttributeNames=names,
                    ExpressionAttributeValues=values,
                    ConditionExpression="attribute_exists(id)",
                )
            except ClientError as e:
                if is_condition_failed(e):
                    return False
                raise
        return True

    def delete_row(self, bundle_id: str) -> bool:
        with backend_call("delete_row"):
            try:
                self._table.delete_item(
                    Key={"id": bundle_id},
                    ConditionExpression="attribute_exists(id)",
                )
            except ClientError as e:
                if is_condition_failed(e):
                    return False
                raise
        return True

    def toggle_enabled(self, bundle_id: str) -> bool | None:
        """Flip ``enabled`` with a write conditioned on the value that was read."""
        column = NATIVE_COLUMNS["enabled"]
        for _ in range(TOGGLE_ATTEMPTS):
            row = self.fetch_row(bundle_id)
            if row is None:
                return None
            current = row.get(column)
            enabled = not as_bool(current)
            if current is None:
                condition = "attribute_exists(id) AND attribute_not_exists(#f)"
                values = {":v": enabled}
            else:
                condition = "attribute_exists(id) AND #f = :prev"
                values = {":v": enabled, ":prev": _to_dynamo(current)}
            with backend_call("toggle_enabled"):
                try:
                    self._table.update_item(
                        Key={"id": bundle_id},
                        UpdateExpression="SET #f = :v",
                        ExpressionAttributeNames={"#f": column},
                        ExpressionAttributeValues=values,
                        ConditionExpression=condition,
                    )
                except ClientError as e:
                    if is_condition_failed(e):
                        logger.debug("Bundle %s changed during rollback; retrying.", bundle_id)
                        continue
                    raise
            return enabled
        raise ConnectivityError(
            "toggle_enabled", f"bundle {bundle_id} kept changing after {TOGGLE_ATTEMPTS} attempts"
        )
