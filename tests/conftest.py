"""Shared test fixtures for bundledesk tests."""

from __future__ import annotations

import copy
import json
import sqlite3
from datetime import datetime, timezone
from typing import Any

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from bundledesk.config import BundleDeskConfig
from bundledesk.errors import ConnectivityError
from bundledesk.provider import RowStoreProvider
from bundledesk.provider_dynamodb import DynamoDBProvider
from bundledesk.provider_memory import FIXTURE_ROWS, MemoryProvider
from bundledesk.provider_sqlite import SqliteProvider, create_bundles_table

BUCKET = "bundles-bucket"
DEFAULT_MODIFIED = datetime(2024, 6, 1, tzinfo=timezone.utc)

# Fixture ids ordered newest first (ties broken by id descending).
FIXTURE_ORDER = [
    "0190e209-a000-7b41-9e02-7c8d1f2a3b02",
    "0190e209-a000-7a3c-8d21-5b6f0c9e1a01",
    "0190bdfd-1c00-7d22-9b4c-2e3f4a5b6c04",
    "0190bdfd-1c00-7c11-8a3b-1d2e3f4a5b03",
    "019099f0-9800-7f44-bd6e-4a5b6c7d8e06",
    "019099f0-9800-7e33-ac5d-3f4a5b6c7d05",
]
IOS_PROD_ID = "0190e209-a000-7a3c-8d21-5b6f0c9e1a01"
IOS_STAGING_ID = "0190bdfd-1c00-7c11-8a3b-1d2e3f4a5b03"
ANDROID_STAGING_ID = "0190bdfd-1c00-7d22-9b4c-2e3f4a5b6c04"


def _client_error(code: str, operation: str, message: str = "") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message or code}}, operation)


# --- Fake S3 ---


class FakeBody:
    def __init__(self, data: bytes) -> None:
        self._data = data

    def read(self) -> bytes:
        return self._data


class FakeS3:
    """Minimal in-memory stand-in for the boto3 S3 client calls bundledesk makes."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.modified: dict[str, datetime] = {}
        self.payload_sizes: dict[str, int] = {}
        self.calls: list[str] = []
        self.unreachable = False
        self.closed = False

    def put_json(self, key: str, data: Any, *, modified: datetime | None = None) -> None:
        self.put_raw(key, json.dumps(data).encode("utf-8"), modified=modified)

    def put_raw(self, key: str, data: bytes, *, modified: datetime | None = None) -> None:
        self.objects[key] = data
        self.modified[key] = modified or DEFAULT_MODIFIED

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if self.unreachable:
            raise EndpointConnectionError(endpoint_url="http://s3.invalid")

    def list_objects_v2(self, Bucket: str, MaxKeys: int = 1000, Prefix: str = "") -> dict:
        self._check("list_objects_v2")
        keys = sorted(k for k in self.objects if k.startswith(Prefix))
        page = keys[:MaxKeys]
        return {
            "Contents": [
                {"Key": k, "LastModified": self.modified[k], "Size": len(self.objects[k])}
                for k in page
            ],
            "IsTruncated": len(keys) > MaxKeys,
            "KeyCount": len(page),
        }

    def get_object(self, Bucket: str, Key: str) -> dict:
        self._check("get_object")
        if Key not in self.objects:
            raise _client_error("NoSuchKey", "GetObject")
        return {"Body": FakeBody(self.objects[Key])}

    def head_object(self, Bucket: str, Key: str) -> dict:
        self._check("head_object")
        if Key in self.payload_sizes:
            return {"ContentLength": self.payload_sizes[Key]}
        if Key in self.objects:
            return {"ContentLength": len(self.objects[Key])}
        raise _client_error("404", "HeadObject", "Not Found")

    def close(self) -> None:
        self.closed = True


# --- Fake DynamoDB table ---


class FakeTable:
    """Stand-in for a boto3 DynamoDB Table resource keyed by ``id``."""

    def __init__(self, items: list[dict[str, Any]] | None = None, *, page_size: int = 2) -> None:
        self.items: dict[str, dict[str, Any]] = {
            str(i["id"]): copy.deepcopy(i) for i in items or []
        }
        self.page_size = page_size
        self.scan_calls = 0

    def scan(self, Limit: int | None = None, ExclusiveStartKey: dict | None = None) -> dict:
        self.scan_calls += 1
        ordered = sorted(self.items)
        start = 0
        if ExclusiveStartKey is not None:
            start = ordered.index(ExclusiveStartKey["id"]) + 1
        count = min(Limit or self.page_size, self.page_size)
        page = ordered[start : start + count]
        resp: dict[str, Any] = {"Items": [copy.deepcopy(self.items[k]) for k in page]}
        if start + count < len(ordered):
            resp["LastEvaluatedKey"] = {"id": page[-1]}
        return resp

    def get_item(self, Key: dict) -> dict:
        item = self.items.get(Key["id"])
        return {"Item": copy.deepcopy(item)} if item is not None else {}

    def put_item(self, Item: dict, ConditionExpression: str | None = None) -> dict:
        if ConditionExpression and Item["id"] in self.items:
            raise _client_error("ConditionalCheckFailedException", "PutItem")
        self.items[str(Item["id"])] = copy.deepcopy(Item)
        return {}

    def update_item(
        self,
        Key: dict,
        UpdateExpression: str,
        ExpressionAttributeNames: dict,
        ExpressionAttributeValues: dict,
        ConditionExpression: str | None = None,
    ) -> dict:
        item = self.items.get(Key["id"])
        if not self._guard_holds(
            item, ConditionExpression, ExpressionAttributeNames, ExpressionAttributeValues
        ):
            raise _client_error("ConditionalCheckFailedException", "UpdateItem")
        assert UpdateExpression.startswith("SET ")
        for assignment in UpdateExpression[4:].split(", "):
            name, value = assignment.split(" = ")
            item[ExpressionAttributeNames[name]] = ExpressionAttributeValues[value]
        return {}

    @staticmethod
    def _guard_holds(item: dict | None, condition: str | None, names: dict, values: dict) -> bool:
        if item is None:
            return False
        if not condition:
            return True
        if "attribute_not_exists(#f)" in condition and names["#f"] in item:
            return False
        if ":prev" in values and item.get(names["#f"]) != values[":prev"]:
            return False
        return True

    def delete_item(self, Key: dict, ConditionExpression: str | None = None) -> dict:
        if Key["id"] not in self.items:
            raise _client_error("ConditionalCheckFailedException", "DeleteItem")
        del self.items[Key["id"]]
        return {}


# --- Providers ---


class UnreachableProvider(RowStoreProvider):
    """Writable provider whose backend never answers."""

    name = "unreachable"

    def __init__(self) -> None:
        super().__init__(BundleDeskConfig(provider="memory"))
        self.closed = False

    def _fail(self, operation: str) -> Any:
        raise ConnectivityError(operation, "connection refused")

    def scan_rows(self, limit):
        return self._fail("scan_rows")

    def fetch_row(self, bundle_id):
        return self._fail("fetch_row")

    def insert_row(self, row):
        return self._fail("insert_row")

    def update_row(self, bundle_id, changes):
        return self._fail("update_row")

    def delete_row(self, bundle_id):
        return self._fail("delete_row")

    def toggle_enabled(self, bundle_id):
        return self._fail("toggle_enabled")

    def close(self) -> None:
        self.closed = True


def seed_sqlite(conn: sqlite3.Connection, rows=FIXTURE_ROWS) -> None:
    create_bundles_table(conn)
    for row in rows:
        columns = list(row)
        conn.execute(
            f"INSERT INTO bundles ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
            [json.dumps(v) if isinstance(v, dict) else v for v in row.values()],
        )
    conn.commit()


@pytest.fixture
def fake_s3():
    return FakeS3()


@pytest.fixture
def memory_provider():
    return MemoryProvider()


@pytest.fixture
def sqlite_provider():
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    seed_sqlite(conn)
    provider = SqliteProvider(
        BundleDeskConfig(provider="sqlite", sqlite_path=":memory:"), connection=conn
    )
    yield provider
    provider.close()


@pytest.fixture
def dynamo_table():
    return FakeTable(list(FIXTURE_ROWS))


@pytest.fixture
def dynamodb_provider(dynamo_table):
    return DynamoDBProvider(BundleDeskConfig(provider="dynamodb"), table=dynamo_table)


@pytest.fixture(params=["memory", "sqlite", "dynamodb"])
def writable_provider(request):
    """Every writable provider, seeded with the fixture data set."""
    return request.getfixturevalue(f"{request.param}_provider")
