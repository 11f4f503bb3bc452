"""DynamoDB backend implementing IDocumentStore."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import boto3
from botocore.exceptions import ClientError

from payslipflow.core.exceptions import DocumentStoreError


def _to_dynamodb(obj: Any) -> Any:
    """Convert floats to Decimal; DynamoDB rejects binary floats."""
    if isinstance(obj, float):
        return Decimal(str(obj))
    if isinstance(obj, dict):
        return {k: _to_dynamodb(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_to_dynamodb(i) for i in obj]
    return obj


def _from_dynamodb(obj: Any) -> Any:
    """Convert Decimal values in a DynamoDB item to int/float."""
    if isinstance(obj, Decimal):
        return int(obj) if obj == int(obj) else float(obj)
    if isinstance(obj, dict):
        return {k: _from_dynamodb(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_from_dynamodb(i) for i in obj]
    return obj


def _update_expression(fields: dict[str, Any]) -> tuple[str, dict[str, str], dict[str, Any]]:
    names: dict[str, str] = {}
    values: dict[str, Any] = {}
    parts: list[str] = []
    for i, (name, value) in enumerate(fields.items()):
        names[f"#f{i}"] = name
        values[f":v{i}"] = _to_dynamodb(value)
        parts.append(f"#f{i} = :v{i}")
    return "SET " + ", ".join(parts), names, values


class DynamoDBDocumentStore:
    """Production IDocumentStore backed by DynamoDB tables with PK/SK keys."""

    max_batch_size = 100  # TransactWriteItems limit

    def __init__(self, table_prefix: str = "payslipflow-", table_suffix: str = "",
                 region: str = "ap-northeast-1", endpoint_url: str | None = None) -> None:
        self._table_prefix = table_prefix
        self._table_suffix = table_suffix
        self._region = region
        self._endpoint_url = endpoint_url
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._ddb = boto3.resource("dynamodb", **kwargs)
        # The resource client takes plain Python values and serializes them itself.
        self._client = self._ddb.meta.client

    def table_name(self, base: str) -> str:
        return f"{self._table_prefix}{base}{self._table_suffix}"

    def _table(self, base: str):
        return self._ddb.Table(self.table_name(base))

    # ---- single-item operations ----

    def get_item(self, table: str, pk: str, sk: str) -> dict[str, Any] | None:
        try:
            resp = self._table(table).get_item(Key={"PK": pk, "SK": sk})
        except ClientError as exc:
            raise DocumentStoreError(f"GetItem {table} {pk}/{sk} failed: {exc}") from exc
        item = resp.get("Item")
        return _from_dynamodb(item) if item else None

    def put_item(self, table: str, item: dict[str, Any]) -> None:
        try:
            self._table(table).put_item(Item=_to_dynamodb(item))
        except ClientError as exc:
            raise DocumentStoreError(f"PutItem {table} failed: {exc}") from exc

    def update_item(self, table: str, pk: str, sk: str, fields: dict[str, Any]) -> None:
        expr, names, values = _update_expression(fields)
        try:
            self._table(table).update_item(
                Key={"PK": pk, "SK": sk},
                UpdateExpression=expr,
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ConditionExpression="attribute_exists(PK)",
            )
        except ClientError as exc:
            raise DocumentStoreError(f"UpdateItem {table} {pk}/{sk} failed: {exc}") from exc

    def delete_item(self, table: str, pk: str, sk: str) -> None:
        try:
            self._table(table).delete_item(Key={"PK": pk, "SK": sk})
        except ClientError as exc:
            raise DocumentStoreError(f"DeleteItem {table} {pk}/{sk} failed: {exc}") from exc

    def query(self, table: str, pk: str, sk_prefix: str | None = None) -> list[dict[str, Any]]:
        """Query all items with a given partition key, following pagination."""
        kwargs: dict[str, Any] = {
            "KeyConditionExpression": "PK = :pk",
            "ExpressionAttributeValues": {":pk": pk},
        }
        if sk_prefix:
            kwargs["KeyConditionExpression"] = "PK = :pk AND begins_with(SK, :prefix)"
            kwargs["ExpressionAttributeValues"][":prefix"] = sk_prefix
        items: list[dict[str, Any]] = []
        tbl = self._table(table)
        try:
            while True:
                resp = tbl.query(**kwargs)
                items.extend(_from_dynamodb(item) for item in resp.get("Items", []))
                last_key = resp.get("LastEvaluatedKey")
                if not last_key:
                    return items
                kwargs["ExclusiveStartKey"] = last_key
        except ClientError as exc:
            raise DocumentStoreError(f"Query {table} {pk} failed: {exc}") from exc

    # ---- atomic batches ----

    def _check_batch(self, size: int) -> None:
        if size > self.max_batch_size:
            raise DocumentStoreError(
                f"Batch of {size} exceeds the {self.max_batch_size}-operation limit"
            )

    def _transact(self, operations: list[dict[str, Any]]) -> None:
        try:
            self._client.transact_write_items(TransactItems=operations)
        except ClientError as exc:
            raise DocumentStoreError(f"TransactWriteItems failed: {exc}") from exc

    def put_batch(self, table: str, items: list[dict[str, Any]]) -> None:
        if not items:
            return
        self._check_batch(len(items))
        name = self.table_name(table)
        self._transact([{"Put": {"TableName": name, "Item": _to_dynamodb(item)}} for item in items])

    def update_batch(self, table: str, updates: list[tuple[str, str, dict[str, Any]]]) -> None:
        if not updates:
            return
        self._check_batch(len(updates))
        name = self.table_name(table)
        operations = []
        for pk, sk, fields in updates:
            expr, names, values = _update_expression(fields)
            operations.append({
                "Update": {
                    "TableName": name,
                    "Key": {"PK": pk, "SK": sk},
                    "UpdateExpression": expr,
                    "ExpressionAttributeNames": names,
                    "ExpressionAttributeValues": values,
                    "ConditionExpression": "attribute_exists(PK)",
                }
            })
        self._transact(operations)
