"""Unit tests for DynamoDBDocumentStore using moto."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import boto3
import pytest
from moto import mock_aws

from payslipflow.core.exceptions import DocumentStoreError
from payslipflow.persistence.dynamodb_backend import DynamoDBDocumentStore
from payslipflow.persistence.tables import ALL_TABLES, PAYSLIPS

TABLE_PREFIX = "payslipflow-"
TABLE_SUFFIX = "-test"
REGION = "us-east-1"

# ---------- helpers ----------

def _create_table(client, name: str, pk: str = "PK", sk: str = "SK"):
    """Create a DynamoDB table with PK/SK key schema."""
    client.create_table(
        TableName=name,
        KeySchema=[
            {"AttributeName": pk, "KeyType": "HASH"},
            {"AttributeName": sk, "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": pk, "AttributeType": "S"},
            {"AttributeName": sk, "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )


def _payslip(sk: str, **fields: Any) -> dict[str, Any]:
    return {"PK": "COMPANY#C1", "SK": sk, **fields}


# ---------- fixtures ----------

@pytest.fixture
def aws():
    with mock_aws():
        ddb = boto3.resource("dynamodb", region_name=REGION)
        client = boto3.client("dynamodb", region_name=REGION)
        for name in ALL_TABLES:
            _create_table(client, f"{TABLE_PREFIX}{name}{TABLE_SUFFIX}")
        yield ddb


@pytest.fixture
def store(aws):
    return DynamoDBDocumentStore(table_prefix=TABLE_PREFIX, table_suffix=TABLE_SUFFIX, region=REGION)


# ---------- single items ----------

class TestGetPut:
    def test_round_trips_item(self, store):
        store.put_item(PAYSLIPS, _payslip("PAYSLIP#regular#U1#E001", employeeId="E001"))
        item = store.get_item(PAYSLIPS, "COMPANY#C1", "PAYSLIP#regular#U1#E001")
        assert item["employeeId"] == "E001"

    def test_returns_none_on_miss(self, store):
        assert store.get_item(PAYSLIPS, "COMPANY#C1", "nope") is None

    def test_decimals_come_back_as_numbers(self, store):
        store.put_item(PAYSLIPS, _payslip("S1", total=Decimal("1200"), rate=1.5))
        item = store.get_item(PAYSLIPS, "COMPANY#C1", "S1")
        assert item["total"] == 1200
        assert isinstance(item["total"], int)
        assert item["rate"] == 1.5

    def test_table_name_uses_prefix_and_suffix(self, store):
        assert store.table_name(PAYSLIPS) == "payslipflow-payslips-test"

    def test_missing_table_raises_store_error(self, aws):
        store = DynamoDBDocumentStore(table_prefix="absent-", region=REGION)
        with pytest.raises(DocumentStoreError):
            store.get_item(PAYSLIPS, "a", "b")


class TestUpdateDelete:
    def test_update_sets_only_given_fields(self, store):
        store.put_item(PAYSLIPS, _payslip("S1", userId=None, employeeId="E001"))
        store.update_item(PAYSLIPS, "COMPANY#C1", "S1", {"userId": "u-1"})
        item = store.get_item(PAYSLIPS, "COMPANY#C1", "S1")
        assert item["userId"] == "u-1"
        assert item["employeeId"] == "E001"

    def test_update_missing_item_raises(self, store):
        with pytest.raises(DocumentStoreError):
            store.update_item(PAYSLIPS, "COMPANY#C1", "ghost", {"userId": "u"})

    def test_delete_removes_item(self, store):
        store.put_item(PAYSLIPS, _payslip("S1"))
        store.delete_item(PAYSLIPS, "COMPANY#C1", "S1")
        assert store.get_item(PAYSLIPS, "COMPANY#C1", "S1") is None


class TestQuery:
    def test_filters_by_sort_key_prefix(self, store):
        store.put_item(PAYSLIPS, _payslip("PAYSLIP#regular#U1#E001"))
        store.put_item(PAYSLIPS, _payslip("PAYSLIP#bonus#U2#E001"))
        items = store.query(PAYSLIPS, "COMPANY#C1", "PAYSLIP#regular#")
        assert [i["SK"] for i in items] == ["PAYSLIP#regular#U1#E001"]

    def test_returns_all_for_partition(self, store):
        for i in range(3):
            store.put_item(PAYSLIPS, _payslip(f"S{i}"))
        assert len(store.query(PAYSLIPS, "COMPANY#C1")) == 3

    def test_returns_empty_for_unknown_partition(self, store):
        assert store.query(PAYSLIPS, "COMPANY#none") == []


# ---------- atomic batches ----------

class TestBatches:
    def test_put_batch_writes_every_item(self, store):
        store.put_batch(PAYSLIPS, [_payslip(f"S{i}", netAmount=Decimal(i)) for i in range(10)])
        assert len(store.query(PAYSLIPS, "COMPANY#C1")) == 10

    def test_put_batch_stores_native_attribute_types(self, store):
        store.put_batch(PAYSLIPS, [_payslip("S1", totalIncome=1000.5, items={
            "KY11": {"name": "基本給", "category": "income", "value": 1000, "isVisible": True},
        })])
        client = boto3.client("dynamodb", region_name=REGION)
        raw = client.get_item(
            TableName=f"{TABLE_PREFIX}{PAYSLIPS}{TABLE_SUFFIX}",
            Key={"PK": {"S": "COMPANY#C1"}, "SK": {"S": "S1"}},
        )["Item"]
        assert raw["PK"] == {"S": "COMPANY#C1"}
        assert raw["totalIncome"] == {"N": "1000.5"}
        assert raw["items"]["M"]["KY11"]["M"]["isVisible"] == {"BOOL": True}
        item = store.get_item(PAYSLIPS, "COMPANY#C1", "S1")
        assert item["totalIncome"] == 1000.5
        assert item["items"]["KY11"]["value"] == 1000

    def test_put_batch_rejects_oversized_batch(self, store):
        items = [_payslip(f"S{i}") for i in range(store.max_batch_size + 1)]
        with pytest.raises(DocumentStoreError):
            store.put_batch(PAYSLIPS, items)

    def test_update_batch_sets_field(self, store):
        store.put_batch(PAYSLIPS, [_payslip("S1", userId=None), _payslip("S2", userId=None)])
        store.update_batch(PAYSLIPS, [
            ("COMPANY#C1", "S1", {"userId": "u1"}),
            ("COMPANY#C1", "S2", {"userId": "u2"}),
        ])
        assert store.get_item(PAYSLIPS, "COMPANY#C1", "S2")["userId"] == "u2"
        assert store.get_item(PAYSLIPS, "COMPANY#C1", "S1")["userId"] == "u1"

    def test_update_batch_keeps_other_fields(self, store):
        store.put_batch(PAYSLIPS, [_payslip("S1", userId=None, netAmount=Decimal("250"))])
        store.update_batch(PAYSLIPS, [("COMPANY#C1", "S1", {"userId": "u1", "score": 0.25})])
        assert store.get_item(PAYSLIPS, "COMPANY#C1", "S1") == _payslip(
            "S1", userId="u1", netAmount=250, score=0.25
        )

    def test_update_batch_is_all_or_nothing(self, store):
        store.put_item(PAYSLIPS, _payslip("S1", userId=None))
        with pytest.raises(DocumentStoreError):
            store.update_batch(PAYSLIPS, [
                ("COMPANY#C1", "S1", {"userId": "u1"}),
                ("COMPANY#C1", "missing", {"userId": "u2"}),
            ])
        assert store.get_item(PAYSLIPS, "COMPANY#C1", "S1")["userId"] is None

    def test_empty_batches_are_noops(self, store):
        store.put_batch(PAYSLIPS, [])
        store.update_batch(PAYSLIPS, [])
