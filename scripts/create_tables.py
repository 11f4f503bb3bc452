"""Create the PayslipFlow DynamoDB tables, optionally importing a mapping export.

Usage:
    python scripts/create_tables.py --endpoint-url http://localhost:4566
    python scripts/create_tables.py --import-mapping legacy.json --tenant C001 --kind bonus
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any

import boto3

from payslipflow.mapping.builder import build_from_config
from payslipflow.mapping.store import MappingStore
from payslipflow.persistence.dynamodb_backend import DynamoDBDocumentStore
from payslipflow.persistence.tables import ALL_TABLES


def create_tables(ddb: Any, prefix: str = "payslipflow-", suffix: str = "") -> list[str]:
    """Create every table that does not exist yet; returns the names created."""
    client = ddb.meta.client
    existing = client.list_tables().get("TableNames", [])
    created: list[str] = []

    for base in ALL_TABLES:
        table_name = f"{prefix}{base}{suffix}"
        if table_name in existing:
            print(f"  Table {table_name} already exists, skipping")
            continue
        client.create_table(
            TableName=table_name,
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        created.append(table_name)
        print(f"  Created table {table_name}")
    return created


def import_mapping(store: DynamoDBDocumentStore, path: Path, tenant_id: str, kind: str) -> None:
    """Normalize an exported mapping document of any supported shape and save it."""
    document = json.loads(path.read_text(encoding="utf-8"))
    model = build_from_config(document)
    MappingStore(store).save(tenant_id, model, kind=kind, updated_by="create_tables")
    print(f"  Imported {kind} mapping for {tenant_id}: {model.category_counts()}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Create DynamoDB tables for PayslipFlow")
    parser.add_argument("--endpoint-url", default=None, help="DynamoDB endpoint (e.g. http://localhost:4566)")
    parser.add_argument("--table-prefix", default="payslipflow-", help="Table name prefix")
    parser.add_argument("--table-suffix", default="", help="Table name suffix (e.g. -dev)")
    parser.add_argument("--region", default="ap-northeast-1", help="AWS region")
    parser.add_argument("--import-mapping", type=Path, default=None, help="Mapping JSON to import")
    parser.add_argument("--tenant", default=None, help="Tenant (company) id for --import-mapping")
    parser.add_argument("--kind", default="regular", choices=["regular", "bonus"])
    args = parser.parse_args()

    kwargs: dict[str, Any] = {"region_name": args.region}
    if args.endpoint_url:
        kwargs["endpoint_url"] = args.endpoint_url

    ddb = boto3.resource("dynamodb", **kwargs)

    print("Creating tables...")
    create_tables(ddb, prefix=args.table_prefix, suffix=args.table_suffix)

    if args.import_mapping:
        if not args.tenant:
            parser.error("--import-mapping requires --tenant")
        store = DynamoDBDocumentStore(
            table_prefix=args.table_prefix,
            table_suffix=args.table_suffix,
            region=args.region,
            endpoint_url=args.endpoint_url,
        )
        print("Importing mapping...")
        import_mapping(store, args.import_mapping, args.tenant, args.kind)

    print("Done!")


if __name__ == "__main__":
    main()
