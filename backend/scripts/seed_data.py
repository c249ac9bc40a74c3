#!/usr/bin/env python3
"""Seed a development environment with tables and demo orders.

Creates the orders, payments, webhook-dedupe and webhook-log tables when
they do not exist yet, and writes a few demo orders that CoinGate sandbox
callbacks can be replayed against. Optionally stores the CoinGate sandbox
auth token in SSM.

Usage:
    python scripts/seed_data.py --env dev
    python scripts/seed_data.py --env dev --create-tables
    python scripts/seed_data.py --env dev --clear-first
    python scripts/seed_data.py --env dev --auth-token <sandbox token>
"""

import argparse
import os
import secrets
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import boto3
from botocore.exceptions import ClientError

# Global region setting (set by main() from args)
_AWS_REGION: str | None = None

TABLES: dict[str, dict[str, Any]] = {
    "orders": {
        "key": "order_id",
    },
    "payments": {
        "key": "ref_id",
        "index": ("order-index", "order_id"),
    },
    "webhook-dedupe": {
        "key": "dedupe_key",
    },
    "webhook-log": {
        "key": "log_id",
        "index": ("dedupe-key-index", "dedupe_key"),
    },
}


def get_dynamodb_resource() -> Any:
    """Get DynamoDB resource with configured region."""
    if _AWS_REGION:
        return boto3.resource("dynamodb", region_name=_AWS_REGION)
    return boto3.resource("dynamodb")


def get_table_name(env: str, table: str) -> str:
    """Get full table name with environment prefix."""
    prefix = os.environ.get("DYNAMODB_TABLE_PREFIX", f"shop-{env}")
    return f"{prefix}-{table}"


def create_tables(env: str) -> None:
    """Create any missing pipeline tables (on-demand billing)."""
    dynamodb = get_dynamodb_resource()
    client = dynamodb.meta.client
    existing = set(client.list_tables()["TableNames"])

    for table, schema in TABLES.items():
        name = get_table_name(env, table)
        if name in existing:
            print(f"  • {name} already exists")
            continue

        key = schema["key"]
        attributes = [{"AttributeName": key, "AttributeType": "S"}]
        kwargs: dict[str, Any] = {
            "TableName": name,
            "KeySchema": [{"AttributeName": key, "KeyType": "HASH"}],
            "BillingMode": "PAY_PER_REQUEST",
        }
        if "index" in schema:
            index_name, index_key = schema["index"]
            attributes.append({"AttributeName": index_key, "AttributeType": "S"})
            kwargs["GlobalSecondaryIndexes"] = [
                {
                    "IndexName": index_name,
                    "KeySchema": [{"AttributeName": index_key, "KeyType": "HASH"}],
                    "Projection": {"ProjectionType": "ALL"},
                }
            ]
        kwargs["AttributeDefinitions"] = attributes

        client.create_table(**kwargs)
        client.get_waiter("table_exists").wait(TableName=name)
        print(f"  ✓ Created {name}")


def create_demo_orders(env: str) -> list[dict]:
    """Write demo orders in each webhook-relevant status.

    Each order gets a fresh random token; the printed tokens are what a
    replayed callback has to carry.
    """
    now = datetime.now(timezone.utc).isoformat()

    orders = [
        {"order_id": "1001", "balance_due": Decimal("25.00"), "status": "pending"},
        {"order_id": "1002", "balance_due": Decimal("100.00"), "status": "pending"},
        {"order_id": "1003", "balance_due": Decimal("49.90"), "status": "new"},
        {"order_id": "1004", "balance_due": Decimal("10.00"), "status": "new", "is_new": True},
        {"order_id": "1005", "balance_due": Decimal("75.00"), "status": "paid"},
    ]

    dynamodb = get_dynamodb_resource()
    table = dynamodb.Table(get_table_name(env, "orders"))

    print(f"Seeding orders table: {table.name}")

    for order in orders:
        order.setdefault("is_new", False)
        order.update(
            {
                "token": secrets.token_urlsafe(16),
                "currency": "EUR",
                "created_at": now,
                "updated_at": now,
            }
        )
        table.put_item(Item=order)
        marker = "○" if order["is_new"] else "✓"
        print(
            f"  {marker} order {order['order_id']}: €{order['balance_due']} "
            f"[{order['status']}] token={order['token']}"
        )

    return orders


def store_auth_token(env: str, token: str) -> None:
    """Store the CoinGate auth token as an SSM SecureString."""
    ssm = boto3.client("ssm", region_name=_AWS_REGION) if _AWS_REGION else boto3.client("ssm")
    name = f"/shop/{env}/coingate/auth_token"
    ssm.put_parameter(Name=name, Value=token, Type="SecureString", Overwrite=True)
    print(f"  ✓ Stored {name}")


def clear_table(env: str, table_name: str) -> int:
    """Clear all items from a table.

    Returns:
        Number of items deleted
    """
    dynamodb = get_dynamodb_resource()
    table = dynamodb.Table(get_table_name(env, table_name))
    key_attrs = [k["AttributeName"] for k in table.key_schema]

    count = 0
    scan_kwargs: dict[str, Any] = {}
    while True:
        response = table.scan(**scan_kwargs)
        with table.batch_writer() as batch:
            for item in response.get("Items", []):
                batch.delete_item(Key={k: item[k] for k in key_attrs})
                count += 1
        if not response.get("LastEvaluatedKey"):
            return count
        scan_kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]


def main() -> int:
    """Run the seed script."""
    global _AWS_REGION

    parser = argparse.ArgumentParser(description="Seed development tables with demo orders")
    parser.add_argument(
        "--env",
        choices=["dev", "staging", "prod"],
        default="dev",
        help="Target environment (default: dev)",
    )
    parser.add_argument(
        "--region",
        default=os.environ.get("AWS_DEFAULT_REGION", "eu-west-1"),
        help="AWS region (default: eu-west-1 or AWS_DEFAULT_REGION env var)",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before seeding",
    )
    parser.add_argument(
        "--clear-first",
        action="store_true",
        help="Clear existing data before seeding",
    )
    parser.add_argument(
        "--auth-token",
        help="CoinGate sandbox auth token to store in SSM",
    )

    args = parser.parse_args()
    _AWS_REGION = args.region

    if args.env == "prod":
        confirm = input("⚠️  WARNING: You are about to modify PRODUCTION data. Type 'yes' to continue: ")
        if confirm.lower() != "yes":
            print("Aborted.")
            return 1

    print(f"\n🌱 Seeding {args.env} environment (region: {args.region})\n")

    if args.create_tables:
        print("Creating tables...")
        try:
            create_tables(args.env)
        except ClientError as e:
            print(f"  ❌ Failed to create tables: {e}")
            return 1
        print()

    if args.clear_first:
        print("Clearing existing data...")
        for table in TABLES:
            try:
                count = clear_table(args.env, table)
                print(f"  Cleared {count} items from {table}")
            except ClientError as e:
                print(f"  Could not clear {table}: {e}")
        print()

    try:
        create_demo_orders(args.env)
    except ClientError as e:
        print(f"  ❌ Failed to seed orders: {e}")
        return 1

    if args.auth_token:
        print()
        try:
            store_auth_token(args.env, args.auth_token)
        except ClientError as e:
            print(f"  ❌ Failed to store auth token: {e}")
            # Non-fatal, continue

    print("\n✅ Seed completed successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
