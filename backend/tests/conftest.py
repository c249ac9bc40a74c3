"""Pytest configuration and fixtures for coinshop gateway tests.

This module provides reusable fixtures for testing:
- DynamoDB and SSM mocking with moto
- Store and pipeline fixtures wired to the mocked tables
- A CoinGate API stand-in built on httpx.MockTransport
"""

import json
import os
from collections.abc import Callable, Generator
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import boto3
import httpx
import pytest
from moto import mock_aws

# === Environment Setup ===

# Set environment variables for testing before imports
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DYNAMODB_TABLE_PREFIX", "test-shop")
os.environ.setdefault("COINGATE_TEST_MODE", "true")

if not os.environ.get("AWS_PROFILE") and not os.environ.get("AWS_ACCESS_KEY_ID"):
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

TABLE_PREFIX = os.environ["DYNAMODB_TABLE_PREFIX"]


# === Singleton Resets ===


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Reset DynamoDB, SSM and API service singletons around each test.

    Tests using mock_aws need fresh clients created inside the mock
    context rather than ones cached by an earlier test.
    """
    from coinshop.services.dynamodb import reset_dynamodb_service
    from coinshop.services.ssm_service import get_ssm_service
    from coinshop_api.dependencies import reset_services

    def _reset() -> None:
        reset_services()
        reset_dynamodb_service()
        get_ssm_service.cache_clear()

    _reset()
    yield
    _reset()


# === AWS Fixtures ===


@pytest.fixture
def aws_credentials() -> None:
    """Mocked AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "eu-west-1"


@pytest.fixture
def mocked_aws(aws_credentials: None) -> Generator[None, None, None]:
    """Activate moto for DynamoDB and SSM."""
    with mock_aws():
        yield


@pytest.fixture
def dynamodb_client(mocked_aws: None) -> Any:
    """Create a mocked DynamoDB client."""
    return boto3.client("dynamodb", region_name="eu-west-1")


@pytest.fixture
def create_tables(dynamodb_client: Any) -> None:
    """Create all tables used by the notification pipeline."""
    tables = [
        {
            "TableName": f"{TABLE_PREFIX}-orders",
            "KeySchema": [{"AttributeName": "order_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [
                {"AttributeName": "order_id", "AttributeType": "S"},
            ],
            "BillingMode": "PAY_PER_REQUEST",
        },
        {
            "TableName": f"{TABLE_PREFIX}-payments",
            "KeySchema": [{"AttributeName": "ref_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [
                {"AttributeName": "ref_id", "AttributeType": "S"},
                {"AttributeName": "order_id", "AttributeType": "S"},
            ],
            "GlobalSecondaryIndexes": [
                {
                    "IndexName": "order-index",
                    "KeySchema": [{"AttributeName": "order_id", "KeyType": "HASH"}],
                    "Projection": {"ProjectionType": "ALL"},
                },
            ],
            "BillingMode": "PAY_PER_REQUEST",
        },
        {
            "TableName": f"{TABLE_PREFIX}-webhook-dedupe",
            "KeySchema": [{"AttributeName": "dedupe_key", "KeyType": "HASH"}],
            "AttributeDefinitions": [
                {"AttributeName": "dedupe_key", "AttributeType": "S"},
            ],
            "BillingMode": "PAY_PER_REQUEST",
        },
        {
            "TableName": f"{TABLE_PREFIX}-webhook-log",
            "KeySchema": [{"AttributeName": "log_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [
                {"AttributeName": "log_id", "AttributeType": "S"},
                {"AttributeName": "dedupe_key", "AttributeType": "S"},
            ],
            "GlobalSecondaryIndexes": [
                {
                    "IndexName": "dedupe-key-index",
                    "KeySchema": [{"AttributeName": "dedupe_key", "KeyType": "HASH"}],
                    "Projection": {"ProjectionType": "ALL"},
                },
            ],
            "BillingMode": "PAY_PER_REQUEST",
        },
    ]

    for table_config in tables:
        dynamodb_client.create_table(**table_config)


@pytest.fixture
def db(create_tables: None) -> Any:
    """DynamoDBService bound to the mocked tables."""
    from coinshop.services.dynamodb import DynamoDBService

    return DynamoDBService(environment="test")


@pytest.fixture
def orders_table(create_tables: None) -> Any:
    """Raw orders table resource, for seeding and inspection."""
    return boto3.resource("dynamodb", region_name="eu-west-1").Table(
        f"{TABLE_PREFIX}-orders"
    )


# === Sample Data Fixtures ===


@pytest.fixture
def sample_order() -> dict[str, Any]:
    """Pending order 42 awaiting 100.00 EUR."""
    now = datetime.now(timezone.utc).isoformat()
    return {
        "order_id": "42",
        "token": "abc",
        "balance_due": Decimal("100.00"),
        "currency": "EUR",
        "status": "pending",
        "is_new": False,
        "created_at": now,
        "updated_at": now,
    }


@pytest.fixture
def seed_order(orders_table: Any, sample_order: dict[str, Any]) -> Callable[..., dict[str, Any]]:
    """Write an order, defaulting to sample_order, with field overrides."""

    def _seed(**overrides: Any) -> dict[str, Any]:
        item = {**sample_order, **overrides}
        orders_table.put_item(Item=item)
        return item

    return _seed


# === CoinGate API Stand-in ===


class FakeCoinGateAPI:
    """In-memory CoinGate merchant API served through httpx.MockTransport.

    ``orders`` maps remote order IDs to the JSON body returned by
    GET /orders/{id}. ``fail_with`` forces every request to fail, either
    with an HTTP status code or an httpx exception. ``on_request`` is
    called with each request before it is answered.
    """

    def __init__(self) -> None:
        self.orders: dict[str, dict[str, Any]] = {}
        self.fail_with: int | Exception | None = None
        self.requests: list[httpx.Request] = []
        self.on_request: Callable[[httpx.Request], None] | None = None

    def set_order(self, remote_order_id: str, status: str, **fields: Any) -> None:
        self.orders[remote_order_id] = {"id": remote_order_id, "status": status, **fields}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.on_request is not None:
            self.on_request(request)
        if isinstance(self.fail_with, Exception):
            raise self.fail_with
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, json={"message": "Unavailable"})

        path = request.url.path
        if request.method == "GET" and "/orders/" in path:
            remote_id = path.rsplit("/", 1)[-1]
            body = self.orders.get(remote_id)
            if body is None:
                return httpx.Response(
                    404, json={"message": "Order not found", "reason": "OrderNotFound"}
                )
            return httpx.Response(200, content=json.dumps(body))
        return httpx.Response(404, json={"message": "Not found"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def coingate_api() -> FakeCoinGateAPI:
    """CoinGate API stand-in with remote order R1 reported as paid."""
    api = FakeCoinGateAPI()
    api.set_order("R1", "paid", price_amount="100.00", price_currency="EUR")
    return api


@pytest.fixture
def coingate_client(coingate_api: FakeCoinGateAPI) -> Generator[Any, None, None]:
    """CoinGateClient talking to the API stand-in."""
    from coinshop.services.coingate_client import CoinGateClient

    client = CoinGateClient("test-auth-token", transport=coingate_api.transport())
    yield client
    client.close()


# === Pipeline Fixtures ===


@pytest.fixture
def dispatcher(db: Any, coingate_client: Any) -> Any:
    """WebhookDispatcher wired to moto tables and the CoinGate stand-in."""
    from coinshop.services.dedupe_store import DedupeStore
    from coinshop.services.fulfillment import OrderCompletionService
    from coinshop.services.notification_source import CoinGateNotificationSource
    from coinshop.services.notification_verifier import NotificationVerifier
    from coinshop.services.order_store import OrderStore
    from coinshop.services.payment_store import PaymentStore
    from coinshop.services.reconciliation import ReconciliationEngine
    from coinshop.services.webhook_dispatcher import WebhookDispatcher
    from coinshop.services.webhook_log import WebhookLog

    source = CoinGateNotificationSource()
    orders = OrderStore(db)
    dedupe = DedupeStore(db)
    return WebhookDispatcher(
        source=source,
        verifier=NotificationVerifier(source, dedupe, orders, coingate_client),
        engine=ReconciliationEngine(orders, PaymentStore(db), OrderCompletionService(orders)),
        dedupe=dedupe,
        webhook_log=WebhookLog(db),
    )


def _coingate_form(
    *,
    remote_id: str = "R1",
    status: str = "paid",
    order_id: str = "42",
    token: str = "abc",
    price_amount: str | None = "100.00",
    **extra: str,
) -> bytes:
    """Build a form-encoded CoinGate callback body."""
    from urllib.parse import urlencode

    fields: dict[str, str] = {
        "id": remote_id,
        "status": status,
        "order_id": order_id,
        "token": token,
        "price_currency": "EUR",
        "receive_currency": "EUR",
        **extra,
    }
    if price_amount is not None:
        fields["price_amount"] = price_amount
    return urlencode(fields).encode("utf-8")


@pytest.fixture
def coingate_form() -> Callable[..., bytes]:
    """Builder for form-encoded CoinGate callback bodies."""
    return _coingate_form
