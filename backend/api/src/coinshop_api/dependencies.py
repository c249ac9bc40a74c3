"""FastAPI dependency providers for the notification pipeline.

Every component is built once per process with @lru_cache, so the
CoinGate client (and its connection pool) is created explicitly at first
use and then shared read-only.

Service Dependency Graph:
    DynamoDBService (singleton via get_dynamodb_service)
        ├── OrderStore
        ├── PaymentStore
        ├── DedupeStore
        └── WebhookLog
    CoinGateClient (SSM auth token)

    NotificationVerifier(source, DedupeStore, OrderStore, CoinGateClient)
    ReconciliationEngine(OrderStore, PaymentStore, OrderCompletionService)
    WebhookDispatcher(source, verifier, engine, DedupeStore, WebhookLog)

Testing:
    Use reset_services() to clear cached instances between tests, or
    override get_webhook_dispatcher via app.dependency_overrides.
"""

from functools import lru_cache

from coinshop.services.coingate_client import CoinGateClient, create_coingate_client
from coinshop.services.dedupe_store import DedupeStore
from coinshop.services.dynamodb import get_dynamodb_service
from coinshop.services.fulfillment import OrderCompletionService
from coinshop.services.notification_source import CoinGateNotificationSource
from coinshop.services.notification_verifier import NotificationVerifier
from coinshop.services.order_store import OrderStore
from coinshop.services.payment_store import PaymentStore
from coinshop.services.reconciliation import ReconciliationEngine
from coinshop.services.webhook_dispatcher import WebhookDispatcher
from coinshop.services.webhook_log import WebhookLog


@lru_cache
def get_order_store() -> OrderStore:
    """Get cached OrderStore instance."""
    return OrderStore(db=get_dynamodb_service())


@lru_cache
def get_payment_store() -> PaymentStore:
    """Get cached PaymentStore instance."""
    return PaymentStore(db=get_dynamodb_service())


@lru_cache
def get_dedupe_store() -> DedupeStore:
    """Get cached DedupeStore instance."""
    return DedupeStore(db=get_dynamodb_service())


@lru_cache
def get_webhook_log() -> WebhookLog:
    """Get cached WebhookLog instance."""
    return WebhookLog(db=get_dynamodb_service())


@lru_cache
def get_coingate_client() -> CoinGateClient:
    """Get the process-wide CoinGate client.

    Returns:
        CoinGateClient configured from environment and SSM.
    """
    return create_coingate_client()


@lru_cache
def get_coingate_source() -> CoinGateNotificationSource:
    """Get cached CoinGate notification source."""
    return CoinGateNotificationSource()


@lru_cache
def get_notification_verifier() -> NotificationVerifier:
    """Get cached NotificationVerifier instance.

    Returns:
        NotificationVerifier wired to the dedupe and order stores.
    """
    return NotificationVerifier(
        source=get_coingate_source(),
        dedupe=get_dedupe_store(),
        orders=get_order_store(),
        client=get_coingate_client(),
    )


@lru_cache
def get_reconciliation_engine() -> ReconciliationEngine:
    """Get cached ReconciliationEngine instance."""
    orders = get_order_store()
    return ReconciliationEngine(
        orders=orders,
        payments=get_payment_store(),
        fulfillment=OrderCompletionService(orders),
    )


@lru_cache
def get_webhook_dispatcher() -> WebhookDispatcher:
    """Get cached WebhookDispatcher instance.

    Returns:
        WebhookDispatcher for CoinGate notifications.
    """
    return WebhookDispatcher(
        source=get_coingate_source(),
        verifier=get_notification_verifier(),
        engine=get_reconciliation_engine(),
        dedupe=get_dedupe_store(),
        webhook_log=get_webhook_log(),
    )


def reset_services() -> None:
    """Clear all cached service instances.

    Also closes the CoinGate client and resets the DynamoDB singleton.
    """
    from coinshop.services.dynamodb import reset_dynamodb_service

    if get_coingate_client.cache_info().currsize:
        get_coingate_client().close()

    get_webhook_dispatcher.cache_clear()
    get_reconciliation_engine.cache_clear()
    get_notification_verifier.cache_clear()
    get_coingate_source.cache_clear()
    get_coingate_client.cache_clear()
    get_webhook_log.cache_clear()
    get_dedupe_store.cache_clear()
    get_payment_store.cache_clear()
    get_order_store.cache_clear()

    reset_dynamodb_service()
