"""Backend services for CoinGate checkout reconciliation."""

from .coingate_client import (
    CoinGateClient,
    OrderClient,
    RemoteOrderClientError,
    create_coingate_client,
)
from .dedupe_store import DedupeStore
from .dynamodb import DynamoDBService, get_dynamodb_service, reset_dynamodb_service
from .fulfillment import OrderCompletionService, PurchaseFulfillment
from .notification_source import CoinGateNotificationSource, NotificationSource
from .notification_verifier import NotificationVerifier
from .order_store import OrderStore
from .payment_store import PaymentStore
from .reconciliation import ReconciliationEngine
from .ssm_service import SSMService, SSMServiceError, get_ssm_service
from .webhook_dispatcher import WebhookDispatcher
from .webhook_log import WebhookLog, compute_payload_hash

__all__ = [
    "DynamoDBService",
    "get_dynamodb_service",
    "reset_dynamodb_service",
    "CoinGateClient",
    "OrderClient",
    "RemoteOrderClientError",
    "create_coingate_client",
    "CoinGateNotificationSource",
    "NotificationSource",
    "DedupeStore",
    "OrderStore",
    "PaymentStore",
    "WebhookLog",
    "compute_payload_hash",
    "NotificationVerifier",
    "ReconciliationEngine",
    "OrderCompletionService",
    "PurchaseFulfillment",
    "WebhookDispatcher",
    "SSMService",
    "SSMServiceError",
    "get_ssm_service",
]
