"""Pydantic models for CoinGate checkout reconciliation."""

from .enums import (
    CANCELLATION_EVENTS,
    ORDER_TRANSITIONS,
    RETRYABLE_OUTCOMES,
    EventType,
    OrderStatus,
    Outcome,
    PaymentGateway,
)
from .errors import (
    REJECT_MESSAGES,
    RETRYABLE_REJECTIONS,
    FulfillmentError,
    MalformedNotificationError,
    RejectReason,
    StoreError,
    is_rejection_retryable,
)
from .notification import Notification
from .order import Order, RemoteOrder, RemoteOrderSnapshot
from .payment import PaymentRecord
from .webhook import (
    ReconciliationResult,
    VerificationResult,
    WebhookAck,
    WebhookLogEntry,
    WebhookResponse,
)

__all__ = [
    # Enums
    "CANCELLATION_EVENTS",
    "ORDER_TRANSITIONS",
    "RETRYABLE_OUTCOMES",
    "EventType",
    "OrderStatus",
    "Outcome",
    "PaymentGateway",
    # Errors
    "REJECT_MESSAGES",
    "RETRYABLE_REJECTIONS",
    "FulfillmentError",
    "MalformedNotificationError",
    "RejectReason",
    "StoreError",
    "is_rejection_retryable",
    # Notification
    "Notification",
    # Orders
    "Order",
    "RemoteOrder",
    "RemoteOrderSnapshot",
    # Payments
    "PaymentRecord",
    # Webhook
    "ReconciliationResult",
    "VerificationResult",
    "WebhookAck",
    "WebhookLogEntry",
    "WebhookResponse",
]
