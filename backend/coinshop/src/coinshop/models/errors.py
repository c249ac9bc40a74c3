"""Rejection reasons and exception types for webhook processing.

Every rejection a notification can receive is listed in RejectReason.
The dispatcher turns them into acknowledgements; nothing here is fatal
to the process.
"""

from enum import Enum
from typing import Optional


class RejectReason(str, Enum):
    """Why a notification was refused before reconciliation."""

    MALFORMED = "malformed"
    DUPLICATE = "duplicate"
    UNKNOWN_ORDER = "unknown_order"
    TOKEN_MISMATCH = "token_mismatch"
    STATUS_MISMATCH = "status_mismatch"
    REMOTE_LOOKUP_FAILED = "remote_lookup_failed"


# Human-readable messages returned in the acknowledgement body
REJECT_MESSAGES: dict[RejectReason, str] = {
    RejectReason.MALFORMED: "Notification is missing required fields",
    RejectReason.DUPLICATE: "Notification already processed",
    RejectReason.UNKNOWN_ORDER: "Order referenced by notification does not exist",
    RejectReason.TOKEN_MISMATCH: "Notification token does not match the order",
    RejectReason.STATUS_MISMATCH: "Processor status does not match the notification",
    RejectReason.REMOTE_LOOKUP_FAILED: "Could not confirm order status with the processor",
}

# Transient rejections; the processor should redeliver later
RETRYABLE_REJECTIONS: set[RejectReason] = {
    RejectReason.REMOTE_LOOKUP_FAILED,
}


def is_rejection_retryable(reason: Optional[RejectReason]) -> bool:
    """Check whether a rejection is transient.

    Args:
        reason: The rejection reason.

    Returns:
        True if the processor should be told to retry.
    """
    return reason in RETRYABLE_REJECTIONS if reason else False


class MalformedNotificationError(ValueError):
    """Raised when a notification payload cannot be parsed."""

    def __init__(self, message: str, missing_fields: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.missing_fields = missing_fields or []


class StoreError(Exception):
    """Raised when an order, payment or webhook table operation fails."""

    def __init__(self, message: str, table: Optional[str] = None) -> None:
        super().__init__(message)
        self.table = table


class FulfillmentError(Exception):
    """Raised by purchase fulfillment when downstream completion fails.

    The payment record has already been written when this is raised, so
    the notification can safely be redelivered.
    """

    def __init__(self, message: str, order_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.order_id = order_id
