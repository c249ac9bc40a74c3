"""Enumeration types for CoinGate checkout data models."""

from enum import Enum


class EventType(str, Enum):
    """Event carried by a CoinGate callback.

    CoinGate reports more statuses than we act on (new, confirming,
    refunded, ...). Everything outside the handled set parses to OTHER.
    """

    PENDING = "pending"
    PAID = "paid"
    INVALID = "invalid"
    EXPIRED = "expired"
    CANCELED = "canceled"
    OTHER = "other"

    @classmethod
    def from_status(cls, status: str) -> "EventType":
        """Map a raw processor status string to an EventType.

        Args:
            status: Status string as sent by the processor

        Returns:
            Matching EventType, or OTHER if the status is not handled
        """
        try:
            event_type = cls(status.strip().lower())
        except ValueError:
            return cls.OTHER
        return event_type

    @property
    def is_cancellation(self) -> bool:
        """True for events that cancel the order."""
        return self in CANCELLATION_EVENTS


CANCELLATION_EVENTS: frozenset[EventType] = frozenset(
    {EventType.INVALID, EventType.EXPIRED, EventType.CANCELED}
)


class OrderStatus(str, Enum):
    """Status of a merchant order, driven by verified webhooks."""

    NEW = "new"
    PENDING = "pending"
    PAID = "paid"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        """Paid and canceled orders accept no further webhook transitions."""
        return self in (OrderStatus.PAID, OrderStatus.CANCELED)

    def can_transition_to(self, target: "OrderStatus") -> bool:
        """Check whether a webhook may move an order from this status to target."""
        return target in ORDER_TRANSITIONS.get(self, frozenset())


ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.NEW: frozenset(
        {OrderStatus.PENDING, OrderStatus.PAID, OrderStatus.CANCELED}
    ),
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.CANCELED}),
    OrderStatus.PAID: frozenset(),
    OrderStatus.CANCELED: frozenset(),
}


class PaymentGateway(str, Enum):
    """Payment processors that can deliver notifications."""

    COINGATE = "coingate"


class Outcome(str, Enum):
    """Result of reconciling an admitted notification."""

    ACKNOWLEDGED = "acknowledged"
    ACKNOWLEDGED_INCOMPLETE = "acknowledged_incomplete"
    IGNORED = "ignored"
    COMPLETED = "completed"
    FULFILLMENT_FAILED = "fulfillment_failed"


# Outcomes that must tell the processor to redeliver later
RETRYABLE_OUTCOMES: set[Outcome] = {Outcome.FULFILLMENT_FAILED}
