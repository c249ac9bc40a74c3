"""Reconciliation of verified notifications into order and payment state.

Maps each event to an order status transition and, for payments, to an
idempotent payment record plus one fulfillment run per dedupe key.
Terminal orders (paid, canceled) are never moved by a conflicting event;
such events are logged as anomalies instead.
"""

from typing import TYPE_CHECKING

from coinshop.models import (
    EventType,
    FulfillmentError,
    Notification,
    Order,
    OrderStatus,
    Outcome,
    ReconciliationResult,
    StoreError,
)
from coinshop.utils.logging import get_logger, log_payment_operation

if TYPE_CHECKING:
    from .fulfillment import PurchaseFulfillment
    from .order_store import OrderStore
    from .payment_store import PaymentStore

logger = get_logger(__name__)


class ReconciliationEngine:
    """Applies admitted notifications to local order and payment state."""

    def __init__(
        self,
        orders: "OrderStore",
        payments: "PaymentStore",
        fulfillment: "PurchaseFulfillment",
    ) -> None:
        self.orders = orders
        self.payments = payments
        self.fulfillment = fulfillment

    def reconcile(self, notification: Notification, order: Order) -> ReconciliationResult:
        """Apply a verified notification.

        Args:
            notification: Admitted notification
            order: Order loaded during verification

        Returns:
            ReconciliationResult with the outcome

        Raises:
            StoreError: If order or payment tables cannot be written
        """
        if order.is_new:
            logger.warning(
                "Order %s is not confirmed yet, ignoring %s",
                order.order_id,
                notification.dedupe_key,
            )
            return self._result(Outcome.IGNORED, order, detail="Order not confirmed")

        event = notification.event_type
        if event is EventType.PENDING:
            return self._apply_transition(notification, order, OrderStatus.PENDING)
        if event is EventType.PAID:
            return self._reconcile_payment(notification, order)
        if event.is_cancellation:
            return self._apply_transition(notification, order, OrderStatus.CANCELED)

        logger.info(
            "No action for status %s on order %s", notification.status, order.order_id
        )
        return self._result(Outcome.IGNORED, order, detail=f"Status '{notification.status}' not handled")

    def _apply_transition(
        self,
        notification: Notification,
        order: Order,
        target: OrderStatus,
    ) -> ReconciliationResult:
        if order.status is target:
            return self._result(Outcome.ACKNOWLEDGED, order)

        if not order.status.can_transition_to(target):
            self._log_anomaly(notification, order)
            return self._result(
                Outcome.ACKNOWLEDGED,
                order,
                detail=f"Order already {order.status.value}",
            )

        if not self.orders.transition_status(order.order_id, target):
            # Lost a race with another transition on the same order
            self._log_anomaly(notification, order)
            return self._result(Outcome.ACKNOWLEDGED, order, detail="Order status changed concurrently")

        return self._result(Outcome.ACKNOWLEDGED, order)

    def _reconcile_payment(self, notification: Notification, order: Order) -> ReconciliationResult:
        key = notification.dedupe_key
        amount = notification.gross_amount
        if amount is None or amount < order.balance_due:
            log_payment_operation(
                logger,
                "insufficient_payment",
                ref_id=key,
                order_id=order.order_id,
                amount=amount,
                balance_due=str(order.balance_due),
            )
            return self._result(
                Outcome.ACKNOWLEDGED_INCOMPLETE,
                order,
                detail=f"Received {amount}, balance due {order.balance_due}",
            )

        payment, created = self.payments.get_or_create_by_ref_id(
            key,
            order_id=order.order_id,
            amount=amount,
            gateway=notification.source,
            method=notification.source.value,
            comment=f"Webhook {key}",
        )
        log_payment_operation(
            logger,
            "record_payment" if created else "payment_exists",
            ref_id=key,
            order_id=order.order_id,
            amount=payment.amount,
        )

        if order.status is OrderStatus.CANCELED:
            self._log_anomaly(notification, order)
            return self._result(
                Outcome.ACKNOWLEDGED,
                order,
                payment_ref_id=key,
                detail="Payment received for canceled order",
            )

        if order.status is not OrderStatus.PAID and not self.orders.transition_status(
            order.order_id, OrderStatus.PAID
        ):
            current = self.orders.get_by_id(order.order_id) or order
            if current.status is not OrderStatus.PAID:
                self._log_anomaly(notification, current)
                return self._result(
                    Outcome.ACKNOWLEDGED,
                    order,
                    payment_ref_id=key,
                    detail="Order status changed concurrently",
                )

        if payment.is_fulfilled:
            return self._result(Outcome.COMPLETED, order, payment_ref_id=key)

        try:
            self.fulfillment.fulfill(order, payment)
        except FulfillmentError as e:
            log_payment_operation(
                logger,
                "fulfill_purchase",
                ref_id=key,
                order_id=order.order_id,
                error=str(e),
            )
            return self._result(
                Outcome.FULFILLMENT_FAILED,
                order,
                payment_ref_id=key,
                detail=str(e),
            )

        try:
            self.payments.mark_fulfilled(key)
        except StoreError as e:
            # Fulfillment already ran; the claim is completed so no redelivery repeats it
            logger.error("Payment %s fulfilled but not marked: %s", key, e)
        return self._result(Outcome.COMPLETED, order, payment_ref_id=key)

    @staticmethod
    def _log_anomaly(notification: Notification, order: Order) -> None:
        logger.warning(
            "Anomaly: %s event %s for order %s in status %s, not applied",
            notification.status,
            notification.dedupe_key,
            order.order_id,
            order.status.value,
        )

    @staticmethod
    def _result(
        outcome: Outcome,
        order: Order,
        payment_ref_id: str | None = None,
        detail: str | None = None,
    ) -> ReconciliationResult:
        return ReconciliationResult(
            outcome=outcome,
            order_id=order.order_id,
            payment_ref_id=payment_ref_id,
            detail=detail,
        )
