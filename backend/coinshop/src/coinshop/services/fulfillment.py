"""Purchase fulfillment run after a payment settles an order."""

from typing import TYPE_CHECKING, Protocol

from coinshop.models import FulfillmentError, Order, PaymentRecord, StoreError
from coinshop.utils.logging import get_logger, log_payment_operation

if TYPE_CHECKING:
    from .order_store import OrderStore

logger = get_logger(__name__)


class PurchaseFulfillment(Protocol):
    """Downstream completion of a paid order.

    Implementations raise FulfillmentError when completion fails; the
    payment has already been recorded, so the call may be repeated.
    """

    def fulfill(self, order: Order, payment: PaymentRecord) -> None:
        """Complete the purchase for a settled order."""
        ...


class OrderCompletionService:
    """Default fulfillment: stamp the order as completed and announce it."""

    def __init__(self, orders: "OrderStore") -> None:
        """Initialize with the order store.

        Args:
            orders: Order store used to record completion
        """
        self.orders = orders

    def fulfill(self, order: Order, payment: PaymentRecord) -> None:
        """Record completion of a paid order.

        Args:
            order: The settled order
            payment: Payment that settled it

        Raises:
            FulfillmentError: If completion cannot be recorded
        """
        try:
            self.orders.mark_completed(order.order_id, payment.ref_id)
        except StoreError as e:
            log_payment_operation(
                logger,
                "fulfill_purchase",
                ref_id=payment.ref_id,
                order_id=order.order_id,
                error=str(e),
            )
            raise FulfillmentError(
                f"Failed to complete order {order.order_id}: {e}",
                order_id=order.order_id,
            ) from e

        log_payment_operation(
            logger,
            "fulfill_purchase",
            ref_id=payment.ref_id,
            order_id=order.order_id,
            amount=payment.amount,
            status="completed",
            currency=order.currency,
        )
