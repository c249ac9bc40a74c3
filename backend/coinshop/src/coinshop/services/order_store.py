"""Order store backed by DynamoDB.

Orders are created by checkout and owned by this store. The webhook core
only reads them and requests status transitions, which are applied with a
conditional update so concurrent notifications cannot move an order out of
a terminal status.
"""

import datetime as dt
import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from coinshop.models import ORDER_TRANSITIONS, Order, OrderStatus

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = logging.getLogger(__name__)


class OrderStore:
    """Read orders and apply webhook-driven status transitions."""

    ORDERS_TABLE = "orders"

    def __init__(self, db: "DynamoDBService") -> None:
        """Initialize order store.

        Args:
            db: DynamoDB service instance
        """
        self.db = db

    def get_by_id(self, order_id: str) -> Order | None:
        """Get an order by ID.

        Args:
            order_id: Merchant order ID

        Returns:
            Order or None if not found

        Raises:
            StoreError: If the read fails
        """
        item = self.db.get_item(self.ORDERS_TABLE, {"order_id": order_id})
        return self._item_to_order(item) if item else None

    def transition_status(self, order_id: str, target: OrderStatus) -> bool:
        """Move an order to ``target`` if its current status allows it.

        The allowed source statuses come from ORDER_TRANSITIONS and are
        enforced by the write itself.

        Args:
            order_id: Merchant order ID
            target: Requested status

        Returns:
            True if the order was updated, False if its current status
            does not permit the transition (or the order is gone)

        Raises:
            StoreError: If the update fails
        """
        sources = [s for s, targets in ORDER_TRANSITIONS.items() if target in targets]
        if not sources:
            return False

        placeholders = {f":from{i}": s.value for i, s in enumerate(sources)}
        condition = f"#status IN ({', '.join(placeholders)})"

        attrs = self.db.update_item(
            self.ORDERS_TABLE,
            {"order_id": order_id},
            "SET #status = :status, updated_at = :now",
            {
                ":status": target.value,
                ":now": dt.datetime.now(dt.UTC).isoformat(),
                **placeholders,
            },
            {"#status": "status"},  # status is a reserved word
            condition_expression=f"attribute_exists(order_id) AND {condition}",
        )
        if attrs is None:
            logger.info(
                "Order %s not moved to %s: current status does not allow it",
                order_id,
                target.value,
            )
            return False

        logger.info("Order %s status set to %s", order_id, target.value)
        return True

    def mark_completed(self, order_id: str, payment_ref_id: str) -> None:
        """Record that purchase fulfillment completed for an order.

        Args:
            order_id: Merchant order ID
            payment_ref_id: Payment that settled the order

        Raises:
            StoreError: If the update fails
        """
        now = dt.datetime.now(dt.UTC).isoformat()
        self.db.update_item(
            self.ORDERS_TABLE,
            {"order_id": order_id},
            "SET completed_at = :now, payment_ref_id = :ref, updated_at = :now",
            {":now": now, ":ref": payment_ref_id},
        )

    def _item_to_order(self, item: dict[str, Any]) -> Order:
        """Convert DynamoDB item to Order model."""
        return Order(
            order_id=str(item["order_id"]),
            token=str(item["token"]),
            balance_due=Decimal(str(item["balance_due"])),
            currency=item.get("currency", "EUR"),
            status=OrderStatus(item["status"]),
            is_new=bool(item.get("is_new", False)),
            created_at=self._parse_timestamp(item.get("created_at")),
            updated_at=self._parse_timestamp(item.get("updated_at")),
            completed_at=self._parse_timestamp(item.get("completed_at")),
        )

    @staticmethod
    def _parse_timestamp(value: Any) -> dt.datetime | None:
        if not value:
            return None
        return dt.datetime.fromisoformat(str(value))
