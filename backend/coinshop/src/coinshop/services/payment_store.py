"""Payment store for confirmed webhook payments.

Payment records are keyed by ``ref_id`` (the notification dedupe key), and
creation is a conditional put: the first writer wins and every later caller
gets the existing record back.
"""

import datetime as dt
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from coinshop.models import PaymentGateway, PaymentRecord, StoreError

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService


class PaymentStore:
    """Service for recording payments at most once per dedupe key."""

    PAYMENTS_TABLE = "payments"
    ORDER_INDEX = "order-index"

    def __init__(self, db: "DynamoDBService") -> None:
        """Initialize payment store.

        Args:
            db: DynamoDB service instance
        """
        self.db = db

    def get_by_ref_id(self, ref_id: str) -> PaymentRecord | None:
        """Get a payment by reference ID.

        Args:
            ref_id: Dedupe key of the confirming notification

        Returns:
            PaymentRecord or None if not found
        """
        item = self.db.get_item(self.PAYMENTS_TABLE, {"ref_id": ref_id})
        return self._item_to_payment(item) if item else None

    def get_or_create_by_ref_id(
        self,
        ref_id: str,
        *,
        order_id: str,
        amount: Decimal,
        gateway: PaymentGateway,
        method: str,
        comment: str = "",
    ) -> tuple[PaymentRecord, bool]:
        """Create a payment record unless one already exists for ref_id.

        Args:
            ref_id: Dedupe key of the confirming notification
            order_id: Merchant order ID
            amount: Gross amount received
            gateway: Processor that took the payment
            method: Payment method label
            comment: Admin note

        Returns:
            Tuple of (payment record, created) where created is False if the
            record already existed

        Raises:
            StoreError: If the write fails, or the existing record vanished
        """
        payment = PaymentRecord(
            ref_id=ref_id,
            order_id=order_id,
            amount=amount,
            gateway=gateway,
            method=method,
            comment=comment,
            created_at=dt.datetime.now(dt.UTC),
        )

        created = self.db.put_item(
            self.PAYMENTS_TABLE,
            self._payment_to_item(payment),
            condition_expression="attribute_not_exists(ref_id)",
        )
        if created:
            return payment, True

        existing = self.get_by_ref_id(ref_id)
        if existing is None:
            raise StoreError(
                f"Payment {ref_id} reported as existing but not found",
                table=self.PAYMENTS_TABLE,
            )
        return existing, False

    def mark_fulfilled(self, ref_id: str) -> None:
        """Record that purchase fulfillment ran for a payment.

        Args:
            ref_id: Payment reference ID
        """
        self.db.update_item(
            self.PAYMENTS_TABLE,
            {"ref_id": ref_id},
            "SET fulfilled_at = :now",
            {":now": dt.datetime.now(dt.UTC).isoformat()},
        )

    def get_payments_for_order(self, order_id: str) -> list[PaymentRecord]:
        """Get all payments recorded for an order.

        Args:
            order_id: Merchant order ID

        Returns:
            List of PaymentRecord objects
        """
        items = self.db.query_by_gsi(
            self.PAYMENTS_TABLE,
            self.ORDER_INDEX,
            "order_id",
            order_id,
        )
        return [self._item_to_payment(item) for item in items]

    def _payment_to_item(self, payment: PaymentRecord) -> dict[str, Any]:
        """Convert PaymentRecord model to DynamoDB item."""
        item: dict[str, Any] = {
            "ref_id": payment.ref_id,
            "order_id": payment.order_id,
            "amount": payment.amount,
            "gateway": payment.gateway.value,
            "method": payment.method,
            "comment": payment.comment,
            "created_at": payment.created_at.isoformat(),
        }
        if payment.fulfilled_at:
            item["fulfilled_at"] = payment.fulfilled_at.isoformat()
        return item

    def _item_to_payment(self, item: dict[str, Any]) -> PaymentRecord:
        """Convert DynamoDB item to PaymentRecord model."""
        return PaymentRecord(
            ref_id=item["ref_id"],
            order_id=item["order_id"],
            amount=Decimal(str(item["amount"])),
            gateway=PaymentGateway(item["gateway"]),
            method=item["method"],
            comment=item.get("comment", ""),
            created_at=dt.datetime.fromisoformat(item["created_at"]),
            fulfilled_at=(
                dt.datetime.fromisoformat(item["fulfilled_at"])
                if item.get("fulfilled_at")
                else None
            ),
        )
