"""Payment record model for confirmed webhook payments."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from .enums import PaymentGateway


class PaymentRecord(BaseModel):
    """One row per confirmed payment.

    ``ref_id`` is the notification dedupe key and is unique in the
    payments table, so a payment is recorded at most once per key.
    """

    model_config = ConfigDict(strict=True)

    ref_id: str = Field(
        ...,
        description="Dedupe key of the notification that confirmed the payment",
        examples=["coingate_paid_1787351"],
    )
    order_id: str = Field(..., description="Merchant order the payment settles")
    amount: Decimal = Field(..., ge=0, description="Gross amount received")
    gateway: PaymentGateway = Field(..., description="Processor that took the payment")
    method: str = Field(..., description="Payment method label")
    comment: str = Field(default="", description="Free-text note for admins")
    created_at: datetime = Field(..., description="When the record was written")
    fulfilled_at: datetime | None = Field(
        default=None,
        description="When purchase fulfillment completed for this payment",
    )

    @property
    def is_fulfilled(self) -> bool:
        """True once downstream fulfillment has run for this payment."""
        return self.fulfilled_at is not None
