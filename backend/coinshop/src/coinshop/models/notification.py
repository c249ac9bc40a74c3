"""Inbound payment notification model."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from .enums import EventType, PaymentGateway


class Notification(BaseModel):
    """A parsed processor callback reporting an order status change.

    Immutable once parsed. The raw ``status`` string is kept alongside the
    closed ``event_type`` so the dedupe key and the remote cross-check use
    exactly what the processor sent.
    """

    model_config = ConfigDict(strict=True, frozen=True)

    source: PaymentGateway = Field(
        default=PaymentGateway.COINGATE,
        description="Processor that sent the notification",
    )
    status: str = Field(
        ...,
        min_length=1,
        description="Raw status string from the processor",
        examples=["paid", "pending", "confirming"],
    )
    event_type: EventType = Field(..., description="Handled event derived from status")
    remote_order_id: str = Field(
        ...,
        min_length=1,
        description="Processor-assigned order ID",
        examples=["1787351"],
    )
    local_order_id: str = Field(
        ...,
        min_length=1,
        description="Merchant order ID echoed back by the processor",
        examples=["42"],
    )
    token: str = Field(..., description="Shared secret set at order creation")
    gross_amount: Decimal | None = Field(
        default=None,
        description="Amount paid, present for paid events",
        examples=[Decimal("100.00")],
    )
    received_at: datetime = Field(..., description="When the notification arrived")

    @property
    def dedupe_key(self) -> str:
        """Deterministic idempotency key: source, event and remote order."""
        return f"{self.source.value}_{self.status}_{self.remote_order_id}"
