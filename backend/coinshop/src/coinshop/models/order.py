"""Merchant order and processor-side order models."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from .enums import OrderStatus


class Order(BaseModel):
    """A merchant order as held by the order store.

    The webhook core only reads orders and requests status transitions.
    """

    model_config = ConfigDict(strict=True)

    order_id: str = Field(..., description="Merchant order ID", examples=["42"])
    token: str = Field(..., description="Secret set at creation, echoed by the processor")
    balance_due: Decimal = Field(..., ge=0, description="Amount still owed")
    currency: str = Field(default="EUR", description="Price currency code")
    status: OrderStatus = Field(..., description="Current order status")
    is_new: bool = Field(
        default=False,
        description="True while checkout is unconfirmed; such orders ignore webhooks",
    )
    created_at: datetime | None = Field(default=None, description="Creation timestamp")
    updated_at: datetime | None = Field(default=None, description="Last update timestamp")
    completed_at: datetime | None = Field(
        default=None, description="When purchase fulfillment completed"
    )


class RemoteOrderSnapshot(BaseModel):
    """The processor's current view of an order, used to cross-check claims."""

    model_config = ConfigDict(frozen=True)

    remote_order_id: str
    status: str
    token: str | None = None
    payment_url: str | None = None
    price_amount: Decimal | None = None
    price_currency: str | None = None


class RemoteOrder(BaseModel):
    """Result of creating an order at the processor.

    ``payment_url`` is the hosted-checkout redirect target.
    """

    model_config = ConfigDict(frozen=True)

    remote_order_id: str
    token: str
    payment_url: str
    status: str = "new"
