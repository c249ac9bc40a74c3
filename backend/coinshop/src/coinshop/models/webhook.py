"""Webhook processing results, acknowledgements and audit log entries."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import Outcome
from .errors import RejectReason
from .notification import Notification
from .order import Order


class VerificationResult(BaseModel):
    """Result of running a notification through the verifier.

    Either ``reason`` is set (rejected) or both ``notification`` and
    ``order`` are set (admitted).
    """

    model_config = ConfigDict(frozen=True)

    notification: Notification | None = None
    order: Order | None = None
    reason: RejectReason | None = None
    dedupe_key: str | None = None
    detail: str | None = None

    @model_validator(mode="after")
    def check_admitted_has_context(self) -> "VerificationResult":
        if self.reason is None and (self.notification is None or self.order is None):
            raise ValueError("admitted result requires notification and order")
        return self

    @property
    def admitted(self) -> bool:
        """True if the notification passed every gate."""
        return self.reason is None

    @classmethod
    def reject(
        cls,
        reason: RejectReason,
        dedupe_key: str | None = None,
        detail: str | None = None,
    ) -> "VerificationResult":
        """Build a rejected result."""
        return cls(reason=reason, dedupe_key=dedupe_key, detail=detail)


class ReconciliationResult(BaseModel):
    """Result of applying an admitted notification to local state."""

    model_config = ConfigDict(frozen=True)

    outcome: Outcome
    order_id: str
    payment_ref_id: str | None = None
    detail: str | None = None


class WebhookResponse(BaseModel):
    """Body returned to the processor."""

    received: bool = True
    dedupe_key: str | None = None
    event_type: str | None = None
    processing_result: str = Field(
        ...,
        description="Outcome or rejection reason, or 'error' for store failures",
        examples=["completed", "duplicate", "token_mismatch"],
    )
    message: str | None = None


class WebhookAck(BaseModel):
    """HTTP acknowledgement: 2xx stops processor retries, 5xx asks for redelivery."""

    status_code: int
    body: WebhookResponse

    @property
    def retry_requested(self) -> bool:
        """True if the processor should redeliver the notification."""
        return self.status_code >= 500


class WebhookLogEntry(BaseModel):
    """Audit record of one received notification.

    Written for every delivery regardless of result, to support manual
    reconciliation and replay debugging.
    """

    log_id: str = Field(..., description="Unique log entry ID")
    source: str = Field(..., description="Processor name", examples=["coingate"])
    dedupe_key: str | None = Field(
        default=None,
        description="Dedupe key, absent when the payload could not be parsed",
        examples=["coingate_paid_1787351"],
    )
    event_type: str | None = Field(default=None, description="Raw event status")
    order_id: str | None = Field(default=None, description="Merchant order ID")
    payload_hash: str = Field(..., description="SHA-256 hash of the raw body")
    raw_payload: str = Field(..., description="Raw body as received")
    processing_result: str = Field(
        ...,
        description="Outcome or rejection reason",
        examples=["completed", "duplicate"],
    )
    message: str | None = Field(default=None, description="Detail for audits")
    received_at: datetime = Field(..., description="When the notification arrived")
