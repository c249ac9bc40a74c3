"""Audit log of received webhook deliveries."""

import datetime as dt
import hashlib
import uuid
from typing import TYPE_CHECKING, Any

from coinshop.models import WebhookLogEntry

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService


def compute_payload_hash(payload: bytes) -> str:
    """Compute SHA-256 hash of a webhook payload.

    Args:
        payload: Raw webhook payload bytes.

    Returns:
        Hex-encoded SHA-256 hash.
    """
    return hashlib.sha256(payload).hexdigest()


class WebhookLog:
    """Append-only record of every notification and its result."""

    WEBHOOK_LOG_TABLE = "webhook-log"
    DEDUPE_KEY_INDEX = "dedupe-key-index"

    def __init__(self, db: "DynamoDBService") -> None:
        """Initialize webhook log.

        Args:
            db: DynamoDB service instance
        """
        self._db = db

    def record(
        self,
        *,
        source: str,
        payload: bytes,
        processing_result: str,
        received_at: dt.datetime,
        dedupe_key: str | None = None,
        event_type: str | None = None,
        order_id: str | None = None,
        message: str | None = None,
    ) -> WebhookLogEntry:
        """Write a log entry for one delivery.

        Args:
            source: Processor name
            payload: Raw body as received
            processing_result: Outcome or rejection reason
            received_at: When the delivery arrived
            dedupe_key: Dedupe key, if the payload parsed
            event_type: Raw event status, if known
            order_id: Merchant order ID, if known
            message: Detail for audits

        Returns:
            The stored entry
        """
        entry = WebhookLogEntry(
            log_id=f"WHL-{uuid.uuid4().hex[:16].upper()}",
            source=source,
            dedupe_key=dedupe_key,
            event_type=event_type,
            order_id=order_id,
            payload_hash=compute_payload_hash(payload),
            raw_payload=payload.decode("utf-8", errors="replace"),
            processing_result=processing_result,
            message=message,
            received_at=received_at,
        )

        item: dict[str, Any] = {
            "log_id": entry.log_id,
            "source": entry.source,
            "payload_hash": entry.payload_hash,
            "raw_payload": entry.raw_payload,
            "processing_result": entry.processing_result,
            "received_at": entry.received_at.isoformat(),
            "logged_at": dt.datetime.now(dt.UTC).isoformat(),
        }
        if entry.dedupe_key:
            item["dedupe_key"] = entry.dedupe_key
        if entry.event_type:
            item["event_type"] = entry.event_type
        if entry.order_id:
            item["order_id"] = entry.order_id
        if entry.message:
            item["message"] = entry.message

        self._db.put_item(self.WEBHOOK_LOG_TABLE, item)
        return entry

    def entries_for_key(self, dedupe_key: str) -> list[WebhookLogEntry]:
        """Get every logged delivery for a dedupe key, oldest first.

        Args:
            dedupe_key: Notification dedupe key

        Returns:
            List of log entries
        """
        items = self._db.query_by_gsi(
            self.WEBHOOK_LOG_TABLE,
            self.DEDUPE_KEY_INDEX,
            "dedupe_key",
            dedupe_key,
        )
        entries = [
            WebhookLogEntry(
                log_id=item["log_id"],
                source=item["source"],
                dedupe_key=item.get("dedupe_key"),
                event_type=item.get("event_type"),
                order_id=item.get("order_id"),
                payload_hash=item["payload_hash"],
                raw_payload=item["raw_payload"],
                processing_result=item["processing_result"],
                message=item.get("message"),
                received_at=dt.datetime.fromisoformat(item["received_at"]),
            )
            for item in items
        ]
        return sorted(entries, key=lambda e: e.received_at)
