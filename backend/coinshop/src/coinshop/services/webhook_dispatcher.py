"""Webhook dispatcher for processor notifications.

Sequences decoding, verification, reconciliation and audit logging, and
defines the acknowledgement contract with the processor:

- 200 for anything that must not be redelivered (success, duplicates,
  bad or spoofed messages, unhandled events, insufficient amounts)
- 503 for transient failures (remote lookup, fulfillment, store errors),
  asking the processor to redeliver later

Business logic stays in the verifier and engine; this class is the only
place where their results and exceptions become HTTP acknowledgements.
"""

import datetime as dt
from typing import TYPE_CHECKING

from starlette.status import HTTP_200_OK, HTTP_503_SERVICE_UNAVAILABLE

from coinshop.models import (
    REJECT_MESSAGES,
    RETRYABLE_OUTCOMES,
    MalformedNotificationError,
    RejectReason,
    StoreError,
    WebhookAck,
    WebhookResponse,
    is_rejection_retryable,
)
from coinshop.utils.logging import get_logger, log_webhook_event

from .webhook_log import compute_payload_hash

if TYPE_CHECKING:
    from .dedupe_store import DedupeStore
    from .notification_source import NotificationSource
    from .notification_verifier import NotificationVerifier
    from .reconciliation import ReconciliationEngine
    from .webhook_log import WebhookLog

logger = get_logger(__name__)

ERROR_RESULT = "error"


class WebhookDispatcher:
    """Handles one inbound notification end to end."""

    def __init__(
        self,
        source: "NotificationSource",
        verifier: "NotificationVerifier",
        engine: "ReconciliationEngine",
        dedupe: "DedupeStore",
        webhook_log: "WebhookLog",
    ) -> None:
        self.source = source
        self.verifier = verifier
        self.engine = engine
        self.dedupe = dedupe
        self.webhook_log = webhook_log

    def handle(
        self,
        body: bytes,
        content_type: str | None = None,
        received_at: dt.datetime | None = None,
    ) -> WebhookAck:
        """Process a raw notification body.

        Args:
            body: Raw request body
            content_type: Content-Type header value
            received_at: Arrival time, defaults to now (UTC)

        Returns:
            WebhookAck with the HTTP status and response body
        """
        received_at = received_at or dt.datetime.now(dt.UTC)

        try:
            payload = self.source.decode(body, content_type)
        except MalformedNotificationError as e:
            return self._finish(
                body,
                received_at,
                result=RejectReason.MALFORMED.value,
                status_code=HTTP_200_OK,
                message=f"{REJECT_MESSAGES[RejectReason.MALFORMED]}: {e}",
            )

        event_type = payload.get("status")
        order_id = payload.get("order_id")

        try:
            verification = self.verifier.verify(payload, received_at)
        except StoreError as e:
            return self._finish(
                body,
                received_at,
                result=ERROR_RESULT,
                status_code=HTTP_503_SERVICE_UNAVAILABLE,
                event_type=event_type,
                order_id=order_id,
                message=f"Store unavailable: {e}",
            )

        if verification.reason is not None:
            reason = verification.reason
            message = REJECT_MESSAGES[reason]
            if verification.detail:
                message = f"{message}: {verification.detail}"
            return self._finish(
                body,
                received_at,
                result=reason.value,
                status_code=(
                    HTTP_503_SERVICE_UNAVAILABLE
                    if is_rejection_retryable(reason)
                    else HTTP_200_OK
                ),
                dedupe_key=verification.dedupe_key,
                event_type=event_type,
                order_id=order_id,
                message=message,
            )

        notification = verification.notification
        order = verification.order
        if notification is None or order is None:
            raise TypeError("Admitted verification result lacks notification or order")
        key = notification.dedupe_key

        try:
            result = self.engine.reconcile(notification, order)
        except StoreError as e:
            self._release(key)
            return self._finish(
                body,
                received_at,
                result=ERROR_RESULT,
                status_code=HTTP_503_SERVICE_UNAVAILABLE,
                dedupe_key=key,
                event_type=notification.status,
                order_id=order.order_id,
                message=f"Store unavailable: {e}",
            )

        if result.outcome in RETRYABLE_OUTCOMES:
            self._release(key)
            status_code = HTTP_503_SERVICE_UNAVAILABLE
        else:
            self._complete(key, result.outcome.value)
            status_code = HTTP_200_OK

        return self._finish(
            body,
            received_at,
            result=result.outcome.value,
            status_code=status_code,
            dedupe_key=key,
            event_type=notification.status,
            order_id=order.order_id,
            message=result.detail,
        )

    def _complete(self, key: str, result: str) -> None:
        try:
            self.dedupe.complete(key, result)
        except StoreError as e:
            # State is applied; an unfinished claim expires and redelivery is idempotent
            logger.error("Failed to mark dedupe key %s processed: %s", key, e)

    def _release(self, key: str) -> None:
        try:
            self.dedupe.release(key)
        except StoreError as e:
            logger.error("Failed to release dedupe key %s: %s", key, e)

    def _finish(
        self,
        body: bytes,
        received_at: dt.datetime,
        *,
        result: str,
        status_code: int,
        dedupe_key: str | None = None,
        event_type: str | None = None,
        order_id: str | None = None,
        message: str | None = None,
    ) -> WebhookAck:
        raw_payload = body.decode("utf-8", errors="replace")
        log_webhook_event(
            logger,
            self.source.name,
            dedupe_key,
            result=result,
            order_id=order_id,
            payload_hash=compute_payload_hash(body),
            raw_payload=raw_payload,
            error=message if status_code >= 500 else None,
            status_code=status_code,
        )

        try:
            self.webhook_log.record(
                source=self.source.name,
                payload=body,
                processing_result=result,
                received_at=received_at,
                dedupe_key=dedupe_key,
                event_type=event_type,
                order_id=order_id,
                message=message,
            )
        except StoreError as e:
            logger.error("Failed to write webhook log entry for %s: %s", dedupe_key, e)

        return WebhookAck(
            status_code=status_code,
            body=WebhookResponse(
                received=True,
                dedupe_key=dedupe_key,
                event_type=event_type,
                processing_result=result,
                message=message,
            ),
        )
