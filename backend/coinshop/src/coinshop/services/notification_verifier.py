"""Notification verification: authenticity, freshness and consistency gates.

A notification is admitted only after passing, in order:

1. parsing (required fields present)
2. dedupe claim (key not seen before)
3. order lookup (local order exists)
4. token check (notification token equals the order's secret)
5. remote lookup (processor confirms the order exists)
6. status cross-check (processor status equals the claimed event)

Any failure aborts with no side effect beyond logging. A claim taken in
step 2 is released again when a later gate fails, so only admitted
notifications occupy the seen-set.
"""

import datetime as dt
import hmac
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from coinshop.models import (
    MalformedNotificationError,
    RejectReason,
    StoreError,
    VerificationResult,
)
from coinshop.utils.logging import get_logger

from .coingate_client import RemoteOrderClientError
from .notification_source import NotificationSource

if TYPE_CHECKING:
    from .coingate_client import OrderClient
    from .dedupe_store import DedupeStore
    from .order_store import OrderStore

logger = get_logger(__name__)


class NotificationVerifier:
    """Decides whether an inbound notification may change local state."""

    def __init__(
        self,
        source: NotificationSource,
        dedupe: "DedupeStore",
        orders: "OrderStore",
        client: "OrderClient",
    ) -> None:
        self.source = source
        self.dedupe = dedupe
        self.orders = orders
        self.client = client

    def verify(
        self,
        payload: Mapping[str, Any],
        received_at: dt.datetime | None = None,
    ) -> VerificationResult:
        """Run a decoded payload through every verification gate.

        Args:
            payload: Decoded notification fields
            received_at: Arrival time, defaults to now

        Returns:
            Admitted result carrying the notification and order, or a
            rejected result carrying the reason

        Raises:
            StoreError: If the dedupe or order tables cannot be read
        """
        try:
            notification = self.source.parse(payload, received_at)
        except MalformedNotificationError as e:
            logger.warning("Malformed %s notification: %s", self.source.name, e)
            return VerificationResult.reject(RejectReason.MALFORMED, detail=str(e))

        key = notification.dedupe_key
        if not self.dedupe.claim(key, order_id=notification.local_order_id):
            return VerificationResult.reject(RejectReason.DUPLICATE, dedupe_key=key)

        admitted = False
        try:
            order = self.orders.get_by_id(notification.local_order_id)
            if order is None:
                logger.warning(
                    "Notification %s references unknown order %s",
                    key,
                    notification.local_order_id,
                )
                return VerificationResult.reject(RejectReason.UNKNOWN_ORDER, dedupe_key=key)

            if not hmac.compare_digest(
                notification.token.encode("utf-8"), order.token.encode("utf-8")
            ):
                logger.warning(
                    "Notification %s token does not match token of order %s",
                    key,
                    order.order_id,
                )
                return VerificationResult.reject(RejectReason.TOKEN_MISMATCH, dedupe_key=key)

            try:
                snapshot = self.client.find_order(notification.remote_order_id)
            except RemoteOrderClientError as e:
                logger.error(
                    "Remote lookup of order %s failed: %s", notification.remote_order_id, e
                )
                return VerificationResult.reject(
                    RejectReason.REMOTE_LOOKUP_FAILED, dedupe_key=key, detail=str(e)
                )
            if snapshot is None:
                logger.warning(
                    "Remote order %s not found at %s",
                    notification.remote_order_id,
                    self.source.name,
                )
                return VerificationResult.reject(
                    RejectReason.REMOTE_LOOKUP_FAILED,
                    dedupe_key=key,
                    detail="Remote order not found",
                )

            if snapshot.status.strip().lower() != notification.status:
                logger.warning(
                    "Remote status %s does not match notification status %s for %s",
                    snapshot.status,
                    notification.status,
                    key,
                )
                return VerificationResult.reject(
                    RejectReason.STATUS_MISMATCH,
                    dedupe_key=key,
                    detail=f"Remote status is '{snapshot.status}'",
                )

            admitted = True
            return VerificationResult(notification=notification, order=order, dedupe_key=key)
        finally:
            if not admitted:
                self._release(key)

    def _release(self, key: str) -> None:
        # A stuck claim expires; the rejection itself must stand
        try:
            self.dedupe.release(key)
        except StoreError as e:
            logger.error("Failed to release dedupe key %s: %s", key, e)
