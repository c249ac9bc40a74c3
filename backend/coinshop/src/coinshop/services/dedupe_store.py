"""Durable seen-set of notification dedupe keys.

A key is claimed with a conditional insert before any state is touched,
so of several concurrent deliveries sharing a key exactly one proceeds.
The claim becomes permanent once the delivery reaches a final result,
and is released when the delivery is rejected or fails transiently so
that a later redelivery is processed afresh.
"""

import datetime as dt
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = logging.getLogger(__name__)

# A claim older than this with no result is treated as abandoned
DEFAULT_CLAIM_TTL_SECONDS = 300


class DedupeStore:
    """Claim, complete and release notification dedupe keys."""

    DEDUPE_TABLE = "webhook-dedupe"

    def __init__(
        self,
        db: "DynamoDBService",
        claim_ttl_seconds: int = DEFAULT_CLAIM_TTL_SECONDS,
    ) -> None:
        """Initialize dedupe store.

        Args:
            db: DynamoDB service instance
            claim_ttl_seconds: Age after which an unfinished claim may be taken over
        """
        self.db = db
        self.claim_ttl_seconds = claim_ttl_seconds

    def claim(self, dedupe_key: str, order_id: str | None = None) -> bool:
        """Atomically claim a dedupe key.

        Args:
            dedupe_key: Notification dedupe key
            order_id: Merchant order ID, stored for audits

        Returns:
            True if this caller now owns the key, False if it was already
            processed or is being processed by another delivery
        """
        now = dt.datetime.now(dt.UTC)
        item: dict[str, Any] = {
            "dedupe_key": dedupe_key,
            "claimed_at": now.isoformat(),
            "claim_expires_at": int(now.timestamp()) + self.claim_ttl_seconds,
        }
        if order_id:
            item["order_id"] = order_id

        claimed = self.db.put_item(
            self.DEDUPE_TABLE,
            item,
            condition_expression=(
                "attribute_not_exists(dedupe_key) OR "
                "(attribute_not_exists(processing_result) AND claim_expires_at < :now)"
            ),
            expression_attribute_values={":now": int(now.timestamp())},
        )
        if not claimed:
            logger.info("Dedupe key %s already claimed", dedupe_key)
        return claimed

    def is_processed(self, dedupe_key: str) -> bool:
        """Check whether a key has reached a final result.

        Args:
            dedupe_key: Notification dedupe key

        Returns:
            True if a delivery with this key was fully processed
        """
        item = self.db.get_item(self.DEDUPE_TABLE, {"dedupe_key": dedupe_key})
        return bool(item and item.get("processing_result"))

    def complete(self, dedupe_key: str, processing_result: str) -> None:
        """Make a claim permanent with its final result.

        Args:
            dedupe_key: Notification dedupe key
            processing_result: Final outcome value
        """
        self.db.update_item(
            self.DEDUPE_TABLE,
            {"dedupe_key": dedupe_key},
            "SET processing_result = :result, processed_at = :now REMOVE claim_expires_at",
            {
                ":result": processing_result,
                ":now": dt.datetime.now(dt.UTC).isoformat(),
            },
        )

    def release(self, dedupe_key: str) -> None:
        """Give up an unfinished claim so a redelivery can be processed.

        Keys that already carry a final result are left untouched.

        Args:
            dedupe_key: Notification dedupe key
        """
        released = self.db.delete_item(
            self.DEDUPE_TABLE,
            {"dedupe_key": dedupe_key},
            condition_expression="attribute_not_exists(processing_result)",
        )
        if released:
            logger.info("Dedupe key %s released", dedupe_key)
