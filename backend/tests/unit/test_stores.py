"""Unit tests for DynamoDB-backed stores.

Tests cover:
- OrderStore reads and conditional status transitions
- PaymentStore get-or-create by reference ID
- DedupeStore claim, complete, release and stale claim takeover
- WebhookLog audit entries
- StoreError on table failures
"""

import datetime as dt
from decimal import Decimal
from typing import Any, Callable

import pytest

from coinshop.models import OrderStatus, PaymentGateway, StoreError
from coinshop.services.dedupe_store import DedupeStore
from coinshop.services.dynamodb import DynamoDBService
from coinshop.services.order_store import OrderStore
from coinshop.services.payment_store import PaymentStore
from coinshop.services.webhook_log import WebhookLog, compute_payload_hash


# === OrderStore ===


class TestOrderStore:
    def test_get_by_id(self, db: DynamoDBService, seed_order: Callable[..., Any]) -> None:
        seed_order()
        order = OrderStore(db).get_by_id("42")

        assert order is not None
        assert order.token == "abc"
        assert order.balance_due == Decimal("100.00")
        assert order.status is OrderStatus.PENDING
        assert not order.is_new

    def test_get_missing(self, db: DynamoDBService) -> None:
        assert OrderStore(db).get_by_id("missing") is None

    def test_transition_pending_to_paid(
        self, db: DynamoDBService, seed_order: Callable[..., Any]
    ) -> None:
        seed_order()
        store = OrderStore(db)

        assert store.transition_status("42", OrderStatus.PAID)
        assert store.get_by_id("42").status is OrderStatus.PAID  # type: ignore[union-attr]

    def test_transition_from_terminal_refused(
        self, db: DynamoDBService, seed_order: Callable[..., Any]
    ) -> None:
        seed_order(status="paid")
        store = OrderStore(db)

        assert not store.transition_status("42", OrderStatus.CANCELED)
        assert store.get_by_id("42").status is OrderStatus.PAID  # type: ignore[union-attr]

    def test_transition_to_new_refused(
        self, db: DynamoDBService, seed_order: Callable[..., Any]
    ) -> None:
        seed_order()
        assert not OrderStore(db).transition_status("42", OrderStatus.NEW)

    def test_transition_missing_order(self, db: DynamoDBService) -> None:
        assert not OrderStore(db).transition_status("missing", OrderStatus.PAID)

    def test_mark_completed(self, db: DynamoDBService, seed_order: Callable[..., Any]) -> None:
        seed_order(status="paid")
        store = OrderStore(db)

        store.mark_completed("42", "coingate_paid_R1")

        order = store.get_by_id("42")
        assert order is not None
        assert order.completed_at is not None


# === PaymentStore ===


class TestPaymentStore:
    def _create(self, store: PaymentStore, amount: str = "100.00") -> Any:
        return store.get_or_create_by_ref_id(
            "coingate_paid_R1",
            order_id="42",
            amount=Decimal(amount),
            gateway=PaymentGateway.COINGATE,
            method="coingate",
            comment="Webhook coingate_paid_R1",
        )

    def test_creates_once(self, db: DynamoDBService) -> None:
        store = PaymentStore(db)

        first, created_first = self._create(store)
        second, created_second = self._create(store, amount="999.00")

        assert created_first
        assert not created_second
        assert second.amount == Decimal("100.00")
        assert second.comment == "Webhook coingate_paid_R1"
        assert len(store.get_payments_for_order("42")) == 1

    def test_mark_fulfilled(self, db: DynamoDBService) -> None:
        store = PaymentStore(db)
        payment, _ = self._create(store)
        assert not payment.is_fulfilled

        store.mark_fulfilled(payment.ref_id)

        stored = store.get_by_ref_id(payment.ref_id)
        assert stored is not None
        assert stored.is_fulfilled
        assert stored.gateway is PaymentGateway.COINGATE


# === DedupeStore ===


class TestDedupeStore:
    KEY = "coingate_paid_R1"

    def test_claim_once(self, db: DynamoDBService) -> None:
        store = DedupeStore(db)
        assert store.claim(self.KEY, order_id="42")
        assert not store.claim(self.KEY, order_id="42")

    def test_complete_makes_claim_permanent(self, db: DynamoDBService) -> None:
        store = DedupeStore(db)
        store.claim(self.KEY)
        store.complete(self.KEY, "completed")

        assert store.is_processed(self.KEY)
        store.release(self.KEY)
        assert store.is_processed(self.KEY)
        assert not store.claim(self.KEY)

    def test_release_allows_reclaim(self, db: DynamoDBService) -> None:
        store = DedupeStore(db)
        store.claim(self.KEY)
        store.release(self.KEY)

        assert not store.is_processed(self.KEY)
        assert store.claim(self.KEY)

    def test_release_unknown_key(self, db: DynamoDBService) -> None:
        DedupeStore(db).release("never_claimed")

    def test_stale_claim_taken_over(self, db: DynamoDBService) -> None:
        stale = DedupeStore(db, claim_ttl_seconds=-10)
        assert stale.claim(self.KEY)
        assert stale.claim(self.KEY)

    def test_completed_key_never_taken_over(self, db: DynamoDBService) -> None:
        stale = DedupeStore(db, claim_ttl_seconds=-10)
        stale.claim(self.KEY)
        stale.complete(self.KEY, "completed")
        assert not stale.claim(self.KEY)


# === WebhookLog ===


class TestWebhookLog:
    def test_record_and_query(self, db: DynamoDBService) -> None:
        log = WebhookLog(db)
        first = dt.datetime(2026, 1, 1, 12, 0, tzinfo=dt.UTC)

        log.record(
            source="coingate",
            payload=b"id=R1&status=paid",
            processing_result="duplicate",
            received_at=first + dt.timedelta(minutes=5),
            dedupe_key="coingate_paid_R1",
            event_type="paid",
            order_id="42",
        )
        entry = log.record(
            source="coingate",
            payload=b"id=R1&status=paid",
            processing_result="completed",
            received_at=first,
            dedupe_key="coingate_paid_R1",
            event_type="paid",
            order_id="42",
        )

        assert entry.log_id.startswith("WHL-")
        assert entry.payload_hash == compute_payload_hash(b"id=R1&status=paid")

        entries = log.entries_for_key("coingate_paid_R1")
        assert [e.processing_result for e in entries] == ["completed", "duplicate"]
        assert entries[0].raw_payload == "id=R1&status=paid"

    def test_record_unparsed_payload(self, db: DynamoDBService) -> None:
        entry = WebhookLog(db).record(
            source="coingate",
            payload=b"\xff",
            processing_result="malformed",
            received_at=dt.datetime.now(dt.UTC),
        )
        assert entry.dedupe_key is None
        assert entry.raw_payload == "\ufffd"


# === Errors ===


class TestStoreErrors:
    def test_missing_table_raises_store_error(self, mocked_aws: None) -> None:
        db = DynamoDBService(environment="test")
        with pytest.raises(StoreError) as exc_info:
            OrderStore(db).get_by_id("42")
        assert exc_info.value.table == "orders"
