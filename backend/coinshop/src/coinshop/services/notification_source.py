"""Notification sources: decode and parse inbound processor callbacks."""

import datetime as dt
import json
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol
from urllib.parse import parse_qs

from coinshop.models import EventType, MalformedNotificationError, Notification, PaymentGateway


class NotificationSource(Protocol):
    """Capability to turn a processor's HTTP callback into a Notification."""

    @property
    def name(self) -> str:
        """Processor name, used as the dedupe key prefix."""
        ...

    def decode(self, body: bytes, content_type: str | None) -> dict[str, str]:
        """Decode a raw request body into a flat field mapping."""
        ...

    def parse(
        self,
        payload: Mapping[str, Any],
        received_at: dt.datetime | None = None,
    ) -> Notification:
        """Parse a decoded payload into a Notification."""
        ...


class CoinGateNotificationSource:
    """CoinGate callback format.

    CoinGate posts form-encoded fields by default and JSON when configured
    to. Fields used: id, status, order_id, token, price_amount.
    """

    REQUIRED_FIELDS = ("id", "status", "order_id", "token")

    @property
    def name(self) -> str:
        return PaymentGateway.COINGATE.value

    def decode(self, body: bytes, content_type: str | None) -> dict[str, str]:
        """Decode a form-encoded or JSON body.

        Args:
            body: Raw request body
            content_type: Content-Type header value, if any

        Returns:
            Field name to string value mapping

        Raises:
            MalformedNotificationError: If the body cannot be decoded
        """
        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedNotificationError("Notification body is not UTF-8") from e

        is_json = (content_type and "json" in content_type.lower()) or text.lstrip().startswith("{")
        if is_json:
            try:
                data = json.loads(text, parse_float=Decimal)
            except ValueError as e:
                raise MalformedNotificationError("Notification body is not valid JSON") from e
            if not isinstance(data, dict):
                raise MalformedNotificationError("Notification body must be a JSON object")
            return {
                str(key): str(value)
                for key, value in data.items()
                if value is not None and not isinstance(value, (dict, list))
            }

        fields = parse_qs(text, keep_blank_values=True)
        return {key: values[0] for key, values in fields.items() if values}

    def parse(
        self,
        payload: Mapping[str, Any],
        received_at: dt.datetime | None = None,
    ) -> Notification:
        """Parse a decoded CoinGate payload.

        Args:
            payload: Decoded field mapping
            received_at: Arrival time, defaults to now (UTC)

        Returns:
            Immutable Notification

        Raises:
            MalformedNotificationError: If required fields are missing, or a
                paid notification has no usable price_amount
        """
        values = {
            field: str(payload.get(field) or "").strip() for field in self.REQUIRED_FIELDS
        }
        missing = [field for field, value in values.items() if not value]
        if missing:
            raise MalformedNotificationError(
                f"Missing required fields: {', '.join(missing)}",
                missing_fields=missing,
            )

        status = values["status"].lower()
        event_type = EventType.from_status(status)

        gross_amount = None
        if event_type is EventType.PAID:
            gross_amount = self._parse_amount(payload.get("price_amount"))

        return Notification(
            source=PaymentGateway.COINGATE,
            status=status,
            event_type=event_type,
            remote_order_id=values["id"],
            local_order_id=values["order_id"],
            token=values["token"],
            gross_amount=gross_amount,
            received_at=received_at or dt.datetime.now(dt.UTC),
        )

    @staticmethod
    def _parse_amount(raw: Any) -> Decimal:
        if raw is None or str(raw).strip() == "":
            raise MalformedNotificationError(
                "Paid notification has no price_amount",
                missing_fields=["price_amount"],
            )
        try:
            amount = Decimal(str(raw).strip())
        except InvalidOperation as e:
            raise MalformedNotificationError(f"Invalid price_amount: {raw!r}") from e
        if not amount.is_finite() or amount < 0:
            raise MalformedNotificationError(f"Invalid price_amount: {raw!r}")
        return amount
