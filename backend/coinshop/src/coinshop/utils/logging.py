"""Structured logging utilities with correlation ID support.

Provides:
- Correlation ID context management for request tracing
- Structured logging formatter for consistent log output
- Helper functions for payment and webhook logging

Usage:
    from coinshop.utils.logging import get_logger, set_correlation_id

    # In middleware/request handler:
    set_correlation_id(request.headers.get("X-Correlation-ID"))

    # In service code:
    logger = get_logger(__name__)
    logger.info("Processing payment", extra={"order_id": "42"})
"""

import logging
import os
import uuid
from contextvars import ContextVar
from decimal import Decimal
from typing import Any

# Context variable for correlation ID - thread-safe and async-safe
_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Results logged at error level; processor will redeliver
_ERROR_RESULTS = {"error", "remote_lookup_failed", "fulfillment_failed"}
# Results logged at warning level; rejected or not fully processed
_WARNING_RESULTS = {
    "duplicate",
    "malformed",
    "unknown_order",
    "token_mismatch",
    "status_mismatch",
    "acknowledged_incomplete",
    "ignored",
}


def generate_correlation_id() -> str:
    """Generate a new correlation ID.

    Returns:
        UUID-based correlation ID string
    """
    return str(uuid.uuid4())


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set the correlation ID for the current request context.

    Args:
        correlation_id: Optional existing correlation ID. If None, generates new one.

    Returns:
        The correlation ID that was set
    """
    cid = correlation_id or generate_correlation_id()
    _correlation_id.set(cid)
    return cid


def get_correlation_id() -> str | None:
    """Get the current correlation ID.

    Returns:
        Current correlation ID or None if not set
    """
    return _correlation_id.get()


def clear_correlation_id() -> None:
    """Clear the correlation ID context."""
    _correlation_id.set(None)


class CorrelationIdFilter(logging.Filter):
    """Logging filter that adds correlation_id to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add correlation_id to the log record.

        Args:
            record: Log record to modify

        Returns:
            True (always allows the record through)
        """
        record.correlation_id = get_correlation_id() or "no-correlation-id"
        return True


class StructuredFormatter(logging.Formatter):
    """Formatter for structured log output with correlation ID."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with structured fields.

        Args:
            record: Log record to format

        Returns:
            Formatted log string
        """
        if not hasattr(record, "correlation_id"):
            record.correlation_id = get_correlation_id() or "no-correlation-id"

        base = super().format(record)

        # Prefix for easy grep/filtering
        return f"[{record.correlation_id}] {base}"


def configure_logging(level: str | int | None = None) -> None:
    """Install the structured formatter on the root logger.

    Args:
        level: Log level name or number. Defaults to LOG_LEVEL env var, then INFO.
    """
    resolved = level or os.environ.get("LOG_LEVEL", "INFO")
    root = logging.getLogger()
    root.setLevel(resolved)

    if not any(isinstance(h.formatter, StructuredFormatter) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredFormatter(DEFAULT_LOG_FORMAT))
        handler.addFilter(CorrelationIdFilter())
        root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with correlation ID support.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not any(isinstance(f, CorrelationIdFilter) for f in logger.filters):
        logger.addFilter(CorrelationIdFilter())

    return logger


def log_payment_operation(
    logger: logging.Logger,
    operation: str,
    *,
    ref_id: str | None = None,
    order_id: str | None = None,
    amount: Decimal | None = None,
    status: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a payment operation with structured context.

    Args:
        logger: Logger instance
        operation: Operation name (e.g., "record_payment", "fulfill_purchase")
        ref_id: Payment reference (dedupe key) if available
        order_id: Merchant order ID if available
        amount: Amount if relevant
        status: Order or payment status
        error: Error message if operation failed
        **extra: Additional context fields
    """
    context: dict[str, Any] = {"operation": operation}

    if ref_id:
        context["ref_id"] = ref_id
    if order_id:
        context["order_id"] = order_id
    if amount is not None:
        context["amount"] = str(amount)
    if status:
        context["status"] = status
    if error:
        context["error"] = error

    context.update(extra)

    msg_parts = [f"Payment operation: {operation}"]
    for key, value in context.items():
        if key != "operation":
            msg_parts.append(f"{key}={value}")

    message = " | ".join(msg_parts)

    if error:
        logger.error(message, extra=context)
    else:
        logger.info(message, extra=context)


def log_webhook_event(
    logger: logging.Logger,
    source: str,
    dedupe_key: str | None,
    *,
    result: str,
    order_id: str | None = None,
    payload_hash: str | None = None,
    raw_payload: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a webhook delivery with structured context.

    Written once per delivery with its final result, whatever it is.

    Args:
        logger: Logger instance
        source: Processor name (e.g., "coingate")
        dedupe_key: Notification dedupe key, None if the payload did not parse
        result: Outcome or rejection reason
        order_id: Merchant order ID if available
        payload_hash: SHA-256 of the raw body
        raw_payload: Raw body as received
        error: Error detail if processing failed
        **extra: Additional context fields
    """
    context: dict[str, Any] = {
        "source": source,
        "dedupe_key": dedupe_key,
        "result": result,
    }

    if order_id:
        context["order_id"] = order_id
    if payload_hash:
        context["payload_hash"] = payload_hash
    if raw_payload is not None:
        context["raw_payload"] = raw_payload
    if error:
        context["error"] = error

    context.update(extra)

    msg_parts = [f"Webhook event: {source} ({dedupe_key or 'unparsed'})", f"result={result}"]
    if order_id:
        msg_parts.append(f"order={order_id}")
    if payload_hash:
        msg_parts.append(f"payload_hash={payload_hash}")
    if error:
        msg_parts.append(f"error={error}")
    if raw_payload is not None:
        msg_parts.append(f"payload={raw_payload}")

    message = " | ".join(msg_parts)

    if result in _ERROR_RESULTS:
        logger.error(message, extra=context)
    elif result in _WARNING_RESULTS:
        logger.warning(message, extra=context)
    else:
        logger.info(message, extra=context)
