"""Webhook endpoints for payment processor callbacks.

Provides endpoints for:
- CoinGate order status callbacks (pending, paid, canceled, expired, ...)

These endpoints do NOT require authentication. CoinGate does not sign
callbacks; authenticity is established by the per-order token and a
server-side lookup of the order at CoinGate.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from coinshop.models import WebhookResponse
from coinshop.services.webhook_dispatcher import WebhookDispatcher
from coinshop_api.dependencies import get_webhook_dispatcher

router = APIRouter(tags=["webhooks"])


@router.post(
    "/webhooks/coingate",
    summary="Receive CoinGate order callbacks",
    description="""
Endpoint for CoinGate order callbacks. Handles:
- pending: moves the order to pending
- paid: records the payment, marks the order paid and completes it
- canceled / expired / invalid: cancels the order

**No authentication required**: the callback token and a CoinGate order
lookup verify each notification.

**Idempotent**: a repeated notification returns 200 with 'duplicate' result.
""",
    response_model=WebhookResponse,
    responses={
        200: {
            "description": "Notification processed, rejected or acknowledged; do not redeliver",
            "model": WebhookResponse,
        },
        503: {
            "description": "Transient failure; CoinGate should redeliver",
            "model": WebhookResponse,
        },
    },
)
async def handle_coingate_webhook(
    request: Request,
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
) -> JSONResponse:
    """Handle an incoming CoinGate callback.

    The dispatcher blocks on DynamoDB and the CoinGate API, so it runs in
    the threadpool.
    """
    body = await request.body()
    ack = await run_in_threadpool(
        dispatcher.handle, body, request.headers.get("content-type")
    )
    return JSONResponse(
        status_code=ack.status_code,
        content=ack.body.model_dump(mode="json"),
    )
