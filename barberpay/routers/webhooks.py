"""Stripe webhook ingress."""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from barberpay.services.stripe_webhooks import (
    StripeWebhookProcessor,
    get_webhook_processor,
    handle_stripe_webhook,
)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/provider", summary="Receive Stripe events")
async def stripe_webhook(
    request: Request,
    processor: StripeWebhookProcessor = Depends(get_webhook_processor),
) -> Response:
    """Signature-verified entry point; the raw body is read before any parsing."""

    return await handle_stripe_webhook(request, processor)
