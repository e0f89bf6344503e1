"""Payment provider webhook router."""

from __future__ import annotations

import logging

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import BaseModel

from app.core.config import get_settings
from app.core.enums import WebhookResultEnum
from app.modules.webhooks.processor import WebhookEvent, WebhookProcessor, get_webhook_processor

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["webhooks"])


class WebhookOutcomeRead(BaseModel):
    event_id: str
    event_type: str
    result: WebhookResultEnum
    booking_id: str | None = None
    detail: str | None = None


@router.post("/stripe", response_model=WebhookOutcomeRead)
async def receive_stripe_event(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
    processor: WebhookProcessor = Depends(get_webhook_processor),
) -> WebhookOutcomeRead:
    """Verify the provider signature and apply the event."""
    secret = get_settings().stripe_webhook_secret
    if not secret:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Webhooks are not configured")
    if not stripe_signature:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing signature header")

    payload = await request.body()
    try:
        event = stripe.Webhook.construct_event(payload, stripe_signature, secret)
    except (ValueError, stripe.SignatureVerificationError) as exc:
        logger.warning("Rejected webhook delivery: %s", exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook signature") from exc

    outcome = await processor.apply(WebhookEvent.from_payload(event))
    return WebhookOutcomeRead(
        event_id=outcome.event_id,
        event_type=outcome.event_type,
        result=outcome.result,
        booking_id=str(outcome.booking_id) if outcome.booking_id else None,
        detail=outcome.detail,
    )
