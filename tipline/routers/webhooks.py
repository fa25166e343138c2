"""Webhook endpoints for external service integrations."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from tipline.db.database import get_db
from tipline.services.stripe_service import stripe_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/stripe")
async def handle_stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    Handle Stripe webhook events.

    Processes:
    - checkout.session.completed: completes the pending transaction and
      marks the user as a paying subscriber

    Other event types are acknowledged and logged. No authentication
    required (uses Stripe signature verification).

    Raises:
        HTTPException(400): If the signature header is missing, the
            signature is invalid, or the event cannot be processed.
    """
    if not stripe_signature:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing Stripe-Signature header",
        )

    # Signature is computed over the raw body
    payload = await request.body()

    try:
        event = stripe_service.verify_webhook_signature(
            payload=payload,
            signature=stripe_signature,
        )
    except ValueError as e:
        logger.warning(f"Invalid webhook signature: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Webhook Error: {e}",
        )

    event_type = event.get("type", "")
    logger.info(f"Received Stripe webhook: {event_type}")

    try:
        if event_type == "checkout.session.completed":
            await stripe_service.handle_checkout_completed(event, db)
        else:
            logger.debug(f"Unhandled webhook event type: {event_type}")
    except (KeyError, ValueError) as e:
        logger.error(f"Error processing webhook {event_type}: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Webhook Error: {e}",
        )

    return {"success": True, "received": True, "eventType": event_type}
