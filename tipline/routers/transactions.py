"""Checkout and earnings endpoints."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import stripe
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tipline.db.database import get_db
from tipline.dependencies import require_admin, require_any_user
from tipline.models.promo_code import PromoCode
from tipline.models.transaction import Transaction
from tipline.models.user import User
from tipline.routers.subscription import get_live_package
from tipline.services.dashboard_service import get_earnings_stats
from tipline.services.stripe_service import stripe_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transactions", tags=["Transactions"])


class CheckoutRequest(BaseModel):
    """Request model for opening a checkout session."""

    model_config = ConfigDict(populate_by_name=True)

    promo_code: Optional[str] = Field(None, alias="promoCode")


async def _resolve_promo_code(code: str, db: AsyncSession) -> PromoCode:
    result = await db.execute(
        select(PromoCode).where(PromoCode.code == code.strip().upper())
    )
    promo = result.scalar_one_or_none()

    if not promo:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Promo code not found",
        )
    if not promo.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Promo code is not active",
        )
    if promo.is_expired:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Promo code has expired",
        )
    if promo.is_exhausted:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Promo code usage limit reached",
        )
    return promo


@router.post("/checkout")
async def create_checkout(
    request: CheckoutRequest,
    user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    Open a Stripe Checkout Session for the live package.

    A pending transaction is recorded for the session and completed by
    the checkout.session.completed webhook.

    Raises:
        HTTPException(404): If there is no package or the promo code is unknown.
        HTTPException(400): If the package is inactive or the promo code
            cannot be applied.
        HTTPException(502): If Stripe rejects the session.
    """
    package = await get_live_package(db)
    if package is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subscription package not found",
        )
    if not package.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Subscription package is not active",
        )

    promo: Optional[PromoCode] = None
    if request.promo_code and request.promo_code.strip():
        promo = await _resolve_promo_code(request.promo_code, db)

    original_amount = float(package.amount)
    discount_amount = round(original_amount * promo.discount / 100, 2) if promo else 0.0
    final_amount = round(original_amount - discount_amount, 2)

    try:
        session = await stripe_service.create_checkout_session(
            user_id=str(user.id),
            package=package,
            final_amount=final_amount,
            discount_amount=discount_amount,
            promo_code_id=str(promo.id) if promo else None,
        )
    except stripe.StripeError:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to create checkout session",
        )

    transaction = Transaction(
        user_id=user.id,
        subscription_package_id=package.id,
        promo_code_id=promo.id if promo else None,
        amount=final_amount,
        original_amount=original_amount,
        discount_amount=discount_amount,
        currency=package.currency,
        stripe_session_id=session["id"],
        status="pending",
    )
    db.add(transaction)
    await db.commit()
    logger.info(f"Opened checkout session {session['id']} for user {user.id}")

    return {
        "success": True,
        "message": "Checkout session created successfully",
        "data": {
            "sessionId": session["id"],
            "url": session["url"],
            "transactionId": str(transaction.id),
            "originalAmount": original_amount,
            "discountAmount": discount_amount,
            "finalAmount": final_amount,
            "promoCode": promo.code if promo else None,
        },
    }


@router.get("/dashboard")
async def get_transactions_dashboard(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    _admin=Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Earnings overview with a monthly chart for the given year (default: current)."""
    if year is None:
        year = datetime.now(timezone.utc).year

    return {
        "success": True,
        "message": "Dashboard data retrieved successfully",
        "data": await get_earnings_stats(db, year),
    }
