"""Subscription package and promo code endpoints."""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

import stripe
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tipline.db.database import get_db
from tipline.dependencies import require_admin, require_any_user
from tipline.models.promo_code import PromoCode
from tipline.models.subscription_package import SubscriptionPackage
from tipline.responses import pagination_meta
from tipline.services.stripe_service import join_description, stripe_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscription", tags=["Subscription"])


class PackageRequest(BaseModel):
    """Create-or-update body for the live package. Every field is optional on update."""

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(None, min_length=1)
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[List[str]] = None
    amount: Optional[float] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    duration: Optional[str] = None
    is_active: Optional[bool] = Field(None, alias="isActive")


class PromoCodeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str = Field(min_length=1, max_length=64)
    discount: float = Field(ge=0, le=100)
    max_uses: Optional[int] = Field(None, ge=1, alias="maxUses")
    expires_at: Optional[datetime] = Field(None, alias="expiresAt")


def package_payload(package: SubscriptionPackage) -> Dict[str, Any]:
    return {
        "id": str(package.id),
        "name": package.name,
        "title": package.title,
        "description": package.description or [],
        "amount": package.amount,
        "currency": package.currency,
        "duration": package.duration,
        "isActive": package.is_active,
        "stripeProductId": package.stripe_product_id,
        "stripePriceId": package.stripe_price_id,
        "createdAt": package.created_at,
        "updatedAt": package.updated_at,
    }


def promo_code_payload(promo: PromoCode) -> Dict[str, Any]:
    return {
        "id": str(promo.id),
        "code": promo.code,
        "discount": promo.discount,
        "maxUses": promo.max_uses,
        "usedCount": promo.used_count,
        "isActive": promo.is_active,
        "expiresAt": promo.expires_at,
        "createdAt": promo.created_at,
    }


async def get_live_package(db: AsyncSession) -> Optional[SubscriptionPackage]:
    """The most recently created package is the live one."""
    result = await db.execute(
        select(SubscriptionPackage)
        .order_by(SubscriptionPackage.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


def _stripe_failure(action: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"Failed to {action} with Stripe",
    )


async def _create_package(request: PackageRequest, db: AsyncSession) -> SubscriptionPackage:
    missing = [
        field
        for field in ("name", "title", "description", "amount", "duration")
        if getattr(request, field) is None
    ]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{', '.join(missing)} required to create the package",
        )

    currency = (request.currency or "usd").lower()
    try:
        product_id = await stripe_service.create_product(
            request.name, join_description(request.description)
        )
        price_id = await stripe_service.create_price(product_id, request.amount, currency)
    except stripe.StripeError:
        raise _stripe_failure("create package")

    package = SubscriptionPackage(
        name=request.name,
        title=request.title,
        description=request.description,
        amount=request.amount,
        currency=currency,
        duration=request.duration,
        is_active=True if request.is_active is None else request.is_active,
        stripe_product_id=product_id,
        stripe_price_id=price_id,
    )
    db.add(package)
    await db.commit()
    logger.info(f"Created subscription package {package.id} ({product_id})")
    return package


async def _update_package(
    package: SubscriptionPackage,
    request: PackageRequest,
    db: AsyncSession,
) -> SubscriptionPackage:
    amount_changed = request.amount is not None and request.amount != package.amount

    if request.name is not None:
        package.name = request.name
    if request.title is not None:
        package.title = request.title
    if request.description is not None:
        package.description = request.description
    if request.amount is not None:
        package.amount = request.amount
    if request.currency is not None:
        package.currency = request.currency.lower()
    if request.duration is not None:
        package.duration = request.duration
    if request.is_active is not None:
        package.is_active = request.is_active

    description = join_description(package.description or [])
    try:
        recreated = False
        if not package.stripe_product_id or not await stripe_service.product_exists(
            package.stripe_product_id
        ):
            package.stripe_product_id = await stripe_service.create_product(
                package.name, description
            )
            recreated = True
        else:
            await stripe_service.update_product(
                package.stripe_product_id, package.name, description
            )

        if amount_changed or recreated or not package.stripe_price_id:
            package.stripe_price_id = await stripe_service.create_price(
                package.stripe_product_id, package.amount, package.currency
            )
    except stripe.StripeError:
        await db.rollback()
        raise _stripe_failure("update package")

    await db.commit()
    logger.info(f"Updated subscription package {package.id}")
    return package


@router.post("/package")
async def upsert_package(
    request: PackageRequest,
    _admin=Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    Create the subscription package, or update the live one.

    The package is mirrored in Stripe as a product; a new price is
    created whenever the amount changes or the product had to be
    recreated because it went missing in Stripe.

    Raises:
        HTTPException(400): If required fields are missing on create or
            the amount is not positive.
        HTTPException(502): If Stripe rejects the change.
    """
    if request.amount is not None and request.amount <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Amount must be greater than 0",
        )

    package = await get_live_package(db)
    if package is None:
        package = await _create_package(request, db)
        message = "Subscription package created successfully"
    else:
        package = await _update_package(package, request, db)
        message = "Subscription package updated successfully"

    return {
        "success": True,
        "message": message,
        "data": package_payload(package),
    }


@router.get("/package")
async def get_package(
    _user=Depends(require_any_user),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    package = await get_live_package(db)
    if package is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subscription package not found",
        )

    return {
        "success": True,
        "message": "Subscription package retrieved successfully",
        "data": package_payload(package),
    }


@router.post("/promo-code", status_code=status.HTTP_201_CREATED)
async def create_promo_code(
    request: PromoCodeRequest,
    _admin=Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    Create a promo code and its Stripe coupon.

    Raises:
        HTTPException(400): If the code already exists.
        HTTPException(502): If Stripe rejects the coupon.
    """
    code = request.code.strip().upper()

    existing = await db.execute(select(PromoCode.id).where(PromoCode.code == code))
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Promo code already exists",
        )

    try:
        coupon_id, promotion_code_id = await stripe_service.create_promo_code(
            code, request.discount
        )
    except stripe.StripeError:
        raise _stripe_failure("create promo code")

    promo = PromoCode(
        code=code,
        discount=request.discount,
        max_uses=request.max_uses,
        expires_at=request.expires_at,
        stripe_coupon_id=coupon_id,
        stripe_promotion_code_id=promotion_code_id,
    )
    db.add(promo)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        await stripe_service.deactivate_promo_code(promotion_code_id, coupon_id)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Promo code already exists",
        )

    logger.info(f"Created promo code {code} ({request.discount}%)")

    return {
        "success": True,
        "message": "Promo code created successfully",
        "data": promo_code_payload(promo),
    }


@router.get("/promo-code")
async def get_promo_codes(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    _admin=Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    total_items = (await db.execute(select(func.count(PromoCode.id)))).scalar_one()
    result = await db.execute(
        select(PromoCode)
        .order_by(PromoCode.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )

    return {
        "success": True,
        "message": "Promo codes retrieved successfully",
        "data": [promo_code_payload(p) for p in result.scalars().all()],
        "pagination": pagination_meta(total_items, page, limit),
    }


@router.delete("/promo-code/{promo_code_id}")
async def delete_promo_code(
    promo_code_id: uuid.UUID,
    _admin=Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Deactivate a promo code in Stripe and delete it."""
    result = await db.execute(select(PromoCode).where(PromoCode.id == promo_code_id))
    promo = result.scalar_one_or_none()

    if not promo:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Promo code not found",
        )

    await stripe_service.deactivate_promo_code(
        promo.stripe_promotion_code_id, promo.stripe_coupon_id
    )
    await db.delete(promo)
    await db.commit()
    logger.info(f"Deleted promo code {promo.code}")

    return {
        "success": True,
        "message": "Promo code deleted successfully",
        "data": {"id": str(promo_code_id)},
    }
