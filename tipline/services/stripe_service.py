"""
Stripe service for the subscription package, promo codes and checkout.

Handles:
- Mirroring the subscription package as a Stripe product and price
- Mirroring promo codes as Stripe coupons and promotion codes
- Creating one-time payment checkout sessions
- Verifying and reconciling webhooks
"""

import json
import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

import stripe
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tipline.config import get_settings
from tipline.models.mixins import utcnow
from tipline.models.promo_code import PromoCode
from tipline.models.subscription_package import SubscriptionPackage
from tipline.models.transaction import Transaction
from tipline.models.user import User

logger = logging.getLogger(__name__)


def to_minor_units(amount: float) -> int:
    """Convert a major-unit amount (e.g. dollars) to Stripe's integer cents."""
    return int(round(amount * 100))


def join_description(description: List[str]) -> str:
    return ", ".join(description)


class StripeService:
    """
    Service for Stripe payment integration.

    Every call goes through the synchronous Stripe SDK; errors are logged
    and re-raised for the router to translate.
    """

    def __init__(self):
        self.settings = get_settings()
        stripe.api_key = self.settings.stripe_secret_key

    async def create_product(self, name: str, description: str) -> str:
        """
        Create a Stripe product.

        Returns:
            Stripe product ID.
        """
        try:
            product = stripe.Product.create(
                name=name,
                description=description or None,
            )
            logger.info(f"Created Stripe product: {product.id}")
            return product.id
        except stripe.StripeError as e:
            logger.error(f"Failed to create Stripe product: {e}")
            raise

    async def product_exists(self, product_id: str) -> bool:
        """
        Check whether a Stripe product still exists.

        Raises:
            stripe.StripeError: For any failure other than a missing product.
        """
        try:
            stripe.Product.retrieve(product_id)
            return True
        except stripe.InvalidRequestError as e:
            if e.code == "resource_missing":
                logger.warning(f"Stripe product missing: {product_id}")
                return False
            raise

    async def update_product(self, product_id: str, name: str, description: str) -> None:
        try:
            stripe.Product.modify(
                product_id,
                name=name,
                description=description or None,
            )
            logger.info(f"Updated Stripe product: {product_id}")
        except stripe.StripeError as e:
            logger.error(f"Failed to update Stripe product {product_id}: {e}")
            raise

    async def create_price(self, product_id: str, amount: float, currency: str) -> str:
        """
        Create a one-time price for a product.

        Args:
            product_id: Stripe product ID.
            amount: Price in major currency units.
            currency: ISO currency code.

        Returns:
            Stripe price ID.
        """
        try:
            price = stripe.Price.create(
                product=product_id,
                unit_amount=to_minor_units(amount),
                currency=currency.lower(),
            )
            logger.info(f"Created Stripe price: {price.id}")
            return price.id
        except stripe.StripeError as e:
            logger.error(f"Failed to create Stripe price: {e}")
            raise

    async def create_promo_code(self, code: str, percent_off: float) -> Tuple[str, str]:
        """
        Create a forever coupon and a customer-facing promotion code for it.

        Returns:
            Tuple of (coupon ID, promotion code ID).
        """
        try:
            coupon = stripe.Coupon.create(
                percent_off=round(percent_off),
                duration="forever",
                name=code,
            )
            promotion_code = stripe.PromotionCode.create(
                coupon=coupon.id,
                code=code,
            )
            logger.info(f"Created Stripe promotion code {code}: {promotion_code.id}")
            return coupon.id, promotion_code.id
        except stripe.StripeError as e:
            logger.error(f"Failed to create Stripe promo code {code}: {e}")
            raise

    async def deactivate_promo_code(
        self,
        promotion_code_id: Optional[str],
        coupon_id: Optional[str],
    ) -> None:
        """
        Deactivate the promotion code and delete its coupon.

        Stripe failures are logged only; the code may already be inactive
        or the coupon in use.
        """
        if promotion_code_id:
            try:
                stripe.PromotionCode.modify(promotion_code_id, active=False)
            except stripe.StripeError as e:
                logger.warning(
                    f"Stripe promotion code deactivate failed for {promotion_code_id}: {e}"
                )
        if coupon_id:
            try:
                stripe.Coupon.delete(coupon_id)
            except stripe.StripeError as e:
                logger.warning(f"Stripe coupon delete failed for {coupon_id}: {e}")

    async def create_checkout_session(
        self,
        user_id: str,
        package: SubscriptionPackage,
        final_amount: float,
        discount_amount: float,
        promo_code_id: Optional[str] = None,
    ) -> Dict[str, str]:
        """
        Create a one-time payment Checkout Session for the package.

        The charged amount already includes the promo discount; metadata
        carries everything the webhook needs to reconcile the payment.

        Returns:
            Dict with the session "id" and "url".
        """
        product_data: Dict[str, Any] = {"name": package.name}
        description = join_description(package.description or [])
        if description:
            product_data["description"] = description

        try:
            session = stripe.checkout.Session.create(
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": package.currency.lower(),
                            "product_data": product_data,
                            "unit_amount": to_minor_units(final_amount),
                        },
                        "quantity": 1,
                    },
                ],
                mode="payment",
                success_url=self.settings.checkout_success_url,
                cancel_url=self.settings.checkout_cancel_url,
                client_reference_id=user_id,
                metadata={
                    "userId": user_id,
                    "subscriptionPackageId": str(package.id),
                    "promoCodeId": promo_code_id or "",
                    "originalAmount": str(package.amount),
                    "discountAmount": str(discount_amount),
                    "finalAmount": str(final_amount),
                },
            )
            logger.info(f"Created checkout session: {session.id}")
            return {"id": session.id, "url": session.url}
        except stripe.StripeError as e:
            logger.error(f"Failed to create checkout session: {e}")
            raise

    def verify_webhook_signature(
        self,
        payload: bytes,
        signature: str,
    ) -> Dict[str, Any]:
        """
        Verify Stripe webhook signature and return the event as a dict.

        Args:
            payload: Raw webhook payload bytes.
            signature: Stripe-Signature header value.

        Returns:
            Decoded event payload.

        Raises:
            ValueError: If signature verification or decoding fails.
        """
        try:
            stripe.Webhook.construct_event(
                payload,
                signature,
                self.settings.stripe_webhook_secret,
            )
            return json.loads(payload)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            raise ValueError("Invalid webhook signature")
        except ValueError as e:
            logger.warning(f"Webhook payload is not valid JSON: {e}")
            raise ValueError("Invalid webhook payload")

    async def handle_checkout_completed(
        self,
        event: Dict[str, Any],
        db: AsyncSession,
    ) -> bool:
        """
        Handle checkout.session.completed for one-time payments.

        The pending transaction is completed with a single conditional
        UPDATE. Promo usage and subscriber flags change only when that
        UPDATE matched, so redelivered events are no-ops.

        Args:
            event: Stripe webhook event data.
            db: Database session.

        Returns:
            True if the payment was applied, False if skipped or already applied.

        Raises:
            ValueError: If the session metadata is incomplete.
        """
        session = event["data"]["object"]
        metadata = session.get("metadata") or {}

        user_id = metadata.get("userId") or session.get("client_reference_id")
        if not user_id:
            raise ValueError("User ID not found in session metadata")

        if session.get("mode") != "payment":
            logger.info(f"Skipping non-payment session: {session['id']}")
            return False

        package_id = metadata.get("subscriptionPackageId")
        if not package_id:
            raise ValueError("Subscription package ID not found in session metadata")

        try:
            user_uuid = uuid.UUID(user_id)
            promo_uuid = uuid.UUID(metadata["promoCodeId"]) if metadata.get("promoCodeId") else None
        except ValueError:
            raise ValueError("Malformed IDs in session metadata")

        result = await db.execute(
            update(Transaction)
            .where(
                Transaction.stripe_session_id == session["id"],
                Transaction.status == "pending",
            )
            .values(
                status="completed",
                stripe_payment_intent_id=session.get("payment_intent"),
                updated_at=utcnow(),
            )
        )

        if result.rowcount == 0:
            existing = await db.execute(
                select(Transaction.id).where(Transaction.stripe_session_id == session["id"])
            )
            if existing.scalar_one_or_none() is not None:
                logger.info(f"Checkout session already reconciled: {session['id']}")
            else:
                logger.warning(f"No transaction recorded for checkout session: {session['id']}")
            await db.rollback()
            return False

        if promo_uuid is not None:
            await db.execute(
                update(PromoCode)
                .where(PromoCode.id == promo_uuid)
                .values(used_count=PromoCode.used_count + 1)
            )

        await db.execute(
            update(User)
            .where(User.id == user_uuid)
            .values(is_subscriber=True, real_subscriber=True, updated_at=utcnow())
        )
        await db.commit()

        logger.info(f"One-time payment completed for user {user_id}, package {package_id}")
        return True


# Global service instance
stripe_service = StripeService()
