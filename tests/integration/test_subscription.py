"""
Integration tests for the subscription package and promo code routes.

Stripe calls are patched on the shared StripeService instance.
"""

import uuid
from unittest.mock import AsyncMock, patch

import pytest
import stripe
from fastapi import status
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tipline.models.promo_code import PromoCode
from tipline.models.subscription_package import SubscriptionPackage
from tipline.services.stripe_service import stripe_service

SUBSCRIPTION = "/api/v1/subscription"

PACKAGE_BODY = {
    "name": "Tipline VIP",
    "title": "All tips, every day",
    "description": ["Daily picks", "Win-rate stats"],
    "amount": 19.99,
    "duration": "30",
}


async def _add_package(db_session: AsyncSession, **overrides) -> SubscriptionPackage:
    fields = {
        "name": "Tipline VIP",
        "title": "All tips",
        "description": ["Daily picks"],
        "amount": 20.0,
        "duration": "30",
        "stripe_product_id": "prod_existing",
        "stripe_price_id": "price_existing",
    }
    fields.update(overrides)
    package = SubscriptionPackage(**fields)
    db_session.add(package)
    await db_session.commit()
    return package


class TestPackage:
    """Tests for POST/GET /subscription/package."""

    @pytest.mark.asyncio
    async def test_create_package(self, async_client: AsyncClient, admin_headers):
        with patch.object(
            stripe_service, "create_product", AsyncMock(return_value="prod_new")
        ) as create_product, patch.object(
            stripe_service, "create_price", AsyncMock(return_value="price_new")
        ) as create_price:
            response = await async_client.post(
                f"{SUBSCRIPTION}/package", headers=admin_headers, json=PACKAGE_BODY
            )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["stripeProductId"] == "prod_new"
        assert data["stripePriceId"] == "price_new"
        assert data["currency"] == "usd"
        create_product.assert_awaited_once_with(
            "Tipline VIP", "Daily picks, Win-rate stats"
        )
        create_price.assert_awaited_once_with("prod_new", 19.99, "usd")

    @pytest.mark.asyncio
    async def test_create_requires_all_fields(self, async_client: AsyncClient, admin_headers):
        response = await async_client.post(
            f"{SUBSCRIPTION}/package",
            headers=admin_headers,
            json={"name": "Only a name"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.asyncio
    async def test_amount_must_be_positive(self, async_client: AsyncClient, admin_headers):
        response = await async_client.post(
            f"{SUBSCRIPTION}/package",
            headers=admin_headers,
            json={**PACKAGE_BODY, "amount": 0},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Amount must be greater than 0"

    @pytest.mark.asyncio
    async def test_update_same_amount_keeps_price(
        self, async_client: AsyncClient, admin_headers, db_session: AsyncSession
    ):
        await _add_package(db_session)

        with patch.object(
            stripe_service, "product_exists", AsyncMock(return_value=True)
        ), patch.object(
            stripe_service, "update_product", AsyncMock()
        ) as update_product, patch.object(
            stripe_service, "create_price", AsyncMock()
        ) as create_price:
            response = await async_client.post(
                f"{SUBSCRIPTION}/package",
                headers=admin_headers,
                json={"title": "New title"},
            )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["title"] == "New title"
        update_product.assert_awaited_once()
        create_price.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_amount_creates_new_price(
        self, async_client: AsyncClient, admin_headers, db_session: AsyncSession
    ):
        await _add_package(db_session)

        with patch.object(
            stripe_service, "product_exists", AsyncMock(return_value=True)
        ), patch.object(stripe_service, "update_product", AsyncMock()), patch.object(
            stripe_service, "create_price", AsyncMock(return_value="price_v2")
        ):
            response = await async_client.post(
                f"{SUBSCRIPTION}/package",
                headers=admin_headers,
                json={"amount": 25},
            )

        data = response.json()["data"]
        assert data["amount"] == 25
        assert data["stripePriceId"] == "price_v2"
        assert data["stripeProductId"] == "prod_existing"

    @pytest.mark.asyncio
    async def test_missing_stripe_product_is_recreated(
        self, async_client: AsyncClient, admin_headers, db_session: AsyncSession
    ):
        await _add_package(db_session)

        with patch.object(
            stripe_service, "product_exists", AsyncMock(return_value=False)
        ), patch.object(
            stripe_service, "create_product", AsyncMock(return_value="prod_recreated")
        ), patch.object(
            stripe_service, "create_price", AsyncMock(return_value="price_recreated")
        ) as create_price:
            response = await async_client.post(
                f"{SUBSCRIPTION}/package",
                headers=admin_headers,
                json={"title": "Same price"},
            )

        data = response.json()["data"]
        assert data["stripeProductId"] == "prod_recreated"
        assert data["stripePriceId"] == "price_recreated"
        create_price.assert_awaited_once_with("prod_recreated", 20.0, "usd")

    @pytest.mark.asyncio
    async def test_stripe_failure_is_502(self, async_client: AsyncClient, admin_headers):
        with patch.object(
            stripe_service,
            "create_product",
            AsyncMock(side_effect=stripe.APIConnectionError("network down")),
        ):
            response = await async_client.post(
                f"{SUBSCRIPTION}/package", headers=admin_headers, json=PACKAGE_BODY
            )

        assert response.status_code == status.HTTP_502_BAD_GATEWAY

    @pytest.mark.asyncio
    async def test_get_package(
        self, async_client: AsyncClient, auth_headers, db_session: AsyncSession
    ):
        await _add_package(db_session)

        response = await async_client.get(f"{SUBSCRIPTION}/package", headers=auth_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["name"] == "Tipline VIP"

    @pytest.mark.asyncio
    async def test_get_package_404_when_none(self, async_client: AsyncClient, auth_headers):
        response = await async_client.get(f"{SUBSCRIPTION}/package", headers=auth_headers)

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_users_cannot_edit_package(self, async_client: AsyncClient, auth_headers):
        response = await async_client.post(
            f"{SUBSCRIPTION}/package", headers=auth_headers, json=PACKAGE_BODY
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestPromoCodes:
    """Tests for /subscription/promo-code."""

    @pytest.mark.asyncio
    async def test_create_promo_code(
        self, async_client: AsyncClient, admin_headers, db_session: AsyncSession
    ):
        with patch.object(
            stripe_service,
            "create_promo_code",
            AsyncMock(return_value=("coupon_1", "promo_1")),
        ) as create_promo_code:
            response = await async_client.post(
                f"{SUBSCRIPTION}/promo-code",
                headers=admin_headers,
                json={"code": "welcome10", "discount": 10, "maxUses": 5},
            )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()["data"]
        assert data["code"] == "WELCOME10"
        assert data["maxUses"] == 5
        assert data["usedCount"] == 0
        create_promo_code.assert_awaited_once_with("WELCOME10", 10)

        promo = (await db_session.execute(select(PromoCode))).scalar_one()
        assert promo.stripe_coupon_id == "coupon_1"
        assert promo.stripe_promotion_code_id == "promo_1"

    @pytest.mark.asyncio
    async def test_duplicate_code_rejected(
        self, async_client: AsyncClient, admin_headers, db_session: AsyncSession
    ):
        db_session.add(PromoCode(code="WELCOME10", discount=10))
        await db_session.commit()

        create_promo_code = AsyncMock(return_value=("coupon_1", "promo_1"))
        with patch.object(stripe_service, "create_promo_code", create_promo_code):
            response = await async_client.post(
                f"{SUBSCRIPTION}/promo-code",
                headers=admin_headers,
                json={"code": "Welcome10", "discount": 20},
            )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Promo code already exists"
        create_promo_code.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_discount_out_of_range(self, async_client: AsyncClient, admin_headers):
        response = await async_client.post(
            f"{SUBSCRIPTION}/promo-code",
            headers=admin_headers,
            json={"code": "HUGE", "discount": 150},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"].startswith("Invalid discount")

    @pytest.mark.asyncio
    async def test_stripe_failure_is_502(self, async_client: AsyncClient, admin_headers):
        with patch.object(
            stripe_service,
            "create_promo_code",
            AsyncMock(side_effect=stripe.InvalidRequestError("bad coupon", "percent_off")),
        ):
            response = await async_client.post(
                f"{SUBSCRIPTION}/promo-code",
                headers=admin_headers,
                json={"code": "BROKEN", "discount": 10},
            )

        assert response.status_code == status.HTTP_502_BAD_GATEWAY

    @pytest.mark.asyncio
    async def test_list_promo_codes(
        self, async_client: AsyncClient, admin_headers, db_session: AsyncSession
    ):
        db_session.add_all([PromoCode(code="ONE", discount=5), PromoCode(code="TWO", discount=15)])
        await db_session.commit()

        response = await async_client.get(f"{SUBSCRIPTION}/promo-code", headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        assert {p["code"] for p in response.json()["data"]} == {"ONE", "TWO"}
        assert response.json()["pagination"]["totalItems"] == 2

    @pytest.mark.asyncio
    async def test_delete_promo_code(
        self, async_client: AsyncClient, admin_headers, db_session: AsyncSession
    ):
        promo = PromoCode(
            code="BYE",
            discount=5,
            stripe_coupon_id="coupon_bye",
            stripe_promotion_code_id="promo_bye",
        )
        db_session.add(promo)
        await db_session.commit()

        with patch.object(stripe_service, "deactivate_promo_code", AsyncMock()) as deactivate:
            response = await async_client.delete(
                f"{SUBSCRIPTION}/promo-code/{promo.id}", headers=admin_headers
            )

        assert response.status_code == status.HTTP_200_OK
        deactivate.assert_awaited_once_with("promo_bye", "coupon_bye")
        assert (await db_session.execute(select(PromoCode))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_delete_survives_stripe_errors(
        self, async_client: AsyncClient, admin_headers, db_session: AsyncSession
    ):
        promo = PromoCode(
            code="GONE",
            discount=5,
            stripe_coupon_id="coupon_gone",
            stripe_promotion_code_id="promo_gone",
        )
        db_session.add(promo)
        await db_session.commit()

        with patch(
            "stripe.PromotionCode.modify",
            side_effect=stripe.InvalidRequestError("No such promotion code", "id"),
        ), patch(
            "stripe.Coupon.delete",
            side_effect=stripe.InvalidRequestError("No such coupon", "id"),
        ):
            response = await async_client.delete(
                f"{SUBSCRIPTION}/promo-code/{promo.id}", headers=admin_headers
            )

        assert response.status_code == status.HTTP_200_OK

    @pytest.mark.asyncio
    async def test_delete_unknown_promo_code(self, async_client: AsyncClient, admin_headers):
        response = await async_client.delete(
            f"{SUBSCRIPTION}/promo-code/{uuid.uuid4()}", headers=admin_headers
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
