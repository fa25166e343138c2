"""
Integration tests for the admin user management routes.
"""

import uuid

import pytest
from fastapi import status
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tipline.models.subscription_package import SubscriptionPackage
from tipline.models.transaction import Transaction
from tipline.models.user import User

USERS = "/api/v1/users"


async def _add_users(db_session: AsyncSession, count: int) -> None:
    for index in range(count):
        db_session.add(
            User(
                email=f"player{index}@example.com",
                name=f"Player {index}",
                phone=f"+1555000{index:04d}",
            )
        )
    await db_session.commit()


class TestListUsers:
    """Tests for GET /users/all."""

    @pytest.mark.asyncio
    async def test_requires_admin(self, async_client: AsyncClient, auth_headers):
        response = await async_client.get(f"{USERS}/all", headers=auth_headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_lists_only_app_users(
        self, async_client: AsyncClient, admin_headers, test_user: User
    ):
        response = await async_client.get(f"{USERS}/all", headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert [u["email"] for u in data["data"]] == [test_user.email]
        assert data["pagination"]["totalItems"] == 1

    @pytest.mark.asyncio
    async def test_pagination(
        self, async_client: AsyncClient, admin_headers, db_session: AsyncSession
    ):
        await _add_users(db_session, 12)

        response = await async_client.get(
            f"{USERS}/all", headers=admin_headers, params={"page": 2, "limit": 5}
        )

        pagination = response.json()["pagination"]
        assert len(response.json()["data"]) == 5
        assert pagination == {
            "totalItems": 12,
            "totalPages": 3,
            "currentPage": 2,
            "itemsPerPage": 5,
            "hasNextPage": True,
            "hasPrevPage": True,
        }

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive(
        self, async_client: AsyncClient, admin_headers, db_session: AsyncSession
    ):
        await _add_users(db_session, 3)

        response = await async_client.get(
            f"{USERS}/all", headers=admin_headers, params={"search": "PLAYER1"}
        )

        emails = [u["email"] for u in response.json()["data"]]
        assert emails == ["player1@example.com"]

    @pytest.mark.asyncio
    async def test_search_matches_phone(
        self, async_client: AsyncClient, admin_headers, db_session: AsyncSession
    ):
        await _add_users(db_session, 3)

        response = await async_client.get(
            f"{USERS}/all", headers=admin_headers, params={"search": "0002"}
        )

        assert [u["email"] for u in response.json()["data"]] == ["player2@example.com"]


class TestEarnings:
    """Tests for GET /users/earnings-parser."""

    @pytest.mark.asyncio
    async def test_sums_completed_transactions_only(
        self,
        async_client: AsyncClient,
        admin_headers,
        test_user: User,
        db_session: AsyncSession,
    ):
        package = SubscriptionPackage(
            name="VIP", title="VIP access", description=[], amount=20.0, duration="30"
        )
        db_session.add(package)
        await db_session.flush()
        for index, (amount, tx_status) in enumerate(
            [(20.0, "completed"), (15.5, "completed"), (99.0, "pending")]
        ):
            db_session.add(
                Transaction(
                    user_id=test_user.id,
                    subscription_package_id=package.id,
                    amount=amount,
                    original_amount=20.0,
                    stripe_session_id=f"cs_test_{index}",
                    status=tx_status,
                )
            )
        await db_session.commit()

        response = await async_client.get(f"{USERS}/earnings-parser", headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert len(data["data"]) == 1
        assert data["data"][0]["id"] == str(test_user.id)
        assert data["data"][0]["earnings"] == 35.5
        assert data["pagination"]["totalItems"] == 1

    @pytest.mark.asyncio
    async def test_requires_admin(self, async_client: AsyncClient, auth_headers):
        response = await async_client.get(f"{USERS}/earnings-parser", headers=auth_headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestUserInfo:
    """Tests for GET /users/info/{id}."""

    @pytest.mark.asyncio
    async def test_returns_user(self, async_client: AsyncClient, admin_headers, test_user: User):
        response = await async_client.get(
            f"{USERS}/info/{test_user.id}", headers=admin_headers
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["email"] == test_user.email

    @pytest.mark.asyncio
    async def test_unknown_user_404(self, async_client: AsyncClient, admin_headers):
        response = await async_client.get(
            f"{USERS}/info/{uuid.uuid4()}", headers=admin_headers
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"success": False, "message": "User not found"}
