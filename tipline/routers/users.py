"""Admin user management endpoints."""

import uuid
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tipline.db.database import get_db
from tipline.dependencies import require_admin
from tipline.models.transaction import Transaction
from tipline.models.user import User
from tipline.responses import pagination_meta, user_payload
from tipline.services.storage_service import storage_service

router = APIRouter(
    prefix="/users",
    tags=["Users"],
    dependencies=[Depends(require_admin)],
)


@router.get("/all")
async def get_all_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str = "",
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    List app users (not admins), optionally filtered by a search term.

    The search matches name, email and phone case-insensitively.
    """
    conditions = [User.type == "user"]
    search = search.strip()
    if search:
        pattern = f"%{search}%"
        conditions.append(
            or_(
                User.name.ilike(pattern),
                User.email.ilike(pattern),
                User.phone.ilike(pattern),
            )
        )

    total_items = (
        await db.execute(select(func.count(User.id)).where(*conditions))
    ).scalar_one()
    result = await db.execute(
        select(User)
        .where(*conditions)
        .order_by(User.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )

    return {
        "success": True,
        "message": "Users fetched successfully",
        "data": [user_payload(user) for user in result.scalars().all()],
        "pagination": pagination_meta(total_items, page, limit),
    }


@router.get("/earnings-parser")
async def get_user_earnings(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Per-user total of completed payments, highest earners first."""
    earnings = (
        select(
            Transaction.user_id.label("user_id"),
            func.sum(Transaction.amount).label("earnings"),
        )
        .where(Transaction.status == "completed")
        .group_by(Transaction.user_id)
        .subquery()
    )

    total_items = (
        await db.execute(select(func.count()).select_from(earnings))
    ).scalar_one()
    result = await db.execute(
        select(User, earnings.c.earnings)
        .join(earnings, earnings.c.user_id == User.id)
        .order_by(earnings.c.earnings.desc(), User.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )

    data = [
        {
            "id": str(user.id),
            "name": user.name,
            "email": user.email,
            "phone": user.phone,
            "createdAt": user.created_at,
            "avatar": storage_service.url_for(user.avatar_url),
            "earnings": round(float(total or 0), 2),
        }
        for user, total in result.all()
    ]

    return {
        "success": True,
        "message": "Earnings parsed successfully",
        "data": data,
        "pagination": pagination_meta(total_items, page, limit),
    }


@router.get("/info/{user_id}")
async def get_user_by_id(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Single user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    return {
        "success": True,
        "message": "User fetched successfully",
        "data": user_payload(user),
    }
