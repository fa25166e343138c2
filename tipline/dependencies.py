"""
FastAPI dependencies for authentication and authorization.
"""

import logging
import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tipline.db.database import get_db
from tipline.models.user import USER_TYPES, User
from tipline.services.security import token_service

logger = logging.getLogger(__name__)


async def get_current_user(
    authorization: Optional[str] = Header(None, description="Bearer token"),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Validate the Bearer token and load the user it belongs to.

    Args:
        authorization: Authorization header value (Bearer <token>).
        db: Database session.

    Returns:
        User model instance.

    Raises:
        HTTPException(401): If the token is missing, invalid, expired, or
            the user no longer exists.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = authorization[7:]  # Remove "Bearer " prefix

    try:
        claims = token_service.decode_token(token)
        user_id = uuid.UUID(str(claims["id"]))
    except ValueError as e:
        logger.warning(f"Token validation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


def require_roles(*roles: str):
    """
    Dependency factory that requires one of the given account types.

    Args:
        roles: Allowed account types ("user", "admin").

    Returns:
        Dependency function that validates the user's type.
    """
    async def check_role(user: User = Depends(get_current_user)) -> User:
        if user.type not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to access this resource",
            )
        return user

    return check_role


# Convenience dependencies for common role requirements
require_admin = require_roles("admin")
require_any_user = require_roles(*USER_TYPES)
