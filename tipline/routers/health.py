"""Health check endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from tipline.db.database import get_db
from tipline.services.otp_store import OtpStore, get_otp_store

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(
    db: AsyncSession = Depends(get_db),
    store: OtpStore = Depends(get_otp_store),
):
    """
    Health check endpoint.

    Reports the database and Redis connections so load balancers and
    monitoring can tell a degraded instance apart.

    Returns:
        Dict with status "healthy" or "degraded" and per-backend flags.
    """
    try:
        await db.execute(text("SELECT 1"))
        database_ok = True
    except Exception:
        database_ok = False

    redis_ok = await store.ping()

    return {
        "status": "healthy" if database_ok and redis_ok else "degraded",
        "database": database_ok,
        "redis": redis_ok,
    }
