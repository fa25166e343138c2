"""Admin dashboard endpoints."""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tipline.db.database import get_db
from tipline.dependencies import require_admin
from tipline.services.dashboard_service import get_overview_stats, get_prediction_stats

router = APIRouter(
    prefix="/dashboard",
    tags=["Dashboard"],
    dependencies=[Depends(require_admin)],
)


@router.get("/info")
async def get_dashboard_info(db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    """
    Headline numbers for the admin home screen.

    Each figure is compared with last month; status is "up" when this
    month is at least last month's value.
    """
    return {
        "success": True,
        "message": "Dashboard info retrieved successfully",
        "data": await get_overview_stats(db),
    }


@router.get("/predictions")
async def get_dashboard_predictions(db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    return {
        "success": True,
        "message": "Prediction stats retrieved successfully",
        "data": await get_prediction_stats(db),
    }
