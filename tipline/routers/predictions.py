"""Prediction endpoints: admin CRUD and the user feed."""

import logging
import uuid
from typing import Any, Dict, List, Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    UploadFile,
    status,
)
from pydantic import BaseModel, Field
from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tipline.db.database import get_db
from tipline.dependencies import require_admin, require_any_user
from tipline.models.prediction import PREDICTION_CATEGORIES, PREDICTION_STATUSES, Prediction
from tipline.responses import pagination_meta, prediction_payload
from tipline.services.prediction_service import prediction_service
from tipline.services.storage_service import storage_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/predictions", tags=["Predictions"])


class DeletePredictionsRequest(BaseModel):
    """Request model for bulk deletion."""

    ids: List[uuid.UUID] = Field(min_length=1)


def _validate_category(category: str) -> None:
    if category not in PREDICTION_CATEGORIES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": "Invalid category",
                "validCategories": list(PREDICTION_CATEGORIES),
            },
        )


def _validate_status(prediction_status: str) -> None:
    if prediction_status not in PREDICTION_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": "Invalid status",
                "validStatuses": list(PREDICTION_STATUSES),
            },
        )


async def _store_image(image: Optional[UploadFile]) -> Optional[str]:
    if image is None or not image.filename:
        return None
    try:
        return await storage_service.save_upload(image)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/create", status_code=status.HTTP_201_CREATED)
async def create_prediction(
    category: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    _admin=Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    Publish a new prediction (multipart form).

    Raises:
        HTTPException(400): If the category is missing or invalid, or the
            image is not a supported type.
    """
    if not category:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Category is required",
        )
    _validate_category(category)

    stored_image = await _store_image(image)
    prediction = Prediction(
        category=category,
        description=description,
        image=stored_image,
    )
    db.add(prediction)
    try:
        await db.commit()
    except Exception:
        await storage_service.remove(stored_image)
        raise

    prediction_service.invalidate_cache()
    logger.info(f"Created prediction {prediction.id} ({category})")

    return {
        "success": True,
        "message": "Prediction created successfully",
        "data": prediction_payload(prediction),
    }


@router.get("/get-all")
async def get_all_predictions(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = None,
    _admin=Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    Paginated list of all predictions for the admin panel, newest first.

    An unknown status filter is ignored; an unknown category is rejected.
    """
    conditions = []
    category = (category or "").strip()
    if category:
        _validate_category(category)
        conditions.append(Prediction.category == category)

    status_filter = (status_filter or "").strip()
    if status_filter in PREDICTION_STATUSES:
        conditions.append(Prediction.status == status_filter)

    search = (search or "").strip()
    if search:
        conditions.append(Prediction.description.ilike(f"%{search}%"))

    total_items = (
        await db.execute(select(func.count(Prediction.id)).where(*conditions))
    ).scalar_one()
    result = await db.execute(
        select(Prediction)
        .where(*conditions)
        .order_by(Prediction.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )

    return {
        "success": True,
        "message": "Predictions retrieved successfully",
        "data": [prediction_payload(p) for p in result.scalars().all()],
        "pagination": pagination_meta(total_items, page, limit),
    }


@router.patch("/update/{prediction_id}")
async def update_prediction(
    prediction_id: uuid.UUID,
    category: Optional[str] = Form(None),
    prediction_status: Optional[str] = Form(None, alias="status"),
    description: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    _admin=Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    Partially update a prediction (multipart form).

    A new image replaces and deletes the stored one.
    """
    result = await db.execute(select(Prediction).where(Prediction.id == prediction_id))
    prediction = result.scalar_one_or_none()

    if not prediction:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Prediction not found",
        )

    if category:
        _validate_category(category)
    if prediction_status:
        _validate_status(prediction_status)

    new_image = await _store_image(image)
    old_image = prediction.image

    if category:
        prediction.category = category
    if prediction_status:
        prediction.status = prediction_status
    if description is not None:
        prediction.description = description
    if new_image:
        prediction.image = new_image

    try:
        await db.commit()
    except Exception:
        await storage_service.remove(new_image)
        raise

    if new_image and old_image:
        await storage_service.remove(old_image)
    prediction_service.invalidate_cache()

    return {
        "success": True,
        "message": "Prediction updated successfully",
        "data": prediction_payload(prediction),
    }


@router.delete("/delete")
async def delete_predictions(
    request: DeletePredictionsRequest,
    _admin=Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Bulk delete predictions and their stored images."""
    result = await db.execute(
        select(Prediction.id, Prediction.image).where(Prediction.id.in_(request.ids))
    )
    rows = result.all()

    if not rows:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No predictions found with the provided IDs",
        )

    deleted_ids = [row.id for row in rows]
    await db.execute(delete(Prediction).where(Prediction.id.in_(deleted_ids)))
    await db.commit()

    for row in rows:
        await storage_service.remove(row.image)
    prediction_service.invalidate_cache()
    logger.info(f"Deleted {len(deleted_ids)} prediction(s)")

    return {
        "success": True,
        "message": f"{len(deleted_ids)} prediction(s) deleted successfully",
        "data": {
            "deletedCount": len(deleted_ids),
            "deletedIds": [str(pid) for pid in deleted_ids],
        },
    }


@router.get("/users/get-all")
async def get_predictions_feed(
    limit: int = Query(10, ge=1, le=100),
    cursor: Optional[str] = None,
    category: Optional[str] = None,
    _user=Depends(require_any_user),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    Cursor-paginated feed of pending predictions for the app.

    The cursor is the ID of the last prediction of the previous page.
    Each prediction carries the win rate of its category.
    """
    conditions = [Prediction.status == "pending"]
    category = (category or "").strip()
    if category:
        _validate_category(category)
        conditions.append(Prediction.category == category)

    win_rates = await prediction_service.get_category_win_rates(db)

    cursor = (cursor or "").strip()
    if cursor:
        try:
            cursor_id = uuid.UUID(cursor)
        except ValueError:
            cursor_id = None
        anchor = None
        if cursor_id is not None:
            anchor = (
                await db.execute(
                    select(Prediction.created_at).where(Prediction.id == cursor_id)
                )
            ).scalar_one_or_none()
        if anchor is None:
            return {
                "success": True,
                "message": "Predictions retrieved successfully",
                "data": [],
                "hasMore": False,
            }
        conditions.append(
            or_(
                Prediction.created_at < anchor,
                and_(Prediction.created_at == anchor, Prediction.id < cursor_id),
            )
        )

    result = await db.execute(
        select(Prediction)
        .where(*conditions)
        .order_by(Prediction.created_at.desc(), Prediction.id.desc())
        .limit(limit + 1)
    )
    predictions = result.scalars().all()
    has_more = len(predictions) > limit

    data = [
        {
            "id": str(p.id),
            "category": p.category,
            "description": p.description,
            "createdAt": p.created_at,
            "winRate": win_rates.get(p.category, 0),
        }
        for p in predictions[:limit]
    ]

    return {
        "success": True,
        "message": "Predictions retrieved successfully",
        "data": data,
        "hasMore": has_more,
    }


@router.get("/win-rate")
async def get_win_rate(
    _user=Depends(require_any_user),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Win rate and number of active predictions per category."""
    return {
        "success": True,
        "message": "Win rate and active predictions retrieved successfully",
        "data": await prediction_service.get_category_summary(db),
    }
