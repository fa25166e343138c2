"""Static content pages (about us, privacy policy, terms)."""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tipline.db.database import get_db
from tipline.dependencies import require_admin
from tipline.models.app_setting import SETTING_KEYS, AppSetting

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/setting", tags=["Setting"])


class SettingRequest(BaseModel):
    content: str


def _check_key(key: str) -> None:
    if key not in SETTING_KEYS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "message": "Setting not found",
                "validKeys": list(SETTING_KEYS),
            },
        )


@router.get("/{key}")
async def get_setting(
    key: str,
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Public content for a page; an unset page has empty content."""
    _check_key(key)
    result = await db.execute(select(AppSetting).where(AppSetting.key == key))
    setting = result.scalar_one_or_none()

    return {
        "success": True,
        "message": "Setting retrieved successfully",
        "data": {
            "key": key,
            "content": setting.content if setting else "",
            "updatedAt": setting.updated_at if setting else None,
        },
    }


@router.put("/{key}")
async def update_setting(
    key: str,
    request: SettingRequest,
    _admin=Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    _check_key(key)
    result = await db.execute(select(AppSetting).where(AppSetting.key == key))
    setting = result.scalar_one_or_none()

    if setting is None:
        setting = AppSetting(key=key, content=request.content)
        db.add(setting)
    else:
        setting.content = request.content
    await db.commit()
    logger.info(f"Updated setting {key}")

    return {
        "success": True,
        "message": "Setting updated successfully",
        "data": {
            "key": key,
            "content": setting.content,
            "updatedAt": setting.updated_at,
        },
    }
