"""Response shaping shared by the routers."""

import math
from typing import Any, Dict

from tipline.models.prediction import Prediction
from tipline.models.user import User
from tipline.services.storage_service import storage_service


def pagination_meta(total_items: int, page: int, limit: int) -> Dict[str, Any]:
    """Page-number pagination block."""
    total_pages = math.ceil(total_items / limit) if limit else 0
    return {
        "totalItems": total_items,
        "totalPages": total_pages,
        "currentPage": page,
        "itemsPerPage": limit,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
    }


def user_payload(user: User) -> Dict[str, Any]:
    """Public view of a user. The password hash never leaves the server."""
    return {
        "id": str(user.id),
        "name": user.name,
        "email": user.email,
        "type": user.type,
        "phone": user.phone,
        "gender": user.gender,
        "date_of_birth": user.date_of_birth,
        "category": user.category,
        "avatar": storage_service.url_for(user.avatar_url),
        "is_subscriber": user.is_subscriber,
        "real_subscriber": user.real_subscriber,
        "createdAt": user.created_at,
        "updatedAt": user.updated_at,
    }


def prediction_payload(prediction: Prediction) -> Dict[str, Any]:
    return {
        "id": str(prediction.id),
        "category": prediction.category,
        "description": prediction.description,
        "status": prediction.status,
        "image": storage_service.url_for(prediction.image),
        "createdAt": prediction.created_at,
        "updatedAt": prediction.updated_at,
    }
