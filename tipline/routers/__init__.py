"""API routers for Tipline."""

from tipline.routers.auth import router as auth_router
from tipline.routers.dashboard import router as dashboard_router
from tipline.routers.email import router as email_router
from tipline.routers.health import router as health_router
from tipline.routers.predictions import router as predictions_router
from tipline.routers.setting import router as setting_router
from tipline.routers.subscription import router as subscription_router
from tipline.routers.transactions import router as transactions_router
from tipline.routers.users import router as users_router
from tipline.routers.webhooks import router as webhooks_router

__all__ = [
    "auth_router",
    "dashboard_router",
    "email_router",
    "health_router",
    "predictions_router",
    "setting_router",
    "subscription_router",
    "transactions_router",
    "users_router",
    "webhooks_router",
]
