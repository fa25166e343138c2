"""
Tipline API - FastAPI Application Entry Point

Predictions app backend with:
- Email/OTP and social sign-in with JWT sessions
- Casino, sports, stocks and crypto predictions with win rates
- Stripe one-time checkout for the subscription package
- Admin dashboard and static content pages
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from tipline.config import get_settings
from tipline.db.database import init_db
from tipline.routers import (
    auth_router,
    dashboard_router,
    email_router,
    health_router,
    predictions_router,
    setting_router,
    subscription_router,
    transactions_router,
    users_router,
    webhooks_router,
)
from tipline.services.otp_store import otp_store
from tipline.services.trial_scheduler import trial_scheduler

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown tasks:
    - Startup: create tables, start the trial expiry scheduler
    - Shutdown: stop the scheduler, close Redis
    """
    # Startup
    logger.info(f"Starting Tipline API ({settings.app_env})")
    logger.info(f"CORS origins: {settings.cors_origins}")

    if settings.auto_create_tables:
        await init_db()
    if settings.scheduler_enabled:
        trial_scheduler.start()

    yield

    # Shutdown
    logger.info("Shutting down Tipline API")
    if settings.scheduler_enabled:
        await trial_scheduler.stop()
    await otp_store.close()


app = FastAPI(
    title="Tipline API",
    description="Predictions app backend",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render every HTTP error as {"success": false, "message": ...}."""
    if isinstance(exc.detail, dict):
        content = {"success": False, **exc.detail}
    else:
        content = {"success": False, "message": exc.detail}
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Report the first invalid field as a 400."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = [
        str(part)
        for part in first.get("loc", ())
        if part not in ("body", "query", "path", "form", "header")
    ]
    field = loc[-1] if loc else "request"

    if first.get("type") in ("missing", "string_too_short"):
        message = f"{field} is required"
    else:
        message = f"Invalid {field}: {first.get('msg', 'invalid value')}"

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "message": message},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": "Internal server error"},
    )


# Include routers
app.include_router(health_router)
app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(users_router, prefix=API_PREFIX)
app.include_router(predictions_router, prefix=API_PREFIX)
app.include_router(subscription_router, prefix=API_PREFIX)
app.include_router(transactions_router, prefix=API_PREFIX)
app.include_router(webhooks_router, prefix=API_PREFIX)
app.include_router(dashboard_router, prefix=API_PREFIX)
app.include_router(setting_router, prefix=API_PREFIX)
app.include_router(email_router, prefix=API_PREFIX)

# Local uploads are served directly
if settings.storage_backend != "s3":
    app.mount(
        "/uploads",
        StaticFiles(directory=settings.upload_dir, check_dir=False),
        name="uploads",
    )


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "Tipline API",
        "version": "1.0.0",
        "status": "operational",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tipline.main:app",
        host="0.0.0.0",
        port=8000,
        reload=not settings.is_production,
    )
