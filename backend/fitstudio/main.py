# backend/fitstudio/main.py
"""
FitStudio booking API application.

Mounts the versioned routers under ``settings.api_prefix`` and installs the
uniform error envelope handlers.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from . import models  # noqa: F401  (register tables on Base.metadata)
from .core.config import is_running_tests, settings
from .database import Base, engine
from .errors import register_error_handlers
from .routes.v1 import bookings as bookings_v1
from .routes.v1 import classes as classes_v1
from .routes.v1 import health as health_v1
from .routes.v1 import prometheus as prometheus_v1
from .schemas.base_responses import ErrorResponse
from .services.notification_service import get_notification_service

API_TITLE = "FitStudio Booking API"
API_VERSION = "1.0.0"

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info(f"{API_TITLE} starting up...")
    logger.info(f"Environment: {settings.environment}")
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")

    # Local SQLite runs have no migration step.
    if settings.is_sqlite and settings.environment == "development":
        Base.metadata.create_all(bind=engine)

    yield

    logger.info(f"{API_TITLE} shutting down...")
    get_notification_service().shutdown(wait=True)
    get_notification_service.cache_clear()


def create_app() -> FastAPI:
    app = FastAPI(
        title=API_TITLE,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=app_lifespan,
        responses={
            code: {"model": ErrorResponse} for code in (400, 401, 403, 404, 409, 500)
        },
    )
    register_error_handlers(app)

    api_v1 = APIRouter(prefix=settings.api_prefix)
    api_v1.include_router(bookings_v1.router, prefix="/bookings")
    api_v1.include_router(classes_v1.router, prefix="/classes")
    api_v1.include_router(health_v1.router)
    api_v1.include_router(prometheus_v1.router)
    app.include_router(api_v1)
    return app


app = create_app()
