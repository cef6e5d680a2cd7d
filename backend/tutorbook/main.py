# backend/tutorbook/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from . import __version__
from .core.config import settings
from .database import Base, engine
from .errors import register_error_handlers
from .routes import health, prometheus
from .routes.v1 import bookings as bookings_v1, teachers as teachers_v1

# Configure logging
logging.basicConfig(
    level=settings.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)

API_TITLE = "Tutorbook API"
API_DESCRIPTION = (
    "Lesson booking between students and teachers: conflict-free scheduling, "
    "booking lifecycle and teacher availability."
)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info(f"{API_TITLE} starting up...")
    logger.info(f"Environment: {settings.environment}")

    # Register the mapped tables before create_all
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info(
        f"Working window {settings.working_day_start}-{settings.working_day_end}, "
        f"{settings.slot_length_minutes}-minute slots"
    )

    yield

    logger.info(f"{API_TITLE} shutting down...")
    engine.dispose()


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)
# Register unified error envelope handlers
register_error_handlers(app)

# API v1 router - all versioned endpoints live under /api/v1
api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(teachers_v1.router, prefix="/teachers")
app.include_router(api_v1)

# Infrastructure endpoints stay unversioned
app.include_router(health.router)
app.include_router(prometheus.router)


@app.get("/")
def read_root() -> dict[str, str]:
    """Root endpoint - API information"""
    return {
        "message": f"Welcome to the {API_TITLE}",
        "version": __version__,
        "docs": "/docs",
    }
