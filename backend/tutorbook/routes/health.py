# backend/tutorbook/routes/health.py
"""
Health check endpoint.

Used by load balancers and uptime checks; reports whether the booking
store answers.
"""

from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import __version__
from ..api.dependencies import get_db
from ..core.config import settings
from ..schemas.base import HealthResponse

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check(response: Response, db: Session = Depends(get_db)) -> HealthResponse:
    """Report liveness; ``degraded`` when the store does not answer a ping."""
    response.headers["Cache-Control"] = "no-store"
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
        status = "healthy"
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        db_status = "unavailable"
        status = "degraded"

    return HealthResponse(
        status=status,
        service="Tutorbook API",
        version=__version__,
        environment=settings.environment,
        database=db_status,
        timestamp=datetime.now(timezone.utc),
    )
