# backend/tutorbook/init_db.py
"""
Create the booking store schema.

Usage:
    python -m tutorbook.init_db
"""
import logging

from .core.config import settings
from .database import Base, engine
from . import models  # noqa: F401

logger = logging.getLogger(__name__)


def init_db() -> None:
    """Create all tables and indexes that do not exist yet."""
    logger.info(f"Creating tables on {engine.url.render_as_string(hide_password=True)}")
    Base.metadata.create_all(bind=engine)
    logger.info(f"Schema ready ({', '.join(sorted(Base.metadata.tables))})")


if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level)
    init_db()
