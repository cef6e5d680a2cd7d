# backend/tutorbook/database.py
"""
Engine, session factory and declarative base for the booking store.

PostgreSQL in deployment; SQLite for local runs and tests. The session
factory keeps attributes loaded after commit so services can return the
committed booking without another round trip.
"""

import logging
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from .core.config import settings

logger = logging.getLogger(__name__)


def _is_memory_sqlite(database_url: str) -> bool:
    return ":memory:" in database_url or database_url.rstrip("/").endswith("sqlite:")


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine with pooling suited to the dialect."""
    if database_url.lower().startswith("sqlite"):
        # One shared connection, or every session would see its own empty database
        pool_args: dict[str, Any] = (
            {"poolclass": StaticPool} if _is_memory_sqlite(database_url) else {}
        )
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            **pool_args,
        )

    return create_engine(
        database_url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=1800,
        pool_pre_ping=True,
        connect_args={"connect_timeout": 10, "application_name": "tutorbook"},
    )


engine: Engine = build_engine(settings.get_database_url(), echo=settings.sql_echo)


@event.listens_for(engine, "connect")
def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
    logger.debug(f"Opened store connection ({engine.dialect.name})")


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Yield a request-scoped session; roll back on error, always close."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
