# backend/tutorbook/repositories/base_repository.py
"""
Shared data access for the booking store.

Repositories read and stage writes; they never commit. The calling
service owns the transaction and decides whether it commits or rolls back.
"""

from abc import ABC, abstractmethod
import logging
from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException

ModelT = TypeVar("ModelT")

logger = logging.getLogger(__name__)


class IRepository(ABC, Generic[ModelT]):
    """Read/create contract every repository offers. Bookings are never deleted."""

    @abstractmethod
    def get_by_id(self, id: str, load_relationships: bool = True) -> Optional[ModelT]:
        """Return the row with this primary key, or None."""

    @abstractmethod
    def create(self, **kwargs: Any) -> ModelT:
        """
        Stage a new row and flush it.

        Raises:
            RepositoryException: The store rejected the row
        """


class BaseRepository(IRepository[ModelT]):
    """
    SQLAlchemy implementation shared by the concrete repositories.

    Attributes:
        db: Session owned by the calling service
        model: Mapped class this repository reads and writes
    """

    def __init__(self, db: Session, model: Type[ModelT]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def get_by_id(self, id: str, load_relationships: bool = True) -> Optional[ModelT]:
        query = self.db.query(self.model).filter(self.model.id == id)  # type: ignore[attr-defined]
        if load_relationships:
            query = self._apply_eager_loading(query)
        try:
            return query.first()
        except SQLAlchemyError as exc:
            self.logger.error(f"Lookup of {self.model.__name__} {id} failed: {exc}")
            raise RepositoryException(f"Failed to load {self.model.__name__} {id}") from exc

    def create(self, **kwargs: Any) -> ModelT:
        """Add and flush so constraint violations surface inside the caller's transaction."""
        entity = self.model(**kwargs)
        self.db.add(entity)
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.logger.warning(f"{self.model.__name__} rejected by a constraint: {exc.orig}")
            raise RepositoryException(f"Constraint violated creating {self.model.__name__}") from exc
        except SQLAlchemyError as exc:
            self.logger.error(f"Creating {self.model.__name__} failed: {exc}")
            raise RepositoryException(f"Failed to create {self.model.__name__}") from exc
        return entity

    def flush(self) -> None:
        self.db.flush()

    def _apply_eager_loading(self, query: Query) -> Query:
        """Hook for subclasses that want relationships loaded with the row."""
        return query
