# backend/tutorbook/repositories/user_repository.py
"""
User directory access.

The booking engine only resolves participants and locks the teacher row
while it re-checks for conflicts.
"""

import logging
from typing import Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)

    def lock_teacher_row(self, teacher_id: str) -> Optional[User]:
        """
        Load the teacher with ``SELECT ... FOR UPDATE``.

        Concurrent transactions touching the same teacher queue behind this
        row lock until commit. SQLite has no row locks and the clause is
        dropped by the dialect.
        """
        try:
            query = self.db.query(User).filter(User.id == teacher_id).with_for_update()
            return cast(Optional[User], query.first())
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking teacher {teacher_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock teacher row: {str(e)}")
