# backend/tutorbook/models/user.py
"""
User directory record.

Authentication and profile editing live outside the booking engine; this
model holds only what the engine needs to resolve a participant: role and,
for teachers, the current hourly rate.
"""

import logging
from typing import Any

from sqlalchemy import CheckConstraint, Column, DateTime, Numeric, String
from sqlalchemy.sql import func

from ..core.enums import RoleName
from ..core.ulid_helper import generate_ulid
from ..database import Base

logger = logging.getLogger(__name__)


class User(Base):
    """
    Student or teacher known to the platform.

    Attributes:
        id: ULID primary key
        name: Display name
        email: Unique contact address
        role: One of RoleName
        hourly_rate: Current teacher rate; bookings snapshot it at creation
    """

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    name = Column(String(100), nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    role = Column(String(20), nullable=False, default=RoleName.STUDENT.value)
    hourly_rate = Column(Numeric(10, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("role IN ('student', 'teacher', 'admin')", name="ck_users_role"),
        CheckConstraint("hourly_rate IS NULL OR hourly_rate >= 0", name="ck_users_rate_non_negative"),
    )

    def __init__(self, **kwargs: Any) -> None:
        role = kwargs.get("role")
        if isinstance(role, RoleName):
            kwargs["role"] = role.value
        super().__init__(**kwargs)

    @property
    def is_teacher(self) -> bool:
        return self.role == RoleName.TEACHER.value

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email} ({self.role})>"
