from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field
from datetime import datetime
from typing import Optional
from uuid import uuid4

from ..utils.datetime_helper import utcnow


class User(SQLModel, table=True):
    """User model for authentication and task assignment.

    Users are never hard-deleted; deactivation flips ``is_active``.
    """
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    username: str = Field(unique=True, index=True, max_length=20)
    email: str = Field(unique=True, index=True)
    hashed_password: str
    first_name: str = Field(max_length=50)
    last_name: str = Field(max_length=50)
    avatar: Optional[str] = None
    is_active: bool = Field(default=True)
    last_login: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
