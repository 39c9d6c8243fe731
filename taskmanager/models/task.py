from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field, Column, JSON
from datetime import datetime
from typing import List, Optional
from uuid import uuid4
import enum

from ..utils.datetime_helper import as_utc, utcnow


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Task(SQLModel, table=True):
    """Task model.

    ``assigned_to`` and ``created_by`` are non-owning references to users;
    removing a user leaves them dangling.
    """
    __tablename__ = "tasks"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    title: str = Field(max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    status: TaskStatus = Field(default=TaskStatus.PENDING, index=True)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    due_date: Optional[datetime] = Field(default=None, index=True, sa_type=DateTime(timezone=True))
    completed_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    assigned_to: str = Field(foreign_key="users.id", index=True)
    created_by: str = Field(foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        if self.due_date is None or self.status == TaskStatus.COMPLETED:
            return False
        return as_utc(now or utcnow()) > as_utc(self.due_date)
