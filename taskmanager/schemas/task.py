from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import List, Optional

from ..models import TaskPriority, TaskStatus
from ..utils.datetime_helper import as_utc, utcnow


def _future_due_date(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize to aware UTC (naive input counts as UTC) and require a time strictly ahead of now."""
    value = as_utc(value)
    if value is None:
        return None
    if value <= utcnow():
        raise ValueError("Due date must be in the future")
    return value


def _required_title(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Task title is required")
    return value


def _clean_tags(value: List[str]) -> List[str]:
    tags = [tag.strip() for tag in value]
    if any(len(tag) > 30 for tag in tags):
        raise ValueError("Each tag cannot exceed 30 characters")
    return tags


class TaskCreate(BaseModel):
    """Schema for creating new tasks."""
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")
    tags: List[str] = Field(default_factory=list)
    assigned_to: Optional[str] = Field(default=None, alias="assignedTo")

    class Config:
        populate_by_name = True

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: str) -> str:
        return _required_title(value)

    @field_validator("due_date")
    @classmethod
    def due_date_in_future(cls, value):
        return _future_due_date(value)

    @field_validator("tags")
    @classmethod
    def check_tags(cls, value: List[str]) -> List[str]:
        return _clean_tags(value)


class TaskUpdate(BaseModel):
    """Schema for updating existing tasks. The creator cannot be changed."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")
    tags: Optional[List[str]] = None
    assigned_to: Optional[str] = Field(default=None, alias="assignedTo")

    class Config:
        populate_by_name = True

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return _required_title(value)

    @field_validator("due_date")
    @classmethod
    def due_date_in_future(cls, value):
        return _future_due_date(value)

    @field_validator("tags")
    @classmethod
    def check_tags(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        return _clean_tags(value)
