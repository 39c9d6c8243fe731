from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from .. import errors
from ..database import get_db
from ..errors import envelope
from ..models import TaskPriority, TaskStatus, User
from ..services import tasks as task_service
from ..services import users as user_service
from .auth import get_current_user

router = APIRouter()


@router.get("")
def get_users(
    search: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Search active users, newest first."""
    query = db.query(User).filter(User.is_active.is_(True))
    if search:
        pattern = task_service.like_pattern(search)
        escape = task_service.LIKE_ESCAPE
        query = query.filter(
            or_(
                User.username.ilike(pattern, escape=escape),
                User.email.ilike(pattern, escape=escape),
                User.first_name.ilike(pattern, escape=escape),
                User.last_name.ilike(pattern, escape=escape),
            )
        )
    query = query.order_by(User.created_at.desc(), User.id)

    users, pagination = task_service.paginate(query, page, limit)
    return envelope({
        "users": [user_service.build_user_payload(user) for user in users],
        "pagination": pagination,
    })


@router.put("/deactivate")
def deactivate_account(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Users can only deactivate their own account."""
    user_service.deactivate_user(db, current_user)
    return envelope(message="Account deactivated successfully")


def _get_user_or_404(db: Session, user_id: str) -> User:
    user = user_service.get_user(db, user_id)
    if user is None:
        raise errors.NotFound("User not found")
    return user


@router.get("/{user_id}")
def get_user(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user = _get_user_or_404(db, user_id)
    return envelope({
        "user": user_service.build_user_payload(user),
        "stats": task_service.user_task_stats(db, user),
    })


@router.get("/{user_id}/tasks")
def get_user_tasks(
    user_id: str,
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Tasks assigned to the given user."""
    user = _get_user_or_404(db, user_id)
    tasks, pagination = task_service.list_assigned_tasks(
        db, user, status=status, priority=priority, page=page, limit=limit
    )
    summary = user_service.build_user_summary(user)
    summary["fullName"] = user.full_name
    return envelope({
        "user": summary,
        "tasks": task_service.build_task_payloads(db, tasks),
        "pagination": pagination,
    })
