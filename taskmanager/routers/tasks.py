from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import envelope
from ..models import TaskPriority, TaskStatus, User
from ..schemas.task import TaskCreate, TaskUpdate
from ..services import tasks as task_service
from .auth import get_current_user

router = APIRouter()


@router.get("/stats")
def get_task_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Status, priority and overdue counts over the caller's visible tasks."""
    return envelope(task_service.task_stats(db, current_user))


@router.get("")
def get_tasks(
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    assigned_to: Optional[str] = Query(default=None, alias="assignedTo"),
    created_by: Optional[str] = Query(default=None, alias="createdBy"),
    search: Optional[str] = None,
    sort_by: str = Query(default="createdAt", alias="sortBy"),
    sort_order: str = Query(default="desc", alias="sortOrder"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List tasks assigned to or created by the caller."""
    tasks, pagination = task_service.list_tasks(
        db,
        current_user,
        status=status,
        priority=priority,
        assigned_to=assigned_to,
        created_by=created_by,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return envelope({
        "tasks": task_service.build_task_payloads(db, tasks),
        "pagination": pagination,
    })


@router.post("", status_code=status.HTTP_201_CREATED)
def create_task(
    payload: TaskCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a task; it is assigned to the caller unless ``assignedTo`` says otherwise."""
    task = task_service.create_task(db, current_user, payload)
    [data] = task_service.build_task_payloads(db, [task])
    return envelope({"task": data}, message="Task created successfully")


@router.get("/{task_id}")
def get_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = task_service.get_visible_task(db, current_user, task_id)
    [data] = task_service.build_task_payloads(db, [task])
    return envelope({"task": data})


@router.put("/{task_id}")
def update_task(
    task_id: str,
    payload: TaskUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = task_service.update_task(db, current_user, task_id, payload)
    [data] = task_service.build_task_payloads(db, [task])
    return envelope({"task": data}, message="Task updated successfully")


@router.delete("/{task_id}")
def delete_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task_service.delete_task(db, current_user, task_id)
    return envelope(message="Task deleted successfully")
