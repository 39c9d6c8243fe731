"""Task queries and writes scoped to the calling user."""
from datetime import datetime
from typing import Dict, Iterable, List, Optional
import json
import logging
import math

from sqlalchemy import String, cast, func, or_
from sqlalchemy.orm import Query, Session

from .. import errors
from ..models import Task, TaskPriority, TaskStatus, User
from ..schemas.task import TaskCreate, TaskUpdate
from ..utils.datetime_helper import isoformat_utc, utcnow
from .users import build_user_summary, get_user

logger = logging.getLogger(__name__)

TASK_NOT_FOUND = "Task not found"

SORT_FIELDS = {
    "createdAt": Task.created_at,
    "updatedAt": Task.updated_at,
    "dueDate": Task.due_date,
    "title": Task.title,
    "status": Task.status,
    "priority": Task.priority,
}

LIKE_ESCAPE = "\\"

# Fields an update may null out; the rest ignore explicit nulls
NULLABLE_UPDATE_FIELDS = {"description", "due_date"}


def visible_to(user_id: str):
    """Tasks a user may read or update: those assigned to or created by them."""
    return or_(Task.assigned_to == user_id, Task.created_by == user_id)


def owned_by(user_id: str):
    """Tasks a user may delete: only those they created."""
    return Task.created_by == user_id


def normalize_completion(task: Task, now: Optional[datetime] = None) -> Task:
    """Keep ``completed_at`` set exactly when the task is completed.

    An existing completion time survives later writes that leave the status alone.
    """
    if task.status == TaskStatus.COMPLETED:
        if task.completed_at is None:
            task.completed_at = now or utcnow()
    else:
        task.completed_at = None
    return task


def save_task(db: Session, task: Task) -> Task:
    """The single write path for tasks."""
    now = utcnow()
    normalize_completion(task, now)
    task.updated_at = now
    db.add(task)
    db.commit()
    db.refresh(task)
    return task


def like_pattern(term: str) -> str:
    """Substring pattern for ``ilike(..., escape=LIKE_ESCAPE)``; wildcards in ``term`` match literally."""
    for char in (LIKE_ESCAPE, "%", "_"):
        term = term.replace(char, LIKE_ESCAPE + char)
    return f"%{term}%"


def paginate(query: Query, page: int, limit: int) -> tuple:
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    pagination = {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }
    return items, pagination


def _load_users(db: Session, user_ids: Iterable[str]) -> Dict[str, User]:
    ids = {user_id for user_id in user_ids if user_id}
    if not ids:
        return {}
    return {user.id: user for user in db.query(User).filter(User.id.in_(ids)).all()}


def build_task_payload(task: Task, users: Dict[str, User]) -> dict:
    return {
        "id": str(task.id),
        "title": task.title,
        "description": task.description,
        "status": TaskStatus(task.status).value,
        "priority": TaskPriority(task.priority).value,
        "dueDate": isoformat_utc(task.due_date),
        "completedAt": isoformat_utc(task.completed_at),
        "tags": list(task.tags or []),
        "isOverdue": task.is_overdue(),
        "assignedTo": build_user_summary(users.get(task.assigned_to)),
        "createdBy": build_user_summary(users.get(task.created_by)),
        "createdAt": isoformat_utc(task.created_at),
        "updatedAt": isoformat_utc(task.updated_at),
    }


def build_task_payloads(db: Session, tasks: List[Task]) -> List[dict]:
    users = _load_users(db, [t.assigned_to for t in tasks] + [t.created_by for t in tasks])
    return [build_task_payload(task, users) for task in tasks]


def _require_user(db: Session, user_id: str) -> User:
    user = get_user(db, user_id)
    if user is None:
        raise errors.NotFound("Assigned user not found")
    return user


def create_task(db: Session, current_user: User, payload: TaskCreate) -> Task:
    assignee_id = payload.assigned_to or current_user.id
    _require_user(db, assignee_id)

    task = Task(
        title=payload.title,
        description=payload.description,
        status=payload.status,
        priority=payload.priority,
        due_date=payload.due_date,
        tags=payload.tags,
        assigned_to=assignee_id,
        created_by=current_user.id,
    )
    task = save_task(db, task)
    logger.info(f"User {current_user.id} created task {task.id}")
    return task


def list_tasks(
    db: Session,
    current_user: User,
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    assigned_to: Optional[str] = None,
    created_by: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = "createdAt",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = 10,
) -> tuple:
    if sort_by not in SORT_FIELDS:
        raise errors.ValidationError(f"sortBy must be one of: {', '.join(SORT_FIELDS)}")
    if sort_order not in ("asc", "desc"):
        raise errors.ValidationError("sortOrder must be one of: asc, desc")

    query = db.query(Task).filter(visible_to(current_user.id))

    if status is not None:
        query = query.filter(Task.status == status)
    if priority is not None:
        query = query.filter(Task.priority == priority)
    if assigned_to:
        query = query.filter(Task.assigned_to == assigned_to)
    if created_by:
        query = query.filter(Task.created_by == created_by)
    if search:
        pattern = like_pattern(search)
        # Tags match whole, against their quoted form in the stored JSON list
        tag_pattern = like_pattern(json.dumps(search))
        query = query.filter(
            or_(
                Task.title.ilike(pattern, escape=LIKE_ESCAPE),
                Task.description.ilike(pattern, escape=LIKE_ESCAPE),
                cast(Task.tags, String).ilike(tag_pattern, escape=LIKE_ESCAPE),
            )
        )

    column = SORT_FIELDS[sort_by]
    query = query.order_by(column.asc() if sort_order == "asc" else column.desc(), Task.id)
    return paginate(query, page, limit)


def get_visible_task(db: Session, current_user: User, task_id: str) -> Task:
    task = db.query(Task).filter(Task.id == task_id, visible_to(current_user.id)).first()
    if task is None:
        raise errors.NotFound(TASK_NOT_FOUND)
    return task


def update_task(db: Session, current_user: User, task_id: str, payload: TaskUpdate) -> Task:
    """Creator or assignee may update any field except the creator."""
    task = get_visible_task(db, current_user, task_id)

    changes = payload.model_dump(exclude_unset=True)
    if changes.get("assigned_to"):
        _require_user(db, changes["assigned_to"])

    for field, value in changes.items():
        if value is None and field not in NULLABLE_UPDATE_FIELDS:
            continue
        setattr(task, field, value)

    return save_task(db, task)


def delete_task(db: Session, current_user: User, task_id: str) -> None:
    """Only the creator may delete; anyone else gets the same answer as a missing task."""
    task = db.query(Task).filter(Task.id == task_id, owned_by(current_user.id)).first()
    if task is None:
        raise errors.NotFound("Task not found or you are not authorized to delete it")

    db.delete(task)
    db.commit()
    logger.info(f"User {current_user.id} deleted task {task_id}")


def _count_by(db: Session, column, predicate) -> Dict:
    rows = db.query(column, func.count(Task.id)).filter(predicate).group_by(column).all()
    return {value: count for value, count in rows}


def task_stats(db: Session, current_user: User) -> dict:
    predicate = visible_to(current_user.id)
    by_status = _count_by(db, Task.status, predicate)
    by_priority = _count_by(db, Task.priority, predicate)

    overdue = (
        db.query(Task)
        .filter(
            predicate,
            Task.due_date.isnot(None),
            Task.due_date < utcnow(),
            Task.status != TaskStatus.COMPLETED,
        )
        .count()
    )

    return {
        "statusStats": [{"status": s.value, "count": by_status.get(s, 0)} for s in TaskStatus],
        "priorityDistribution": [{"priority": p.value, "count": by_priority.get(p, 0)} for p in TaskPriority],
        "overdueTasks": overdue,
        "totalTasks": sum(by_status.values()),
    }


def user_task_stats(db: Session, user: User) -> dict:
    by_status = _count_by(db, Task.status, Task.assigned_to == user.id)
    created = db.query(Task).filter(Task.created_by == user.id).count()
    return {
        "assignedTasks": [{"status": s.value, "count": by_status.get(s, 0)} for s in TaskStatus],
        "createdTasks": created,
    }


def list_assigned_tasks(
    db: Session,
    user: User,
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    page: int = 1,
    limit: int = 10,
) -> tuple:
    # Deliberately not narrowed by visible_to(): any authenticated caller may list
    # every task assigned to this user, matching the public per-user task listing.
    query = db.query(Task).filter(Task.assigned_to == user.id)
    if status is not None:
        query = query.filter(Task.status == status)
    if priority is not None:
        query = query.filter(Task.priority == priority)
    query = query.order_by(Task.created_at.desc(), Task.id)
    return paginate(query, page, limit)
