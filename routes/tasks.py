# routes/tasks.py
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from core.database import get_session
from core.errors import unwrap
from core.security import get_current_user
from models.models import Priority, TaskStatus, TaskType, User
from schemas.task_schema import (
    TaskCreate, TaskPage, TaskRead, TaskUpdate, TaskWithWatchers, WatcherAdd, WatcherRead,
)
from services import task_service

router = APIRouter(tags=["Tasks"])


# ==================================================================
#  ✅ Create Task
# ==================================================================
@router.post("/", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
def create_task(
    data: TaskCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return unwrap(
        task_service.create_task(
            session,
            current_user.id,
            data.project_id,
            title=data.title,
            description=data.description,
            assignee_id=data.assignee_id,
            status=data.status.value,
            priority=data.priority.value,
            type=data.type.value,
            due_date=data.due_date,
            estimated_hours=data.estimated_hours,
            custom_fields=data.custom_fields,
        )
    )


# ==================================================================
#  ✅ List / Get
# ==================================================================
@router.get("/", response_model=TaskPage)
def list_tasks(
    project_id: int = Query(..., description="Project ID"),
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    assignee_id: Optional[int] = Query(None),
    reporter_id: Optional[int] = Query(None),
    priority: Optional[Priority] = Query(None),
    task_type: Optional[TaskType] = Query(None, alias="type"),
    due_from: Optional[datetime] = Query(None),
    due_to: Optional[datetime] = Query(None),
    overdue: bool = Query(False),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return unwrap(
        task_service.list_project_tasks(
            session,
            current_user.id,
            project_id,
            status=status_filter.value if status_filter else None,
            assignee_id=assignee_id,
            priority=priority.value if priority else None,
            type=task_type.value if task_type else None,
            reporter_id=reporter_id,
            due_from=due_from,
            due_to=due_to,
            overdue=overdue,
            search=search,
            page=page,
            limit=limit,
        )
    )


@router.get("/my", response_model=TaskPage)
def list_my_tasks(
    assigned_to_me: bool = Query(False),
    reported_by_me: bool = Query(False),
    watched_by_me: bool = Query(False),
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    priority: Optional[Priority] = Query(None),
    overdue: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Tasks across all of the caller's workspaces."""
    return unwrap(
        task_service.list_user_tasks(
            session,
            current_user.id,
            assigned_to_me=assigned_to_me,
            reported_by_me=reported_by_me,
            watched_by_me=watched_by_me,
            status=status_filter.value if status_filter else None,
            priority=priority.value if priority else None,
            overdue=overdue,
            page=page,
            limit=limit,
        )
    )


@router.get("/{task_id}", response_model=TaskWithWatchers)
def get_task(
    task_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    task = unwrap(task_service.get_task(session, current_user.id, task_id))
    return TaskWithWatchers(
        **TaskRead.model_validate(task).model_dump(),
        watcher_ids=task_service.watcher_ids(session, task.id),
    )


# ==================================================================
#  ✅ Update / Delete
# ==================================================================
@router.put("/{task_id}", response_model=TaskRead)
def update_task(
    task_id: int,
    data: TaskUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    changes = {}
    for field, value in data.model_dump(exclude_unset=True).items():
        changes[field] = value.value if hasattr(value, "value") else value
    return unwrap(task_service.update_task(session, current_user.id, task_id, **changes))


@router.delete("/{task_id}")
def delete_task(
    task_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    unwrap(task_service.delete_task(session, current_user.id, task_id))
    return {"message": "Task deleted successfully"}


# ==================================================================
#  👀 Watchers
# ==================================================================
@router.post("/{task_id}/watchers", response_model=WatcherRead, status_code=status.HTTP_201_CREATED)
def add_watcher(
    task_id: int,
    data: WatcherAdd,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return unwrap(task_service.add_watcher(session, current_user.id, task_id, data.user_id))


@router.delete("/{task_id}/watchers/{user_id}")
def remove_watcher(
    task_id: int,
    user_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    unwrap(task_service.remove_watcher(session, current_user.id, task_id, user_id))
    return {"message": "Watcher removed"}
