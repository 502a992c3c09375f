# services/task_service.py
"""
Task CRUD and watchers.

Every mutation that can change a task's progress or weight (create, status or
estimate change, delete) re-rolls the project's progress inside the same
commit.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, or_, select

from core.database import paginate
from core.errors import ErrorKind, Failure, Result, Success, not_found, validation_error
from core.utils import round_half_up, utcnow
from models.models import MembershipStatus, Task, TaskStatus, TaskWatcher, WorkspaceMember
from services.access import is_project_member, resolve_access
from services.permissions import Action, check, context_from_access
from services.progress import TASK_STATUSES, apply_status_transition, linear_remaining_hours, recompute_in_session

logger = logging.getLogger(__name__)

PLAIN_FIELDS = ("title", "description", "priority", "type", "due_date", "custom_fields")
CLOSED_STATUSES = (TaskStatus.DONE.value, TaskStatus.CANCELLED.value)


def _commit_with_recompute(session: Session, task: Task, project_id: int, action: str) -> None:
    try:
        session.add(task)
        recompute_in_session(session, project_id)
        session.commit()
        session.refresh(task)
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to %s task %s", action, task.id)
        raise


def _assignee_not_member(assignee_id: int) -> Failure:
    return validation_error("Assignee must be a member of this project", assignee_id=assignee_id)


def _invalid_status(status: str) -> Failure:
    return validation_error(f"Invalid status '{status}'", allowed=sorted(TASK_STATUSES))


# ==================================================================
#  ✅ Create
# ==================================================================
def create_task(
    session: Session,
    user_id: int,
    project_id: int,
    title: str,
    description: Optional[str] = None,
    assignee_id: Optional[int] = None,
    status: str = TaskStatus.TODO.value,
    priority: Optional[str] = None,
    type: Optional[str] = None,
    due_date: Optional[datetime] = None,
    estimated_hours: float = 0.0,
    custom_fields: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> Result[Task]:
    access = resolve_access(session, user_id, project_id=project_id)
    if not access.ok:
        return access
    ctx = access.value
    denied = check(ctx.membership, Action.CREATE_TASK, context_from_access(ctx))
    if denied:
        return denied

    if status not in TASK_STATUSES:
        return _invalid_status(status)
    if estimated_hours is not None and estimated_hours < 0:
        return validation_error("estimated_hours cannot be negative")
    if assignee_id is not None and not is_project_member(session, ctx.project, assignee_id):
        return _assignee_not_member(assignee_id)

    now = now or utcnow()
    estimated = round_half_up(estimated_hours or 0, 2)
    task = Task(
        workspace_id=ctx.workspace.id,
        project_id=project_id,
        title=title.strip(),
        description=description,
        assignee_id=assignee_id,
        reporter_id=user_id,
        due_date=due_date,
        estimated_hours=estimated,
        remaining_hours=estimated,
        custom_fields=custom_fields or {},
        created_at=now,
        updated_at=now,
    )
    if priority:
        task.priority = priority
    if type:
        task.type = type
    apply_status_transition(task, status, now)
    if task.status == TaskStatus.DONE.value:
        task.remaining_hours = 0.0

    _commit_with_recompute(session, task, project_id, "create")
    logger.info("Task %s created in project %s by user %s", task.id, project_id, user_id)
    return Success(task)


# ==================================================================
#  ✅ Read
# ==================================================================
def get_task(session: Session, user_id: int, task_id: int) -> Result[Task]:
    access = resolve_access(session, user_id, task_id=task_id)
    if not access.ok:
        return access
    return Success(access.value.task)


def watcher_ids(session: Session, task_id: int) -> List[int]:
    return list(session.exec(select(TaskWatcher.user_id).where(TaskWatcher.task_id == task_id)).all())


def _filter_tasks(statement, status=None, priority=None, overdue: bool = False, now: Optional[datetime] = None):
    if status:
        statement = statement.where(Task.status == status)
    if priority:
        statement = statement.where(Task.priority == priority)
    if overdue:
        statement = statement.where(
            Task.due_date < (now or utcnow()),
            Task.status.not_in(CLOSED_STATUSES),
        )
    return statement


def _check_page(page: int, limit: int) -> Optional[Failure]:
    if page < 1 or limit < 1:
        return validation_error("page and limit must be positive")
    return None


def list_project_tasks(
    session: Session,
    user_id: int,
    project_id: int,
    status: Optional[str] = None,
    assignee_id: Optional[int] = None,
    priority: Optional[str] = None,
    type: Optional[str] = None,
    reporter_id: Optional[int] = None,
    due_from: Optional[datetime] = None,
    due_to: Optional[datetime] = None,
    overdue: bool = False,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    now: Optional[datetime] = None,
) -> Result[Dict]:
    """One page of a project's tasks, newest first; `search` matches title or description."""
    invalid = _check_page(page, limit)
    if invalid:
        return invalid
    access = resolve_access(session, user_id, project_id=project_id)
    if not access.ok:
        return access

    statement = _filter_tasks(
        select(Task).where(Task.project_id == project_id), status, priority, overdue, now
    )
    if assignee_id is not None:
        statement = statement.where(Task.assignee_id == assignee_id)
    if reporter_id is not None:
        statement = statement.where(Task.reporter_id == reporter_id)
    if type:
        statement = statement.where(Task.type == type)
    if due_from is not None:
        statement = statement.where(Task.due_date >= due_from)
    if due_to is not None:
        statement = statement.where(Task.due_date <= due_to)
    if search:
        pattern = f"%{search.strip()}%"
        statement = statement.where(or_(Task.title.ilike(pattern), Task.description.ilike(pattern)))

    statement = statement.order_by(Task.created_at.desc(), Task.id.desc())
    return Success(paginate(session, statement, page, limit))


def list_user_tasks(
    session: Session,
    user_id: int,
    assigned_to_me: bool = False,
    reported_by_me: bool = False,
    watched_by_me: bool = False,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    overdue: bool = False,
    page: int = 1,
    limit: int = 20,
    now: Optional[datetime] = None,
) -> Result[Dict]:
    """
    Tasks across every workspace the user is an active member of.

    The `*_by_me` flags narrow the list and combine with AND. Tasks with a due
    date come first, soonest first.
    """
    invalid = _check_page(page, limit)
    if invalid:
        return invalid

    workspace_ids = select(WorkspaceMember.workspace_id).where(
        WorkspaceMember.user_id == user_id,
        WorkspaceMember.status == MembershipStatus.ACTIVE.value,
    )
    statement = _filter_tasks(
        select(Task).where(Task.workspace_id.in_(workspace_ids)), status, priority, overdue, now
    )
    if assigned_to_me:
        statement = statement.where(Task.assignee_id == user_id)
    if reported_by_me:
        statement = statement.where(Task.reporter_id == user_id)
    if watched_by_me:
        statement = statement.where(
            Task.id.in_(select(TaskWatcher.task_id).where(TaskWatcher.user_id == user_id))
        )

    statement = statement.order_by(Task.due_date.is_(None), Task.due_date, Task.created_at.desc(), Task.id.desc())
    return Success(paginate(session, statement, page, limit))


# ==================================================================
#  ✅ Update / delete
# ==================================================================
def update_task(
    session: Session,
    user_id: int,
    task_id: int,
    now: Optional[datetime] = None,
    **changes,
) -> Result[Task]:
    access = resolve_access(session, user_id, task_id=task_id)
    if not access.ok:
        return access
    ctx = access.value
    denied = check(ctx.membership, Action.UPDATE_TASK, context_from_access(ctx))
    if denied:
        return denied

    status = changes.get("status")
    if status is not None and status not in TASK_STATUSES:
        return _invalid_status(status)
    estimated = changes.get("estimated_hours")
    if estimated is not None and estimated < 0:
        return validation_error("estimated_hours cannot be negative")

    task = ctx.task
    assignee_id = changes.get("assignee_id")
    if assignee_id is not None and assignee_id != task.assignee_id:
        if not is_project_member(session, ctx.project, assignee_id):
            return _assignee_not_member(assignee_id)
        task.assignee_id = assignee_id

    if estimated is not None:
        task.estimated_hours = round_half_up(estimated, 2)
        task.remaining_hours = linear_remaining_hours(task.estimated_hours, task.logged_hours)

    for field in PLAIN_FIELDS:
        value = changes.get(field)
        if value is not None:
            setattr(task, field, value)

    now = now or utcnow()
    if status is not None:
        apply_status_transition(task, status, now)
        if task.status == TaskStatus.DONE.value:
            task.remaining_hours = 0.0
    task.updated_at = now

    _commit_with_recompute(session, task, task.project_id, "update")
    logger.info("Task %s updated by user %s", task.id, user_id)
    return Success(task)


def delete_task(session: Session, user_id: int, task_id: int) -> Result[int]:
    access = resolve_access(session, user_id, task_id=task_id)
    if not access.ok:
        return access
    ctx = access.value
    denied = check(ctx.membership, Action.DELETE_TASK, context_from_access(ctx))
    if denied:
        return denied

    project_id = ctx.task.project_id
    try:
        session.delete(ctx.task)
        recompute_in_session(session, project_id)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to delete task %s", task_id)
        raise

    logger.info("Task %s deleted by user %s", task_id, user_id)
    return Success(task_id)


# ==================================================================
#  👀 Watchers
# ==================================================================
def add_watcher(session: Session, user_id: int, task_id: int, watcher_id: Optional[int] = None) -> Result[TaskWatcher]:
    watcher_id = watcher_id if watcher_id is not None else user_id
    access = resolve_access(session, user_id, task_id=task_id)
    if not access.ok:
        return access
    ctx = access.value
    denied = check(ctx.membership, Action.ADD_WATCHER, context_from_access(ctx, target_user_id=watcher_id))
    if denied:
        return denied

    if not is_project_member(session, ctx.project, watcher_id):
        return validation_error("Watcher must be a member of this project", user_id=watcher_id)
    if session.get(TaskWatcher, (task_id, watcher_id)):
        return Failure(ErrorKind.CONFLICT, "User is already watching this task")

    watcher = TaskWatcher(task_id=task_id, user_id=watcher_id)
    try:
        session.add(watcher)
        session.commit()
        session.refresh(watcher)
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to add watcher %s to task %s", watcher_id, task_id)
        raise
    return Success(watcher)


def remove_watcher(session: Session, user_id: int, task_id: int, watcher_id: int) -> Result[int]:
    access = resolve_access(session, user_id, task_id=task_id)
    if not access.ok:
        return access
    ctx = access.value
    denied = check(ctx.membership, Action.REMOVE_WATCHER, context_from_access(ctx, target_user_id=watcher_id))
    if denied:
        return denied

    watcher = session.get(TaskWatcher, (task_id, watcher_id))
    if not watcher:
        return not_found("Watcher")
    try:
        session.delete(watcher)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to remove watcher %s from task %s", watcher_id, task_id)
        raise
    return Success(watcher_id)
