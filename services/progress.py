# services/progress.py
"""
Progress roll-up.

Task progress is aggregated into project progress as an effort-weighted
average: each task weighs its estimated hours, or 1 when it has no estimate.
The result is rounded half-up and persisted on the project, which may also
move the project forward (planning -> active, anything open -> completed).
Those status triggers never move a project backwards.
"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from core.errors import Failure, Result, Success, not_found, validation_error
from core.utils import round_half_up, utcnow
from models.models import Project, ProjectStatus, Task, TaskStatus
from services.access import resolve_access
from services.permissions import Action, check, context_from_access

logger = logging.getLogger(__name__)

TASK_STATUSES = {s.value for s in TaskStatus}


# ============================================================
# Pure rules
# ============================================================
def task_weight(task) -> float:
    estimated = task.estimated_hours or 0
    return estimated if estimated > 0 else 1


def weighted_progress(tasks: Iterable) -> int:
    total_weight = 0.0
    weighted_sum = 0.0
    for task in tasks:
        weight = task_weight(task)
        total_weight += weight
        weighted_sum += weight * (task.progress or 0)
    if total_weight <= 0:
        return 0
    return round_half_up(weighted_sum / total_weight)


def next_project_status(current: str, progress: int) -> str:
    if current == ProjectStatus.CANCELLED.value:
        return current
    if progress == 100 and current != ProjectStatus.COMPLETED.value:
        return ProjectStatus.COMPLETED.value
    if 0 < progress < 100 and current == ProjectStatus.PLANNING.value:
        return ProjectStatus.ACTIVE.value
    return current


def clamp_progress(value: float) -> int:
    return int(max(0, min(100, round_half_up(value))))


def progress_remaining_hours(estimated_hours: float, progress: int) -> float:
    """Remaining effort implied by the completion ratio."""
    estimated = estimated_hours or 0
    return round_half_up(max(0.0, estimated * (1 - progress / 100)), 2)


def linear_remaining_hours(estimated_hours: float, logged_hours: float) -> float:
    """Remaining effort implied by hours actually logged."""
    return round_half_up(max(0.0, (estimated_hours or 0) - (logged_hours or 0)), 2)


def apply_status_transition(task: Task, new_status: str, now: datetime) -> None:
    """Status side effects: completion stamp, forced 100%, first start date."""
    changed = new_status != task.status
    task.status = new_status
    if new_status == TaskStatus.DONE.value:
        task.progress = 100
        if changed or task.completed_date is None:
            task.completed_date = now
    elif changed:
        task.completed_date = None
    if new_status == TaskStatus.IN_PROGRESS.value and task.start_date is None:
        task.start_date = now


# ============================================================
# Persistence-bound operations
# ============================================================
def _recompute(session: Session, project: Project) -> int:
    tasks = session.exec(select(Task).where(Task.project_id == project.id)).all()
    progress = weighted_progress(tasks) if tasks else 0

    previous_status = project.status
    project.progress = progress
    project.status = next_project_status(project.status, progress)
    project.updated_at = utcnow()
    session.add(project)

    if project.status != previous_status:
        logger.info(
            "Project %s status %s -> %s at %s%%", project.id, previous_status, project.status, progress
        )
    return progress


def recompute_project_progress(session: Session, project_id: int) -> Result[int]:
    project = session.get(Project, project_id)
    if not project:
        return not_found("Project")
    try:
        progress = _recompute(session, project)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to recompute progress for project %s", project_id)
        raise
    logger.info("Recomputed project %s progress: %s%%", project_id, progress)
    return Success(progress)


def recompute_in_session(session: Session, project_id: int) -> Optional[int]:
    """Recompute without committing, for callers that own the transaction."""
    session.flush()
    project = session.get(Project, project_id)
    if not project:
        return None
    return _recompute(session, project)


def _validate_update(progress, status, remaining_hours) -> Optional[Failure]:
    if progress is None and status is None and remaining_hours is None:
        return validation_error("Provide at least one of progress, status or remaining_hours")
    if progress is not None and not 0 <= progress <= 100:
        return validation_error("progress must be between 0 and 100", progress=progress)
    if status is not None and status not in TASK_STATUSES:
        return validation_error(f"Invalid status '{status}'", allowed=sorted(TASK_STATUSES))
    if remaining_hours is not None and remaining_hours < 0:
        return validation_error("remaining_hours cannot be negative")
    return None


def update_task_progress(
    session: Session,
    task_id: int,
    actor_id: int,
    progress: Optional[float] = None,
    status: Optional[str] = None,
    remaining_hours: Optional[float] = None,
    now: Optional[datetime] = None,
) -> Result[Task]:
    invalid = _validate_update(progress, status, remaining_hours)
    if invalid:
        return invalid

    access = resolve_access(session, actor_id, task_id=task_id)
    if not access.ok:
        return access
    ctx = access.value
    denied = check(ctx.membership, Action.UPDATE_PROGRESS, context_from_access(ctx))
    if denied:
        return denied

    now = now or utcnow()
    task = ctx.task

    if progress is not None:
        task.progress = clamp_progress(progress)
    if status is not None:
        apply_status_transition(task, status, now)

    if remaining_hours is not None:
        task.remaining_hours = round_half_up(remaining_hours, 2)
    else:
        task.remaining_hours = progress_remaining_hours(task.estimated_hours, task.progress)
    task.updated_at = now

    try:
        session.add(task)
        recompute_in_session(session, task.project_id)
        session.commit()
        session.refresh(task)
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to update progress for task %s", task_id)
        raise

    logger.info("Task %s progress=%s status=%s by user %s", task.id, task.progress, task.status, actor_id)
    return Success(task)


def bulk_update_task_progress(session: Session, actor_id: int, updates: Sequence[dict]) -> List[dict]:
    """
    Apply several progress updates; each one succeeds or fails on its own.

    Each update is a mapping with `task_id` and any of `progress`, `status`
    and `remaining_hours`.
    """
    results = []
    for update in updates:
        task_id = update["task_id"]
        outcome = update_task_progress(
            session,
            task_id,
            actor_id,
            progress=update.get("progress"),
            status=update.get("status"),
            remaining_hours=update.get("remaining_hours"),
        )
        if outcome.ok:
            results.append({"task_id": task_id, "success": True, "progress": outcome.value.progress})
        else:
            results.append({"task_id": task_id, "success": False, **outcome.to_dict()})
    return results

