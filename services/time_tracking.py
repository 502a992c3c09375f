# services/time_tracking.py
"""
Time accounting.

Each user is either idle or has exactly one running timer. The running-timer
rule is held by the partial unique index on time_entry(user_id) where
is_running; the pre-check below only exists to return a friendly failure,
the index is what closes the race between two concurrent starts.

Every write that touches both a time entry and its task's hour counters is
committed once, so a failure leaves neither changed.
"""
import logging
from datetime import date as date_type, datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from core.errors import ErrorKind, Failure, Result, Success, not_found, validation_error
from core.utils import is_future_date, round_half_up, utcnow
from models.models import Project, Task, TimeEntry
from services import analytics
from services.access import get_active_membership, resolve_access
from services.permissions import Action, check, context_from_access
from services.progress import linear_remaining_hours

logger = logging.getLogger(__name__)

MAX_HOURS_PER_ENTRY = 24
REPORT_TYPES = ("summary", "daily", "user", "project")


# ============================================================
# Helpers
# ============================================================
def _to_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)


def _check_hours(hours) -> Optional[Failure]:
    if hours is None or hours <= 0 or hours > MAX_HOURS_PER_ENTRY:
        return validation_error(
            f"Hours must be greater than 0 and at most {MAX_HOURS_PER_ENTRY}", hours=hours
        )
    return None


def _future_date(value) -> Failure:
    return Failure(
        ErrorKind.FUTURE_DATE,
        "Cannot log time for future dates",
        {"date": str(value)},
    )


def _not_editable(entry: TimeEntry) -> Failure:
    if entry.is_running:
        message = "This time entry is still running; stop the timer first"
    else:
        message = "This time entry cannot be changed (approved or invoiced)"
    return Failure(ErrorKind.NOT_EDITABLE, message, {"entry_id": entry.id})


def _running_entry(session: Session, user_id: int) -> Optional[TimeEntry]:
    return session.exec(
        select(TimeEntry).where(TimeEntry.user_id == user_id, TimeEntry.is_running == True)  # noqa: E712
    ).first()


def _timer_already_running(entry: TimeEntry) -> Failure:
    return Failure(
        ErrorKind.TIMER_ALREADY_RUNNING,
        "You already have a running timer. Please stop it before starting a new one.",
        {
            "running_entry": {
                "id": entry.id,
                "task_id": entry.task_id,
                "start_time": entry.start_time.isoformat() if entry.start_time else None,
                "description": entry.description,
            }
        },
    )


def _adjust_task_hours(task: Task, delta: float, now: datetime) -> None:
    """Shift logged hours by `delta` (floored at zero) and re-derive remaining."""
    task.logged_hours = round_half_up(max(0.0, (task.logged_hours or 0) + delta), 2)
    task.remaining_hours = linear_remaining_hours(task.estimated_hours, task.logged_hours)
    task.updated_at = now


def _commit(session: Session, action: str, *instances) -> None:
    try:
        for instance in instances:
            session.add(instance)
        session.commit()
        for instance in instances:
            session.refresh(instance)
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to %s", action)
        raise


def _owned_entry(session: Session, user_id: int, entry_id: int) -> Optional[TimeEntry]:
    entry = session.get(TimeEntry, entry_id)
    if not entry or entry.user_id != user_id:
        return None
    return entry


# ============================================================
# ⏱️ Timer
# ============================================================
def start_timer(
    session: Session,
    user_id: int,
    task_id: int,
    description: Optional[str] = None,
    billable: bool = False,
    now: Optional[datetime] = None,
) -> Result[TimeEntry]:
    access = resolve_access(session, user_id, task_id=task_id)
    if not access.ok:
        return access
    ctx = access.value
    denied = check(ctx.membership, Action.LOG_TIME, context_from_access(ctx))
    if denied:
        return denied

    running = _running_entry(session, user_id)
    if running:
        return _timer_already_running(running)

    now = now or utcnow()
    task = ctx.task
    entry = TimeEntry(
        user_id=user_id,
        task_id=task.id,
        project_id=task.project_id,
        workspace_id=task.workspace_id,
        description=description,
        hours=0.0,
        date=now,
        billable=billable,
        is_running=True,
        start_time=now,
    )
    try:
        session.add(entry)
        session.commit()
        session.refresh(entry)
    except IntegrityError:
        # Lost the race against a concurrent start for the same user
        session.rollback()
        running = _running_entry(session, user_id)
        if running:
            return _timer_already_running(running)
        raise
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to start timer for user %s", user_id)
        raise

    logger.info("Timer %s started by user %s on task %s", entry.id, user_id, task.id)
    return Success(entry)


def stop_timer(
    session: Session,
    user_id: int,
    entry_id: int,
    now: Optional[datetime] = None,
) -> Result[TimeEntry]:
    entry = _owned_entry(session, user_id, entry_id)
    if not entry or not entry.is_running:
        return not_found("Running timer")

    now = now or utcnow()
    elapsed = max(0.0, (now - entry.start_time).total_seconds())
    hours = round_half_up(elapsed / 3600, 2)

    entry.hours = hours
    entry.end_time = now
    entry.is_running = False
    entry.updated_at = now

    task = session.get(Task, entry.task_id)
    instances = [entry]
    if task:
        _adjust_task_hours(task, hours, now)
        instances.append(task)

    _commit(session, f"stop timer {entry_id}", *instances)
    logger.info("Timer %s stopped by user %s: %sh", entry.id, user_id, hours)
    return Success(entry)


def get_running_timer(session: Session, user_id: int, now: Optional[datetime] = None) -> Optional[Dict]:
    """The user's running entry with elapsed hours so far, or None when idle."""
    entry = _running_entry(session, user_id)
    if not entry:
        return None
    now = now or utcnow()
    elapsed = max(0.0, (now - entry.start_time).total_seconds())
    return {"entry": entry, "elapsed_hours": round_half_up(elapsed / 3600, 2)}


# ============================================================
# 📝 Manual entries
# ============================================================
def log_time(
    session: Session,
    user_id: int,
    task_id: int,
    hours: float,
    date,
    billable: bool = False,
    description: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Result[TimeEntry]:
    invalid = _check_hours(hours)
    if invalid:
        return invalid

    now = now or utcnow()
    if is_future_date(date, today=now.date()):
        return _future_date(date)

    access = resolve_access(session, user_id, task_id=task_id)
    if not access.ok:
        return access
    ctx = access.value
    denied = check(ctx.membership, Action.LOG_TIME, context_from_access(ctx))
    if denied:
        return denied

    task = ctx.task
    entry = TimeEntry(
        user_id=user_id,
        task_id=task.id,
        project_id=task.project_id,
        workspace_id=task.workspace_id,
        description=description,
        hours=round_half_up(hours, 2),
        date=_to_datetime(date),
        billable=billable,
        is_running=False,
    )
    _adjust_task_hours(task, entry.hours, now)

    _commit(session, f"log time on task {task_id}", entry, task)
    logger.info("User %s logged %sh on task %s", user_id, entry.hours, task.id)
    return Success(entry)


def update_time_entry(
    session: Session,
    user_id: int,
    entry_id: int,
    hours: Optional[float] = None,
    description: Optional[str] = None,
    billable: Optional[bool] = None,
    date=None,
    now: Optional[datetime] = None,
) -> Result[TimeEntry]:
    entry = _owned_entry(session, user_id, entry_id)
    if not entry:
        return not_found("Time entry")
    if not entry.is_editable:
        return _not_editable(entry)

    if hours is not None:
        invalid = _check_hours(hours)
        if invalid:
            return invalid

    now = now or utcnow()
    if date is not None and is_future_date(date, today=now.date()):
        return _future_date(date)

    old_hours = entry.hours
    if hours is not None:
        entry.hours = round_half_up(hours, 2)
    if description is not None:
        entry.description = description
    if billable is not None:
        entry.billable = billable
    if date is not None:
        entry.date = _to_datetime(date)
    entry.updated_at = now

    instances = [entry]
    delta = entry.hours - old_hours
    if delta:
        task = session.get(Task, entry.task_id)
        if task:
            _adjust_task_hours(task, delta, now)
            instances.append(task)

    _commit(session, f"update time entry {entry_id}", *instances)
    logger.info("Time entry %s updated by user %s (delta %sh)", entry.id, user_id, round_half_up(delta, 2))
    return Success(entry)


def delete_time_entry(
    session: Session,
    user_id: int,
    entry_id: int,
    now: Optional[datetime] = None,
) -> Result[int]:
    entry = _owned_entry(session, user_id, entry_id)
    if not entry:
        return not_found("Time entry")
    # A running entry may be discarded; only approved/invoiced ones are frozen
    if entry.is_locked:
        return _not_editable(entry)

    now = now or utcnow()
    task = session.get(Task, entry.task_id)
    try:
        if task and entry.hours:
            _adjust_task_hours(task, -entry.hours, now)
            session.add(task)
        session.delete(entry)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to delete time entry %s", entry_id)
        raise

    logger.info("Time entry %s deleted by user %s", entry_id, user_id)
    return Success(entry_id)


# ============================================================
# ✅ Approval
# ============================================================
def _approve_one(
    session: Session,
    approver_id: int,
    entry_id: int,
    approved: bool,
    comment: Optional[str],
    now: datetime,
) -> Result[TimeEntry]:
    entry = session.get(TimeEntry, entry_id)
    if not entry:
        return not_found("Time entry")

    membership = get_active_membership(session, entry.workspace_id, approver_id)
    denied = check(membership, Action.APPROVE_TIME)
    if denied:
        return denied
    if entry.is_running or entry.is_invoiced:
        return _not_editable(entry)

    entry.is_approved = approved
    entry.approved_by_id = approver_id
    entry.approved_at = now
    entry.approval_comment = comment
    entry.updated_at = now
    _commit(session, f"approve time entry {entry_id}", entry)
    return Success(entry)


def approve_time_entries(
    session: Session,
    approver_id: int,
    entry_ids: Iterable[int],
    approved: bool,
    comment: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[Dict]:
    """Approve or reject entries one by one; a failure on one does not undo the others."""
    now = now or utcnow()
    results = []
    for entry_id in entry_ids:
        outcome = _approve_one(session, approver_id, entry_id, approved, comment, now)
        if outcome.ok:
            results.append({"entry_id": entry_id, "success": True, "is_approved": approved})
        else:
            results.append({"entry_id": entry_id, "success": False, **outcome.to_dict()})

    done = sum(1 for r in results if r["success"])
    logger.info(
        "User %s %s %s/%s time entries",
        approver_id, "approved" if approved else "rejected", done, len(results),
    )
    return results


# ============================================================
# 📊 Queries
# ============================================================
def _date_filters(statement, start_date, end_date):
    if start_date is not None:
        statement = statement.where(TimeEntry.date >= _to_datetime(start_date))
    if end_date is not None:
        end = _to_datetime(end_date)
        if isinstance(end_date, date_type) and not isinstance(end_date, datetime):
            # Inclusive of the whole end day
            end = end.replace(hour=23, minute=59, second=59, microsecond=999999)
        statement = statement.where(TimeEntry.date <= end)
    return statement


def list_user_time_entries(
    session: Session,
    user_id: int,
    start_date=None,
    end_date=None,
    project_id: Optional[int] = None,
    task_id: Optional[int] = None,
    billable: Optional[bool] = None,
    page: int = 1,
    limit: int = 20,
) -> Result[Dict]:
    if page < 1 or limit < 1:
        return validation_error("page and limit must be positive")

    statement = _date_filters(select(TimeEntry).where(TimeEntry.user_id == user_id), start_date, end_date)
    if project_id is not None:
        statement = statement.where(TimeEntry.project_id == project_id)
    if task_id is not None:
        statement = statement.where(TimeEntry.task_id == task_id)
    if billable is not None:
        statement = statement.where(TimeEntry.billable == billable)

    matching = session.exec(statement).all()
    total = len(matching)
    items = session.exec(
        statement.order_by(TimeEntry.date.desc(), TimeEntry.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    return Success({
        "items": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": -(-total // limit),
        },
        "summary": analytics.time_totals(matching),
    })


def project_time_summary(
    session: Session,
    user_id: int,
    project_id: int,
    start_date=None,
    end_date=None,
) -> Result[Dict]:
    access = resolve_access(session, user_id, project_id=project_id)
    if not access.ok:
        return access
    project: Project = access.value.project

    entries = session.exec(
        _date_filters(select(TimeEntry).where(TimeEntry.project_id == project_id), start_date, end_date)
    ).all()
    tasks = session.exec(select(Task).where(Task.project_id == project_id)).all()

    total_estimated = round_half_up(sum(t.estimated_hours or 0 for t in tasks), 2)
    total_logged = round_half_up(sum(t.logged_hours or 0 for t in tasks), 2)
    return Success({
        "project": project,
        "summary": analytics.time_totals(entries),
        "by_user": analytics.group_entries(entries, lambda e: e.user_id),
        "tasks": tasks,
        "totals": {
            "total_estimated": total_estimated,
            "total_logged": total_logged,
            "total_tasks": len(tasks),
            "completed_tasks": analytics.task_status_counts(tasks)["done"],
            "progress": analytics.time_progress(total_estimated, total_logged),
        },
    })


def time_report(
    session: Session,
    user_id: int,
    workspace_id: int,
    report_type: str = "summary",
    start_date=None,
    end_date=None,
    project_id: Optional[int] = None,
    target_user_id: Optional[int] = None,
) -> Result[Dict]:
    if report_type not in REPORT_TYPES:
        return validation_error(f"Unknown report type '{report_type}'", allowed=list(REPORT_TYPES))

    access = resolve_access(session, user_id, workspace_id=workspace_id)
    if not access.ok:
        return access

    statement = _date_filters(
        select(TimeEntry).where(TimeEntry.workspace_id == workspace_id), start_date, end_date
    )
    if project_id is not None:
        statement = statement.where(TimeEntry.project_id == project_id)
    if target_user_id is not None:
        statement = statement.where(TimeEntry.user_id == target_user_id)
    entries = session.exec(statement).all()

    if report_type == "daily":
        data = analytics.group_entries(entries, lambda e: e.date.date().isoformat())
    elif report_type == "user":
        data = analytics.group_entries(entries, lambda e: e.user_id)
    elif report_type == "project":
        data = analytics.group_entries(entries, lambda e: e.project_id)
    else:
        data = analytics.time_totals(entries)
        data["average_hours_per_entry"] = (
            round_half_up(data["total_hours"] / data["total_entries"], 2) if data["total_entries"] else 0.0
        )

    return Success({
        "report_type": report_type,
        "data": data,
        "filters": {
            "start_date": start_date,
            "end_date": end_date,
            "project_id": project_id,
            "user_id": target_user_id,
        },
    })
