# services/dashboard.py
"""Read-only progress views and dashboards, built on the access resolver."""
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlmodel import Session, or_, select

from core.errors import Result, Success, validation_error
from core.utils import round_half_up, utcnow
from models.models import (
    MembershipStatus, Project, ProjectMember, ProjectStatus, Task, TaskStatus, TimeEntry,
    Workspace, WorkspaceMember,
)
from services import analytics
from services.access import resolve_access

CLOSED_TASK_STATUSES = (TaskStatus.DONE.value, TaskStatus.CANCELLED.value)


def _task_brief(task: Task) -> Dict:
    return {
        "id": task.id,
        "title": task.title,
        "project_id": task.project_id,
        "status": task.status,
        "priority": task.priority,
        "progress": task.progress,
        "assignee_id": task.assignee_id,
        "due_date": task.due_date,
        "estimated_hours": task.estimated_hours,
        "logged_hours": task.logged_hours,
        "remaining_hours": task.remaining_hours,
    }


def _project_brief(project: Project, tasks: Optional[List[Task]] = None) -> Dict:
    brief = {
        "id": project.id,
        "name": project.name,
        "status": project.status,
        "progress": project.progress,
        "start_date": project.start_date,
        "end_date": project.end_date,
    }
    if tasks is not None:
        own = [t for t in tasks if t.project_id == project.id]
        brief["tasks_count"] = len(own)
        brief["completed_tasks"] = sum(1 for t in own if t.status == TaskStatus.DONE.value)
    return brief


def _time_stats(tasks: List[Task]) -> Dict:
    estimated = round_half_up(sum(t.estimated_hours or 0 for t in tasks), 2)
    logged = round_half_up(sum(t.logged_hours or 0 for t in tasks), 2)
    remaining = round_half_up(sum(t.remaining_hours or 0 for t in tasks), 2)
    return {
        "total_estimated": estimated,
        "total_logged": logged,
        "total_remaining": remaining,
        "time_progress": analytics.time_progress(estimated, logged),
    }


def _average_progress(items) -> int:
    items = list(items)
    if not items:
        return 0
    return round_half_up(sum(i.progress or 0 for i in items) / len(items))


# ============================================================
# 📈 Progress views
# ============================================================
def task_progress_view(session: Session, user_id: int, task_id: int, now: Optional[datetime] = None) -> Result[Dict]:
    access = resolve_access(session, user_id, task_id=task_id)
    if not access.ok:
        return access
    task = access.value.task
    now = now or utcnow()

    entries = session.exec(
        select(TimeEntry).where(TimeEntry.task_id == task_id).order_by(TimeEntry.date.desc())
    ).all()

    return Success({
        "task": _task_brief(task),
        "time_stats": analytics.time_totals(entries),
        "metrics": {
            "time_progress": analytics.time_progress(task.estimated_hours, task.logged_hours),
            "remaining_hours": task.remaining_hours,
            "estimated_completion": analytics.estimated_completion(
                task.remaining_hours, task.status, task.completed_date, entries, now
            ),
            "velocity": analytics.velocity_summary(entries, now),
            "burndown": analytics.burndown(task.estimated_hours, entries),
        },
        "recent_entries": entries[:5],
    })


def project_progress_view(session: Session, user_id: int, project_id: int) -> Result[Dict]:
    access = resolve_access(session, user_id, project_id=project_id)
    if not access.ok:
        return access
    project = access.value.project

    tasks = session.exec(
        select(Task).where(Task.project_id == project_id).order_by(Task.created_at)
    ).all()
    entries = session.exec(select(TimeEntry).where(TimeEntry.project_id == project_id)).all()

    return Success({
        "project": _project_brief(project, tasks),
        "task_stats": analytics.task_status_counts(tasks),
        "time_stats": _time_stats(tasks),
        "milestones": analytics.milestones(tasks),
        "team_performance": analytics.team_performance(tasks, entries),
        "tasks": [_task_brief(t) for t in tasks],
    })


def workspace_progress_view(session: Session, user_id: int, workspace_id: int) -> Result[Dict]:
    access = resolve_access(session, user_id, workspace_id=workspace_id)
    if not access.ok:
        return access

    projects = session.exec(
        select(Project).where(Project.workspace_id == workspace_id, Project.is_archived == False)  # noqa: E712
    ).all()
    tasks = session.exec(select(Task).where(Task.workspace_id == workspace_id)).all()

    project_counts = {s.value: 0 for s in ProjectStatus}
    for project in projects:
        project_counts[project.status] = project_counts.get(project.status, 0) + 1
    project_counts["total"] = len(projects)
    project_counts["avg_progress"] = _average_progress(projects)

    task_stats = analytics.task_status_counts(tasks)
    task_stats["avg_progress"] = _average_progress(tasks)

    progress_rows = [_project_brief(p, tasks) for p in projects]
    recently_completed = sorted(
        (t for t in tasks if t.status == TaskStatus.DONE.value and t.completed_date),
        key=lambda t: t.completed_date,
        reverse=True,
    )[:10]

    return Success({
        "workspace_id": workspace_id,
        "projects": project_counts,
        "tasks": task_stats,
        "time": _time_stats(tasks),
        "project_progress": progress_rows,
        "top_projects": sorted(progress_rows, key=lambda r: r["progress"], reverse=True)[:5],
        "recently_completed": [
            {"id": t.id, "title": t.title, "completed_date": t.completed_date, "logged_hours": t.logged_hours}
            for t in recently_completed
        ],
    })


# ============================================================
# 🧭 Dashboards
# ============================================================
def workspace_dashboard(session: Session, user_id: int, workspace_id: int, now: Optional[datetime] = None) -> Result[Dict]:
    access = resolve_access(session, user_id, workspace_id=workspace_id)
    if not access.ok:
        return access
    workspace = access.value.workspace
    now = now or utcnow()

    projects = session.exec(
        select(Project).where(Project.workspace_id == workspace_id, Project.is_archived == False)  # noqa: E712
    ).all()
    tasks = session.exec(select(Task).where(Task.workspace_id == workspace_id)).all()
    members = session.exec(
        select(WorkspaceMember).where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.status == MembershipStatus.ACTIVE.value,
        )
    ).all()

    overdue = [t for t in tasks if t.is_overdue(now)]
    recent_projects = sorted(projects, key=lambda p: p.updated_at, reverse=True)[:5]
    recent_tasks = sorted(tasks, key=lambda t: t.updated_at, reverse=True)[:10]
    activity = [
        {"type": "project", "id": p.id, "title": p.name, "status": p.status, "updated_at": p.updated_at}
        for p in recent_projects
    ] + [
        {"type": "task", "id": t.id, "title": t.title, "status": t.status, "updated_at": t.updated_at}
        for t in recent_tasks
    ]
    activity.sort(key=lambda a: a["updated_at"], reverse=True)

    return Success({
        "workspace": {"id": workspace.id, "name": workspace.name, "slug": workspace.slug},
        "role": access.value.role,
        "stats": {
            "total_projects": len(projects),
            "active_projects": sum(1 for p in projects if p.status == ProjectStatus.ACTIVE.value),
            "total_tasks": len(tasks),
            "completed_tasks": sum(1 for t in tasks if t.status == TaskStatus.DONE.value),
            "overdue_tasks": len(overdue),
            "total_members": len(members),
        },
        "overdue_tasks": [_task_brief(t) for t in sorted(overdue, key=lambda t: t.due_date)[:10]],
        "recent_activity": activity[:15],
    })


def project_dashboard(session: Session, user_id: int, project_id: int, now: Optional[datetime] = None) -> Result[Dict]:
    access = resolve_access(session, user_id, project_id=project_id)
    if not access.ok:
        return access
    project = access.value.project
    now = now or utcnow()

    tasks = session.exec(select(Task).where(Task.project_id == project_id)).all()
    member_count = len(session.exec(
        select(ProjectMember).where(ProjectMember.project_id == project_id)
    ).all())
    overdue = [t for t in tasks if t.is_overdue(now)]

    return Success({
        "project": _project_brief(project, tasks),
        "project_role": access.value.project_role,
        "stats": {
            "total_tasks": len(tasks),
            "completed_tasks": sum(1 for t in tasks if t.status == TaskStatus.DONE.value),
            "overdue_tasks": len(overdue),
            "members": member_count,
        },
        "task_stats": analytics.task_status_counts(tasks),
        "time_stats": _time_stats(tasks),
        "recent_tasks": [_task_brief(t) for t in sorted(tasks, key=lambda t: t.updated_at, reverse=True)[:10]],
    })


def user_dashboard(session: Session, user_id: int, now: Optional[datetime] = None) -> Result[Dict]:
    """Cross-workspace summary for one user over all their active memberships."""
    now = now or utcnow()
    rows = session.exec(
        select(WorkspaceMember, Workspace)
        .join(Workspace, Workspace.id == WorkspaceMember.workspace_id)
        .where(
            WorkspaceMember.user_id == user_id,
            WorkspaceMember.status == MembershipStatus.ACTIVE.value,
        )
    ).all()
    workspace_ids = [ws.id for _, ws in rows]

    if workspace_ids:
        my_tasks = session.exec(
            select(Task).where(
                Task.workspace_id.in_(workspace_ids),
                or_(Task.assignee_id == user_id, Task.reporter_id == user_id),
            )
        ).all()
        projects = session.exec(
            select(Project).where(
                Project.workspace_id.in_(workspace_ids),
                Project.is_archived == False,  # noqa: E712
            )
        ).all()
        member_project_ids = set(session.exec(
            select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
        ).all())
    else:
        my_tasks, projects, member_project_ids = [], [], set()

    assigned = [t for t in my_tasks if t.assignee_id == user_id]
    mine = [p for p in projects if p.owner_id == user_id or p.id in member_project_ids]
    horizon = now + timedelta(days=7)
    upcoming = sorted(
        (
            t for t in assigned
            if t.due_date and now <= t.due_date <= horizon and t.status not in CLOSED_TASK_STATUSES
        ),
        key=lambda t: t.due_date,
    )[:10]

    assigned_counts = analytics.task_status_counts(assigned)
    return Success({
        "user_id": user_id,
        "workspaces": [
            {"id": ws.id, "name": ws.name, "slug": ws.slug, "role": m.role} for m, ws in rows
        ],
        "stats": {
            "tasks": {
                "assigned": len(assigned),
                "reported": sum(1 for t in my_tasks if t.reporter_id == user_id),
                "completed": assigned_counts["done"],
                "overdue": sum(1 for t in assigned if t.is_overdue(now)),
                "todo": assigned_counts["todo"],
                "in_progress": assigned_counts["in_progress"],
                "review": assigned_counts["review"],
            },
            "projects": {
                "total": len(projects),
                "owned": sum(1 for p in projects if p.owner_id == user_id),
                "active": sum(1 for p in mine if p.status == ProjectStatus.ACTIVE.value),
                "completed": sum(1 for p in mine if p.status == ProjectStatus.COMPLETED.value),
            },
        },
        "recent_tasks": [_task_brief(t) for t in sorted(my_tasks, key=lambda t: t.updated_at, reverse=True)[:10]],
        "recent_projects": [
            _project_brief(p) for p in sorted(mine, key=lambda p: p.updated_at, reverse=True)[:5]
        ],
        "upcoming_tasks": [_task_brief(t) for t in upcoming],
    })


# ============================================================
# 📊 Analytics
# ============================================================
ANALYTICS_TYPES = ("overview", "productivity", "trends")


def _active_workspace_ids(session: Session, user_id: int) -> List[int]:
    return list(session.exec(
        select(WorkspaceMember.workspace_id).where(
            WorkspaceMember.user_id == user_id,
            WorkspaceMember.status == MembershipStatus.ACTIVE.value,
        )
    ).all())


def _created_between(session: Session, model, workspace_ids: List[int], since: datetime, until: datetime) -> List:
    if not workspace_ids:
        return []
    return session.exec(
        select(model).where(
            model.workspace_id.in_(workspace_ids),
            model.created_at >= since,
            model.created_at <= until,
        )
    ).all()


def _completed_by(session: Session, user_id: int, workspace_ids: List[int], since: datetime, until: datetime) -> List[Task]:
    if not workspace_ids:
        return []
    return session.exec(
        select(Task).where(
            Task.workspace_id.in_(workspace_ids),
            Task.assignee_id == user_id,
            Task.status == TaskStatus.DONE.value,
            Task.completed_date >= since,
            Task.completed_date <= until,
        )
    ).all()


def _overview(session: Session, user_id: int, workspace_ids: List[int], since: datetime, until: datetime) -> Dict:
    tasks_created = len(_created_between(session, Task, workspace_ids, since, until))
    tasks_completed = len(_completed_by(session, user_id, workspace_ids, since, until))
    projects_created = len(_created_between(session, Project, workspace_ids, since, until))

    active_projects = 0
    if workspace_ids:
        member_project_ids = set(session.exec(
            select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
        ).all())
        active = session.exec(
            select(Project).where(
                Project.workspace_id.in_(workspace_ids),
                Project.status == ProjectStatus.ACTIVE.value,
                Project.is_archived == False,  # noqa: E712
            )
        ).all()
        active_projects = sum(1 for p in active if p.owner_id == user_id or p.id in member_project_ids)

    return {
        "tasks_created": tasks_created,
        "tasks_completed": tasks_completed,
        "projects_created": projects_created,
        "active_projects": active_projects,
        "productivity": analytics.completion_rate(tasks_completed, tasks_created),
    }


def _productivity(session: Session, user_id: int, workspace_ids: List[int], since: datetime, until: datetime) -> Dict:
    completed = _completed_by(session, user_id, workspace_ids, since, until)
    return {
        "total_completed": len(completed),
        "daily_completions": analytics.daily_counts(t.completed_date for t in completed),
        "completions_by_priority": analytics.count_by(completed, lambda t: t.priority),
    }


def _trends(session: Session, workspace_ids: List[int], since: datetime, until: datetime) -> Dict:
    tasks = _created_between(session, Task, workspace_ids, since, until)
    projects = _created_between(session, Project, workspace_ids, since, until)
    return {
        "tasks": analytics.monthly_trend(tasks, lambda t: t.status == TaskStatus.DONE.value),
        "projects": analytics.monthly_trend(projects, lambda p: p.status == ProjectStatus.COMPLETED.value),
    }


def dashboard_analytics(
    session: Session,
    user_id: int,
    timeframe: str = "30d",
    analytics_type: str = "overview",
    now: Optional[datetime] = None,
) -> Result[Dict]:
    """
    Activity over a trailing window across every workspace the user is an
    active member of.

    overview: tasks/projects created in the window, tasks the user completed,
    the user's active projects and a completion percentage.
    productivity: the user's completions per day and per priority.
    trends: tasks and projects created per month, with how many are done.
    """
    if timeframe not in analytics.TIMEFRAMES:
        return validation_error(f"Unknown timeframe '{timeframe}'", allowed=list(analytics.TIMEFRAMES))
    if analytics_type not in ANALYTICS_TYPES:
        return validation_error(f"Unknown analytics type '{analytics_type}'", allowed=list(ANALYTICS_TYPES))

    now = now or utcnow()
    since = analytics.timeframe_start(timeframe, now)
    workspace_ids = _active_workspace_ids(session, user_id)

    if analytics_type == "productivity":
        data = _productivity(session, user_id, workspace_ids, since, now)
    elif analytics_type == "trends":
        data = _trends(session, workspace_ids, since, now)
    else:
        data = _overview(session, user_id, workspace_ids, since, now)

    return Success({
        "timeframe": timeframe,
        "type": analytics_type,
        "start_date": since,
        "end_date": now,
        analytics_type: data,
    })
