"""
Progress views and dashboards.
"""
from datetime import timedelta

import pytest

from core.errors import ErrorKind
from models.models import TaskStatus
from services import dashboard, time_tracking


def test_task_progress_view(session, factory, team, fixed_now) -> None:
    task = factory.task(team.project, team.admin, "Tracked", estimated_hours=10, assignee_id=team.member.id)
    for days_ago, hours in ((1, 2), (2, 2)):
        day = fixed_now.date() - timedelta(days=days_ago)
        time_tracking.log_time(session, team.member.id, task.id, hours, day, now=fixed_now)

    view = dashboard.task_progress_view(session, team.member.id, task.id, now=fixed_now).value

    metrics = view["metrics"]
    assert view["time_stats"]["total_hours"] == 4
    assert metrics["time_progress"] == 40
    assert metrics["remaining_hours"] == 6
    assert metrics["estimated_completion"] == fixed_now + timedelta(days=3)
    assert [p["remaining"] for p in metrics["burndown"]] == [10, 8, 6]
    assert len(view["recent_entries"]) == 2


def test_project_progress_view(session, factory, team) -> None:
    factory.task(team.project, team.admin, "One", status=TaskStatus.DONE.value, assignee_id=team.member.id)
    factory.task(team.project, team.admin, "Two")

    view = dashboard.project_progress_view(session, team.admin.id, team.project.id).value

    assert view["project"]["tasks_count"] == 2
    assert view["project"]["completed_tasks"] == 1
    assert view["task_stats"]["done"] == 1
    assert {m["percent"]: m["achieved"] for m in view["milestones"]} == {25: True, 50: True, 75: False, 100: False}


def test_workspace_views(session, factory, team, fixed_now) -> None:
    factory.task(
        team.project, team.admin, "Late", assignee_id=team.member.id, due_date=fixed_now - timedelta(days=1)
    )

    board = dashboard.workspace_dashboard(session, team.admin.id, team.workspace.id, now=fixed_now).value
    assert board["role"] == "workspace_admin"
    assert board["stats"]["total_members"] == 3
    assert board["stats"]["overdue_tasks"] == 1
    assert board["overdue_tasks"][0]["title"] == "Late"

    progress = dashboard.workspace_progress_view(session, team.admin.id, team.workspace.id).value
    assert progress["projects"]["total"] == 1
    assert progress["tasks"]["total"] == 1

    assert dashboard.workspace_dashboard(session, team.outsider.id, team.workspace.id).kind == ErrorKind.ACCESS_DENIED


def test_user_dashboard(session, factory, team, fixed_now) -> None:
    factory.task(
        team.project, team.admin, "Soon", assignee_id=team.member.id, due_date=fixed_now + timedelta(days=2)
    )
    factory.task(
        team.project, team.admin, "Later", assignee_id=team.member.id, due_date=fixed_now + timedelta(days=20)
    )

    board = dashboard.user_dashboard(session, team.member.id, now=fixed_now).value

    assert [w["id"] for w in board["workspaces"]] == [team.workspace.id]
    assert board["stats"]["tasks"]["assigned"] == 2
    assert [t["title"] for t in board["upcoming_tasks"]] == ["Soon"]
    assert [p["id"] for p in board["recent_projects"]] == [team.project.id]


def test_user_dashboard_without_workspaces(session, team) -> None:
    board = dashboard.user_dashboard(session, team.outsider.id).value

    assert board["workspaces"] == []
    assert board["stats"]["tasks"]["assigned"] == 0


def test_project_dashboard(session, factory, team, fixed_now) -> None:
    factory.task(
        team.project, team.admin, "Late", assignee_id=team.member.id, due_date=fixed_now - timedelta(days=1)
    )
    factory.task(team.project, team.admin, "Shipped", status=TaskStatus.DONE.value)

    board = dashboard.project_dashboard(session, team.admin.id, team.project.id, now=fixed_now).value

    assert board["project_role"] == "project_lead"
    assert board["stats"]["total_tasks"] == 2
    assert board["stats"]["completed_tasks"] == 1
    assert board["stats"]["overdue_tasks"] == 1
    assert dashboard.project_dashboard(session, team.outsider.id, team.project.id).kind == ErrorKind.ACCESS_DENIED


# ============================================================
# 📊 Analytics
# ============================================================
@pytest.fixture
def activity(session, factory, team, fixed_now):
    """Two recent tasks (one done) and one done long ago, all assigned to the member."""
    team.project.created_at = fixed_now - timedelta(days=3)
    session.add(team.project)
    session.commit()

    factory.task(team.project, team.admin, "Open", assignee_id=team.member.id, now=fixed_now - timedelta(days=1))
    factory.task(
        team.project, team.admin, "Recent", status=TaskStatus.DONE.value, priority="high",
        assignee_id=team.member.id, now=fixed_now - timedelta(days=2),
    )
    factory.task(
        team.project, team.admin, "Ancient", status=TaskStatus.DONE.value, priority="low",
        assignee_id=team.member.id, now=fixed_now - timedelta(days=40),
    )
    return team


def test_analytics_overview(session, activity, fixed_now) -> None:
    month = dashboard.dashboard_analytics(session, activity.member.id, now=fixed_now).value
    year = dashboard.dashboard_analytics(session, activity.member.id, timeframe="1y", now=fixed_now).value

    assert month["type"] == "overview"
    assert month["start_date"] == fixed_now - timedelta(days=30)
    assert month["overview"] == {
        "tasks_created": 2,
        "tasks_completed": 1,
        "projects_created": 1,
        "active_projects": 1,
        "productivity": 50,
    }
    assert year["overview"]["tasks_created"] == 3
    assert year["overview"]["productivity"] == 67


def test_analytics_productivity(session, activity, fixed_now) -> None:
    result = dashboard.dashboard_analytics(
        session, activity.member.id, analytics_type="productivity", now=fixed_now
    ).value

    assert result["productivity"] == {
        "total_completed": 1,
        "daily_completions": [{"date": "2026-10-17", "count": 1}],
        "completions_by_priority": {"high": 1},
    }


def test_analytics_trends(session, activity, fixed_now) -> None:
    result = dashboard.dashboard_analytics(
        session, activity.member.id, timeframe="90d", analytics_type="trends", now=fixed_now
    ).value

    assert result["trends"]["tasks"] == [
        {"year": 2026, "month": 9, "created": 1, "completed": 1},
        {"year": 2026, "month": 10, "created": 2, "completed": 1},
    ]
    assert result["trends"]["projects"] == [{"year": 2026, "month": 10, "created": 1, "completed": 0}]


def test_analytics_rejects_unknown_options_and_handles_no_workspaces(session, team) -> None:
    assert dashboard.dashboard_analytics(session, team.admin.id, timeframe="2w").kind == ErrorKind.VALIDATION_ERROR
    assert dashboard.dashboard_analytics(session, team.admin.id, analytics_type="x").kind == ErrorKind.VALIDATION_ERROR

    empty = dashboard.dashboard_analytics(session, team.outsider.id).value
    assert empty["overview"]["tasks_created"] == 0
    assert empty["overview"]["productivity"] == 0
