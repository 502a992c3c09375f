"""
Project and task service tests.
"""
from datetime import timedelta

from sqlmodel import select

from core.errors import ErrorKind
from models.models import ProjectMember, ProjectRole, ProjectStatus, Task, TaskStatus, TimeEntry, WorkspaceRole
from services import project_service, task_service, time_tracking


# ============================================================
# Projects
# ============================================================
def test_creator_is_project_lead(session, team) -> None:
    project = project_service.create_project(session, team.manager.id, team.workspace.id, "Hermes").value

    assert project.owner_id == team.manager.id
    assert project.status == ProjectStatus.PLANNING.value
    lead = session.get(ProjectMember, (project.id, team.manager.id))
    assert lead.role == ProjectRole.PROJECT_LEAD.value


def test_team_member_cannot_create_project(session, team) -> None:
    result = project_service.create_project(session, team.member.id, team.workspace.id, "Nope")

    assert result.kind == ErrorKind.INSUFFICIENT_ROLE


def test_duplicate_project_name_conflicts(session, team) -> None:
    result = project_service.create_project(session, team.admin.id, team.workspace.id, team.project.name)

    assert result.kind == ErrorKind.CONFLICT


def test_project_quota_and_archiving(session, factory) -> None:
    owner = factory.user()
    workspace = factory.workspace(owner, "Quota")
    projects = [factory.project(workspace, owner, f"P{i}") for i in range(3)]

    assert project_service.create_project(session, owner.id, workspace.id, "P3").kind == ErrorKind.QUOTA_EXCEEDED

    assert project_service.archive_project(session, owner.id, projects[0].id).value.is_archived
    assert project_service.create_project(session, owner.id, workspace.id, "P3").ok
    assert project_service.restore_project(session, owner.id, projects[0].id).kind == ErrorKind.QUOTA_EXCEEDED


def test_owner_without_admin_role_may_delete_project(session, factory, team) -> None:
    project = project_service.create_project(session, team.manager.id, team.workspace.id, "Short-lived").value
    task = factory.task(project, team.manager, "Doomed")
    time_tracking.log_time(session, team.manager.id, task.id, 1, task.created_at.date())

    assert project_service.delete_project(session, team.manager.id, project.id).ok
    assert session.exec(select(Task).where(Task.project_id == project.id)).all() == []
    assert session.exec(select(TimeEntry).where(TimeEntry.project_id == project.id)).all() == []


def test_manager_cannot_delete_someone_elses_project(session, team) -> None:
    result = project_service.delete_project(session, team.manager.id, team.project.id)

    assert result.kind == ErrorKind.INSUFFICIENT_ROLE


def test_project_members(session, factory, team) -> None:
    assert project_service.add_project_member(
        session, team.admin.id, team.project.id, team.outsider.id
    ).kind == ErrorKind.VALIDATION_ERROR
    assert project_service.add_project_member(
        session, team.admin.id, team.project.id, team.member.id
    ).kind == ErrorKind.CONFLICT

    added = project_service.add_project_member(
        session, team.admin.id, team.project.id, team.manager.id, role=ProjectRole.TESTER.value
    )
    assert added.value.role == ProjectRole.TESTER.value

    owner_removal = project_service.remove_project_member(session, team.admin.id, team.project.id, team.admin.id)
    assert owner_removal.kind == ErrorKind.INSUFFICIENT_ROLE
    assert owner_removal.details["reason"] == "target_is_owner"

    assert project_service.remove_project_member(session, team.admin.id, team.project.id, team.manager.id).ok
    members = project_service.list_project_members(session, team.admin.id, team.project.id).value
    assert {m.user_id for m in members} == {team.admin.id, team.member.id}


def test_update_project_validates_dates(session, team, fixed_now) -> None:
    result = project_service.update_project(
        session,
        team.admin.id,
        team.project.id,
        start_date=fixed_now,
        end_date=fixed_now - timedelta(days=1),
    )

    assert result.kind == ErrorKind.VALIDATION_ERROR
    session.refresh(team.project)
    assert team.project.start_date is None


# ============================================================
# Tasks
# ============================================================
def test_assignee_must_be_project_member(session, team) -> None:
    result = task_service.create_task(
        session, team.admin.id, team.project.id, "Orphan", assignee_id=team.manager.id
    )

    assert result.kind == ErrorKind.VALIDATION_ERROR


def test_task_created_done_completes_project(session, team) -> None:
    task = task_service.create_task(
        session, team.admin.id, team.project.id, "Done already", status=TaskStatus.DONE.value, estimated_hours=3
    ).value

    assert task.progress == 100
    assert task.remaining_hours == 0
    assert task.completed_date is not None
    session.refresh(team.project)
    assert team.project.progress == 100
    assert team.project.status == ProjectStatus.COMPLETED.value


def test_project_member_may_create_and_update_own_task(session, team) -> None:
    task = task_service.create_task(session, team.member.id, team.project.id, "Mine").value

    assert task.reporter_id == team.member.id
    updated = task_service.update_task(session, team.member.id, task.id, title="Mine, renamed", estimated_hours=5)
    assert updated.value.title == "Mine, renamed"
    assert updated.value.remaining_hours == 5


def test_non_project_member_cannot_create_task(session, factory, team) -> None:
    stranger = factory.user()
    factory.member(team.workspace, stranger, WorkspaceRole.TEAM_MEMBER.value)

    result = task_service.create_task(session, stranger.id, team.project.id, "Not mine")

    assert result.kind == ErrorKind.INSUFFICIENT_ROLE


def test_update_task_rejects_bad_input_without_changes(session, factory, team) -> None:
    task = factory.task(team.project, team.admin, "Stable")

    bad_status = task_service.update_task(session, team.admin.id, task.id, status="nope", title="Changed")
    bad_estimate = task_service.update_task(session, team.admin.id, task.id, estimated_hours=-1, title="Changed")

    assert bad_status.kind == ErrorKind.VALIDATION_ERROR
    assert bad_estimate.kind == ErrorKind.VALIDATION_ERROR
    session.refresh(task)
    assert task.title == "Stable"


def test_delete_task_recomputes_project(session, factory, team) -> None:
    factory.task(team.project, team.admin, "Finished", status=TaskStatus.DONE.value)
    open_task = factory.task(team.project, team.admin, "Open")
    session.refresh(team.project)
    assert team.project.progress == 50

    assert task_service.delete_task(session, team.admin.id, open_task.id).ok

    session.refresh(team.project)
    assert team.project.progress == 100


def test_watchers(session, factory, team) -> None:
    task = factory.task(team.project, team.admin, "Watched")

    assert task_service.add_watcher(session, team.member.id, task.id).ok
    assert task_service.add_watcher(session, team.member.id, task.id).kind == ErrorKind.CONFLICT
    assert task_service.add_watcher(session, team.admin.id, task.id, team.outsider.id).kind == ErrorKind.VALIDATION_ERROR
    assert task_service.watcher_ids(session, task.id) == [team.member.id]

    assert task_service.add_watcher(session, team.admin.id, task.id).ok
    denied = task_service.remove_watcher(session, team.member.id, task.id, team.admin.id)
    assert denied.kind == ErrorKind.INSUFFICIENT_ROLE

    assert task_service.remove_watcher(session, team.member.id, task.id, team.member.id).ok
    assert task_service.remove_watcher(session, team.admin.id, task.id, team.member.id).kind == ErrorKind.NOT_FOUND


# ============================================================
# Listings
# ============================================================
def test_list_projects_paginates(session, factory, team) -> None:
    factory.project(team.workspace, team.admin, "Hermes")
    factory.project(team.workspace, team.admin, "Zeus")

    first = project_service.list_projects(session, team.member.id, team.workspace.id, page=1, limit=2).value
    second = project_service.list_projects(session, team.member.id, team.workspace.id, page=2, limit=2).value

    assert (first["total"], first["pages"], len(first["items"])) == (3, 2, 2)
    assert len(second["items"]) == 1
    seen = {p.name for p in first["items"] + second["items"]}
    assert seen == {"Apollo", "Hermes", "Zeus"}
    assert project_service.list_projects(session, team.member.id, team.workspace.id, page=0).kind == ErrorKind.VALIDATION_ERROR


def test_list_project_tasks_filters(session, factory, team, fixed_now) -> None:
    factory.task(
        team.project, team.admin, "Fix login bug", type="bug", assignee_id=team.member.id,
        due_date=fixed_now - timedelta(days=1), now=fixed_now - timedelta(hours=3),
    )
    factory.task(
        team.project, team.member, "Write docs", description="Explain the LOGIN flow",
        due_date=fixed_now + timedelta(days=5), now=fixed_now - timedelta(hours=2),
    )
    factory.task(
        team.project, team.admin, "Old work", status=TaskStatus.DONE.value,
        due_date=fixed_now - timedelta(days=3), now=fixed_now - timedelta(hours=1),
    )

    def titles(**filters):
        page = task_service.list_project_tasks(session, team.member.id, team.project.id, now=fixed_now, **filters)
        return [t.title for t in page.value["items"]]

    assert titles() == ["Old work", "Write docs", "Fix login bug"]
    assert titles(type="bug") == ["Fix login bug"]
    assert titles(reporter_id=team.member.id) == ["Write docs"]
    assert titles(search="login") == ["Write docs", "Fix login bug"]
    assert titles(overdue=True) == ["Fix login bug"]
    assert titles(due_from=fixed_now, due_to=fixed_now + timedelta(days=7)) == ["Write docs"]


def test_list_project_tasks_paginates(session, factory, team) -> None:
    for number in range(3):
        factory.task(team.project, team.admin, f"Task {number}")

    page = task_service.list_project_tasks(session, team.admin.id, team.project.id, page=2, limit=2).value

    assert page["total"] == 3
    assert page["pages"] == 2
    assert len(page["items"]) == 1
    assert task_service.list_project_tasks(session, team.outsider.id, team.project.id).kind == ErrorKind.ACCESS_DENIED


def test_list_user_tasks_spans_workspaces(session, factory, team, fixed_now) -> None:
    factory.task(team.project, team.admin, "Mine", assignee_id=team.member.id, due_date=fixed_now + timedelta(days=2))
    watched = factory.task(team.project, team.admin, "Watched")
    assert task_service.add_watcher(session, team.member.id, watched.id).ok

    other = factory.workspace(team.manager, "Other")
    factory.member(other, team.member)
    zeus = factory.project(other, team.manager, "Zeus")
    factory.project_member(zeus, team.member)
    factory.task(zeus, team.manager, "Elsewhere", assignee_id=team.member.id)

    hidden = factory.workspace(team.outsider, "Hidden")
    factory.task(factory.project(hidden, team.outsider, "Secret"), team.outsider, "Secret task")

    def titles(user, **filters):
        return [t.title for t in task_service.list_user_tasks(session, user.id, **filters).value["items"]]

    everything = titles(team.member)
    assert everything[0] == "Mine"
    assert set(everything) == {"Mine", "Watched", "Elsewhere"}
    assert set(titles(team.member, assigned_to_me=True)) == {"Mine", "Elsewhere"}
    assert titles(team.member, watched_by_me=True) == ["Watched"]
    assert titles(team.manager, reported_by_me=True) == ["Elsewhere"]
    assert titles(team.outsider) == ["Secret task"]
