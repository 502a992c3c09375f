"""
Hierarchy access resolution tests.
"""
from core.errors import ErrorKind
from models.models import ProjectRole, WorkspaceRole
from services.access import get_project_role, is_project_member, resolve_access


def test_requires_at_least_one_id(session, team) -> None:
    result = resolve_access(session, team.admin.id)

    assert not result.ok
    assert result.kind == ErrorKind.VALIDATION_ERROR


def test_task_resolves_up_to_workspace(session, factory, team) -> None:
    task = factory.task(team.project, team.admin, "Write docs")

    result = resolve_access(session, team.member.id, task_id=task.id)

    assert result.ok
    ctx = result.value
    assert ctx.task.id == task.id
    assert ctx.project.id == team.project.id
    assert ctx.workspace.id == team.workspace.id
    assert ctx.role == WorkspaceRole.TEAM_MEMBER.value
    assert ctx.project_role == ProjectRole.DEVELOPER.value


def test_missing_entities_are_not_found(session, team) -> None:
    assert resolve_access(session, team.admin.id, task_id=999).kind == ErrorKind.NOT_FOUND
    assert resolve_access(session, team.admin.id, project_id=999).kind == ErrorKind.NOT_FOUND
    assert resolve_access(session, team.admin.id, workspace_id=999).kind == ErrorKind.NOT_FOUND


def test_outsider_is_denied(session, team) -> None:
    result = resolve_access(session, team.outsider.id, project_id=team.project.id)

    assert not result.ok
    assert result.kind == ErrorKind.ACCESS_DENIED


def test_project_owner_is_always_lead(session, team) -> None:
    assert get_project_role(session, team.project, team.admin.id) == ProjectRole.PROJECT_LEAD.value
    assert get_project_role(session, team.project, team.manager.id) is None
    assert get_project_role(session, team.project, None) is None
    assert is_project_member(session, team.project, team.member.id)
    assert not is_project_member(session, team.project, team.outsider.id)
