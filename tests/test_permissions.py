"""
Permission gate tests. The gate is pure, so memberships are built in memory.
"""
import pytest

from core.errors import ErrorKind
from models.models import MembershipStatus, ProjectRole, WorkspaceMember, WorkspaceRole
from services.permissions import (
    Action, Allow, Deny, DenyReason, PermissionContext, QuotaUsage, authorize, check,
)


def _membership(role: str, user_id: int = 1, status: str = MembershipStatus.ACTIVE.value) -> WorkspaceMember:
    return WorkspaceMember(workspace_id=1, user_id=user_id, invited_by_id=1, role=role, status=status)


@pytest.mark.parametrize("action", list(Action))
def test_non_member_is_denied_every_action(action: Action) -> None:
    decision = authorize(None, action, PermissionContext(actor_id=7))

    assert isinstance(decision, Deny)
    assert decision.reason == DenyReason.NOT_MEMBER
    assert check(None, action).kind == ErrorKind.ACCESS_DENIED


def test_pending_membership_counts_as_non_member() -> None:
    pending = _membership(WorkspaceRole.WORKSPACE_ADMIN.value, status=MembershipStatus.PENDING.value)

    decision = authorize(pending, Action.CREATE_TASK)

    assert isinstance(decision, Deny)
    assert decision.reason == DenyReason.NOT_MEMBER


@pytest.mark.parametrize("action", [a for a in Action if a not in (Action.CREATE_PROJECT, Action.INVITE_MEMBER)])
def test_workspace_admin_is_allowed_everything(action: Action) -> None:
    admin = _membership(WorkspaceRole.WORKSPACE_ADMIN.value)

    assert isinstance(authorize(admin, action), Allow)


def test_project_owner_without_admin_role_may_delete_project() -> None:
    owner = _membership(WorkspaceRole.TEAM_MEMBER.value, user_id=5)

    decision = authorize(owner, Action.DELETE_PROJECT, PermissionContext(actor_id=5, project_owner_id=5))

    assert isinstance(decision, Allow)


def test_team_member_cannot_update_someone_elses_task() -> None:
    member = _membership(WorkspaceRole.TEAM_MEMBER.value, user_id=5)
    ctx = PermissionContext(actor_id=5, task_assignee_id=9, task_reporter_id=9)

    failure = check(member, Action.UPDATE_TASK, ctx)

    assert failure is not None
    assert failure.kind == ErrorKind.INSUFFICIENT_ROLE
    assert failure.details["reason"] == DenyReason.NOT_OWNER_OR_ASSIGNEE.value


def test_assignee_and_reporter_may_update_task() -> None:
    member = _membership(WorkspaceRole.TEAM_MEMBER.value, user_id=5)

    assert check(member, Action.UPDATE_TASK, PermissionContext(actor_id=5, task_assignee_id=5)) is None
    assert check(member, Action.UPDATE_PROGRESS, PermissionContext(actor_id=5, task_reporter_id=5)) is None


def test_project_lead_may_update_any_task_but_developer_may_not() -> None:
    member = _membership(WorkspaceRole.TEAM_MEMBER.value, user_id=5)

    lead = PermissionContext(actor_id=5, project_role=ProjectRole.PROJECT_LEAD.value, task_assignee_id=9)
    developer = PermissionContext(actor_id=5, project_role=ProjectRole.DEVELOPER.value, task_assignee_id=9)

    assert check(member, Action.UPDATE_TASK, lead) is None
    assert check(member, Action.UPDATE_TASK, developer).kind == ErrorKind.INSUFFICIENT_ROLE


def test_team_member_lacks_manager_only_actions() -> None:
    member = _membership(WorkspaceRole.TEAM_MEMBER.value)

    for action in (Action.CREATE_PROJECT, Action.APPROVE_TIME, Action.INVITE_MEMBER, Action.MANAGE_WORKSPACE):
        failure = check(member, action)
        assert failure.kind == ErrorKind.INSUFFICIENT_ROLE
        assert failure.details["reason"] == DenyReason.INSUFFICIENT_ROLE.value


def test_project_manager_may_approve_time_but_not_manage_workspace() -> None:
    manager = _membership(WorkspaceRole.PROJECT_MANAGER.value)

    assert check(manager, Action.APPROVE_TIME) is None
    assert check(manager, Action.MANAGE_WORKSPACE).kind == ErrorKind.INSUFFICIENT_ROLE


def test_project_owner_cannot_be_removed_even_by_admin() -> None:
    admin = _membership(WorkspaceRole.WORKSPACE_ADMIN.value)
    ctx = PermissionContext(actor_id=1, project_owner_id=3, target_user_id=3)

    decision = authorize(admin, Action.REMOVE_PROJECT_MEMBER, ctx)

    assert isinstance(decision, Deny)
    assert decision.reason == DenyReason.TARGET_IS_OWNER


def test_exhausted_quota_denies_creation() -> None:
    admin = _membership(WorkspaceRole.WORKSPACE_ADMIN.value)

    full = PermissionContext(quota=QuotaUsage(used=3, limit=3))
    room = PermissionContext(quota=QuotaUsage(used=2, limit=3))

    assert check(admin, Action.CREATE_PROJECT, full).kind == ErrorKind.QUOTA_EXCEEDED
    assert check(admin, Action.CREATE_PROJECT, room) is None
    assert check(admin, Action.INVITE_MEMBER, full).kind == ErrorKind.QUOTA_EXCEEDED


def test_role_is_checked_before_quota() -> None:
    member = _membership(WorkspaceRole.TEAM_MEMBER.value)

    failure = check(member, Action.CREATE_PROJECT, PermissionContext(quota=QuotaUsage(used=3, limit=3)))

    assert failure.kind == ErrorKind.INSUFFICIENT_ROLE


def test_actor_defaults_to_membership_user() -> None:
    member = _membership(WorkspaceRole.TEAM_MEMBER.value, user_id=5)

    assert check(member, Action.DELETE_TASK, PermissionContext(task_reporter_id=5)) is None
