# services/permissions.py
"""
Permission gate.

`authorize` is a pure decision over a membership, an action and whatever
ownership facts the caller already loaded. It never touches the database.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Union

from core.errors import ErrorKind, Failure
from models.models import MembershipStatus, ProjectRole, WorkspaceMember, WorkspaceRole


class Action(str, Enum):
    CREATE_PROJECT = "create_project"
    DELETE_PROJECT = "delete_project"
    UPDATE_PROJECT = "update_project"
    ADD_PROJECT_MEMBER = "add_project_member"
    REMOVE_PROJECT_MEMBER = "remove_project_member"
    CREATE_TASK = "create_task"
    UPDATE_TASK = "update_task"
    DELETE_TASK = "delete_task"
    ADD_WATCHER = "add_watcher"
    REMOVE_WATCHER = "remove_watcher"
    LOG_TIME = "log_time"
    APPROVE_TIME = "approve_time"
    UPDATE_PROGRESS = "update_progress"
    INVITE_MEMBER = "invite_member"
    MANAGE_WORKSPACE = "manage_workspace"


class DenyReason(str, Enum):
    NOT_MEMBER = "not_member"
    INSUFFICIENT_ROLE = "insufficient_role"
    NOT_OWNER_OR_ASSIGNEE = "not_owner_or_assignee"
    TARGET_IS_OWNER = "target_is_owner"
    QUOTA_EXCEEDED = "quota_exceeded"


@dataclass(frozen=True)
class QuotaUsage:
    used: int
    limit: int

    @property
    def exhausted(self) -> bool:
        return self.used >= self.limit


@dataclass
class PermissionContext:
    actor_id: Optional[int] = None
    project_owner_id: Optional[int] = None
    project_role: Optional[str] = None
    task_assignee_id: Optional[int] = None
    task_reporter_id: Optional[int] = None
    target_user_id: Optional[int] = None
    quota: Optional[QuotaUsage] = None


@dataclass(frozen=True)
class Allow:
    allowed: bool = True


@dataclass(frozen=True)
class Deny:
    reason: DenyReason
    message: str
    allowed: bool = False


Decision = Union[Allow, Deny]


# Workspace admins are not listed: they pass every role check.
ROLE_ACTIONS: Dict[str, FrozenSet[Action]] = {
    WorkspaceRole.PROJECT_MANAGER.value: frozenset({
        Action.CREATE_PROJECT,
        Action.UPDATE_PROJECT,
        Action.ADD_PROJECT_MEMBER,
        Action.REMOVE_PROJECT_MEMBER,
        Action.CREATE_TASK,
        Action.UPDATE_TASK,
        Action.UPDATE_PROGRESS,
        Action.ADD_WATCHER,
        Action.REMOVE_WATCHER,
        Action.LOG_TIME,
        Action.APPROVE_TIME,
        Action.INVITE_MEMBER,
    }),
    WorkspaceRole.TEAM_MEMBER.value: frozenset({
        Action.ADD_WATCHER,
        Action.LOG_TIME,
    }),
}

# Actions that ownership/assignment can unlock for a lower role
OWNERSHIP_ACTIONS = frozenset({
    Action.UPDATE_PROJECT,
    Action.DELETE_PROJECT,
    Action.ADD_PROJECT_MEMBER,
    Action.REMOVE_PROJECT_MEMBER,
    Action.CREATE_TASK,
    Action.UPDATE_TASK,
    Action.UPDATE_PROGRESS,
    Action.DELETE_TASK,
    Action.REMOVE_WATCHER,
})

QUOTA_ACTIONS = frozenset({Action.CREATE_PROJECT, Action.INVITE_MEMBER})

DENY_MESSAGES = {
    DenyReason.NOT_MEMBER: "Access denied. You are not a member of this workspace.",
    DenyReason.INSUFFICIENT_ROLE: "Access denied. Your workspace role does not allow this action.",
    DenyReason.NOT_OWNER_OR_ASSIGNEE: "Access denied. Only the owner, assignee, reporter or a manager can do this.",
    DenyReason.TARGET_IS_OWNER: "Cannot remove the project owner.",
    DenyReason.QUOTA_EXCEEDED: "Subscription limit reached for this workspace.",
}


def _deny(reason: DenyReason) -> Deny:
    return Deny(reason=reason, message=DENY_MESSAGES[reason])


def _ownership_grants(action: Action, ctx: PermissionContext) -> bool:
    actor = ctx.actor_id
    if actor is None:
        return False
    is_project_owner = ctx.project_owner_id is not None and ctx.project_owner_id == actor
    is_lead = ctx.project_role == ProjectRole.PROJECT_LEAD.value
    is_assignee = ctx.task_assignee_id is not None and ctx.task_assignee_id == actor
    is_reporter = ctx.task_reporter_id is not None and ctx.task_reporter_id == actor

    if action in (
        Action.UPDATE_PROJECT,
        Action.DELETE_PROJECT,
        Action.ADD_PROJECT_MEMBER,
        Action.REMOVE_PROJECT_MEMBER,
    ):
        return is_project_owner
    if action == Action.CREATE_TASK:
        return ctx.project_role is not None
    if action in (Action.UPDATE_TASK, Action.UPDATE_PROGRESS):
        return is_assignee or is_reporter or is_lead
    if action == Action.DELETE_TASK:
        return is_reporter or is_lead
    if action == Action.REMOVE_WATCHER:
        return (ctx.target_user_id is not None and ctx.target_user_id == actor) or is_lead
    return False


def authorize(
    membership: Optional[WorkspaceMember],
    action: Action,
    context: Optional[PermissionContext] = None,
) -> Decision:
    ctx = context or PermissionContext()

    if membership is None or membership.status != MembershipStatus.ACTIVE.value:
        return _deny(DenyReason.NOT_MEMBER)
    if ctx.actor_id is None:
        ctx.actor_id = membership.user_id

    if (
        action == Action.REMOVE_PROJECT_MEMBER
        and ctx.target_user_id is not None
        and ctx.target_user_id == ctx.project_owner_id
    ):
        return _deny(DenyReason.TARGET_IS_OWNER)

    granted = (
        membership.role == WorkspaceRole.WORKSPACE_ADMIN.value
        or action in ROLE_ACTIONS.get(membership.role, frozenset())
        or _ownership_grants(action, ctx)
    )
    if not granted:
        if action in OWNERSHIP_ACTIONS:
            return _deny(DenyReason.NOT_OWNER_OR_ASSIGNEE)
        return _deny(DenyReason.INSUFFICIENT_ROLE)

    if action in QUOTA_ACTIONS and ctx.quota is not None and ctx.quota.exhausted:
        return _deny(DenyReason.QUOTA_EXCEEDED)

    return Allow()


def deny_to_failure(decision: Deny) -> Failure:
    if decision.reason == DenyReason.NOT_MEMBER:
        kind = ErrorKind.ACCESS_DENIED
    elif decision.reason == DenyReason.QUOTA_EXCEEDED:
        kind = ErrorKind.QUOTA_EXCEEDED
    else:
        kind = ErrorKind.INSUFFICIENT_ROLE
    return Failure(kind, decision.message, {"reason": decision.reason.value})


def check(
    membership: Optional[WorkspaceMember],
    action: Action,
    context: Optional[PermissionContext] = None,
) -> Optional[Failure]:
    """Service-side shortcut: None when allowed, otherwise the failure to return."""
    decision = authorize(membership, action, context)
    if isinstance(decision, Deny):
        return deny_to_failure(decision)
    return None


def context_from_access(access, **extra) -> PermissionContext:
    """Build a PermissionContext from a resolved AccessContext."""
    project = access.project
    task = access.task
    return PermissionContext(
        actor_id=access.actor_id,
        project_owner_id=project.owner_id if project else None,
        project_role=access.project_role,
        task_assignee_id=task.assignee_id if task else None,
        task_reporter_id=task.reporter_id if task else None,
        **extra,
    )
