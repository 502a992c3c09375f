# services/access.py
"""
Hierarchy access resolution.

Given an actor and any of (workspace, project, task) ids, load the deepest
entity requested, walk up to its owning workspace and find the actor's active
membership there. Read-only: nothing here writes to the session.
"""
from dataclasses import dataclass
from typing import Optional

from sqlmodel import Session, select

from core.errors import Result, Success, access_denied, not_found, validation_error
from models.models import (
    MembershipStatus, Project, ProjectMember, ProjectRole, Task, Workspace, WorkspaceMember,
)


@dataclass
class AccessContext:
    actor_id: int
    workspace: Workspace
    membership: WorkspaceMember
    project: Optional[Project] = None
    task: Optional[Task] = None
    project_role: Optional[str] = None

    @property
    def role(self) -> str:
        return self.membership.role


def get_active_membership(session: Session, workspace_id: int, user_id: int) -> Optional[WorkspaceMember]:
    return session.exec(
        select(WorkspaceMember).where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.user_id == user_id,
            WorkspaceMember.status == MembershipStatus.ACTIVE.value,
        )
    ).first()


def get_project_role(session: Session, project: Project, user_id: Optional[int]) -> Optional[str]:
    """Project-level role of a user; the owner is always a project lead."""
    if user_id is None:
        return None
    if project.owner_id == user_id:
        return ProjectRole.PROJECT_LEAD.value
    member = session.get(ProjectMember, (project.id, user_id))
    return member.role if member else None


def is_project_member(session: Session, project: Project, user_id: Optional[int]) -> bool:
    return get_project_role(session, project, user_id) is not None


def resolve_access(
    session: Session,
    actor_id: int,
    workspace_id: Optional[int] = None,
    project_id: Optional[int] = None,
    task_id: Optional[int] = None,
) -> Result[AccessContext]:
    if workspace_id is None and project_id is None and task_id is None:
        return validation_error("A workspace, project or task id is required")

    task = None
    project = None

    if task_id is not None:
        task = session.get(Task, task_id)
        if not task:
            return not_found("Task")
        project_id = task.project_id

    if project_id is not None:
        project = session.get(Project, project_id)
        if not project:
            return not_found("Project")
        if task is not None and task.workspace_id != project.workspace_id:
            # Task rows carry their own workspace id; a mismatch means bad data
            return not_found("Project")
        workspace_id = project.workspace_id

    workspace = session.get(Workspace, workspace_id)
    if not workspace:
        return not_found("Workspace")

    membership = get_active_membership(session, workspace.id, actor_id)
    if not membership:
        return access_denied()

    return Success(
        AccessContext(
            actor_id=actor_id,
            workspace=workspace,
            membership=membership,
            project=project,
            task=task,
            project_role=get_project_role(session, project, actor_id) if project else None,
        )
    )
