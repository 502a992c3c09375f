# services/project_service.py
import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy import desc
from sqlmodel import Session, func, select

from core.database import paginate
from core.errors import ErrorKind, Failure, Result, Success, not_found, validation_error
from core.utils import utcnow
from models.models import Project, ProjectMember, ProjectRole
from services.access import get_active_membership, resolve_access
from services.permissions import Action, QuotaUsage, check, context_from_access

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "description", "status", "priority", "start_date", "end_date")


def _name_taken(session: Session, workspace_id: int, name: str, exclude_id: Optional[int] = None) -> bool:
    statement = select(Project.id).where(Project.workspace_id == workspace_id, Project.name == name)
    if exclude_id is not None:
        statement = statement.where(Project.id != exclude_id)
    return session.exec(statement).first() is not None


def _duplicate_name(name: str) -> Failure:
    return Failure(ErrorKind.CONFLICT, f"A project named '{name}' already exists in this workspace")


def _save(session: Session, project: Project, action: str) -> Result[Project]:
    try:
        session.add(project)
        session.commit()
        session.refresh(project)
    except IntegrityError:
        session.rollback()
        return _duplicate_name(project.name)
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to %s project %s", action, project.id)
        raise
    return Success(project)


def open_project_count(session: Session, workspace_id: int) -> int:
    return session.exec(
        select(func.count(Project.id)).where(
            Project.workspace_id == workspace_id,
            Project.is_archived == False,  # noqa: E712
        )
    ).one()


# ==================================================================
#  ✅ Create
# ==================================================================
def create_project(
    session: Session,
    user_id: int,
    workspace_id: int,
    name: str,
    description: Optional[str] = None,
    priority: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> Result[Project]:
    access = resolve_access(session, user_id, workspace_id=workspace_id)
    if not access.ok:
        return access
    ctx = access.value

    quota = QuotaUsage(used=open_project_count(session, workspace_id), limit=ctx.workspace.project_limit)
    denied = check(ctx.membership, Action.CREATE_PROJECT, context_from_access(ctx, quota=quota))
    if denied:
        return denied

    if start_date and end_date and end_date < start_date:
        return validation_error("end_date cannot be before start_date")
    if _name_taken(session, workspace_id, name):
        return _duplicate_name(name)

    project = Project(
        workspace_id=workspace_id,
        name=name,
        description=description,
        owner_id=user_id,
        start_date=start_date,
        end_date=end_date,
    )
    if priority:
        project.priority = priority
    try:
        session.add(project)
        session.flush()
        session.add(ProjectMember(project_id=project.id, user_id=user_id, role=ProjectRole.PROJECT_LEAD.value))
        session.commit()
        session.refresh(project)
    except IntegrityError:
        session.rollback()
        return _duplicate_name(name)
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to create project %r in workspace %s", name, workspace_id)
        raise

    logger.info("Project %s created in workspace %s by user %s", project.id, workspace_id, user_id)
    return Success(project)


# ==================================================================
#  ✅ Read
# ==================================================================
def get_project(session: Session, user_id: int, project_id: int) -> Result[Project]:
    access = resolve_access(session, user_id, project_id=project_id)
    if not access.ok:
        return access
    return Success(access.value.project)


def list_projects(
    session: Session,
    user_id: int,
    workspace_id: int,
    status: Optional[str] = None,
    include_archived: bool = False,
    page: int = 1,
    limit: int = 10,
) -> Result[Dict]:
    if page < 1 or limit < 1:
        return validation_error("page and limit must be positive")
    access = resolve_access(session, user_id, workspace_id=workspace_id)
    if not access.ok:
        return access

    statement = select(Project).where(Project.workspace_id == workspace_id)
    if not include_archived:
        statement = statement.where(Project.is_archived == False)  # noqa: E712
    if status:
        statement = statement.where(Project.status == status)
    return Success(paginate(session, statement.order_by(desc(Project.created_at), desc(Project.id)), page, limit))


# ==================================================================
#  ✅ Update / delete
# ==================================================================
def update_project(session: Session, user_id: int, project_id: int, **changes) -> Result[Project]:
    access = resolve_access(session, user_id, project_id=project_id)
    if not access.ok:
        return access
    ctx = access.value
    denied = check(ctx.membership, Action.UPDATE_PROJECT, context_from_access(ctx))
    if denied:
        return denied

    project = ctx.project
    new_name = changes.get("name")
    if new_name and new_name != project.name and _name_taken(session, project.workspace_id, new_name, project.id):
        return _duplicate_name(new_name)

    start_date = changes.get("start_date") or project.start_date
    end_date = changes.get("end_date") or project.end_date
    if start_date and end_date and end_date < start_date:
        return validation_error("end_date cannot be before start_date")

    for field in UPDATABLE_FIELDS:
        value = changes.get(field)
        if value is not None:
            setattr(project, field, value)
    project.updated_at = utcnow()
    return _save(session, project, "update")


def delete_project(session: Session, user_id: int, project_id: int) -> Result[int]:
    """Delete a project together with its tasks, watchers and time entries."""
    access = resolve_access(session, user_id, project_id=project_id)
    if not access.ok:
        return access
    ctx = access.value
    denied = check(ctx.membership, Action.DELETE_PROJECT, context_from_access(ctx))
    if denied:
        return denied

    try:
        session.delete(ctx.project)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to delete project %s", project_id)
        raise

    logger.info("Project %s deleted by user %s", project_id, user_id)
    return Success(project_id)


# ==================================================================
#  👥 Members
# ==================================================================
def list_project_members(session: Session, user_id: int, project_id: int) -> Result[List[ProjectMember]]:
    access = resolve_access(session, user_id, project_id=project_id)
    if not access.ok:
        return access
    return Success(
        session.exec(select(ProjectMember).where(ProjectMember.project_id == project_id)).all()
    )


def add_project_member(
    session: Session,
    user_id: int,
    project_id: int,
    target_user_id: int,
    role: str = ProjectRole.DEVELOPER.value,
) -> Result[ProjectMember]:
    access = resolve_access(session, user_id, project_id=project_id)
    if not access.ok:
        return access
    ctx = access.value
    denied = check(
        ctx.membership, Action.ADD_PROJECT_MEMBER, context_from_access(ctx, target_user_id=target_user_id)
    )
    if denied:
        return denied

    if not get_active_membership(session, ctx.workspace.id, target_user_id):
        return validation_error("User is not an active member of this workspace", user_id=target_user_id)
    if session.get(ProjectMember, (project_id, target_user_id)):
        return Failure(ErrorKind.CONFLICT, "User is already a member of this project")

    member = ProjectMember(project_id=project_id, user_id=target_user_id, role=role)
    try:
        session.add(member)
        session.commit()
        session.refresh(member)
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to add user %s to project %s", target_user_id, project_id)
        raise
    return Success(member)


def remove_project_member(session: Session, user_id: int, project_id: int, target_user_id: int) -> Result[int]:
    access = resolve_access(session, user_id, project_id=project_id)
    if not access.ok:
        return access
    ctx = access.value
    denied = check(
        ctx.membership, Action.REMOVE_PROJECT_MEMBER, context_from_access(ctx, target_user_id=target_user_id)
    )
    if denied:
        return denied

    member = session.get(ProjectMember, (project_id, target_user_id))
    if not member:
        return not_found("Project member")
    try:
        session.delete(member)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to remove user %s from project %s", target_user_id, project_id)
        raise
    return Success(target_user_id)


# ==================================================================
#  🗄️ Archive
# ==================================================================
def archive_project(session: Session, user_id: int, project_id: int) -> Result[Project]:
    access = resolve_access(session, user_id, project_id=project_id)
    if not access.ok:
        return access
    ctx = access.value
    denied = check(ctx.membership, Action.UPDATE_PROJECT, context_from_access(ctx))
    if denied:
        return denied

    project = ctx.project
    if project.is_archived:
        return Failure(ErrorKind.CONFLICT, "Project is already archived")
    now = utcnow()
    project.is_archived = True
    project.archived_at = now
    project.archived_by_id = user_id
    project.updated_at = now
    return _save(session, project, "archive")


def restore_project(session: Session, user_id: int, project_id: int) -> Result[Project]:
    access = resolve_access(session, user_id, project_id=project_id)
    if not access.ok:
        return access
    ctx = access.value
    denied = check(ctx.membership, Action.UPDATE_PROJECT, context_from_access(ctx))
    if denied:
        return denied

    project = ctx.project
    if not project.is_archived:
        return Failure(ErrorKind.CONFLICT, "Project is not archived")
    quota = QuotaUsage(used=open_project_count(session, project.workspace_id), limit=ctx.workspace.project_limit)
    if quota.exhausted:
        return Failure(
            ErrorKind.QUOTA_EXCEEDED,
            "Subscription limit reached for this workspace.",
            {"reason": "quota_exceeded", "limit": quota.limit},
        )
    project.is_archived = False
    project.archived_at = None
    project.archived_by_id = None
    project.updated_at = utcnow()
    return _save(session, project, "restore")
