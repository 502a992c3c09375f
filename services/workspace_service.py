# services/workspace_service.py
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, func, select

from core.config import settings
from core.errors import ErrorKind, Failure, Result, Success, not_found, validation_error
from core.security import generate_invite_token
from core.utils import generate_slug, utcnow
from models.models import (
    MembershipStatus, SubscriptionPlan, Workspace, WorkspaceMember, WorkspaceRole, permissions_for_role,
)
from schemas.workspace_schema import WorkspaceSettings
from services.access import get_active_membership, resolve_access
from services.permissions import Action, PermissionContext, QuotaUsage, check

logger = logging.getLogger(__name__)


# ==========================================================
# ✅ Helpers
# ==========================================================
def _unique_slug(session: Session, name: str) -> str:
    base = generate_slug(name)
    slug = base
    counter = 1
    while session.exec(select(Workspace.id).where(Workspace.slug == slug)).first() is not None:
        slug = f"{base}-{counter}"
        counter += 1
    return slug


def active_member_count(session: Session, workspace_id: int) -> int:
    return session.exec(
        select(func.count(WorkspaceMember.id)).where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.status == MembershipStatus.ACTIVE.value,
        )
    ).one()


def pending_invite_count(session: Session, workspace_id: int, now: datetime) -> int:
    return session.exec(
        select(func.count(WorkspaceMember.id)).where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.status == MembershipStatus.PENDING.value,
            WorkspaceMember.invite_expires > now,
        )
    ).one()


def workspace_settings(workspace: Workspace) -> WorkspaceSettings:
    return WorkspaceSettings.model_validate(workspace.settings or {})


# ==========================================================
# ✅ Create / read / update
# ==========================================================
def create_workspace(
    session: Session,
    owner_id: int,
    name: str,
    description: Optional[str] = None,
    plan: Optional[str] = None,
    workspace_settings_in: Optional[WorkspaceSettings] = None,
) -> Result[Workspace]:
    """Create a workspace with its owner as the first active admin, in one transaction."""
    plan = plan or settings.DEFAULT_WORKSPACE_PLAN
    if plan not in {p.value for p in SubscriptionPlan}:
        plan = SubscriptionPlan.FREE.value
    member_limit, project_limit = settings.plan_limits(plan)

    workspace = Workspace(
        name=name,
        description=description,
        slug=_unique_slug(session, name),
        owner_id=owner_id,
        subscription_plan=plan,
        member_limit=member_limit,
        project_limit=project_limit,
        settings=(workspace_settings_in or WorkspaceSettings()).model_dump(),
    )
    now = utcnow()
    try:
        session.add(workspace)
        session.flush()
        session.add(
            WorkspaceMember(
                workspace_id=workspace.id,
                user_id=owner_id,
                invited_by_id=owner_id,
                role=WorkspaceRole.WORKSPACE_ADMIN.value,
                permissions=permissions_for_role(WorkspaceRole.WORKSPACE_ADMIN.value),
                status=MembershipStatus.ACTIVE.value,
                joined_at=now,
            )
        )
        session.commit()
        session.refresh(workspace)
    except IntegrityError:
        session.rollback()
        return Failure(ErrorKind.CONFLICT, "A workspace with this slug already exists")
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to create workspace %r", name)
        raise

    logger.info("Workspace %s (%s) created by user %s on plan %s", workspace.id, workspace.slug, owner_id, plan)
    return Success(workspace)


def list_user_workspaces(session: Session, user_id: int, page: int = 1, limit: int = 10) -> Dict:
    statement = (
        select(WorkspaceMember, Workspace)
        .join(Workspace, Workspace.id == WorkspaceMember.workspace_id)
        .where(
            WorkspaceMember.user_id == user_id,
            WorkspaceMember.status == MembershipStatus.ACTIVE.value,
        )
    )
    total = len(session.exec(statement).all())
    rows = session.exec(
        statement.order_by(Workspace.created_at).offset((max(page, 1) - 1) * limit).limit(limit)
    ).all()
    return {
        "items": [(membership.role, workspace) for membership, workspace in rows],
        "total": total,
        "page": page,
        "limit": limit,
        "pages": -(-total // limit) if limit else 0,
    }


def get_workspace(session: Session, user_id: int, workspace_id: int) -> Result[Workspace]:
    access = resolve_access(session, user_id, workspace_id=workspace_id)
    if not access.ok:
        return access
    return Success(access.value.workspace)


def update_workspace(
    session: Session,
    user_id: int,
    workspace_id: int,
    name: Optional[str] = None,
    description: Optional[str] = None,
    workspace_settings_in: Optional[WorkspaceSettings] = None,
) -> Result[Workspace]:
    access = resolve_access(session, user_id, workspace_id=workspace_id)
    if not access.ok:
        return access
    denied = check(access.value.membership, Action.MANAGE_WORKSPACE)
    if denied:
        return denied

    workspace = access.value.workspace
    if name is not None:
        workspace.name = name
    if description is not None:
        workspace.description = description
    if workspace_settings_in is not None:
        workspace.settings = workspace_settings_in.model_dump()
    workspace.updated_at = utcnow()

    try:
        session.add(workspace)
        session.commit()
        session.refresh(workspace)
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to update workspace %s", workspace_id)
        raise
    return Success(workspace)


def list_members(session: Session, user_id: int, workspace_id: int) -> Result[List[WorkspaceMember]]:
    access = resolve_access(session, user_id, workspace_id=workspace_id)
    if not access.ok:
        return access
    members = session.exec(
        select(WorkspaceMember)
        .where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.status == MembershipStatus.ACTIVE.value,
        )
        .order_by(WorkspaceMember.joined_at)
    ).all()
    return Success(members)


# ==========================================================
# 📧 Invites
# ==========================================================
def create_invite(
    session: Session,
    user_id: int,
    workspace_id: int,
    role: str = WorkspaceRole.TEAM_MEMBER.value,
    now: Optional[datetime] = None,
) -> Result[WorkspaceMember]:
    """Create a pending membership carrying a time-limited invite token."""
    access = resolve_access(session, user_id, workspace_id=workspace_id)
    if not access.ok:
        return access
    workspace = access.value.workspace
    membership = access.value.membership
    now = now or utcnow()

    roles = [r.value for r in WorkspaceRole]
    if role not in roles:
        return validation_error(f"Unknown role '{role}'", allowed=roles)

    used = active_member_count(session, workspace_id) + pending_invite_count(session, workspace_id, now)
    denied = check(
        membership,
        Action.INVITE_MEMBER,
        PermissionContext(actor_id=user_id, quota=QuotaUsage(used=used, limit=workspace.member_limit)),
    )
    if denied:
        return denied
    if role == WorkspaceRole.WORKSPACE_ADMIN.value and membership.role != WorkspaceRole.WORKSPACE_ADMIN.value:
        return Failure(
            ErrorKind.INSUFFICIENT_ROLE,
            "Only workspace admins can invite another admin.",
            {"reason": "insufficient_role"},
        )

    invite = WorkspaceMember(
        workspace_id=workspace_id,
        invited_by_id=user_id,
        role=role,
        permissions=permissions_for_role(role),
        status=MembershipStatus.PENDING.value,
        invited_at=now,
        invite_token=generate_invite_token(),
        invite_expires=now + timedelta(days=settings.INVITE_EXPIRE_DAYS),
    )
    try:
        session.add(invite)
        session.commit()
        session.refresh(invite)
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to create invite for workspace %s", workspace_id)
        raise

    logger.info("Invite %s created for workspace %s as %s by user %s", invite.id, workspace_id, role, user_id)
    return Success(invite)


def join_by_invite(
    session: Session,
    user_id: int,
    token: str,
    now: Optional[datetime] = None,
) -> Result[WorkspaceMember]:
    now = now or utcnow()
    invite = session.exec(
        select(WorkspaceMember).where(
            WorkspaceMember.invite_token == token,
            WorkspaceMember.status == MembershipStatus.PENDING.value,
        )
    ).first()
    if not invite or invite.is_invite_expired(now):
        return not_found("Invite")

    if get_active_membership(session, invite.workspace_id, user_id):
        return Failure(ErrorKind.CONFLICT, "You are already a member of this workspace")

    workspace = session.get(Workspace, invite.workspace_id)
    if not workspace:
        return not_found("Workspace")
    if active_member_count(session, workspace.id) >= workspace.member_limit:
        return Failure(
            ErrorKind.QUOTA_EXCEEDED,
            "Subscription limit reached for this workspace.",
            {"reason": "quota_exceeded", "limit": workspace.member_limit},
        )

    invite.user_id = user_id
    invite.status = MembershipStatus.ACTIVE.value
    invite.joined_at = now
    invite.invite_token = None
    invite.invite_expires = None
    try:
        session.add(invite)
        session.commit()
        session.refresh(invite)
    except IntegrityError:
        # Concurrent join by the same user hit the active-membership index
        session.rollback()
        return Failure(ErrorKind.CONFLICT, "You are already a member of this workspace")
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to join workspace %s", invite.workspace_id)
        raise

    logger.info("User %s joined workspace %s as %s", user_id, invite.workspace_id, invite.role)
    return Success(invite)
