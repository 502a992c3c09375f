# routes/workspaces.py
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlmodel import Session

from core.config import settings
from core.database import get_session
from core.errors import unwrap
from core.security import get_current_user
from models.models import User
from schemas.workspace_schema import (
    InviteCreate, InviteRead, JoinRequest, MemberRead,
    WorkspaceCreate, WorkspaceRead, WorkspaceUpdate, WorkspaceWithRole,
)
from services import workspace_service
from services.email_service import email_service

router = APIRouter(tags=["Workspaces"])


# ==================================================================
#  ✅ Create Workspace (caller becomes its admin)
# ==================================================================
@router.post("/", response_model=WorkspaceRead, status_code=status.HTTP_201_CREATED)
def create_workspace(
    data: WorkspaceCreate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return unwrap(
        workspace_service.create_workspace(
            session,
            current_user.id,
            name=data.name,
            description=data.description,
            plan=data.subscription_plan.value if data.subscription_plan else None,
            workspace_settings_in=data.settings,
        )
    )


# ==================================================================
#  ✅ My Workspaces
# ==================================================================
@router.get("/", response_model=dict)
def list_my_workspaces(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    listing = workspace_service.list_user_workspaces(session, current_user.id, page, limit)
    listing["items"] = [
        WorkspaceWithRole(**WorkspaceRead.model_validate(ws).model_dump(), role=role).model_dump()
        for role, ws in listing["items"]
    ]
    return listing


@router.get("/{workspace_id}", response_model=WorkspaceRead)
def get_workspace(
    workspace_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return unwrap(workspace_service.get_workspace(session, current_user.id, workspace_id))


@router.put("/{workspace_id}", response_model=WorkspaceRead)
def update_workspace(
    workspace_id: int,
    data: WorkspaceUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return unwrap(
        workspace_service.update_workspace(
            session,
            current_user.id,
            workspace_id,
            name=data.name,
            description=data.description,
            workspace_settings_in=data.settings,
        )
    )


# ==================================================================
#  👥 Members & invites
# ==================================================================
@router.get("/{workspace_id}/members", response_model=List[MemberRead])
def list_members(
    workspace_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return unwrap(workspace_service.list_members(session, current_user.id, workspace_id))


@router.post("/{workspace_id}/invites", response_model=InviteRead, status_code=status.HTTP_201_CREATED)
def create_invite(
    workspace_id: int,
    data: InviteCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    invite = unwrap(
        workspace_service.create_invite(session, current_user.id, workspace_id, role=data.role.value)
    )
    link = email_service.build_invite_link(invite.invite_token)

    if data.email:
        workspace = unwrap(workspace_service.get_workspace(session, current_user.id, workspace_id))
        background_tasks.add_task(
            email_service.send_workspace_invite,
            to_email=data.email,
            invite_link=link,
            role=invite.role,
            workspace_name=workspace.name,
            invited_by=current_user.full_name,
            expires_in_days=settings.INVITE_EXPIRE_DAYS,
        )

    return InviteRead(
        invite_token=invite.invite_token,
        invite_link=link,
        role=invite.role,
        invite_expires=invite.invite_expires,
    )


@router.post("/join", response_model=MemberRead)
def join_workspace(
    data: JoinRequest,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return unwrap(workspace_service.join_by_invite(session, current_user.id, data.token))
