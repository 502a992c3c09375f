# routes/projects.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from core.database import get_session
from core.errors import unwrap
from core.security import get_current_user
from models.models import ProjectStatus, User
from schemas.project_schema import (
    ProjectCreate, ProjectMemberAdd, ProjectMemberRead, ProjectPage, ProjectRead, ProjectUpdate,
)
from services import project_service

router = APIRouter(tags=["Projects"])


# ==================================================================
#  ✅ Create New Project
# ==================================================================
@router.post("/", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
def create_project(
    data: ProjectCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return unwrap(
        project_service.create_project(
            session,
            current_user.id,
            data.workspace_id,
            name=data.name,
            description=data.description,
            priority=data.priority.value,
            start_date=data.start_date,
            end_date=data.end_date,
        )
    )


# ==================================================================
#  ✅ Get Workspace Projects
# ==================================================================
@router.get("/", response_model=ProjectPage)
def get_projects(
    workspace_id: int = Query(..., description="Workspace ID"),
    status_filter: Optional[ProjectStatus] = Query(None, alias="status"),
    include_archived: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return unwrap(
        project_service.list_projects(
            session,
            current_user.id,
            workspace_id,
            status=status_filter.value if status_filter else None,
            include_archived=include_archived,
            page=page,
            limit=limit,
        )
    )


@router.get("/{project_id}", response_model=ProjectRead)
def get_project(
    project_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return unwrap(project_service.get_project(session, current_user.id, project_id))


# ==================================================================
#  ✅ Update / Delete
# ==================================================================
@router.put("/{project_id}", response_model=ProjectRead)
def update_project(
    project_id: int,
    data: ProjectUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    changes = {}
    for field, value in data.model_dump(exclude_unset=True).items():
        changes[field] = value.value if hasattr(value, "value") else value
    return unwrap(project_service.update_project(session, current_user.id, project_id, **changes))


@router.delete("/{project_id}")
def delete_project(
    project_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    unwrap(project_service.delete_project(session, current_user.id, project_id))
    return {"message": "Project deleted successfully"}


@router.post("/{project_id}/archive", response_model=ProjectRead)
def archive_project(
    project_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return unwrap(project_service.archive_project(session, current_user.id, project_id))


@router.post("/{project_id}/restore", response_model=ProjectRead)
def restore_project(
    project_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return unwrap(project_service.restore_project(session, current_user.id, project_id))


# ==================================================================
#  👥 Project members
# ==================================================================
@router.get("/{project_id}/members", response_model=List[ProjectMemberRead])
def list_members(
    project_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return unwrap(project_service.list_project_members(session, current_user.id, project_id))


@router.post("/{project_id}/members", response_model=ProjectMemberRead, status_code=status.HTTP_201_CREATED)
def add_member(
    project_id: int,
    data: ProjectMemberAdd,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return unwrap(
        project_service.add_project_member(
            session, current_user.id, project_id, data.user_id, role=data.role.value
        )
    )


@router.delete("/{project_id}/members/{user_id}")
def remove_member(
    project_id: int,
    user_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    unwrap(project_service.remove_project_member(session, current_user.id, project_id, user_id))
    return {"message": "Member removed from project"}
