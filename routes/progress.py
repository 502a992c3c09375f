# routes/progress.py
from typing import List

from fastapi import APIRouter, Depends
from sqlmodel import Session

from core.database import get_session
from core.errors import unwrap
from core.security import get_current_user
from models.models import User
from schemas.progress_schema import BulkProgressRequest, ProgressUpdate
from schemas.task_schema import TaskRead
from services import dashboard, progress
from services.access import resolve_access

router = APIRouter(tags=["Progress"])


@router.put("/tasks/bulk", response_model=List[dict])
def bulk_update_progress(
    data: BulkProgressRequest,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    updates = [
        {
            "task_id": item.task_id,
            "progress": item.progress,
            "status": item.status.value if item.status else None,
            "remaining_hours": item.remaining_hours,
        }
        for item in data.updates
    ]
    return progress.bulk_update_task_progress(session, current_user.id, updates)


@router.put("/tasks/{task_id}", response_model=TaskRead)
def update_task_progress(
    task_id: int,
    data: ProgressUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return unwrap(
        progress.update_task_progress(
            session,
            task_id,
            current_user.id,
            progress=data.progress,
            status=data.status.value if data.status else None,
            remaining_hours=data.remaining_hours,
        )
    )


@router.get("/tasks/{task_id}", response_model=dict)
def task_progress(
    task_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return unwrap(dashboard.task_progress_view(session, current_user.id, task_id))


@router.get("/projects/{project_id}", response_model=dict)
def project_progress(
    project_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return unwrap(dashboard.project_progress_view(session, current_user.id, project_id))


@router.post("/projects/{project_id}/recompute", response_model=dict)
def recompute_project(
    project_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    # Any active member may recompute
    unwrap(resolve_access(session, current_user.id, project_id=project_id))
    value = unwrap(progress.recompute_project_progress(session, project_id))
    return {"project_id": project_id, "progress": value}


@router.get("/workspaces/{workspace_id}", response_model=dict)
def workspace_progress(
    workspace_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return unwrap(dashboard.workspace_progress_view(session, current_user.id, workspace_id))
