# routes/dashboard.py
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from core.database import get_session
from core.errors import unwrap
from core.security import get_current_user
from models.models import User
from services import dashboard

router = APIRouter(tags=["Dashboard"])


@router.get("/", response_model=dict)
def my_dashboard(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Summary across every workspace the caller is an active member of."""
    return unwrap(dashboard.user_dashboard(session, current_user.id))


@router.get("/analytics", response_model=dict)
def dashboard_analytics(
    timeframe: str = Query("30d", description="7d, 30d, 90d or 1y"),
    analytics_type: str = Query("overview", alias="type", description="overview, productivity or trends"),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return unwrap(dashboard.dashboard_analytics(session, current_user.id, timeframe, analytics_type))


@router.get("/workspaces/{workspace_id}", response_model=dict)
def workspace_dashboard(
    workspace_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return unwrap(dashboard.workspace_dashboard(session, current_user.id, workspace_id))


@router.get("/projects/{project_id}", response_model=dict)
def project_dashboard(
    project_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return unwrap(dashboard.project_dashboard(session, current_user.id, project_id))
