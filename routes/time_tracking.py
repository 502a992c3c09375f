# routes/time_tracking.py
from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from core.database import get_session
from core.errors import unwrap
from core.security import get_current_user
from models.models import User
from schemas.time_entry_schema import (
    ApprovalRequest, RunningTimerRead, TimeEntryRead, TimeEntryUpdate, TimeLogCreate, TimerStart,
)
from services import time_tracking

router = APIRouter(tags=["Time Tracking"])


# ==================================================================
#  ⏱️ Timer
# ==================================================================
@router.post("/timer/start", response_model=TimeEntryRead, status_code=status.HTTP_201_CREATED)
def start_timer(
    data: TimerStart,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return unwrap(
        time_tracking.start_timer(
            session, current_user.id, data.task_id, description=data.description, billable=data.billable
        )
    )


@router.post("/timer/{entry_id}/stop", response_model=TimeEntryRead)
def stop_timer(
    entry_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return unwrap(time_tracking.stop_timer(session, current_user.id, entry_id))


@router.get("/timer/running", response_model=Optional[RunningTimerRead])
def get_running_timer(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return time_tracking.get_running_timer(session, current_user.id)


# ==================================================================
#  📝 Entries
# ==================================================================
@router.post("/entries", response_model=TimeEntryRead, status_code=status.HTTP_201_CREATED)
def log_time(
    data: TimeLogCreate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return unwrap(
        time_tracking.log_time(
            session,
            current_user.id,
            data.task_id,
            hours=data.hours,
            date=data.date,
            billable=data.billable,
            description=data.description,
        )
    )


@router.get("/entries", response_model=dict)
def list_my_entries(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    project_id: Optional[int] = Query(None),
    task_id: Optional[int] = Query(None),
    billable: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    listing = unwrap(
        time_tracking.list_user_time_entries(
            session,
            current_user.id,
            start_date=start_date,
            end_date=end_date,
            project_id=project_id,
            task_id=task_id,
            billable=billable,
            page=page,
            limit=limit,
        )
    )
    listing["items"] = [TimeEntryRead.model_validate(e).model_dump() for e in listing["items"]]
    return listing


@router.put("/entries/approve", response_model=List[dict])
def approve_entries(
    data: ApprovalRequest,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return time_tracking.approve_time_entries(
        session, current_user.id, data.entry_ids, data.approved, comment=data.comment
    )


@router.put("/entries/{entry_id}", response_model=TimeEntryRead)
def update_entry(
    entry_id: int,
    data: TimeEntryUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return unwrap(
        time_tracking.update_time_entry(
            session,
            current_user.id,
            entry_id,
            hours=data.hours,
            description=data.description,
            billable=data.billable,
            date=data.date,
        )
    )


@router.delete("/entries/{entry_id}")
def delete_entry(
    entry_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    unwrap(time_tracking.delete_time_entry(session, current_user.id, entry_id))
    return {"message": "Time entry deleted successfully"}


# ==================================================================
#  📊 Summaries & reports
# ==================================================================
@router.get("/projects/{project_id}/summary", response_model=dict)
def project_summary(
    project_id: int,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    summary = unwrap(
        time_tracking.project_time_summary(session, current_user.id, project_id, start_date, end_date)
    )
    project = summary["project"]
    summary["project"] = {"id": project.id, "name": project.name, "status": project.status}
    summary["tasks"] = [
        {
            "id": t.id,
            "title": t.title,
            "status": t.status,
            "priority": t.priority,
            "assignee_id": t.assignee_id,
            "estimated_hours": t.estimated_hours,
            "logged_hours": t.logged_hours,
        }
        for t in summary["tasks"]
    ]
    return summary


@router.get("/workspaces/{workspace_id}/reports", response_model=dict)
def time_report(
    workspace_id: int,
    report_type: Literal["summary", "daily", "user", "project"] = Query("summary"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    project_id: Optional[int] = Query(None),
    user_id: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return unwrap(
        time_tracking.time_report(
            session,
            current_user.id,
            workspace_id,
            report_type=report_type,
            start_date=start_date,
            end_date=end_date,
            project_id=project_id,
            target_user_id=user_id,
        )
    )
