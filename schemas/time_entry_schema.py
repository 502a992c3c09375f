# time_entry_schema.py
from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional
from datetime import date as date_type, datetime


class TimerStart(BaseModel):
    task_id: int
    description: Optional[str] = Field(default=None, max_length=500)
    billable: bool = False


class TimeLogCreate(BaseModel):
    task_id: int
    # (0, 24] is checked by the service
    hours: float
    date: date_type
    billable: bool = False
    description: Optional[str] = Field(default=None, max_length=500)


class TimeEntryUpdate(BaseModel):
    hours: Optional[float] = None
    description: Optional[str] = Field(default=None, max_length=500)
    billable: Optional[bool] = None
    date: Optional[date_type] = None


class TimeEntryRead(BaseModel):
    id: int
    user_id: int
    task_id: int
    project_id: int
    workspace_id: int
    description: Optional[str] = None
    hours: float
    date: datetime
    billable: bool
    is_running: bool
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    is_approved: Optional[bool] = None
    approved_by_id: Optional[int] = None
    approved_at: Optional[datetime] = None
    approval_comment: Optional[str] = None
    is_invoiced: bool = False

    model_config = ConfigDict(from_attributes=True)


class RunningTimerRead(BaseModel):
    entry: TimeEntryRead
    elapsed_hours: float


class ApprovalRequest(BaseModel):
    entry_ids: List[int] = Field(..., min_length=1)
    approved: bool
    comment: Optional[str] = Field(default=None, max_length=500)
